from __future__ import annotations
from collections import deque
from typing import Callable, Deque, NamedTuple, Optional, Protocol


class ReceiveResult(NamedTuple):
    value: Optional[int]
    kill: bool = False


EMPTY = ReceiveResult(None, False)
DEAD = ReceiveResult(None, True)


class Channel(Protocol):
    def send(self, value: int) -> None: ...
    def receive(self) -> ReceiveResult: ...


class Mailbox:
    """One-writer/one-reader FIFO of pending values."""

    def __init__(self) -> None:
        self._q: Deque[int] = deque()
        self.put_count = 0

    def put(self, value: int) -> None:
        self._q.append(value)
        self.put_count += 1

    def get(self) -> Optional[int]:
        return self._q.popleft() if self._q else None

    def __len__(self) -> int:
        return len(self._q)

    def snapshot(self) -> list:
        return list(self._q)


class CallbackChannel:
    def __init__(self,
                 on_send: Callable[[int], None],
                 try_receive: Callable[[], ReceiveResult]) -> None:
        self._on_send = on_send
        self._try_receive = try_receive

    def send(self, value: int) -> None:
        self._on_send(value)

    def receive(self) -> ReceiveResult:
        res = self._try_receive()
        if not isinstance(res, ReceiveResult):
            res = ReceiveResult(*res)
        return res


class SoundChannel:
    """
    `snd` plays a frequency; the first `rcv` recovers the last one played
    and stops the program.
    """

    def __init__(self) -> None:
        self.last_played: Optional[int] = None
        self.recovered: Optional[int] = None
        self.played = 0

    def send(self, value: int) -> None:
        self.last_played = value
        self.played += 1

    def receive(self) -> ReceiveResult:
        self.recovered = self.last_played
        return DEAD


class PeerPort:
    """
    One paired instance's view: sends go to the peer's inbox, receives
    drain our own. `peer_stuck` decides whether an empty inbox is final.
    """

    def __init__(self, inbox: Mailbox, outbox: Mailbox,
                 peer_stuck: Callable[[], bool]) -> None:
        self.inbox = inbox
        self.outbox = outbox
        self._peer_stuck = peer_stuck

    def send(self, value: int) -> None:
        self.outbox.put(value)

    def receive(self) -> ReceiveResult:
        v = self.inbox.get()
        if v is not None:
            return ReceiveResult(v, False)
        return DEAD if self._peer_stuck() else EMPTY
