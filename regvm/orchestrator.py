from __future__ import annotations
import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from .channels import DEAD, CallbackChannel, Channel, Mailbox, PeerPort, SoundChannel
from .core.exec import StepOutcome, Trace, step
from .errors import StepLimitExceeded
from .ir import Program, wrap64
from .parser import parse_program
from .state import Status, VMState

logger = logging.getLogger(__name__)

Source = Union[str, Program, Iterable]


def _as_program(program: Source) -> Program:
    if isinstance(program, str):
        return parse_program(program)
    return tuple(program)


def run_program(
    program: Source,
    *,
    channel: Optional[Channel] = None,
    program_id: int = 0,
    id_register: Optional[str] = "p",
    registers: Optional[Dict[str, int]] = None,
    state: Optional[VMState] = None,
    max_steps: Optional[int] = None,
    trace: Optional[Trace] = None,
    use_jit: bool = False,
) -> VMState:
    """
    Run one instance until its counter leaves the program or it is killed.

    Without a channel, sends are collected in `state.sent` and the first
    `rcv` kills the instance, since nothing will ever arrive.
    """
    st = state or VMState(program=_as_program(program), program_id=program_id,
                          id_register=id_register)
    if registers:
        st.registers.update({k: wrap64(v) for k, v in registers.items()})
    ch = channel or CallbackChannel(st.sent.append, lambda: DEAD)

    if max_steps is None:
        max_steps = 1_000_000

    jit = None
    if use_jit:
        from .jit import llvmlite_jit as jit

    steps_done = 0
    t0 = perf_counter()
    try:
        while st.has_next():
            if steps_done >= max_steps:
                raise StepLimitExceeded(steps_done, st)

            if jit is not None:
                block = jit.find_block(st.program, st.pc)
                if jit.can_jit(block):
                    start_pc = st.pc
                    steps_done += jit.run_block(st, block)
                    if trace:
                        trace("jit", {"id": st.program_id, "pc": start_pc,
                                      "len": len(block), "pc_after": st.pc})
                    continue

            step(st, ch, trace=trace)
            steps_done += 1
    finally:
        st.metrics.total_ms += (perf_counter() - t0) * 1000.0

    if st.status is not Status.KILLED:
        st.status = Status.HALTED
    logger.debug("program %d %s after %d steps at pc=%d",
                 st.program_id, st.status.value, steps_done, st.pc)
    return st


def recover_frequency(program: Source, **kwargs: Any) -> Optional[int]:
    """Last frequency played before the first `rcv`, or None if none ran."""
    ch = SoundChannel()
    run_program(program, channel=ch, **kwargs)
    return ch.recovered


def peer_is_stuck(peer: VMState, peer_inbox: Mailbox) -> bool:
    """
    True once `peer` can never send again: it has halted or been killed,
    or it is parked on a `rcv` with nothing queued for it. Only meaningful
    when asked by the instance about to block itself.
    """
    if not peer.has_next():
        return True
    return peer.status is Status.BLOCKED and len(peer_inbox) == 0


class Pair:
    """Two instances over one program, scheduled by strict alternation."""

    def __init__(self, program: Source, *, ids: Tuple[int, int] = (0, 1),
                 id_register: Optional[str] = "p",
                 trace: Optional[Trace] = None) -> None:
        prog = _as_program(program)
        self.machines = tuple(VMState(program=prog, program_id=i, id_register=id_register)
                              for i in ids)
        self.inboxes = (Mailbox(), Mailbox())
        a, b = self.machines
        in_a, in_b = self.inboxes
        self.ports = (
            PeerPort(in_a, in_b, lambda: peer_is_stuck(b, in_b)),
            PeerPort(in_b, in_a, lambda: peer_is_stuck(a, in_a)),
        )
        self.trace = trace
        self.turns = 0

    def has_next(self) -> bool:
        return any(m.has_next() for m in self.machines)

    def turn(self) -> Tuple[StepOutcome, StepOutcome]:
        outcomes = tuple(step(m, port, trace=self.trace)
                         for m, port in zip(self.machines, self.ports))
        self.turns += 1
        return outcomes  # type: ignore[return-value]

    def deadlocked(self) -> bool:
        """Both parked on `rcv` with empty inboxes: no one can ever progress."""
        return all(m.status is Status.BLOCKED and len(box) == 0
                   for m, box in zip(self.machines, self.inboxes))

    def sent_counts(self) -> Dict[int, int]:
        # instance i's sends land in the other instance's inbox
        a, b = self.machines
        in_a, in_b = self.inboxes
        return {a.program_id: in_b.put_count, b.program_id: in_a.put_count}


@dataclass
class PairResult:
    machines: Tuple[VMState, VMState]
    sent_counts: Dict[int, int]
    turns: int
    deadlocked: bool

    def machine(self, program_id: int) -> VMState:
        for m in self.machines:
            if m.program_id == program_id:
                return m
        raise KeyError(program_id)


def run_paired(
    program: Source,
    *,
    ids: Tuple[int, int] = (0, 1),
    id_register: Optional[str] = "p",
    max_turns: Optional[int] = None,
    trace: Optional[Trace] = None,
) -> PairResult:
    pair = Pair(program, ids=ids, id_register=id_register, trace=trace)
    if max_turns is None:
        max_turns = 1_000_000

    t0 = perf_counter()
    while pair.has_next():
        if pair.turns >= max_turns:
            raise StepLimitExceeded(pair.turns, pair.machines[0], what="turns")
        pair.turn()
    elapsed_ms = (perf_counter() - t0) * 1000.0
    for m in pair.machines:
        m.metrics.total_ms += elapsed_ms
        if m.status is not Status.KILLED:
            m.status = Status.HALTED

    killed = any(m.status is Status.KILLED for m in pair.machines)
    counts = pair.sent_counts()
    logger.info("paired run finished after %d turns (deadlock=%s, sent=%s)",
                pair.turns, killed, counts)
    return PairResult(machines=pair.machines, sent_counts=counts,
                      turns=pair.turns, deadlocked=killed)
