import pytest
from regvm.core.exec import StepOutcome
from regvm.errors import StepLimitExceeded
from regvm.orchestrator import Pair, run_paired
from regvm.state import Status

EXCHANGE = "snd 1\nsnd 2\nsnd p\nrcv a\nrcv b\nrcv c"

def _abc(st):
    return [st.registers[r] for r in "abc"]

def test_values_arrive_in_send_order():
    res = run_paired(EXCHANGE)
    assert _abc(res.machine(1)) == [1, 2, 0]
    assert _abc(res.machine(0)) == [1, 2, 1]
    assert res.sent_counts == {0: 3, 1: 3}
    assert not res.deadlocked
    assert all(m.status is Status.HALTED for m in res.machines)

def test_trailing_rcv_ends_in_deadlock():
    res = run_paired(EXCHANGE + "\nrcv d")
    assert res.deadlocked
    assert all(m.status is Status.KILLED for m in res.machines)
    assert all("d" not in m.registers for m in res.machines)
    assert res.sent_counts == {0: 3, 1: 3}

def test_kill_propagates_when_peer_exhausts_program():
    # id 0 sends one value and runs off the end; id 1 waits for two.
    prog = "jgz p 3\nsnd 5\njgz 1 3\nrcv a\nrcv b"
    pair = Pair(prog)
    a, b = pair.machines
    pair.turn()
    pair.turn()
    assert b.registers["a"] == 5
    out = pair.turn()
    assert out == (StepOutcome.TERMINATED, StepOutcome.TERMINATED)
    assert a.status is Status.HALTED
    assert b.status is Status.KILLED
    assert not pair.has_next()

def test_transient_stall_is_not_a_kill():
    # id 1 blocks while id 0 is still busy computing before it sends.
    prog = "jgz p 5\nset x 1\nadd x 1\nadd x 1\nsnd x\njgz p 2\nset z 0\nrcv a"
    res = run_paired(prog)
    one = res.machine(1)
    assert one.registers["a"] == 3
    assert one.metrics.blocked_turns > 0
    assert one.status is Status.HALTED

def test_deadlock_predicate():
    pair = Pair("rcv a")
    pair.turn()
    # id 0 blocked first; id 1 saw a parked peer with an empty inbox
    a, b = pair.machines
    assert a.status is Status.BLOCKED
    assert b.status is Status.KILLED
    pair.turn()
    assert a.status is Status.KILLED

def test_deadlocked_when_both_parked():
    pair = Pair("rcv a")
    a, b = pair.machines
    a.status = Status.BLOCKED
    b.status = Status.BLOCKED
    assert pair.deadlocked()
    pair.inboxes[0].put(1)
    assert not pair.deadlocked()

def test_sent_count_of_second_instance():
    prog = "\n".join([
        "set i 3",
        "jgz p 2",
        "set i 1",
        "snd i",
        "sub i 1",
        "jgz i -2",
        "rcv a",
        "jgz 1 -1",
    ])
    res = run_paired(prog)
    assert res.sent_counts == {0: 1, 1: 3}
    assert res.deadlocked

def test_custom_ids():
    res = run_paired(EXCHANGE, ids=(3, 9))
    assert res.machine(9).registers["c"] == 3
    assert res.machine(3).registers["c"] == 9

def test_livelock_hits_turn_ceiling():
    with pytest.raises(StepLimitExceeded):
        run_paired("jgz 1 0", max_turns=100)
