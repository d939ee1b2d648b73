import pytest
from regvm.channels import DEAD, EMPTY, CallbackChannel, ReceiveResult
from regvm.core.exec import StepOutcome, step
from regvm.errors import ModuloByZero
from regvm.parser import parse_program
from regvm.state import Status, VMState

def _machine(src, **kw):
    return VMState(program=parse_program(src), **kw)

def _channel(sent=None, inbox=None, kill=False):
    sent = [] if sent is None else sent
    inbox = [] if inbox is None else inbox

    def try_receive():
        if inbox:
            return ReceiveResult(inbox.pop(0), False)
        return DEAD if kill else EMPTY
    return CallbackChannel(sent.append, try_receive)

def test_program_id_register_is_seeded():
    st = _machine("set a 1", program_id=1)
    assert st.registers == {"p": 1}
    st = _machine("set a 1", id_register=None)
    assert st.registers == {}

def test_arithmetic_step_advances_by_one():
    st = _machine("set a 5\nadd a 2\nmul a 3\nsub a 1\nmod a 4")
    ch = _channel()
    outcomes = [step(st, ch) for _ in range(5)]
    assert outcomes[:4] == [StepOutcome.PROGRESSED] * 4
    assert outcomes[4] is StepOutcome.TERMINATED
    assert st.registers["a"] == ((5 + 2) * 3 - 1) % 4
    assert st.pc == 5
    assert st.status is Status.HALTED

def test_unseen_register_reads_zero_and_is_created():
    st = _machine("add a b")
    step(st, _channel())
    assert st.registers["a"] == 0
    assert st.registers["b"] == 0

def test_send_goes_to_channel():
    sent = []
    st = _machine("set a 9\nsnd a\nsnd 4")
    ch = _channel(sent=sent)
    for _ in range(3):
        step(st, ch)
    assert sent == [9, 4]
    assert st.metrics.sends == 2

def test_receive_stores_value():
    st = _machine("rcv a\nrcv b")
    ch = _channel(inbox=[3, -8])
    step(st, ch)
    step(st, ch)
    assert (st.registers["a"], st.registers["b"]) == (3, -8)
    assert st.metrics.receives == 2

def test_blocked_receive_keeps_counter_and_retries():
    inbox = []
    st = _machine("set x 1\nrcv a\nadd a 1")
    ch = _channel(inbox=inbox)
    step(st, ch)
    assert step(st, ch) is StepOutcome.BLOCKED
    assert step(st, ch) is StepOutcome.BLOCKED
    assert st.pc == 1
    assert st.status is Status.BLOCKED
    assert st.metrics.blocked_turns == 2
    inbox.append(41)
    assert step(st, ch) is StepOutcome.PROGRESSED
    assert st.status is Status.RUNNING
    step(st, ch)
    assert st.registers["a"] == 42

def test_kill_signal_forces_termination():
    st = _machine("rcv a\nset b 1")
    assert step(st, _channel(kill=True)) is StepOutcome.TERMINATED
    assert st.status is Status.KILLED
    assert st.pc == len(st.program)
    assert not st.has_next()
    assert "b" not in st.registers

def test_kill_with_value_still_stores_it():
    st = _machine("rcv a\nset b 1")
    ch = CallbackChannel(lambda v: None, lambda: ReceiveResult(5, True))
    assert step(st, ch) is StepOutcome.TERMINATED
    assert st.registers["a"] == 5
    assert st.status is Status.KILLED

@pytest.mark.parametrize("src,regs,expected_pc", [
    ("jgz a 3", {"a": 1}, 3),
    ("jgz a 3", {"a": 0}, 1),
    ("jgz a 3", {"a": -2}, 1),
    ("jnz a 3", {"a": -2}, 3),
    ("jnz a 3", {"a": 0}, 1),
    ("jgz 1 b", {"b": -4}, -4),
    ("jnz 1 0", {}, 0),
])
def test_conditional_jumps(src, regs, expected_pc):
    st = _machine(src)
    st.registers.update(regs)
    step(st, _channel())
    assert st.pc == expected_pc

def test_jump_below_zero_terminates():
    st = _machine("set a 1\njgz a -5")
    step(st, _channel())
    assert step(st, _channel()) is StepOutcome.TERMINATED
    assert st.status is Status.HALTED

def test_step_after_end_is_noop():
    st = _machine("set a 1")
    step(st, _channel())
    assert step(st, _channel()) is StepOutcome.TERMINATED
    assert st.metrics.steps == 1

def test_modulo_by_zero_raises_arithmetic_error():
    st = _machine("set a 5\nmod a b", program_id=1)
    ch = _channel()
    step(st, ch)
    with pytest.raises(ArithmeticError) as exc:
        step(st, ch)
    assert isinstance(exc.value, ModuloByZero)
    assert exc.value.pc == 1
    assert exc.value.program_id == 1

def test_results_wrap_to_64_bits():
    st = _machine("set a 9223372036854775807\nadd a 1")
    ch = _channel()
    step(st, ch)
    step(st, ch)
    assert st.registers["a"] == -(1 << 63)

def test_op_counts_track_mnemonics():
    st = _machine("set a 3\nmul b a\nsub a 1\njnz a -2")
    ch = _channel()
    while step(st, ch) is not StepOutcome.TERMINATED:
        pass
    assert st.metrics.op_counts["mul"] == 3
    assert st.metrics.op_counts["jnz"] == 3
    assert st.metrics.steps == 1 + 3 * 3

def test_trace_events():
    events = []
    st = _machine("snd 2\nrcv a")
    ch = _channel(kill=True)
    step(st, ch, trace=lambda tag, data: events.append((tag, data["pc"])))
    step(st, ch, trace=lambda tag, data: events.append((tag, data["pc"])))
    assert events == [("send", 0), ("step", 0), ("kill", 1)]
