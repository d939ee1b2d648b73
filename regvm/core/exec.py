from __future__ import annotations
from enum import Enum
from typing import Any, Callable, Dict, Optional

from regvm.channels import Channel
from regvm.errors import ModuloByZero
from regvm.ir import (
    Operand, Reg,
    Send, Receive, Set, Add, Multiply, Modulo, Subtract,
    JumpIfGreaterZero, JumpIfNotZero,
    format_instruction, mnemonic, trunc_mod, wrap64,
)
from regvm.state import Status, VMState

Trace = Callable[[str, Dict[str, Any]], None]


class StepOutcome(Enum):
    PROGRESSED = "progressed"
    BLOCKED = "blocked"
    TERMINATED = "terminated"


def _get(state: VMState, name: str) -> int:
    return state.registers.setdefault(name, 0)

def _set(state: VMState, name: str, val: int) -> None:
    state.registers[name] = wrap64(val)

def _val(state: VMState, x: Operand) -> int:
    return _get(state, x.name) if isinstance(x, Reg) else x.value


def step(state: VMState, channel: Channel, *,
         trace: Optional[Trace] = None) -> StepOutcome:
    """
    Execute the instruction under the counter, exactly one logical step.

    A `rcv` with nothing to read leaves the counter in place and reports
    BLOCKED; the caller decides when to retry. A kill signal forces the
    counter past the end of the program.
    """
    if not state.has_next():
        if state.status is not Status.KILLED:
            state.status = Status.HALTED
        return StepOutcome.TERMINATED

    pc = state.pc
    op = state.program[pc]
    next_pc = pc + 1
    m = state.metrics
    m.steps += 1

    if isinstance(op, Send):
        v = _val(state, op.value)
        channel.send(v)
        m.sends += 1
        if trace:
            trace("send", {"id": state.program_id, "pc": pc, "value": v})

    elif isinstance(op, Receive):
        res = channel.receive()
        if res.value is None:
            if res.kill:
                state.kill()
                if trace:
                    trace("kill", {"id": state.program_id, "pc": pc})
                return StepOutcome.TERMINATED
            state.status = Status.BLOCKED
            m.blocked_turns += 1
            if trace:
                trace("blocked", {"id": state.program_id, "pc": pc})
            return StepOutcome.BLOCKED
        _set(state, op.dest.name, res.value)
        m.receives += 1
        if res.kill:
            m.record_op(mnemonic(op))
            state.kill()
            if trace:
                trace("kill", {"id": state.program_id, "pc": pc})
            return StepOutcome.TERMINATED

    elif isinstance(op, Set):
        _set(state, op.dest.name, _val(state, op.src))

    elif isinstance(op, Add):
        _set(state, op.dest.name, _get(state, op.dest.name) + _val(state, op.src))

    elif isinstance(op, Multiply):
        _set(state, op.dest.name, _get(state, op.dest.name) * _val(state, op.src))

    elif isinstance(op, Modulo):
        a = _get(state, op.dest.name)
        b = _val(state, op.src)
        if b == 0:
            raise ModuloByZero(pc, state.program_id)
        _set(state, op.dest.name, trunc_mod(a, b))

    elif isinstance(op, Subtract):
        _set(state, op.dest.name, _get(state, op.dest.name) - _val(state, op.src))

    elif isinstance(op, JumpIfGreaterZero):
        cond = _val(state, op.cond)
        offset = _val(state, op.offset)
        if cond > 0:
            next_pc = pc + offset

    elif isinstance(op, JumpIfNotZero):
        cond = _val(state, op.cond)
        offset = _val(state, op.offset)
        if cond != 0:
            next_pc = pc + offset

    else:
        raise TypeError(f"unknown instruction at pc={pc}: {op!r}")

    m.record_op(mnemonic(op))
    state.pc = next_pc
    if trace:
        trace("step", {"id": state.program_id, "pc": pc, "instr": format_instruction(op),
                       "pc_after": next_pc})

    if state.has_next():
        state.status = Status.RUNNING
        return StepOutcome.PROGRESSED
    state.status = Status.HALTED
    return StepOutcome.TERMINATED
