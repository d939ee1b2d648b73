from __future__ import annotations
from typing import List

from regvm.ir import JUMPS, Imm, Program, Receive, Send, format_instruction


def _target(pc: int, offset, n: int) -> str:
    if not isinstance(offset, Imm):
        return "-> ?"
    tgt = pc + offset.value
    return f"-> {tgt:04d}" if 0 <= tgt < n else "-> exit"


def render_listing(program: Program) -> List[str]:
    """
    Return a numbered listing of the program. Jumps with a literal offset
    show their resolved target; channel ops are flagged.
    """
    n = len(program)
    out: List[str] = [f"# {n} instructions"]
    for pc, op in enumerate(program):
        text = f"{pc:04d}  {format_instruction(op):<16}"
        if isinstance(op, JUMPS):
            text += f"; {_target(pc, op.offset, n)}"
        elif isinstance(op, (Send, Receive)):
            text += "; channel"
        out.append(text.rstrip())
    return out
