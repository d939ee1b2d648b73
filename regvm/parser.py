from __future__ import annotations
import logging
from typing import Iterable, List, Optional, Union

from regvm.ir import (
    Instruction, Operand, Program, Reg, Imm,
    Send, Receive, Set, Add, Multiply, Modulo, Subtract,
    JumpIfGreaterZero, JumpIfNotZero,
)

logger = logging.getLogger(__name__)

_UNARY = {
    "snd": lambda a: Send(_operand(a)),
    "rcv": lambda a: Receive(Reg(a)),
}

_BINARY = {
    "set": lambda a, b: Set(Reg(a), _operand(b)),
    "add": lambda a, b: Add(Reg(a), _operand(b)),
    "mul": lambda a, b: Multiply(Reg(a), _operand(b)),
    "mod": lambda a, b: Modulo(Reg(a), _operand(b)),
    "sub": lambda a, b: Subtract(Reg(a), _operand(b)),
    "jgz": lambda a, b: JumpIfGreaterZero(_operand(a), _operand(b)),
    "jnz": lambda a, b: JumpIfNotZero(_operand(a), _operand(b)),
}


def _operand(tok: str) -> Operand:
    try:
        return Imm(int(tok, 10))
    except ValueError:
        return Reg(tok)


def parse_line(line: str) -> Optional[Instruction]:
    """
    Decode one `<mnemonic> <arg1> [<arg2>]` line.
    Returns None for unknown mnemonics or a wrong argument count.
    """
    toks = line.split()
    if not toks:
        return None
    mnem, args = toks[0], toks[1:]
    if mnem in _UNARY and len(args) == 1:
        return _UNARY[mnem](*args)
    if mnem in _BINARY and len(args) == 2:
        return _BINARY[mnem](*args)
    return None


def parse_program(source: Union[str, Iterable[str]]) -> Program:
    lines = source.splitlines() if isinstance(source, str) else source
    out: List[Instruction] = []
    for lineno, line in enumerate(lines, 1):
        if not line.strip():
            continue
        instr = parse_line(line)
        if instr is None:
            logger.debug("skipping malformed line %d: %r", lineno, line)
            continue
        out.append(instr)
    return tuple(out)


def load_program(path: str) -> Program:
    with open(path, "r", encoding="utf-8") as f:
        return parse_program(f.read())
