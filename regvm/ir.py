from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple, Union

I64_MIN = -(1 << 63)
I64_MAX = (1 << 63) - 1
U64 = (1 << 64) - 1


@dataclass(frozen=True)
class Reg:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Imm:
    value: int

    def __str__(self) -> str:
        return str(self.value)


Operand = Union[Reg, Imm]


@dataclass(frozen=True)
class Send:
    value: Operand

@dataclass(frozen=True)
class Receive:
    dest: Reg

@dataclass(frozen=True)
class Set:
    dest: Reg
    src:  Operand

@dataclass(frozen=True)
class Add:
    dest: Reg
    src:  Operand

@dataclass(frozen=True)
class Multiply:
    dest: Reg
    src:  Operand

@dataclass(frozen=True)
class Modulo:
    dest: Reg
    src:  Operand

@dataclass(frozen=True)
class Subtract:
    dest: Reg
    src:  Operand

@dataclass(frozen=True)
class JumpIfGreaterZero:
    cond:   Operand
    offset: Operand

@dataclass(frozen=True)
class JumpIfNotZero:
    cond:   Operand
    offset: Operand


Instruction = Union[
    Send, Receive, Set, Add, Multiply, Modulo, Subtract,
    JumpIfGreaterZero, JumpIfNotZero,
]
Program = Tuple[Instruction, ...]

ARITHMETIC = (Set, Add, Multiply, Modulo, Subtract)
JUMPS = (JumpIfGreaterZero, JumpIfNotZero)

MNEMONICS = {
    Send: "snd",
    Receive: "rcv",
    Set: "set",
    Add: "add",
    Multiply: "mul",
    Modulo: "mod",
    Subtract: "sub",
    JumpIfGreaterZero: "jgz",
    JumpIfNotZero: "jnz",
}


def wrap64(x: int) -> int:
    """Two's complement wrap of an unbounded int into signed 64 bits."""
    x &= U64
    return x - (1 << 64) if x > I64_MAX else x


def trunc_mod(a: int, b: int) -> int:
    """Remainder whose sign follows the dividend. Caller guards b == 0."""
    r = abs(a) % abs(b)
    return -r if a < 0 else r


def mnemonic(instr: Instruction) -> str:
    return MNEMONICS[type(instr)]


def operands(instr: Instruction) -> Tuple[Operand, ...]:
    if isinstance(instr, Send):
        return (instr.value,)
    if isinstance(instr, Receive):
        return (instr.dest,)
    if isinstance(instr, ARITHMETIC):
        return (instr.dest, instr.src)
    if isinstance(instr, JUMPS):
        return (instr.cond, instr.offset)
    raise TypeError(f"not an instruction: {instr!r}")


def format_instruction(instr: Instruction) -> str:
    return " ".join([mnemonic(instr), *(str(op) for op in operands(instr))])


def format_program(program: Program) -> str:
    return "\n".join(format_instruction(i) for i in program)


__all__ = [
    "Reg", "Imm", "Operand", "Instruction", "Program",
    "Send", "Receive", "Set", "Add", "Multiply", "Modulo", "Subtract",
    "JumpIfGreaterZero", "JumpIfNotZero",
    "ARITHMETIC", "JUMPS", "MNEMONICS", "I64_MIN", "I64_MAX",
    "wrap64", "trunc_mod", "mnemonic", "operands",
    "format_instruction", "format_program",
]
