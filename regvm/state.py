from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from regvm.core.metrics import Metrics
from regvm.ir import Program


class Status(Enum):
    RUNNING = "running"
    BLOCKED = "blocked"
    HALTED = "halted"
    KILLED = "killed"


@dataclass
class VMState:
    program: Program = ()
    program_id: int = 0
    pc: int = 0
    registers: Dict[str, int] = field(default_factory=dict)
    status: Status = Status.RUNNING
    id_register: Optional[str] = "p"
    sent: List[int] = field(default_factory=list)
    metrics: Metrics = field(default_factory=Metrics)

    def __post_init__(self) -> None:
        if not isinstance(self.program, tuple):
            self.program = tuple(self.program)
        if self.id_register:
            self.registers.setdefault(self.id_register, self.program_id)

    def has_next(self) -> bool:
        return self.status is not Status.KILLED and 0 <= self.pc < len(self.program)

    @property
    def terminated(self) -> bool:
        return self.status in (Status.HALTED, Status.KILLED)

    def kill(self) -> None:
        self.pc = len(self.program)
        self.status = Status.KILLED
