from __future__ import annotations
from typing import Any, Optional


class RegVMError(RuntimeError): ...


class StepLimitExceeded(RegVMError):
    def __init__(self, steps: int, state: Any = None, *, what: str = "steps") -> None:
        self.steps = steps
        self.state = state
        pc = getattr(state, "pc", None)
        where = f" at pc={pc}" if pc is not None else ""
        super().__init__(f"gave up after {steps} {what}{where}")


class ModuloByZero(RegVMError, ZeroDivisionError):
    def __init__(self, pc: int, program_id: Optional[int] = None) -> None:
        self.pc = pc
        self.program_id = program_id
        who = f" (program {program_id})" if program_id is not None else ""
        super().__init__(f"modulo by zero at pc={pc}{who}")


class JitUnavailable(RegVMError): ...
