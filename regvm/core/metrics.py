from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict

@dataclass
class Metrics:
    steps: int = 0
    blocked_turns: int = 0
    sends: int = 0
    receives: int = 0
    op_counts: Counter = field(default_factory=Counter)
    total_ms: float = 0.0

    jit_compile_ms_total: float = 0.0
    jit_blocks_compiled: int = 0
    jit_cache_hits: int = 0
    jit_cache_misses: int = 0

    def record_op(self, mnem: str, n: int = 1):
        self.op_counts[mnem] += n

    def add_jit_compile(self, dt_ms: float):
        self.jit_compile_ms_total += float(dt_ms)
        self.jit_blocks_compiled += 1

    def inc_jit_hit(self):
        self.jit_cache_hits += 1

    def inc_jit_miss(self):
        self.jit_cache_misses += 1

    def ips(self) -> float:
        if self.total_ms <= 0:
            return 0.0
        return float(self.steps) / (self.total_ms / 1000.0)

    def to_row(self) -> Dict[str, Any]:
        return {
            "steps": self.steps,
            "blocked_turns": self.blocked_turns,
            "sends": self.sends,
            "receives": self.receives,
            "op_counts": dict(sorted(self.op_counts.items())),
            "total_ms": round(self.total_ms, 3),
            "ips": round(self.ips(), 2),
            "jit_compile_ms_total": round(self.jit_compile_ms_total, 3),
            "jit_blocks_compiled": self.jit_blocks_compiled,
            "jit_cache_hits": self.jit_cache_hits,
            "jit_cache_misses": self.jit_cache_misses,
        }
