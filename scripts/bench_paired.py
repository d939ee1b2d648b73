from __future__ import annotations

import argparse
import json
import statistics
import sys
from time import perf_counter_ns
from typing import Callable, Dict, List

import psutil

from regvm.orchestrator import run_paired, run_program

def build_countdown_program(n: int) -> str:
    """
    Arithmetic-heavy loop: n iterations of a five-instruction block,
    closed by a `jnz` back-edge. The block is what the JIT compiles.
    """
    return "\n".join([
        f"set i {n}",
        "set a 1",
        "mul a 3",
        "add a i",
        "mod a 1000003",
        "sub b a",
        "add x 1",
        "sub i 1",
        "jnz i -6",
    ])

def build_pingpong_program(n: int) -> str:
    """
    Both instances send `n` values, then drain what the peer sent.
    Ends in the deadlock the kill signal resolves.
    """
    return "\n".join([
        f"set i {n}",
        "snd i",
        "sub i 1",
        "jgz i -2",
        "rcv a",
        "add s a",
        "jgz 1 -2",
    ])

def p95(values: List[float]) -> float:
    if not values:
        return 0.0
    vs = sorted(values)
    idx = int(round(0.95 * (len(vs) - 1)))
    return vs[idx]

def time_case(fn: Callable[[], object], *, runs: int) -> Dict[str, float]:
    """Warm up once, then time `runs` calls."""
    fn()
    times_us: List[float] = []
    for _ in range(runs):
        t0 = perf_counter_ns()
        fn()
        t1 = perf_counter_ns()
        times_us.append((t1 - t0) / 1000.0)
    return {
        "runs": runs,
        "mean_us": float(statistics.fmean(times_us)),
        "median_us": float(statistics.median(times_us)),
        "p95_us": float(p95(times_us)),
    }

def speedup(base: Dict[str, float], other: Dict[str, float]) -> float:
    """Median-based speedup for robustness."""
    n = base.get("median_us", 0.0)
    o = other.get("median_us", 0.0)
    return (n / o) if (o and n) else 0.0

def main(argv: List[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Benchmark interpreted vs JIT solo runs and paired runs.")
    ap.add_argument("--runs", type=int, default=10, help="timed runs per case (default: 10)")
    ap.add_argument("--iters", type=int, default=2000, help="loop iterations / values per instance (default: 2000)")
    ap.add_argument("--no-jit", action="store_true", help="skip the llvmlite case")
    ap.add_argument("--out", type=str, default="", help="write JSON to this file (else prints to stdout)")
    args = ap.parse_args(argv)

    proc = psutil.Process()
    meta = {
        "platform": sys.platform,
        "python": ".".join(map(str, sys.version_info[:3])),
        "runs_per_case": args.runs,
        "iters": args.iters,
        "rss_bytes_start": int(proc.memory_info().rss),
    }

    solo = build_countdown_program(args.iters)
    pingpong = build_pingpong_program(args.iters)
    steps = run_program(solo).metrics.steps

    results: Dict[str, Dict[str, float]] = {}
    results["solo_interp"] = time_case(lambda: run_program(solo), runs=args.runs)
    if not args.no_jit:
        results["solo_jit"] = time_case(lambda: run_program(solo, use_jit=True), runs=args.runs)
    results["paired"] = time_case(lambda: run_paired(pingpong), runs=args.runs)

    for name in ("solo_interp", "solo_jit"):
        if name in results:
            med = results[name]["median_us"]
            results[name]["ips_median"] = (steps * 1e6) / med if med else 0.0

    meta["rss_bytes_end"] = int(proc.memory_info().rss)
    payload = {"meta": meta, **results}
    if "solo_jit" in results:
        payload["jit_speedup"] = speedup(results["solo_interp"], results["solo_jit"])

    text = json.dumps(payload, indent=2)
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(text + "\n")
    else:
        print(text, flush=True)
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
