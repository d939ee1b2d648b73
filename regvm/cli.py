from __future__ import annotations

import argparse, json, logging
from typing import Any, Callable, Dict, List, Optional

from regvm.errors import ModuloByZero, StepLimitExceeded
from regvm.ir import Program
from regvm.listing import render_listing
from regvm.orchestrator import run_paired, run_program
from regvm.channels import SoundChannel
from regvm.parser import load_program, parse_program
from regvm.state import VMState


def _load(args) -> Program:
    if args.text is not None:
        return parse_program(args.text.replace("\\n", "\n"))
    try:
        return load_program(args.file)
    except FileNotFoundError:
        raise SystemExit(f"No such file: {args.file}")
    except UnicodeDecodeError:
        raise SystemExit(f"File {args.file!r} is not UTF-8 text.")
    except OSError as e:
        raise SystemExit(f"Error reading file {args.file!r}: {e}")


def _state_row(st: VMState) -> Dict[str, Any]:
    return {
        "id": st.program_id,
        "pc": st.pc,
        "status": st.status.value,
        "registers": dict(sorted(st.registers.items())),
        "metrics": st.metrics.to_row(),
    }


def main(argv: Optional[List[str]] = None):
    p = argparse.ArgumentParser(
        prog="python -m regvm.cli",
        description="Register machine runner (solo/paired/sound) with optional block JIT and tracing.",
    )
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--file", help="Path to a program, one instruction per line.")
    src.add_argument("--text", help="Program text; literal '\\n' separates lines.")
    p.add_argument("--mode", choices=["solo", "paired", "sound"], default="solo",
                   help="solo: one instance; paired: two instances exchanging values; "
                        "sound: stop at the first rcv and report the last sent value.")
    p.add_argument("--id", type=int, default=0, help="Program id for solo/sound runs.")
    p.add_argument("--max-steps", type=int, default=1_000_000,
                   help="Safety step cap (turns in paired mode).")
    p.add_argument("--use-jit", action="store_true", help="Compile arithmetic blocks with llvmlite (solo/sound).")
    p.add_argument("--trace", action="store_true", help="Emit trace events.")
    p.add_argument("--json", action="store_true", help="Print JSON of final state + trace.")
    p.add_argument("--emit-listing", action="store_true", help="Print the program listing and exit.")
    p.add_argument("--log-level", default="WARNING",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = p.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(levelname)s:%(name)s:%(message)s")

    program = _load(args)

    if args.emit_listing:
        print("\n".join(render_listing(program)))
        return

    trace_log: List[Dict[str, Any]] = []

    def tracer(tag: str, payload: Dict[str, Any]):
        rec: Dict[str, Any] = {"event": tag}
        rec.update(payload or {})
        trace_log.append(rec)

    trace_cb: Optional[Callable[[str, dict], None]] = tracer if args.trace else None

    out: Dict[str, Any] = {"mode": args.mode}
    try:
        if args.mode == "paired":
            res = run_paired(program, max_turns=args.max_steps, trace=trace_cb)
            out.update({
                "turns": res.turns,
                "deadlocked": res.deadlocked,
                "sent_counts": {str(k): v for k, v in res.sent_counts.items()},
                "machines": [_state_row(m) for m in res.machines],
            })
        elif args.mode == "sound":
            ch = SoundChannel()
            st = run_program(program, channel=ch, program_id=args.id,
                             max_steps=args.max_steps, trace=trace_cb, use_jit=args.use_jit)
            out.update({"recovered": ch.recovered, "machines": [_state_row(st)]})
        else:
            st = run_program(program, program_id=args.id, max_steps=args.max_steps,
                             trace=trace_cb, use_jit=args.use_jit)
            out.update({"sent": st.sent, "machines": [_state_row(st)]})
    except StepLimitExceeded as e:
        raise SystemExit(f"Step limit exceeded: {e}")
    except ModuloByZero as e:
        raise SystemExit(f"Arithmetic error: {e}")

    if args.trace:
        out["trace"] = trace_log

    if args.json:
        print(json.dumps(out, indent=2))
        return

    print(f"Mode: {args.mode}")
    if args.mode == "paired":
        print(f" turns={out['turns']} deadlocked={out['deadlocked']}")
        for pid, n in out["sent_counts"].items():
            print(f" program {pid} sent {n} values")
    elif args.mode == "sound":
        print(f" recovered={out['recovered']}")
    for row in out["machines"]:
        print(f" [{row['id']}] PC={row['pc']} status={row['status']} steps={row['metrics']['steps']}")
        print(f"     Registers: {row['registers']}")
    if args.trace:
        print("\nTrace:")
        for e in trace_log:
            print(e)


if __name__ == "__main__":
    main()
