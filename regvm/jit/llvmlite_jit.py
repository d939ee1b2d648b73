from __future__ import annotations
from dataclasses import dataclass
from itertools import count
from typing import Any, Callable, Dict, List, Tuple
import ctypes
import logging
import time

from llvmlite import ir, binding as llvm

from regvm.errors import JitUnavailable
from regvm.ir import (
    ARITHMETIC, I64_MIN, I64_MAX, Imm, Instruction, Program, Reg,
    Set, Add, Multiply, Modulo, Subtract, mnemonic,
)

logger = logging.getLogger(__name__)

llvm.initialize_native_target()
llvm.initialize_native_asmprinter()

_engine = None
_tm = None
_names = count()

Block = Tuple[Instruction, ...]

@dataclass
class CompiledBlock:
    inputs: Tuple[str, ...]
    outputs: Dict[str, Callable[..., int]]
    mnems: Tuple[str, ...]

_cache: Dict[Block, CompiledBlock] = {}

_stats = {
    "compile_ms_total": 0.0,
    "compiled_blocks": 0,
    "cache_hits": 0,
    "cache_misses": 0,
}

def cache_stats():
    """Return a snapshot of current JIT stats."""
    return dict(_stats)

def clear_cache() -> None:
    _cache.clear()

def _get_engine():
    global _engine, _tm
    if _engine is not None:
        return _engine, _tm
    target = llvm.Target.from_default_triple()
    _tm = target.create_target_machine()
    backing_mod = llvm.parse_assembly("")
    _engine = llvm.create_mcjit_compiler(backing_mod, _tm)
    return _engine, _tm


def find_block(program: Program, pc: int) -> Block:
    """Maximal straight-line run of arithmetic instructions starting at pc."""
    end = pc
    while 0 <= end < len(program) and isinstance(program[end], ARITHMETIC):
        end += 1
    return tuple(program[pc:end])

def can_jit(block: Block) -> bool:
    if len(block) < 2:
        return False
    for op in block:
        if not isinstance(op, ARITHMETIC):
            return False
        if isinstance(op.src, Imm) and not (I64_MIN <= op.src.value <= I64_MAX):
            return False
        if isinstance(op, Modulo):
            # srem by a register may trap, and INT64_MIN srem -1 is undefined
            if not isinstance(op.src, Imm) or op.src.value in (0, -1):
                return False
    return True

def _live_ins(block: Block) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    inputs: List[str] = []
    outputs: List[str] = []

    def use(name: str):
        if name not in outputs and name not in inputs:
            inputs.append(name)

    for op in block:
        if isinstance(op.src, Reg):
            use(op.src.name)
        if not isinstance(op, Set):
            use(op.dest.name)
        if op.dest.name not in outputs:
            outputs.append(op.dest.name)
    return tuple(inputs), tuple(outputs)

def _build_module(block: Block, inputs, outputs, tag: int) -> Tuple[ir.Module, Dict[str, str]]:
    """
    Emit one function per written register:
        i64 blk<tag>_<n>(i64 <live-in>, ...)
    Each replays the whole block and returns that register's final value.
    """
    i64 = ir.IntType(64)
    mod = ir.Module(name=f"regvm_block_{tag}")
    fn_ty = ir.FunctionType(i64, [i64] * len(inputs))
    names: Dict[str, str] = {}

    for n, out in enumerate(outputs):
        fname = f"blk{tag}_{n}"
        fn = ir.Function(mod, fn_ty, name=fname)
        builder = ir.IRBuilder(fn.append_basic_block("entry"))
        env: Dict[str, Any] = dict(zip(inputs, fn.args))

        def val(x):
            return env[x.name] if isinstance(x, Reg) else ir.Constant(i64, x.value)

        for op in block:
            d = op.dest.name
            if isinstance(op, Set):
                env[d] = val(op.src)
            elif isinstance(op, Add):
                env[d] = builder.add(env[d], val(op.src))
            elif isinstance(op, Multiply):
                env[d] = builder.mul(env[d], val(op.src))
            elif isinstance(op, Subtract):
                env[d] = builder.sub(env[d], val(op.src))
            elif isinstance(op, Modulo):
                env[d] = builder.srem(env[d], val(op.src))
        builder.ret(env[out])
        names[out] = fname
    return mod, names

def _compile(block: Block) -> CompiledBlock:
    if not can_jit(block):
        raise JitUnavailable(f"block of {len(block)} instructions is not compilable")
    eng, _ = _get_engine()
    tag = next(_names)
    inputs, outputs = _live_ins(block)
    mod, names = _build_module(block, inputs, outputs, tag)
    llvm_mod = llvm.parse_assembly(str(mod))
    llvm_mod.verify()
    eng.add_module(llvm_mod)
    eng.finalize_object()
    cfunctype = ctypes.CFUNCTYPE(ctypes.c_int64, *([ctypes.c_int64] * len(inputs)))
    fns = {reg: cfunctype(eng.get_function_address(fname)) for reg, fname in names.items()}
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("compiled block %d: in=%s out=%s", tag, inputs, outputs)
    return CompiledBlock(inputs=inputs, outputs=fns, mnems=tuple(mnemonic(op) for op in block))

def run_block(state, block: Block) -> int:
    """
    Execute `block` (which must start at state.pc) natively.
    Returns the number of instructions retired.
    """
    cb = _cache.get(block)
    if cb is None:
        _stats["cache_misses"] += 1
        state.metrics.inc_jit_miss()
        t0 = time.perf_counter()
        cb = _compile(block)
        dt_ms = (time.perf_counter() - t0) * 1000.0
        _cache[block] = cb
        _stats["compile_ms_total"] += dt_ms
        _stats["compiled_blocks"] += 1
        state.metrics.add_jit_compile(dt_ms)
    else:
        _stats["cache_hits"] += 1
        state.metrics.inc_jit_hit()

    args = [state.registers.setdefault(name, 0) for name in cb.inputs]
    results = {reg: int(fn(*args)) for reg, fn in cb.outputs.items()}
    state.registers.update(results)

    state.pc += len(block)
    state.metrics.steps += len(block)
    for mnem in cb.mnems:
        state.metrics.record_op(mnem)
    return len(block)
