from __future__ import annotations

import logging
from collections.abc import Callable

from memcheck.analyze.metrics import FunctionAnalysis
from memcheck.ir.datalayout import DataLayout
from memcheck.ir.models import CallInst, IRFunction, LoadInst, OtherInst, StoreInst

log = logging.getLogger(__name__)


def _identity(name: str) -> str:
    return name


def _safe_demangle(demangle: Callable[[str], str], name: str) -> str:
    try:
        value = demangle(name)
    except Exception as exc:
        log.debug("Demangling %s failed (%s)", name, exc)
        return name
    return value or name


def analyze_function(
    fn: IRFunction,
    layout: DataLayout,
    demangle: Callable[[str], str] | None = None,
) -> FunctionAnalysis:
    """Count loads and stores in `fn` and the bytes they move.

    A load contributes the allocation size of the loaded type, a store the
    allocation size of the stored value's type. Other instructions are
    ignored.
    """
    loads = 0
    stores = 0
    total = 0
    for block in fn.blocks:
        for inst in block.instructions:
            if isinstance(inst, LoadInst):
                loads += 1
                total += layout.alloc_size(inst.type)
            elif isinstance(inst, StoreInst):
                stores += 1
                total += layout.alloc_size(inst.value_type)
            elif isinstance(inst, (CallInst, OtherInst)):
                continue
            else:
                raise TypeError(f"unknown instruction kind: {type(inst).__name__}")
    return FunctionAnalysis(
        mangled_name=fn.name,
        demangled_name=_safe_demangle(demangle or _identity, fn.name),
        loads=loads,
        stores=stores,
        bytes=total,
    )
