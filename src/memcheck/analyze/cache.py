from __future__ import annotations

from collections.abc import Callable

from memcheck.analyze.metrics import FunctionAnalysis
from memcheck.ir.models import IRFunction


class AnalysisCache:
    """Per-run memo of function analyses, keyed by function identity.

    The analysis pass never mutates the module, so entries are never
    invalidated. A cache belongs to exactly one walker run.
    """

    def __init__(self, compute: Callable[[IRFunction], FunctionAnalysis]) -> None:
        self._compute = compute
        self._entries: dict[IRFunction, FunctionAnalysis] = {}
        self.misses = 0

    def get_or_compute(self, fn: IRFunction) -> FunctionAnalysis:
        cached = self._entries.get(fn)
        if cached is not None:
            return cached
        self.misses += 1
        result = self._compute(fn)
        self._entries[fn] = result
        return result

    def get(self, fn: IRFunction) -> FunctionAnalysis | None:
        return self._entries.get(fn)

    def __contains__(self, fn: object) -> bool:
        return fn in self._entries

    def __len__(self) -> int:
        return len(self._entries)
