from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from memcheck.ir.models import CallInst, IRFunction, IRModule


@dataclass
class CallCountTable:
    """Number of direct call sites per callee in one module.

    Built every run and exposed on the walk result; the report writers do not
    read it yet.
    """

    counts: Counter[IRFunction] = field(default_factory=Counter)
    unresolved: int = 0

    def count_for(self, fn: IRFunction) -> int:
        return self.counts.get(fn, 0)

    def by_name(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for fn, count in self.counts.items():
            out[fn.name] = out.get(fn.name, 0) + count
        return out

    def most_called(self, n: int = 5) -> list[tuple[IRFunction, int]]:
        return self.counts.most_common(n)

    def __len__(self) -> int:
        return len(self.counts)


def _index_functions(module: IRModule) -> dict[str, IRFunction]:
    index: dict[str, IRFunction] = {}
    for fn in module.functions:
        index.setdefault(fn.name, fn)
    return index


def build_call_counts(module: IRModule) -> CallCountTable:
    index = _index_functions(module)
    table = CallCountTable()
    for fn in module.functions:
        for inst in fn.instructions():
            if not isinstance(inst, CallInst):
                continue
            callee = index.get(inst.callee) if inst.callee else None
            if callee is None:
                table.unresolved += 1
                continue
            table.counts[callee] += 1
    return table
