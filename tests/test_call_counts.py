from __future__ import annotations

from memcheck.analyze.call_counts import build_call_counts
from memcheck.ir.models import IRModule


def test_direct_calls_are_counted_per_callee(sample_module: IRModule) -> None:
    table = build_call_counts(sample_module)
    add = sample_module.get_function("add")
    assert table.count_for(add) == 2
    assert table.count_for(sample_module.get_function("printf")) == 0
    assert table.by_name() == {"add": 2}
    assert table.unresolved == 1
    assert table.most_called(1) == [(add, 2)]
    assert len(table) == 1
