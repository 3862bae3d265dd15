from __future__ import annotations

from typing import TextIO

from memcheck.analyze.metrics import FunctionAnalysis, WalkStats
from memcheck.report.models import COL_BYTES, COL_DEMANGLED, COL_LOADS, COL_MANGLED, COL_STORES

RULE = "-" * 43


def format_function_block(analysis: FunctionAnalysis) -> str:
    lines = [
        RULE,
        f" {COL_DEMANGLED}: {analysis.demangled_name}",
        f" {COL_MANGLED}: {analysis.mangled_name}",
        RULE,
        f"  '{COL_LOADS}': {analysis.loads}",
        f"  '{COL_STORES}': {analysis.stores}",
        f"  '{COL_BYTES}': {analysis.bytes}",
        RULE,
        "",
    ]
    return "\n".join(lines) + "\n"


def write_function_block(stream: TextIO, analysis: FunctionAnalysis) -> None:
    stream.write(format_function_block(analysis))
    stream.flush()


def format_summary(stats: WalkStats) -> str:
    return (
        f"{stats.analyzed} of {stats.functions_total} functions analyzed "
        f"({stats.declarations_skipped} declarations, {stats.non_user_skipped} outside the source root); "
        f"loads={stats.loads} stores={stats.stores} bytes={stats.bytes}"
    )
