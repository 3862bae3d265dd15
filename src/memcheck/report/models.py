from __future__ import annotations

from typing import Any

from memcheck.analyze.metrics import FunctionAnalysis

COL_DEMANGLED = "Function Name (Demangled)"
COL_MANGLED = "Function Name (Mangled)"
COL_LOADS = "Loads"
COL_STORES = "Stores"
COL_BYTES = "Bytes"

COLUMNS = (COL_DEMANGLED, COL_MANGLED, COL_LOADS, COL_STORES, COL_BYTES)

DEFAULT_CSV_NAME = "static_function_analysis.csv"
DEFAULT_JSON_NAME = "static_function_analysis.json"


def to_record(analysis: FunctionAnalysis) -> dict[str, Any]:
    return {
        COL_DEMANGLED: analysis.demangled_name,
        COL_MANGLED: analysis.mangled_name,
        COL_LOADS: analysis.loads,
        COL_STORES: analysis.stores,
        COL_BYTES: analysis.bytes,
    }


def from_record(raw: dict[str, Any]) -> FunctionAnalysis:
    return FunctionAnalysis(
        demangled_name=str(raw.get(COL_DEMANGLED, "")),
        mangled_name=str(raw.get(COL_MANGLED, "")),
        loads=int(raw.get(COL_LOADS, 0)),
        stores=int(raw.get(COL_STORES, 0)),
        bytes=int(raw.get(COL_BYTES, 0)),
    )
