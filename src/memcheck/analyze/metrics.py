from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FunctionAnalysis:
    mangled_name: str
    demangled_name: str
    loads: int = 0
    stores: int = 0
    bytes: int = 0

    @property
    def memory_ops(self) -> int:
        return self.loads + self.stores


@dataclass
class WalkStats:
    functions_total: int = 0
    declarations_skipped: int = 0
    non_user_skipped: int = 0
    analyzed: int = 0
    loads: int = 0
    stores: int = 0
    bytes: int = 0

    def add(self, analysis: FunctionAnalysis) -> None:
        self.analyzed += 1
        self.loads += analysis.loads
        self.stores += analysis.stores
        self.bytes += analysis.bytes
