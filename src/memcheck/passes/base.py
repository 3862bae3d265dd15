from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

from memcheck.analyze.demangle import Demangler
from memcheck.analyze.membership import MembershipClassifier
from memcheck.ir.models import IRModule


@dataclass(frozen=True)
class PreservedAnalyses:
    """Which analyses a pass left valid. `everything` means all of them."""

    everything: bool = False
    names: frozenset[str] = frozenset()

    @classmethod
    def all(cls) -> PreservedAnalyses:
        return cls(everything=True)

    @classmethod
    def none(cls) -> PreservedAnalyses:
        return cls()

    def preserves(self, name: str) -> bool:
        return self.everything or name in self.names

    def intersect(self, other: PreservedAnalyses) -> PreservedAnalyses:
        if self.everything:
            return other
        if other.everything:
            return self
        return PreservedAnalyses(names=self.names & other.names)


@dataclass
class PassContext:
    classifier: MembershipClassifier
    csv_path: Path
    json_path: Path
    demangler: Demangler
    diagnostics: TextIO | None = None
    results: dict[str, Any] = field(default_factory=dict)


class ModulePass:
    name: str = "pass"
    description: str = ""

    def __init__(self, context: PassContext) -> None:
        self.context = context

    def run(self, module: IRModule) -> PreservedAnalyses:
        raise NotImplementedError
