from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from memcheck.analyze.accountant import analyze_function
from memcheck.analyze.cache import AnalysisCache
from memcheck.analyze.call_counts import CallCountTable, build_call_counts
from memcheck.analyze.demangle import Demangler
from memcheck.analyze.membership import MembershipClassifier
from memcheck.analyze.metrics import FunctionAnalysis, WalkStats
from memcheck.ir.models import IRFunction, IRModule
from memcheck.passes.base import PreservedAnalyses
from memcheck.report.artifact import ArtifactGroup
from memcheck.report.diagnostics import format_summary, write_function_block
from memcheck.report.format_csv import CsvArtifact
from memcheck.report.format_json import JsonArrayArtifact

log = logging.getLogger(__name__)


@dataclass
class WalkResult:
    analyses: list[FunctionAnalysis] = field(default_factory=list)
    call_counts: CallCountTable = field(default_factory=CallCountTable)
    stats: WalkStats = field(default_factory=WalkStats)
    preserved: PreservedAnalyses = field(default_factory=PreservedAnalyses.all)


class ModuleWalker:
    """Analyzes every user-defined function of a module and writes the reports.

    Functions are visited in declaration order. Declarations and functions the
    classifier rejects are skipped; every other function is analyzed once and
    reported to the diagnostic stream, the CSV table and the JSON array. The
    artifacts only replace their targets, together, once the whole module was
    walked.
    """

    def __init__(
        self,
        classifier: MembershipClassifier,
        csv_path: Path,
        json_path: Path,
        demangler: Demangler | None = None,
        diagnostics: TextIO | None = None,
    ) -> None:
        self.classifier = classifier
        self.csv_path = csv_path
        self.json_path = json_path
        self.demangler = demangler or Demangler(enabled=False)
        self.diagnostics = diagnostics

    def run(self, module: IRModule) -> WalkResult:
        result = WalkResult(call_counts=build_call_counts(module))
        log.debug(
            "Call table: %d callees, %d unresolved call sites",
            len(result.call_counts),
            result.call_counts.unresolved,
        )
        self.demangler.prime(fn.name for fn in module.functions if not fn.is_declaration)

        def compute(fn: IRFunction) -> FunctionAnalysis:
            return analyze_function(fn, module.data_layout, self.demangler)

        cache = AnalysisCache(compute)
        stats = result.stats
        json_out = JsonArrayArtifact(self.json_path)
        csv_out = CsvArtifact(self.csv_path)
        with ArtifactGroup(json_out, csv_out):
            for fn in module.functions:
                stats.functions_total += 1
                if fn.is_declaration:
                    stats.declarations_skipped += 1
                    continue
                if not self.classifier.is_user_defined(fn):
                    stats.non_user_skipped += 1
                    continue
                analysis = cache.get_or_compute(fn)
                if self.diagnostics is not None:
                    write_function_block(self.diagnostics, analysis)
                csv_out.append(analysis)
                json_out.append(analysis)
                result.analyses.append(analysis)
                stats.add(analysis)

        log.info("%s: %s", module.name, format_summary(stats))
        for fn, count in result.call_counts.most_called():
            log.debug("  %s called from %d site(s)", fn.name, count)
        return result
