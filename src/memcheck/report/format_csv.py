from __future__ import annotations

import csv
from pathlib import Path

from memcheck.analyze.metrics import FunctionAnalysis
from memcheck.report.artifact import AtomicTextArtifact
from memcheck.report.models import COLUMNS


def escape_cell(cell: str) -> str:
    """Quote a cell that holds a separator, quote or line break."""
    if any(ch in cell for ch in ',"\r\n'):
        return '"' + cell.replace('"', '""') + '"'
    return cell


def header_line() -> str:
    return ",".join('"' + col.replace('"', '""') + '"' for col in COLUMNS) + "\n"


def row_line(analysis: FunctionAnalysis) -> str:
    cells = [
        escape_cell(analysis.demangled_name),
        escape_cell(analysis.mangled_name),
        str(analysis.loads),
        str(analysis.stores),
        str(analysis.bytes),
    ]
    return ",".join(cells) + "\n"


class CsvArtifact(AtomicTextArtifact):
    """One header row of quoted column names, then one row per function."""

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self.rows = 0

    def on_open(self) -> None:
        self.write(header_line())

    def append(self, analysis: FunctionAnalysis) -> None:
        self.write(row_line(analysis))
        self.rows += 1


def read_csv(path: Path) -> list[dict[str, str]]:
    with path.open(encoding="utf-8", newline="") as fh:
        return list(csv.DictReader(fh))
