from __future__ import annotations

import json
import textwrap
from pathlib import Path

from memcheck.analyze.metrics import FunctionAnalysis
from memcheck.report.artifact import AtomicTextArtifact
from memcheck.report.models import from_record, to_record


class JsonArrayArtifact(AtomicTextArtifact):
    """A JSON array written one record at a time.

    The opening bracket goes out when the file is opened, each record is
    preceded by a separator except the first, and the closing bracket is
    written on commit, so the file is a valid array for any record count.
    """

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self.records = 0

    def on_open(self) -> None:
        self.write("[")

    def append(self, analysis: FunctionAnalysis) -> None:
        body = textwrap.indent(json.dumps(to_record(analysis), indent=2, ensure_ascii=False), "  ")
        self.write(("\n" if self.records == 0 else ",\n") + body)
        self.records += 1

    def before_commit(self) -> None:
        self.write("\n]\n")


def read_json(path: Path) -> list[FunctionAnalysis]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON array")
    return [from_record(item) for item in raw if isinstance(item, dict)]
