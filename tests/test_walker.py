from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from memcheck.analyze.membership import MembershipClassifier
from memcheck.analyze.walker import ModuleWalker
from memcheck.ir.datalayout import LayoutError
from memcheck.ir.llvm_text import parse_module
from memcheck.ir.models import IRModule
from memcheck.report.artifact import OutputError
from memcheck.report.format_csv import read_csv

PROJECT_ROOT = "/work/proj"


def _walker(tmp_path: Path, root: str | None, stream: io.StringIO | None = None) -> ModuleWalker:
    return ModuleWalker(
        MembershipClassifier(root),
        tmp_path / "out.csv",
        tmp_path / "out.json",
        diagnostics=stream,
    )


def test_walk_reports_user_functions_in_order(tmp_path: Path, sample_module: IRModule) -> None:
    stream = io.StringIO()
    result = _walker(tmp_path, PROJECT_ROOT, stream).run(sample_module)

    assert [a.mangled_name for a in result.analyses] == ["add", "_Z9fill_pairP4pairi"]
    stats = result.stats
    assert (stats.functions_total, stats.declarations_skipped, stats.non_user_skipped, stats.analyzed) == (5, 1, 2, 2)
    assert (stats.loads, stats.stores, stats.bytes) == (4, 3, 52)
    assert result.preserved.everything
    assert result.call_counts.by_name() == {"add": 2}

    rows = read_csv(tmp_path / "out.csv")
    assert [r["Function Name (Mangled)"] for r in rows] == ["add", "_Z9fill_pairP4pairi"]
    records = json.loads((tmp_path / "out.json").read_text(encoding="utf-8"))
    assert [r["Bytes"] for r in records] == [24, 28]
    assert stream.getvalue().count(" Function Name (Mangled): ") == 2


def test_declarations_never_produce_rows(tmp_path: Path) -> None:
    module = parse_module("declare void @ext()\ndeclare i32 @printf(ptr, ...)\n")
    result = _walker(tmp_path, "/").run(module)
    assert result.analyses == []
    assert result.stats.declarations_skipped == 2
    assert read_csv(tmp_path / "out.csv") == []
    assert json.loads((tmp_path / "out.json").read_text(encoding="utf-8")) == []


def test_missing_root_yields_empty_but_valid_artifacts(
    tmp_path: Path, sample_module: IRModule, caplog: pytest.LogCaptureFixture
) -> None:
    result = _walker(tmp_path, None).run(sample_module)
    assert result.analyses == []
    assert result.stats.non_user_skipped == 4
    assert json.loads((tmp_path / "out.json").read_text(encoding="utf-8")) == []
    assert sum(1 for r in caplog.records if "Source root is not set" in r.getMessage()) == 1


def test_layout_failure_leaves_no_partial_artifacts(tmp_path: Path) -> None:
    text = """\
%opaque.t = type opaque
define void @f(ptr %p) !dbg !1 {
  %v = load %opaque.t, ptr %p
  ret void
}
!1 = distinct !DISubprogram(name: "f", file: !2, line: 1)
!2 = !DIFile(filename: "f.c", directory: "/src")
"""
    (tmp_path / "out.csv").write_text("previous\n", encoding="utf-8")
    with pytest.raises(LayoutError):
        _walker(tmp_path, "/src").run(parse_module(text))
    assert (tmp_path / "out.csv").read_text(encoding="utf-8") == "previous\n"
    assert not (tmp_path / "out.json").exists()
    assert sorted(p.name for p in tmp_path.iterdir()) == ["out.csv"]


def test_each_function_is_analyzed_once(tmp_path: Path, sample_module: IRModule) -> None:
    calls: list[str] = []

    class CountingDemangler:
        def prime(self, names) -> None:
            pass

        def __call__(self, name: str) -> str:
            calls.append(name)
            return name

    walker = ModuleWalker(
        MembershipClassifier(PROJECT_ROOT),
        tmp_path / "a.csv",
        tmp_path / "a.json",
        demangler=CountingDemangler(),  # type: ignore[arg-type]
    )
    walker.run(sample_module)
    assert calls == ["add", "_Z9fill_pairP4pairi"]


def _blocking_dir(path: Path) -> None:
    path.mkdir()
    (path / "keep").write_text("x", encoding="utf-8")


def test_failed_json_publish_keeps_previous_csv(tmp_path: Path, sample_module: IRModule) -> None:
    (tmp_path / "out.csv").write_text("previous\n", encoding="utf-8")
    _blocking_dir(tmp_path / "out.json")
    with pytest.raises(OutputError):
        _walker(tmp_path, PROJECT_ROOT).run(sample_module)
    assert (tmp_path / "out.csv").read_text(encoding="utf-8") == "previous\n"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["out.csv", "out.json"]


def test_failed_csv_publish_restores_json(tmp_path: Path, sample_module: IRModule) -> None:
    (tmp_path / "out.json").write_text("[]\n", encoding="utf-8")
    _blocking_dir(tmp_path / "out.csv")
    with pytest.raises(OutputError):
        _walker(tmp_path, PROJECT_ROOT).run(sample_module)
    assert (tmp_path / "out.json").read_text(encoding="utf-8") == "[]\n"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["out.csv", "out.json"]


def test_failed_csv_publish_removes_new_json(tmp_path: Path, sample_module: IRModule) -> None:
    _blocking_dir(tmp_path / "out.csv")
    with pytest.raises(OutputError):
        _walker(tmp_path, PROJECT_ROOT).run(sample_module)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["out.csv"]
