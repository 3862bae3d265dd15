from __future__ import annotations

import subprocess
import sys
from pathlib import Path


def _init(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "memcheck", "init", *args],
        capture_output=True,
        text=True,
        check=False,
    )


def test_cli_init_writes_config(tmp_path: Path) -> None:
    result = _init(str(tmp_path), "--preset", "minimal")
    assert result.returncode == 0
    cfg = tmp_path / ".memcheck.yml"
    assert cfg.exists()
    assert "root:" in cfg.read_text(encoding="utf-8")


def test_cli_init_refuses_to_overwrite(tmp_path: Path) -> None:
    cfg = tmp_path / ".memcheck.yml"
    cfg.write_text("root: /keep\n", encoding="utf-8")
    result = _init(str(tmp_path))
    assert result.returncode == 1
    assert cfg.read_text(encoding="utf-8") == "root: /keep\n"
    forced = _init(str(tmp_path), "--force")
    assert forced.returncode == 0
    assert "path_match:" in cfg.read_text(encoding="utf-8")
