from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Protocol

from memcheck.ir.llvm_text import IRLoadError, parse_module
from memcheck.ir.models import IRModule

log = logging.getLogger(__name__)

BITCODE_MAGIC = b"BC\xc0\xde"
BITCODE_WRAPPER_MAGIC = b"\xde\xc0\x17\x0b"


class IRLoader(Protocol):
    format: str

    def supports(self, path: Path, head: bytes) -> bool:
        ...

    def load(self, path: Path) -> IRModule:
        ...


def _is_bitcode(head: bytes) -> bool:
    return head.startswith(BITCODE_MAGIC) or head.startswith(BITCODE_WRAPPER_MAGIC)


class TextIRLoader:
    format = "llvm-text"

    def supports(self, path: Path, head: bytes) -> bool:
        return not _is_bitcode(head)

    def load(self, path: Path) -> IRModule:
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise IRLoadError(f"cannot read {path}: {exc}") from exc
        return parse_module(text, name=str(path))


class BitcodeIRLoader:
    """Loads `.bc` files by disassembling them with `llvm-dis`."""

    format = "llvm-bitcode"

    def __init__(self, llvm_dis: str | None = None) -> None:
        self.llvm_dis = llvm_dis

    def supports(self, path: Path, head: bytes) -> bool:
        return _is_bitcode(head)

    def _tool(self) -> str:
        if self.llvm_dis:
            return self.llvm_dis
        found = shutil.which("llvm-dis")
        if not found:
            raise IRLoadError("llvm-dis not found on PATH; pass --llvm-dis or disassemble to .ll first")
        return found

    def load(self, path: Path) -> IRModule:
        tool = self._tool()
        try:
            p = subprocess.run(
                [tool, "-o", "-", str(path)],
                check=False,
                capture_output=True,
                text=True,
            )
        except OSError as exc:
            raise IRLoadError(f"failed to run {tool}: {exc}") from exc
        if p.returncode != 0:
            detail = p.stderr.strip() or f"exit status {p.returncode}"
            raise IRLoadError(f"{tool} failed on {path}: {detail}")
        log.debug("Disassembled %s with %s", path, tool)
        return parse_module(p.stdout, name=str(path))


def _read_head(path: Path) -> bytes:
    try:
        with path.open("rb") as fh:
            return fh.read(4)
    except OSError as exc:
        raise IRLoadError(f"cannot read {path}: {exc}") from exc


def load_module(
    path: Path,
    llvm_dis: str | None = None,
    loaders: list[IRLoader] | None = None,
) -> IRModule:
    if loaders is None:
        loaders = [BitcodeIRLoader(llvm_dis), TextIRLoader()]
    head = _read_head(path)
    loader = next((ld for ld in loaders if ld.supports(path, head)), None)
    if loader is None:
        raise IRLoadError(f"no loader for {path}")
    log.debug("Loading %s as %s", path, loader.format)
    return loader.load(path)
