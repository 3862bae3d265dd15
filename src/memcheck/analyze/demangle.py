from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Iterable

log = logging.getLogger(__name__)

DEFAULT_TOOLS = ("llvm-cxxfilt", "c++filt")
MANGLED_PREFIXES = ("_Z", "__Z", "_R", "?", "_D")
TOOL_TIMEOUT_SECONDS = 10.0


def looks_mangled(name: str) -> bool:
    return name.startswith(MANGLED_PREFIXES)


def _fits_one_line(name: str) -> bool:
    # the tool protocol is one name per line, split with str.splitlines
    return len(name.splitlines()) == 1


class Demangler:
    """Best-effort symbol demangling through `llvm-cxxfilt` or `c++filt`.

    Never raises: when no tool is available or a tool call fails, names come
    back unchanged. Results are memoized for the lifetime of the instance.
    """

    def __init__(self, tool: str | None = None, enabled: bool = True) -> None:
        self.tool = tool
        self.enabled = enabled
        self._resolved: str | None = None
        self._looked_up = False
        self._warned = False
        self._memo: dict[str, str] = {}

    def tool_path(self) -> str | None:
        if self._looked_up:
            return self._resolved
        self._looked_up = True
        candidates = (self.tool,) if self.tool else DEFAULT_TOOLS
        for candidate in candidates:
            found = shutil.which(candidate)
            if found:
                self._resolved = found
                break
        if self._resolved is None and not self._warned:
            log.warning(
                "No demangler found (tried %s); names are reported mangled.",
                ", ".join(candidates),
            )
            self._warned = True
        return self._resolved

    def _run(self, names: list[str]) -> list[str] | None:
        tool = self.tool_path()
        if tool is None:
            return None
        try:
            p = subprocess.run(
                [tool],
                input="\n".join(names) + "\n",
                check=False,
                capture_output=True,
                text=True,
                timeout=TOOL_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            log.debug("Demangler %s failed (%s)", tool, exc)
            return None
        if p.returncode != 0:
            log.debug("Demangler %s exited with %s", tool, p.returncode)
            return None
        lines = p.stdout.splitlines()
        if len(lines) != len(names):
            log.debug("Demangler %s returned %d lines for %d names", tool, len(lines), len(names))
            return None
        return lines

    def prime(self, names: Iterable[str]) -> None:
        """Demangle a batch of names with a single tool invocation."""
        if not self.enabled:
            return
        pending = sorted({n for n in names if looks_mangled(n) and n not in self._memo and _fits_one_line(n)})
        if not pending:
            return
        results = self._run(pending)
        if results is None:
            return
        for name, demangled in zip(pending, results):
            self._memo[name] = demangled.strip() or name

    def demangle(self, name: str) -> str:
        if not self.enabled or not looks_mangled(name) or not _fits_one_line(name):
            return name
        cached = self._memo.get(name)
        if cached is not None:
            return cached
        results = self._run([name])
        demangled = results[0].strip() if results else ""
        value = demangled or name
        self._memo[name] = value
        return value

    __call__ = demangle
