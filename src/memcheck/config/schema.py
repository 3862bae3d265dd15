from __future__ import annotations

from dataclasses import dataclass, field

from memcheck.report.models import DEFAULT_CSV_NAME, DEFAULT_JSON_NAME

DEFAULT_ROOT_ENV = "SCOP_ROOT"
CONFIG_FILENAME = ".memcheck.yml"


@dataclass(frozen=True)
class MemcheckConfig:
    root: str | None = None
    root_env: str = DEFAULT_ROOT_ENV
    path_match: str = "segment"
    output_dir: str = "."
    csv_name: str = DEFAULT_CSV_NAME
    json_name: str = DEFAULT_JSON_NAME
    demangle: bool = True
    demangler: str | None = None
    llvm_dis: str | None = None
    diagnostics: bool = True
    passes: list[str] = field(default_factory=lambda: ["memcheck"])
    pass_plugins: list[str] = field(default_factory=list)
