from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml

from memcheck.analyze.membership import PATH_MATCH_MODES

KNOWN_KEYS = {
    "root",
    "root_env",
    "path_match",
    "output_dir",
    "csv_name",
    "json_name",
    "demangle",
    "demangler",
    "llvm_dis",
    "diagnostics",
    "passes",
    "pass_plugins",
}


def _is_bool(value: Any) -> bool:
    return isinstance(value, bool)


def _validate_list_strings(raw: dict[str, Any], key: str, errors: list[str]) -> None:
    if key not in raw:
        return
    value = raw.get(key)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        errors.append(f"{key} must be a list of strings")


def _validate_optional_str(raw: dict[str, Any], key: str, errors: list[str]) -> None:
    if key not in raw:
        return
    value = raw.get(key)
    if value is None:
        return
    if not isinstance(value, str):
        errors.append(f"{key} must be a string")


def _validate_str(raw: dict[str, Any], key: str, errors: list[str]) -> None:
    if key not in raw:
        return
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        errors.append(f"{key} must be a non-empty string")


def _validate_optional_str_choice(raw: dict[str, Any], key: str, choices: set[str], errors: list[str]) -> None:
    if key not in raw:
        return
    value = raw.get(key)
    if value is None:
        return
    if not isinstance(value, str):
        errors.append(f"{key} must be a string")
        return
    if value.lower() not in choices:
        errors.append(f"{key} must be one of: {', '.join(sorted(choices))}")


def _validate_optional_bool(raw: dict[str, Any], key: str, errors: list[str]) -> None:
    if key not in raw:
        return
    value = raw.get(key)
    if value is None:
        return
    if not _is_bool(value):
        errors.append(f"{key} must be a boolean")


def _validate_file_name(raw: dict[str, Any], key: str, errors: list[str]) -> None:
    value = raw.get(key)
    if isinstance(value, str) and ("/" in value or "\\" in value):
        errors.append(f"{key} must be a file name, not a path (use output_dir)")


def validate_raw_config(raw: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    for key in raw.keys():
        if key not in KNOWN_KEYS:
            errors.append(f"Unknown key: {key}")

    for key in ["root", "demangler", "llvm_dis"]:
        _validate_optional_str(raw, key, errors)
    for key in ["root_env", "output_dir", "csv_name", "json_name"]:
        _validate_str(raw, key, errors)
    _validate_file_name(raw, "csv_name", errors)
    _validate_file_name(raw, "json_name", errors)
    for key in ["demangle", "diagnostics"]:
        _validate_optional_bool(raw, key, errors)
    _validate_list_strings(raw, "passes", errors)
    _validate_list_strings(raw, "pass_plugins", errors)
    _validate_optional_str_choice(raw, "path_match", PATH_MATCH_MODES, errors)

    return errors


def validate_config_path(path: Path) -> list[str]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except Exception as exc:
        return [f"{path}: failed to read ({exc})"]
    if not isinstance(raw, dict):
        return [f"{path}: config must be a mapping"]
    errors = validate_raw_config(raw)
    return [f"{path}: {err}" for err in errors]


def validate_config_paths(paths: Iterable[Path]) -> list[str]:
    errors: list[str] = []
    for path in paths:
        if not path.exists():
            errors.append(f"{path}: file not found")
            continue
        errors.extend(validate_config_path(path))
    return errors
