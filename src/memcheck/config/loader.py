from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any

import yaml

from .schema import CONFIG_FILENAME, MemcheckConfig

log = logging.getLogger(__name__)


def _load_raw_config(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except Exception as e:
        log.warning("Failed to load %s (%s). Skipping.", path, e)
        return {}


def _get_list(raw: dict[str, Any], key: str) -> list[str] | None:
    if key not in raw:
        return None
    v = raw.get(key)
    if isinstance(v, list):
        return [str(x) for x in v]
    if isinstance(v, str):
        return [part.strip() for part in v.split(",") if part.strip()]
    return None


def _get_optional_str(raw: dict[str, Any], key: str) -> str | None:
    if key not in raw:
        return None
    v = raw.get(key)
    if v is None:
        return None
    return str(v)


def _get_bool(raw: dict[str, Any], key: str, default: bool) -> bool:
    if key not in raw:
        return default
    v = raw.get(key)
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        if v.strip().lower() in {"true", "yes", "1", "on"}:
            return True
        if v.strip().lower() in {"false", "no", "0", "off"}:
            return False
    return default


def _merge_config(base: MemcheckConfig, raw: dict[str, Any]) -> MemcheckConfig:
    # `root`, `demangler` and `llvm_dis` may be reset to null explicitly.
    root = _get_optional_str(raw, "root") if "root" in raw else base.root
    demangler = _get_optional_str(raw, "demangler") if "demangler" in raw else base.demangler
    llvm_dis = _get_optional_str(raw, "llvm_dis") if "llvm_dis" in raw else base.llvm_dis

    root_env = _get_optional_str(raw, "root_env") or base.root_env
    path_match = (_get_optional_str(raw, "path_match") or base.path_match).strip().lower()
    output_dir = _get_optional_str(raw, "output_dir") or base.output_dir
    csv_name = _get_optional_str(raw, "csv_name") or base.csv_name
    json_name = _get_optional_str(raw, "json_name") or base.json_name

    passes = _get_list(raw, "passes")
    if passes is None:
        passes = base.passes
    pass_plugins = base.pass_plugins
    raw_plugins = _get_list(raw, "pass_plugins")
    if raw_plugins is not None:
        pass_plugins = [*pass_plugins, *raw_plugins]

    return MemcheckConfig(
        root=root,
        root_env=root_env,
        path_match=path_match,
        output_dir=output_dir,
        csv_name=csv_name,
        json_name=json_name,
        demangle=_get_bool(raw, "demangle", base.demangle),
        demangler=demangler,
        llvm_dis=llvm_dis,
        diagnostics=_get_bool(raw, "diagnostics", base.diagnostics),
        passes=passes,
        pass_plugins=pass_plugins,
    )


def _resolve_config_paths(base_dir: Path, config_paths: Iterable[Path] | None) -> list[Path]:
    if config_paths is None:
        return [base_dir / CONFIG_FILENAME]
    resolved: list[Path] = []
    for path in config_paths:
        p = path
        if not p.is_absolute():
            p = base_dir / p
        resolved.append(p)
    return resolved


def load_config(base_dir: Path, config_paths: Iterable[Path] | None = None) -> MemcheckConfig:
    paths = _resolve_config_paths(base_dir, config_paths)
    if config_paths is None and not paths[0].exists():
        return MemcheckConfig()

    cfg = MemcheckConfig()
    for path in paths:
        if not path.exists():
            log.warning("Config %s not found; skipping.", path)
            continue
        raw = _load_raw_config(path)
        if not isinstance(raw, dict):
            log.warning("Config %s is not a mapping; skipping.", path)
            continue
        cfg = _merge_config(cfg, raw)
    return cfg


def apply_overrides(cfg: MemcheckConfig, **overrides: Any) -> MemcheckConfig:
    """Return `cfg` with every override that is not None applied."""
    changes = {k: v for k, v in overrides.items() if v is not None}
    return replace(cfg, **changes) if changes else cfg


def resolve_root(cfg: MemcheckConfig, environ: Mapping[str, str] | None = None) -> str | None:
    if cfg.root:
        return cfg.root
    env = os.environ if environ is None else environ
    value = env.get(cfg.root_env, "")
    return value or None


def config_to_dict(cfg: MemcheckConfig) -> dict[str, Any]:
    return asdict(cfg)
