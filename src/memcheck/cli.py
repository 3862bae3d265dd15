from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

import yaml

from memcheck import __version__
from memcheck.analyze.demangle import Demangler
from memcheck.analyze.membership import PATH_MATCH_MODES, MembershipClassifier
from memcheck.config.loader import apply_overrides, config_to_dict, load_config, resolve_root
from memcheck.config.schema import CONFIG_FILENAME, MemcheckConfig
from memcheck.config.templates import CONFIG_PRESETS
from memcheck.config.validate import validate_config_paths
from memcheck.ir.datalayout import LayoutError
from memcheck.ir.llvm_text import IRLoadError
from memcheck.ir.registry import load_module
from memcheck.passes.base import PassContext
from memcheck.passes.registry import default_registry, parse_pipeline, run_pipeline
from memcheck.report.artifact import OutputError
from memcheck.util.logging import setup_logging

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ANALYSIS_ERROR = 1
EXIT_OUTPUT_ERROR = 2


def _resolve_config_paths(base_dir: Path, config_args: list[str] | None) -> list[Path]:
    if not config_args:
        return [base_dir / CONFIG_FILENAME]
    out: list[Path] = []
    for p in config_args:
        path = Path(p)
        if not path.is_absolute():
            path = base_dir / path
        out.append(path)
    return out


def _config_from_args(args: argparse.Namespace, base_dir: Path) -> MemcheckConfig:
    config_paths = [Path(p) for p in args.config] if args.config else None
    cfg = load_config(base_dir, config_paths)
    cfg = apply_overrides(
        cfg,
        root=args.root,
        root_env=args.root_env,
        path_match=args.path_match,
        output_dir=args.output_dir,
        csv_name=args.csv_name,
        json_name=args.json_name,
        demangler=args.demangler,
        llvm_dis=args.llvm_dis,
        passes=parse_pipeline(args.passes) if args.passes else None,
        pass_plugins=[*cfg.pass_plugins, *args.pass_plugin] if args.pass_plugin else None,
        demangle=False if args.no_demangle else None,
        diagnostics=False if args.quiet else None,
    )
    return cfg


def _absolute_root(root: str | None, base_dir: Path) -> str | None:
    if not root:
        return None
    if os.path.isabs(root):
        return root
    return os.path.normpath(os.path.join(str(base_dir), root))


def cmd_analyze(args: argparse.Namespace) -> int:
    base_dir = Path.cwd()
    cfg = _config_from_args(args, base_dir)
    root = _absolute_root(resolve_root(cfg), base_dir)
    output_dir = Path(cfg.output_dir)
    if not output_dir.is_absolute():
        output_dir = base_dir / output_dir

    try:
        classifier = MembershipClassifier(root, path_match=cfg.path_match, root_env=cfg.root_env)
    except ValueError as exc:
        log.error("%s", exc)
        return EXIT_ANALYSIS_ERROR

    context = PassContext(
        classifier=classifier,
        csv_path=output_dir / cfg.csv_name,
        json_path=output_dir / cfg.json_name,
        demangler=Demangler(cfg.demangler, enabled=cfg.demangle),
        diagnostics=sys.stderr if cfg.diagnostics else None,
    )
    registry = default_registry(cfg.pass_plugins)
    try:
        pipeline = registry.build_pipeline(cfg.passes, context)
    except ValueError as exc:
        log.error("%s", exc)
        return EXIT_ANALYSIS_ERROR
    if not pipeline:
        log.error("Pass pipeline is empty.")
        return EXIT_ANALYSIS_ERROR

    try:
        module = load_module(Path(args.module), llvm_dis=cfg.llvm_dis)
    except IRLoadError as exc:
        log.error("%s", exc)
        return EXIT_ANALYSIS_ERROR
    log.debug("Loaded %s: %d functions", module.name, len(module.functions))

    try:
        run_pipeline(module, pipeline)
    except LayoutError as exc:
        log.error("Data layout error in %s: %s", module.name, exc)
        return EXIT_ANALYSIS_ERROR
    except OutputError as exc:
        log.error("%s", exc)
        return EXIT_OUTPUT_ERROR
    return EXIT_OK


def cmd_passes(args: argparse.Namespace) -> int:
    registry = default_registry(args.pass_plugin or [])
    for name in registry.names():
        description = getattr(registry.factories[name], "description", "")
        print(f"{name}\t{description}" if description else name)
    return EXIT_OK


def cmd_init(args: argparse.Namespace) -> int:
    base_dir = Path(args.path).resolve()
    target = Path(args.output) if args.output else base_dir / CONFIG_FILENAME
    if not target.is_absolute():
        target = base_dir / target
    preset = str(args.preset or "full").lower()
    template = CONFIG_PRESETS.get(preset, CONFIG_PRESETS["full"])
    if target.exists() and not args.force:
        log.error("Config %s already exists. Use --force to overwrite.", target)
        return 1
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(template, encoding="utf-8")
    log.info("Wrote config to %s", target)
    return 0


def cmd_config_show(args: argparse.Namespace) -> int:
    base_dir = Path(args.path).resolve()
    config_paths = [Path(p) for p in args.config] if args.config else None
    cfg = load_config(base_dir, config_paths)
    text = yaml.safe_dump(config_to_dict(cfg), sort_keys=False)
    if args.output:
        out_path = Path(args.output)
        if not out_path.is_absolute():
            out_path = base_dir / out_path
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
    else:
        print(text)
    return 0


def cmd_config_validate(args: argparse.Namespace) -> int:
    base_dir = Path(args.path).resolve()
    config_paths = _resolve_config_paths(base_dir, args.config)
    if not args.config and not config_paths[0].exists():
        log.error("Config %s not found.", config_paths[0])
        return 1
    errors = validate_config_paths(config_paths)
    if errors:
        for err in errors:
            log.error("%s", err)
        return 1
    log.info("Config valid.")
    return 0


def _add_config_arg(a: argparse.ArgumentParser) -> None:
    a.add_argument(
        "--config",
        action="append",
        default=None,
        help=f"Config file path (repeatable, later files win; default: {CONFIG_FILENAME})",
    )


def _add_analyze_args(a: argparse.ArgumentParser) -> None:
    a.add_argument("module", help="LLVM IR module (.ll text or .bc bitcode)")
    _add_config_arg(a)
    a.add_argument("--root", default=None, help="Source root whose functions count as user code")
    a.add_argument(
        "--root-env",
        default=None,
        help="Environment variable holding the source root when --root/root: are unset (default: SCOP_ROOT)",
    )
    a.add_argument(
        "--path-match",
        default=None,
        choices=sorted(PATH_MATCH_MODES),
        help="Compare source paths by whole components (segment) or plain string prefix",
    )
    a.add_argument("--output-dir", default=None, help="Directory for the CSV and JSON artifacts")
    a.add_argument("--csv", dest="csv_name", default=None, help="CSV artifact file name")
    a.add_argument("--json", dest="json_name", default=None, help="JSON artifact file name")
    a.add_argument("--no-demangle", action="store_true", help="Report mangled names only")
    a.add_argument("--demangler", default=None, help="Demangler executable (default: llvm-cxxfilt, c++filt)")
    a.add_argument("--llvm-dis", default=None, help="llvm-dis executable used for bitcode input")
    a.add_argument("--passes", default=None, help="Comma-separated pass pipeline (default: memcheck)")
    a.add_argument(
        "--pass-plugin",
        action="append",
        default=[],
        help="Python module registering extra passes (repeatable)",
    )
    a.add_argument("--quiet", action="store_true", help="Do not print per-function blocks to stderr")


def _add_init_args(a: argparse.ArgumentParser) -> None:
    a.add_argument("path", nargs="?", default=".", help="Target directory (default: .)")
    a.add_argument("--output", default=None, help=f"Output path (default: {CONFIG_FILENAME})")
    a.add_argument(
        "--preset",
        default="full",
        choices=sorted(CONFIG_PRESETS.keys()),
        help="Template preset (default: full)",
    )
    a.add_argument("--force", action="store_true", help="Overwrite existing config if present")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="memcheck", description="memcheck  Per-function memory traffic of LLVM IR")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    sub = p.add_subparsers(dest="cmd", required=True)

    a = sub.add_parser("analyze", help="Analyze an IR module")
    _add_analyze_args(a)
    a.set_defaults(func=cmd_analyze)

    ps = sub.add_parser("passes", help="List registered passes")
    ps.add_argument(
        "--pass-plugin",
        action="append",
        default=[],
        help="Python module registering extra passes (repeatable)",
    )
    ps.set_defaults(func=cmd_passes)

    c = sub.add_parser("config", help="Config utilities")
    c_sub = c.add_subparsers(dest="config_cmd", required=True)
    c_show = c_sub.add_parser("show", help="Show merged config")
    c_show.add_argument("path", nargs="?", default=".", help="Base directory (default: .)")
    _add_config_arg(c_show)
    c_show.add_argument("--output", default=None, help="Write output to path instead of stdout")
    c_show.set_defaults(func=cmd_config_show)

    c_validate = c_sub.add_parser("validate", help="Validate config file(s)")
    c_validate.add_argument("path", nargs="?", default=".", help="Base directory (default: .)")
    _add_config_arg(c_validate)
    c_validate.set_defaults(func=cmd_config_validate)

    i = sub.add_parser("init", help="Create a memcheck configuration file")
    _add_init_args(i)
    i.set_defaults(func=cmd_init)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(bool(args.verbose))
    return int(args.func(args))
