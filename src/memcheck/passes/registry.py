from __future__ import annotations

import importlib
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from memcheck.ir.models import IRModule
from memcheck.passes.base import ModulePass, PassContext, PreservedAnalyses
from memcheck.passes.builtin import BUILTIN_PASSES

log = logging.getLogger(__name__)

PassFactory = Callable[[PassContext], ModulePass]


def parse_pipeline(text: str | Iterable[str]) -> list[str]:
    items = text.split(",") if isinstance(text, str) else list(text)
    return [str(item).strip() for item in items if str(item).strip()]


@dataclass
class PassRegistry:
    factories: dict[str, PassFactory] = field(default_factory=dict)

    def register(self, name: str, factory: PassFactory) -> None:
        if name in self.factories:
            log.debug("Pass %s re-registered", name)
        self.factories[name] = factory

    def names(self) -> list[str]:
        return sorted(self.factories)

    def load_builtin(self) -> None:
        for name, factory in BUILTIN_PASSES.items():
            self.register(name, factory)

    def load_plugins(self, plugin_modules: Iterable[str]) -> None:
        for module_path in plugin_modules:
            module_path = str(module_path).strip()
            if not module_path:
                continue
            try:
                module = importlib.import_module(module_path)
            except Exception as exc:
                log.warning("Failed to load pass plugin %s (%s)", module_path, exc)
                continue
            if hasattr(module, "register"):
                try:
                    module.register(self)
                except Exception as exc:
                    log.warning("Pass plugin register() failed for %s (%s)", module_path, exc)
                continue
            passes = getattr(module, "PASSES", None)
            if isinstance(passes, dict):
                for name, factory in passes.items():
                    if callable(factory):
                        self.register(str(name), factory)
            else:
                log.warning("Pass plugin %s has no PASSES or register()", module_path)

    def build_pipeline(self, pipeline: str | Iterable[str], context: PassContext) -> list[ModulePass]:
        names = parse_pipeline(pipeline)
        unknown = [n for n in names if n not in self.factories]
        if unknown:
            known = ", ".join(self.names()) or "none"
            raise ValueError(f"Unknown pass(es): {', '.join(unknown)} (registered: {known})")
        return [self.factories[name](context) for name in names]


def default_registry(plugin_modules: Iterable[str] | None = None) -> PassRegistry:
    registry = PassRegistry()
    registry.load_builtin()
    if plugin_modules:
        registry.load_plugins(plugin_modules)
    return registry


def run_pipeline(module: IRModule, pipeline: list[ModulePass]) -> PreservedAnalyses:
    preserved = PreservedAnalyses.all()
    for pass_ in pipeline:
        log.debug("Running pass %s on %s", pass_.name, module.name)
        preserved = preserved.intersect(pass_.run(module))
    return preserved
