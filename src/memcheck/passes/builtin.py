from __future__ import annotations

from memcheck.analyze.walker import ModuleWalker
from memcheck.ir.models import IRModule
from memcheck.passes.base import ModulePass, PreservedAnalyses


class MemCheckPass(ModulePass):
    name = "memcheck"
    description = "Count loads, stores and bytes moved per user-defined function."

    def run(self, module: IRModule) -> PreservedAnalyses:
        ctx = self.context
        walker = ModuleWalker(
            ctx.classifier,
            ctx.csv_path,
            ctx.json_path,
            demangler=ctx.demangler,
            diagnostics=ctx.diagnostics,
        )
        result = walker.run(module)
        ctx.results[self.name] = result
        return result.preserved


BUILTIN_PASSES = {
    MemCheckPass.name: MemCheckPass,
}
