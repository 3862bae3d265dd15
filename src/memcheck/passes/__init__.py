from memcheck.passes.base import ModulePass, PassContext, PreservedAnalyses

__all__ = [
    "ModulePass",
    "PassContext",
    "PreservedAnalyses",
]
