from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Union

from memcheck.ir.datalayout import DataLayout
from memcheck.ir.types import IRType


@dataclass(frozen=True)
class DebugFile:
    filename: str
    directory: str = ""

    @property
    def full_path(self) -> str:
        # An absolute filename ignores the compilation directory.
        joined = posixpath.join(self.directory, self.filename) if self.directory else self.filename
        return posixpath.normpath(joined) if joined else ""


@dataclass(frozen=True)
class DebugSubprogram:
    name: str
    linkage_name: str | None = None
    file: DebugFile | None = None
    line: int = 0


@dataclass(frozen=True, eq=False)
class LoadInst:
    type: IRType
    address: str = ""
    volatile: bool = False
    atomic: bool = False
    text: str = ""


@dataclass(frozen=True, eq=False)
class StoreInst:
    value_type: IRType
    value: str = ""
    address: str = ""
    volatile: bool = False
    atomic: bool = False
    text: str = ""


@dataclass(frozen=True, eq=False)
class CallInst:
    callee: str | None
    tail: str = ""
    text: str = ""

    @property
    def is_indirect(self) -> bool:
        return self.callee is None


@dataclass(frozen=True, eq=False)
class OtherInst:
    opcode: str
    text: str = ""


Instruction = Union[LoadInst, StoreInst, CallInst, OtherInst]


@dataclass(eq=False)
class BasicBlock:
    label: str
    instructions: list[Instruction] = field(default_factory=list)


@dataclass(eq=False)
class IRFunction:
    """One function of a program unit.

    Functions hash and compare by identity, so two functions that share a
    name are still distinct keys.
    """

    name: str
    blocks: list[BasicBlock] = field(default_factory=list)
    subprogram: DebugSubprogram | None = None
    linkage: str = ""
    lineno: int = 0

    @property
    def is_declaration(self) -> bool:
        return not self.blocks

    def instructions(self):
        for block in self.blocks:
            yield from block.instructions


@dataclass(eq=False)
class IRModule:
    name: str
    data_layout: DataLayout
    functions: list[IRFunction] = field(default_factory=list)
    triple: str = ""
    source_filename: str = ""

    def get_function(self, name: str) -> IRFunction | None:
        for fn in self.functions:
            if fn.name == name:
                return fn
        return None
