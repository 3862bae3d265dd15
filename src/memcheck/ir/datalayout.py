from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from memcheck.ir.types import (
    ArrayType,
    FloatType,
    FunctionType,
    IntType,
    IRType,
    NamedType,
    PointerType,
    SpecialType,
    StructType,
    VectorType,
)


class LayoutError(ValueError):
    pass


@dataclass(frozen=True)
class PointerSpec:
    size_bits: int
    abi_bits: int
    pref_bits: int
    index_bits: int


# Defaults from the LLVM LangRef "Data Layout" section.
DEFAULT_INT_ALIGN = {1: 8, 8: 8, 16: 16, 32: 32, 64: 32}
DEFAULT_FLOAT_ALIGN = {16: 16, 32: 32, 64: 64, 128: 128}
DEFAULT_VECTOR_ALIGN = {64: 64, 128: 128}
DEFAULT_POINTER = PointerSpec(64, 64, 64, 64)


def _align_to(value: int, alignment: int) -> int:
    if alignment <= 0:
        alignment = 1
    return ((value + alignment - 1) // alignment) * alignment


def _next_pow2(value: int) -> int:
    out = 1
    while out < value:
        out <<= 1
    return out


def _bits_field(raw: str, component: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise LayoutError(f"invalid number {raw!r} in datalayout component {component!r}") from None


@dataclass
class DataLayout:
    """Answers size and alignment queries for IR types on one target.

    Sizes are in bytes. `alloc_size` is the distance between consecutive
    values of a type in memory, i.e. the store size rounded up to the ABI
    alignment, which is what a load or store of that type touches.
    """

    big_endian: bool = False
    int_align: dict[int, int] = field(default_factory=lambda: dict(DEFAULT_INT_ALIGN))
    float_align: dict[int, int] = field(default_factory=lambda: dict(DEFAULT_FLOAT_ALIGN))
    vector_align: dict[int, int] = field(default_factory=lambda: dict(DEFAULT_VECTOR_ALIGN))
    pointers: dict[int, PointerSpec] = field(default_factory=lambda: {0: DEFAULT_POINTER})
    aggregate_abi_bits: int = 0
    named_types: Mapping[str, IRType | None] = field(default_factory=dict)
    spec: str = ""

    def __post_init__(self) -> None:
        self._struct_cache: dict[StructType, tuple[int, int]] = {}

    @classmethod
    def parse(cls, spec: str, named_types: Mapping[str, IRType | None] | None = None) -> DataLayout:
        layout = cls(named_types=dict(named_types or {}), spec=spec)
        for component in (c.strip() for c in spec.split("-")):
            if not component:
                continue
            layout._apply_component(component)
        return layout

    def _apply_component(self, component: str) -> None:
        head = component[0]
        if component == "e":
            self.big_endian = False
            return
        if component == "E":
            self.big_endian = True
            return
        if component.startswith("ni:") or head in {"S", "P", "A", "G", "F", "m", "n"}:
            return
        parts = component.split(":")
        if head == "p":
            space_raw = parts[0][1:]
            space = _bits_field(space_raw, component) if space_raw else 0
            if len(parts) < 3:
                raise LayoutError(f"pointer spec {component!r} needs size and alignment")
            size = _bits_field(parts[1], component)
            abi = _bits_field(parts[2], component)
            pref = _bits_field(parts[3], component) if len(parts) > 3 else abi
            index = _bits_field(parts[4], component) if len(parts) > 4 else size
            self.pointers[space] = PointerSpec(size, abi, pref, index)
            return
        if head == "a":
            if len(parts) > 1 and parts[1]:
                self.aggregate_abi_bits = _bits_field(parts[1], component)
            return
        if head in {"i", "f", "v"}:
            if len(parts) < 2:
                raise LayoutError(f"alignment spec {component!r} needs an ABI alignment")
            bits = _bits_field(parts[0][1:], component)
            abi = _bits_field(parts[1], component)
            table = {"i": self.int_align, "f": self.float_align, "v": self.vector_align}[head]
            table[bits] = abi
            return
        raise LayoutError(f"unknown datalayout component {component!r}")

    def pointer_spec(self, addrspace: int = 0) -> PointerSpec:
        return self.pointers.get(addrspace) or self.pointers.get(0) or DEFAULT_POINTER

    def resolve(self, ty: IRType) -> IRType:
        seen: set[str] = set()
        while isinstance(ty, NamedType):
            if ty.name in seen:
                raise LayoutError(f"recursive named type {ty.name}")
            seen.add(ty.name)
            if ty.name not in self.named_types:
                raise LayoutError(f"unknown named type {ty.name}")
            body = self.named_types[ty.name]
            if body is None:
                raise LayoutError(f"opaque type {ty.name} has no size")
            ty = body
        return ty

    def size_in_bits(self, ty: IRType) -> int:
        ty = self.resolve(ty)
        if isinstance(ty, IntType):
            return ty.bits
        if isinstance(ty, FloatType):
            return ty.bits
        if isinstance(ty, PointerType):
            return self.pointer_spec(ty.addrspace).size_bits
        if isinstance(ty, VectorType):
            return ty.count * self.size_in_bits(ty.element)
        if isinstance(ty, ArrayType):
            return self.alloc_size(ty) * 8
        if isinstance(ty, StructType):
            return self._struct_layout(ty)[0] * 8
        raise LayoutError(f"type {ty} has no size")

    def store_size(self, ty: IRType) -> int:
        ty = self.resolve(ty)
        if isinstance(ty, FloatType) and ty.kind == "x86_fp80":
            return 10
        if isinstance(ty, ArrayType):
            return ty.count * self.alloc_size(ty.element)
        if isinstance(ty, StructType):
            return self._struct_layout(ty)[0]
        return (self.size_in_bits(ty) + 7) // 8

    def abi_alignment(self, ty: IRType) -> int:
        ty = self.resolve(ty)
        if isinstance(ty, IntType):
            return self._int_alignment(ty.bits)
        if isinstance(ty, FloatType):
            bits = self.float_align.get(ty.bits)
            if bits is not None:
                return max(1, bits // 8)
            return _next_pow2(self.store_size(ty))
        if isinstance(ty, PointerType):
            return max(1, self.pointer_spec(ty.addrspace).abi_bits // 8)
        if isinstance(ty, VectorType):
            bits = self.vector_align.get(self.size_in_bits(ty))
            if bits is not None:
                return max(1, bits // 8)
            return _next_pow2(max(1, self.store_size(ty)))
        if isinstance(ty, ArrayType):
            return self.abi_alignment(ty.element)
        if isinstance(ty, StructType):
            return self._struct_layout(ty)[1]
        if isinstance(ty, (FunctionType, SpecialType)):
            raise LayoutError(f"type {ty} has no alignment")
        raise LayoutError(f"unsupported type {ty!r}")

    def alloc_size(self, ty: IRType) -> int:
        ty = self.resolve(ty)
        if isinstance(ty, ArrayType):
            return ty.count * self.alloc_size(ty.element)
        return _align_to(self.store_size(ty), self.abi_alignment(ty))

    def _int_alignment(self, bits: int) -> int:
        if bits in self.int_align:
            return max(1, self.int_align[bits] // 8)
        larger = sorted(b for b in self.int_align if b > bits)
        if larger:
            return max(1, self.int_align[larger[0]] // 8)
        largest = max(self.int_align)
        return max(1, self.int_align[largest] // 8)

    def _struct_layout(self, ty: StructType) -> tuple[int, int]:
        cached = self._struct_cache.get(ty)
        if cached is not None:
            return cached
        offset = 0
        align = 1
        for elem in ty.elements:
            elem_align = 1 if ty.packed else self.abi_alignment(elem)
            offset = _align_to(offset, elem_align)
            offset += self.alloc_size(elem)
            align = max(align, elem_align)
        if not ty.packed:
            align = max(align, self.aggregate_abi_bits // 8)
        size = _align_to(offset, align)
        self._struct_cache[ty] = (size, align)
        return size, align
