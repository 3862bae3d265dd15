from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Union

FLOAT_KINDS = {
    "half": 16,
    "bfloat": 16,
    "float": 32,
    "double": 64,
    "x86_fp80": 80,
    "fp128": 128,
    "ppc_fp128": 128,
}

UNSIZED_KINDS = {"void", "label", "metadata", "token"}


@dataclass(frozen=True)
class IntType:
    bits: int

    def __str__(self) -> str:
        return f"i{self.bits}"


@dataclass(frozen=True)
class FloatType:
    kind: str

    @property
    def bits(self) -> int:
        return FLOAT_KINDS[self.kind]

    def __str__(self) -> str:
        return self.kind


@dataclass(frozen=True)
class PointerType:
    addrspace: int = 0
    pointee: IRType | None = None

    def __str__(self) -> str:
        if self.pointee is not None:
            suffix = f" addrspace({self.addrspace})" if self.addrspace else ""
            return f"{self.pointee}{suffix}*"
        if self.addrspace:
            return f"ptr addrspace({self.addrspace})"
        return "ptr"


@dataclass(frozen=True)
class ArrayType:
    count: int
    element: IRType

    def __str__(self) -> str:
        return f"[{self.count} x {self.element}]"


@dataclass(frozen=True)
class VectorType:
    count: int
    element: IRType
    scalable: bool = False

    def __str__(self) -> str:
        prefix = "vscale x " if self.scalable else ""
        return f"<{prefix}{self.count} x {self.element}>"


@dataclass(frozen=True)
class StructType:
    elements: tuple[IRType, ...] = ()
    packed: bool = False

    def __str__(self) -> str:
        body = ", ".join(str(e) for e in self.elements)
        inner = f"{{ {body} }}" if body else "{}"
        return f"<{inner}>" if self.packed else inner


@dataclass(frozen=True)
class NamedType:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class FunctionType:
    result: IRType
    params: tuple[IRType, ...] = ()
    vararg: bool = False

    def __str__(self) -> str:
        params = [str(p) for p in self.params]
        if self.vararg:
            params.append("...")
        return f"{self.result} ({', '.join(params)})"


@dataclass(frozen=True)
class SpecialType:
    """Types with no storage size of their own (void, label, metadata, token, target)."""

    kind: str
    params: tuple[str, ...] = field(default=())

    def __str__(self) -> str:
        return self.kind


IRType = Union[
    IntType,
    FloatType,
    PointerType,
    ArrayType,
    VectorType,
    StructType,
    NamedType,
    FunctionType,
    SpecialType,
]


class TypeParseError(ValueError):
    pass


_IDENT_RE = re.compile(r"[-a-zA-Z$._0-9]+")
_WORD_RE = re.compile(r"[A-Za-z_][A-Za-z_0-9]*")
_INT_RE = re.compile(r"\d+")


class TypeParser:
    """Recursive-descent reader for LLVM IR type syntax.

    Handles both opaque (`ptr`) and typed (`i32*`) pointer spellings, so IR
    from older toolchains is accepted as well.
    """

    def __init__(self, text: str, pos: int = 0) -> None:
        self.text = text
        self.pos = pos

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _peek(self) -> str:
        self._skip_ws()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _expect(self, token: str) -> None:
        self._skip_ws()
        if not self.text.startswith(token, self.pos):
            raise TypeParseError(f"expected {token!r} at {self.pos} in {self.text!r}")
        self.pos += len(token)

    def _accept_word(self, word: str) -> bool:
        self._skip_ws()
        m = _WORD_RE.match(self.text, self.pos)
        if m and m.group(0) == word:
            self.pos = m.end()
            return True
        return False

    def _int(self) -> int:
        self._skip_ws()
        m = _INT_RE.match(self.text, self.pos)
        if not m:
            raise TypeParseError(f"expected integer at {self.pos} in {self.text!r}")
        self.pos = m.end()
        return int(m.group(0))

    def _addrspace(self) -> int:
        self._expect("(")
        value = self._int()
        self._expect(")")
        return value

    def parse(self) -> IRType:
        ty = self._parse_base()
        while True:
            ch = self._peek()
            if ch == "*":
                self.pos += 1
                ty = PointerType(0, ty)
                continue
            save = self.pos
            if self._accept_word("addrspace"):
                space = self._addrspace()
                if self._peek() == "*":
                    self.pos += 1
                    ty = PointerType(space, ty)
                    continue
                self.pos = save
                break
            if ch == "(":
                ty = self._parse_function(ty)
                continue
            break
        return ty

    def _parse_function(self, result: IRType) -> FunctionType:
        self._expect("(")
        params: list[IRType] = []
        vararg = False
        if self._peek() != ")":
            while True:
                if self.text.startswith("...", self.pos):
                    self.pos += 3
                    vararg = True
                    break
                params.append(self.parse())
                if self._peek() != ",":
                    break
                self.pos += 1
                self._skip_ws()
        self._expect(")")
        return FunctionType(result, tuple(params), vararg)

    def _parse_base(self) -> IRType:
        ch = self._peek()
        if not ch:
            raise TypeParseError(f"unexpected end of type in {self.text!r}")
        if ch == "[":
            self.pos += 1
            count = self._int()
            if not self._accept_word("x"):
                raise TypeParseError(f"expected 'x' in array type {self.text!r}")
            elem = self.parse()
            self._expect("]")
            return ArrayType(count, elem)
        if ch == "<":
            self.pos += 1
            if self._peek() == "{":
                struct = self._parse_struct_body()
                self._expect(">")
                return StructType(struct, packed=True)
            scalable = False
            if self._accept_word("vscale"):
                if not self._accept_word("x"):
                    raise TypeParseError(f"expected 'x' after vscale in {self.text!r}")
                scalable = True
            count = self._int()
            if not self._accept_word("x"):
                raise TypeParseError(f"expected 'x' in vector type {self.text!r}")
            elem = self.parse()
            self._expect(">")
            return VectorType(count, elem, scalable)
        if ch == "{":
            return StructType(self._parse_struct_body())
        if ch == "%":
            return NamedType(self._named())
        m = _WORD_RE.match(self.text, self.pos)
        if not m:
            raise TypeParseError(f"unknown type at {self.pos} in {self.text!r}")
        word = m.group(0)
        self.pos = m.end()
        if word == "ptr":
            save = self.pos
            if self._accept_word("addrspace"):
                return PointerType(self._addrspace())
            self.pos = save
            return PointerType()
        if word.startswith("i") and word[1:].isdigit():
            return IntType(int(word[1:]))
        if word in FLOAT_KINDS:
            return FloatType(word)
        if word == "x86_mmx":
            return IntType(64)
        if word == "x86_amx":
            return IntType(8192)
        if word in UNSIZED_KINDS:
            return SpecialType(word)
        if word == "target":
            return SpecialType("target", self._target_params())
        if word == "opaque":
            return SpecialType("opaque")
        raise TypeParseError(f"unknown type {word!r} in {self.text!r}")

    def _parse_struct_body(self) -> tuple[IRType, ...]:
        self._expect("{")
        elems: list[IRType] = []
        if self._peek() != "}":
            while True:
                elems.append(self.parse())
                if self._peek() != ",":
                    break
                self.pos += 1
        self._expect("}")
        return tuple(elems)

    def _target_params(self) -> tuple[str, ...]:
        self._expect("(")
        depth = 1
        start = self.pos
        in_str = False
        while self.pos < len(self.text) and depth:
            c = self.text[self.pos]
            if c == '"':
                in_str = not in_str
            elif not in_str and c == "(":
                depth += 1
            elif not in_str and c == ")":
                depth -= 1
            self.pos += 1
        body = self.text[start : self.pos - 1]
        return tuple(p.strip() for p in body.split(",") if p.strip())

    def _named(self) -> str:
        self._expect("%")
        if self.text.startswith('"', self.pos):
            end = self.text.find('"', self.pos + 1)
            if end == -1:
                raise TypeParseError(f"unterminated type name in {self.text!r}")
            name = self.text[self.pos : end + 1]
            self.pos = end + 1
            return "%" + name
        m = _IDENT_RE.match(self.text, self.pos)
        if not m:
            raise TypeParseError(f"bad type name at {self.pos} in {self.text!r}")
        self.pos = m.end()
        return "%" + m.group(0)


def parse_type(text: str) -> IRType:
    parser = TypeParser(text)
    ty = parser.parse()
    rest = text[parser.pos :].strip()
    if rest:
        raise TypeParseError(f"trailing text {rest!r} after type in {text!r}")
    return ty


def parse_type_prefix(text: str, pos: int = 0) -> tuple[IRType, int]:
    """Parse a type at `pos` and return it with the offset just past it."""
    parser = TypeParser(text, pos)
    ty = parser.parse()
    return ty, parser.pos
