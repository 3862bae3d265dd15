"""Reader for textual LLVM IR (`.ll`).

Only the parts the memory analysis needs are modelled: the data layout,
named struct bodies, function definitions and declarations in module order,
their instructions as load/store/call/other variants, and the `!DIFile` /
`!DISubprogram` debug nodes that locate each function in the source tree.
Everything else (globals, attributes, other metadata) is skipped.
"""

from __future__ import annotations

import logging
import re

from memcheck.ir.datalayout import DataLayout
from memcheck.ir.models import (
    BasicBlock,
    CallInst,
    DebugFile,
    DebugSubprogram,
    Instruction,
    IRFunction,
    IRModule,
    LoadInst,
    OtherInst,
    StoreInst,
)
from memcheck.ir.types import IRType, SpecialType, TypeParseError, parse_type, parse_type_prefix

log = logging.getLogger(__name__)


class IRLoadError(RuntimeError):
    pass


class IRParseError(IRLoadError):
    def __init__(self, message: str, lineno: int = 0) -> None:
        self.lineno = lineno
        super().__init__(f"line {lineno}: {message}" if lineno else message)


_NAME = r'(?:"[^"]*"|[-a-zA-Z$._0-9]+)'
_GLOBAL_NAME_RE = re.compile(rf"@({_NAME})")
_DBG_RE = re.compile(r"!dbg\s+(![0-9]+)")
_META_RE = re.compile(r"^(![0-9]+)\s*=\s*(?:distinct\s+)?(.*)$")
_TYPE_DEF_RE = re.compile(rf"^(%{_NAME})\s*=\s*type\s+(.*)$")
_LABEL_RE = re.compile(rf"^({_NAME}):$")
_ASSIGN_RE = re.compile(rf"^%{_NAME}\s*=\s*")
_CALLEE_RE = re.compile(rf"([@%])({_NAME})\s*\(")
_MODULE_STRING_RE = re.compile(r'^(source_filename|target\s+datalayout|target\s+triple)\s*=\s*"(.*)"$')
_HEX_ESCAPE_RE = re.compile(rb"\\([0-9A-Fa-f]{2})")

_LINKAGES = {
    "private",
    "internal",
    "available_externally",
    "linkonce",
    "weak",
    "common",
    "appending",
    "extern_weak",
    "linkonce_odr",
    "weak_odr",
    "external",
}
_TAIL_MARKERS = {"tail", "musttail", "notail"}
_MEMORY_FLAGS = {"atomic", "volatile"}
_CLAUSE_PREFIXES = ("catch ", "filter ", "cleanup")


def unescape(body: str) -> str:
    """Decode LLVM `\\XX` string escapes (UTF-8 bytes, quotes, backslashes)."""
    if "\\" not in body:
        return body
    raw = _HEX_ESCAPE_RE.sub(lambda m: bytes([int(m.group(1), 16)]), body.encode("utf-8"))
    return raw.decode("utf-8", errors="replace")


def _unquote(name: str) -> str:
    if len(name) >= 2 and name[0] == '"' and name[-1] == '"':
        return unescape(name[1:-1])
    return name


def _strip_comment(line: str) -> str:
    if ";" not in line:
        return line
    in_str = False
    for idx, ch in enumerate(line):
        if ch == '"':
            in_str = not in_str
        elif ch == ";" and not in_str:
            return line[:idx]
    return line


def split_top_level(text: str, sep: str = ",") -> list[str]:
    parts: list[str] = []
    depth = 0
    in_str = False
    start = 0
    for idx, ch in enumerate(text):
        if ch == '"':
            in_str = not in_str
        elif in_str:
            continue
        elif ch in "([{<":
            depth += 1
        elif ch in ")]}>":
            depth = max(depth - 1, 0)
        elif ch == sep and depth == 0:
            parts.append(text[start:idx].strip())
            start = idx + 1
    tail = text[start:].strip()
    if tail:
        parts.append(tail)
    return parts


def _metadata_fields(rhs: str, kind: str) -> dict[str, str] | None:
    prefix = f"!{kind}("
    if not rhs.startswith(prefix):
        return None
    end = rhs.rfind(")")
    if end == -1:
        return None
    fields: dict[str, str] = {}
    for piece in split_top_level(rhs[len(prefix) : end]):
        key, sep, value = piece.partition(":")
        if sep:
            fields[key.strip()] = value.strip()
    return fields


def _string_field(fields: dict[str, str], key: str) -> str | None:
    value = fields.get(key)
    if value is None:
        return None
    return _unquote(value)


def _bracket_balance(text: str) -> int:
    depth = 0
    in_str = False
    for ch in text:
        if ch == '"':
            in_str = not in_str
        elif in_str:
            continue
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
    return depth


def _take_flags(rest: str) -> tuple[set[str], str]:
    flags: set[str] = set()
    while True:
        word, _, tail = rest.partition(" ")
        if word not in _MEMORY_FLAGS:
            return flags, rest
        flags.add(word)
        rest = tail.lstrip()


def _parse_load(rest: str, text: str, lineno: int) -> LoadInst:
    flags, rest = _take_flags(rest)
    try:
        ty, pos = parse_type_prefix(rest)
    except TypeParseError as exc:
        raise IRParseError(f"bad load type ({exc})", lineno) from None
    remainder = rest[pos:].lstrip()
    if not remainder.startswith(","):
        raise IRParseError(f"unsupported load syntax: {text}", lineno)
    operands = split_top_level(remainder[1:])
    address = operands[0] if operands else ""
    return LoadInst(
        type=ty,
        address=address,
        volatile="volatile" in flags,
        atomic="atomic" in flags,
        text=text,
    )


def _parse_store(rest: str, text: str, lineno: int) -> StoreInst:
    flags, rest = _take_flags(rest)
    try:
        ty, pos = parse_type_prefix(rest)
    except TypeParseError as exc:
        raise IRParseError(f"bad store type ({exc})", lineno) from None
    operands = split_top_level(rest[pos:])
    if len(operands) < 2:
        raise IRParseError(f"unsupported store syntax: {text}", lineno)
    return StoreInst(
        value_type=ty,
        value=operands[0],
        address=operands[1],
        volatile="volatile" in flags,
        atomic="atomic" in flags,
        text=text,
    )


def _parse_call(rest: str, tail: str, text: str) -> CallInst:
    head = rest.split('"', 1)[0]
    if re.search(r"\basm\b", head):
        return CallInst(callee=None, tail=tail, text=text)
    m = _CALLEE_RE.search(rest)
    if m is None or m.group(1) != "@":
        return CallInst(callee=None, tail=tail, text=text)
    return CallInst(callee=_unquote(m.group(2)), tail=tail, text=text)


def parse_instruction(text: str, lineno: int = 0) -> Instruction:
    body = _ASSIGN_RE.sub("", text, count=1)
    opcode, _, rest = body.partition(" ")
    rest = rest.strip()
    tail = ""
    if opcode in _TAIL_MARKERS:
        tail = opcode
        opcode, _, rest = rest.partition(" ")
        rest = rest.strip()
    if opcode == "load":
        return _parse_load(rest, text, lineno)
    if opcode == "store":
        return _parse_store(rest, text, lineno)
    if opcode == "call":
        return _parse_call(rest, tail, text)
    return OtherInst(opcode=opcode, text=text)


def _parse_header(header: str, lineno: int) -> tuple[IRFunction, str | None]:
    m = _GLOBAL_NAME_RE.search(header)
    if not m:
        raise IRParseError(f"function without a name: {header}", lineno)
    words = header[: m.start()].split()
    linkage = next((w for w in words[1:] if w in _LINKAGES), "external")
    dbg = _DBG_RE.search(header, m.end())
    fn = IRFunction(name=_unquote(m.group(1)), linkage=linkage, lineno=lineno)
    return fn, dbg.group(1) if dbg else None


def _parse_named_type(body: str, lineno: int) -> IRType | None:
    try:
        ty = parse_type(body)
    except TypeParseError as exc:
        raise IRParseError(f"bad type definition ({exc})", lineno) from None
    if isinstance(ty, SpecialType) and ty.kind == "opaque":
        return None
    return ty


class _ModuleReader:
    def __init__(self, name: str) -> None:
        self.name = name
        self.layout_spec = ""
        self.triple = ""
        self.source_filename = ""
        self.named_types: dict[str, IRType | None] = {}
        self.functions: list[IRFunction] = []
        self.function_dbg: list[tuple[IRFunction, str]] = []
        self.files: dict[str, DebugFile] = {}
        self.subprograms: dict[str, dict[str, str]] = {}
        self._current: IRFunction | None = None
        self._block: BasicBlock | None = None
        self._header: list[str] = []
        self._header_lineno = 0
        self._pending: list[str] = []
        self._pending_lineno = 0

    def feed(self, raw: str, lineno: int) -> None:
        line = _strip_comment(raw).strip()
        if not line:
            return
        if self._header:
            self._header.append(line)
            if "{" in line:
                self._open_function(" ".join(self._header), self._header_lineno)
                self._header = []
            return
        if self._current is not None:
            self._feed_body(line, lineno)
            return
        self._feed_top_level(line, lineno)

    def _feed_top_level(self, line: str, lineno: int) -> None:
        if line.startswith("define "):
            if "{" in line:
                self._open_function(line, lineno)
            else:
                self._header = [line]
                self._header_lineno = lineno
            return
        if line.startswith("declare "):
            fn, dbg = _parse_header(line, lineno)
            self._add_function(fn, dbg)
            return
        if line.startswith("!"):
            self._feed_metadata(line)
            return
        m = _MODULE_STRING_RE.match(line)
        if m:
            key = m.group(1).split()[-1]
            value = unescape(m.group(2))
            if key == "source_filename":
                self.source_filename = value
            elif key == "datalayout":
                self.layout_spec = value
            else:
                self.triple = value
            return
        m = _TYPE_DEF_RE.match(line)
        if m:
            self.named_types[m.group(1)] = _parse_named_type(m.group(2), lineno)

    def _feed_metadata(self, line: str) -> None:
        m = _META_RE.match(line)
        if not m:
            return
        meta_id, rhs = m.group(1), m.group(2).strip()
        fields = _metadata_fields(rhs, "DIFile")
        if fields is not None:
            self.files[meta_id] = DebugFile(
                filename=_string_field(fields, "filename") or "",
                directory=_string_field(fields, "directory") or "",
            )
            return
        fields = _metadata_fields(rhs, "DISubprogram")
        if fields is not None:
            self.subprograms[meta_id] = fields

    def _add_function(self, fn: IRFunction, dbg: str | None) -> None:
        self.functions.append(fn)
        if dbg:
            self.function_dbg.append((fn, dbg))

    def _open_function(self, header: str, lineno: int) -> None:
        fn, dbg = _parse_header(header, lineno)
        self._add_function(fn, dbg)
        self._current = fn
        self._block = None

    def _feed_body(self, line: str, lineno: int) -> None:
        if self._pending:
            self._pending.append(line)
            joined = " ".join(self._pending)
            if _bracket_balance(joined) <= 0:
                self._pending = []
                self._emit(joined, self._pending_lineno)
            return
        if line == "}":
            self._current = None
            self._block = None
            return
        m = _LABEL_RE.match(line)
        if m:
            self._block = BasicBlock(label=_unquote(m.group(1)))
            assert self._current is not None
            self._current.blocks.append(self._block)
            return
        if line.startswith(_CLAUSE_PREFIXES):
            # landingpad clauses continue the previous instruction
            return
        if _bracket_balance(line) > 0:
            self._pending = [line]
            self._pending_lineno = lineno
            return
        self._emit(line, lineno)

    def _emit(self, text: str, lineno: int) -> None:
        assert self._current is not None
        if self._block is None:
            self._block = BasicBlock(label="entry")
            self._current.blocks.append(self._block)
        self._block.instructions.append(parse_instruction(text, lineno))

    def _subprogram(self, meta_id: str) -> DebugSubprogram | None:
        fields = self.subprograms.get(meta_id)
        if fields is None:
            return None
        file_ref = fields.get("file")
        line_raw = fields.get("line", "0")
        try:
            line = int(line_raw)
        except ValueError:
            line = 0
        return DebugSubprogram(
            name=_string_field(fields, "name") or "",
            linkage_name=_string_field(fields, "linkageName"),
            file=self.files.get(file_ref) if file_ref else None,
            line=line,
        )

    def finish(self) -> IRModule:
        if self._current is not None or self._header:
            raise IRParseError("unterminated function body at end of input")
        for fn, dbg in self.function_dbg:
            fn.subprogram = self._subprogram(dbg)
        layout = DataLayout.parse(self.layout_spec, self.named_types)
        return IRModule(
            name=self.name,
            data_layout=layout,
            functions=self.functions,
            triple=self.triple,
            source_filename=self.source_filename,
        )


def parse_module(text: str, name: str = "<memory>") -> IRModule:
    reader = _ModuleReader(name)
    for lineno, raw in enumerate(text.splitlines(), start=1):
        reader.feed(raw, lineno)
    module = reader.finish()
    log.debug(
        "Parsed %s: %d functions, %d named types",
        name,
        len(module.functions),
        len(reader.named_types),
    )
    return module
