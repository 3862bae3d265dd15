from __future__ import annotations

import pytest

from memcheck.ir.llvm_text import IRParseError, parse_instruction, parse_module, split_top_level, unescape
from memcheck.ir.models import CallInst, IRModule, LoadInst, OtherInst, StoreInst
from memcheck.ir.types import IntType, NamedType, PointerType


def test_module_header_and_function_order(sample_module: IRModule) -> None:
    assert sample_module.source_filename == "src/sample.cpp"
    assert sample_module.triple == "x86_64-unknown-linux-gnu"
    names = [fn.name for fn in sample_module.functions]
    assert names == ["add", "_Z9fill_pairP4pairi", "strlen_like", "no_debug", "printf"]
    printf = sample_module.get_function("printf")
    assert printf is not None and printf.is_declaration
    assert sample_module.get_function("strlen_like").linkage == "linkonce_odr"


def test_blocks_and_instruction_variants(sample_module: IRModule) -> None:
    fill = sample_module.get_function("_Z9fill_pairP4pairi")
    assert [b.label for b in fill.blocks] == ["entry", "done"]
    insts = list(fill.instructions())
    kinds = [type(i).__name__ for i in insts]
    assert kinds == ["OtherInst", "StoreInst", "LoadInst", "CallInst", "LoadInst", "CallInst", "OtherInst", "OtherInst"]
    assert insts[2].type == NamedType("%struct.pair")
    assert insts[3].callee == "add"
    assert insts[5].is_indirect


def test_function_without_labels_gets_implicit_entry_block(sample_module: IRModule) -> None:
    fn = sample_module.get_function("no_debug")
    assert [b.label for b in fn.blocks] == ["entry"]
    assert fn.subprogram is None


def test_debug_info_is_linked(sample_module: IRModule) -> None:
    add = sample_module.get_function("add")
    assert add.subprogram is not None
    assert add.subprogram.name == "add"
    assert add.subprogram.line == 3
    assert add.subprogram.file.full_path == "/work/proj/src/sample.cpp"
    fill = sample_module.get_function("_Z9fill_pairP4pairi")
    assert fill.subprogram.linkage_name == "_Z9fill_pairP4pairi"
    strlen_like = sample_module.get_function("strlen_like")
    assert strlen_like.subprogram.file.full_path == "/usr/include/string.h"


def test_named_struct_sizes_come_from_module(sample_module: IRModule) -> None:
    assert sample_module.data_layout.alloc_size(NamedType("%struct.pair")) == 16


def test_parse_load_and_store_flags() -> None:
    load = parse_instruction("%v = load atomic volatile i32, ptr %p seq_cst, align 4")
    assert isinstance(load, LoadInst)
    assert load.atomic and load.volatile
    assert load.type == IntType(32)
    store = parse_instruction("store volatile ptr null, ptr %slot, align 8")
    assert isinstance(store, StoreInst)
    assert store.volatile and not store.atomic
    assert store.value_type == PointerType()
    assert store.value == "null"
    assert store.address == "ptr %slot"


def test_parse_calls() -> None:
    direct = parse_instruction("%r = tail call i32 (ptr, ...) @printf(ptr noundef @.str, i32 %x)")
    assert isinstance(direct, CallInst)
    assert direct.callee == "printf"
    assert direct.tail == "tail"
    quoted = parse_instruction('call void @"weird name"(i32 1)')
    assert quoted.callee == "weird name"
    asm = parse_instruction('call void asm sideeffect "nop", ""()')
    assert asm.is_indirect
    invoke = parse_instruction("invoke void @may_throw() to label %ok unwind label %lpad")
    assert isinstance(invoke, OtherInst)
    assert invoke.opcode == "invoke"


def test_multiline_switch_and_landingpad() -> None:
    text = """\
target datalayout = "e-i64:64"
define i32 @f(i32 %x) personality ptr @__gxx_personality_v0 {
entry:
  switch i32 %x, label %d [
    i32 0, label %a
    i32 1, label %b
  ]
a:
  %lp = landingpad { ptr, i32 }
          catch ptr null
  ret i32 0
}
"""
    module = parse_module(text)
    fn = module.functions[0]
    opcodes = [i.opcode for i in fn.instructions() if isinstance(i, OtherInst)]
    assert opcodes == ["switch", "landingpad", "ret"]


def test_multiline_function_header() -> None:
    text = """\
define dso_local void @g(
    ptr %p) !dbg !3
{
  ret void
}
!3 = distinct !DISubprogram(name: "g", file: !4, line: 7)
!4 = !DIFile(filename: "/abs/g.c", directory: "/elsewhere")
"""
    module = parse_module(text)
    fn = module.functions[0]
    assert fn.name == "g"
    assert fn.subprogram.file.full_path == "/abs/g.c"


def test_string_escapes() -> None:
    assert unescape(r"caf\C3\A9") == "café"
    assert unescape(r"a\22b") == 'a"b'
    assert unescape("plain") == "plain"
    text = (
        "define void @h() !dbg !2 {\n  ret void\n}\n"
        '!1 = !DIFile(filename: "dir\\5Cx; y.c", directory: "/r")\n'
        '!2 = distinct !DISubprogram(name: "h", file: !1, line: 1)\n'
    )
    module = parse_module(text)
    assert module.functions[0].subprogram.file.full_path == "/r/dir\\x; y.c"


def test_split_top_level_respects_brackets_and_strings() -> None:
    assert split_top_level('i32 1, { i8, i8 } %s, "a,b"') == ["i32 1", "{ i8, i8 } %s", '"a,b"']


def test_malformed_input_reports_line() -> None:
    with pytest.raises(IRParseError) as exc:
        parse_module("define void @f() {\n  %x = load widget, ptr %p\n}\n")
    assert exc.value.lineno == 2
    with pytest.raises(IRParseError):
        parse_module("define void @f() {\n  ret void\n")
