from __future__ import annotations

import pytest

from memcheck.ir.types import (
    ArrayType,
    FloatType,
    FunctionType,
    IntType,
    NamedType,
    PointerType,
    SpecialType,
    StructType,
    TypeParseError,
    VectorType,
    parse_type,
    parse_type_prefix,
)


def test_parse_scalars() -> None:
    assert parse_type("i32") == IntType(32)
    assert parse_type("i1") == IntType(1)
    assert parse_type("double") == FloatType("double")
    assert parse_type("x86_fp80") == FloatType("x86_fp80")
    assert parse_type("ptr") == PointerType()
    assert parse_type("ptr addrspace(3)") == PointerType(3)


def test_parse_aggregates() -> None:
    assert parse_type("[4 x i8]") == ArrayType(4, IntType(8))
    assert parse_type("<4 x float>") == VectorType(4, FloatType("float"))
    assert parse_type("<vscale x 2 x i64>") == VectorType(2, IntType(64), scalable=True)
    assert parse_type("{ i32, ptr }") == StructType((IntType(32), PointerType()))
    assert parse_type("<{ i8, i32 }>") == StructType((IntType(8), IntType(32)), packed=True)
    assert parse_type("{}") == StructType(())


def test_parse_named_and_quoted_names() -> None:
    assert parse_type("%struct.pair") == NamedType("%struct.pair")
    assert parse_type('%"class.std::vector"') == NamedType('%"class.std::vector"')


def test_parse_typed_pointers_and_function_types() -> None:
    assert parse_type("i32*") == PointerType(0, IntType(32))
    assert parse_type("i8 addrspace(1)*") == PointerType(1, IntType(8))
    fn = parse_type("i32 (ptr, ...)")
    assert fn == FunctionType(IntType(32), (PointerType(),), vararg=True)
    assert parse_type("void (i32)*") == PointerType(0, FunctionType(SpecialType("void"), (IntType(32),)))


def test_parse_type_prefix_stops_after_type() -> None:
    text = "i64 %b, ptr %b.addr, align 8"
    ty, pos = parse_type_prefix(text)
    assert ty == IntType(64)
    assert text[pos:].lstrip().startswith("%b")


def test_parse_rejects_garbage() -> None:
    with pytest.raises(TypeParseError):
        parse_type("widget")
    with pytest.raises(TypeParseError):
        parse_type("i32 trailing")
    with pytest.raises(TypeParseError):
        parse_type("[4 i8]")


def test_type_str_round_trips_common_spellings() -> None:
    for text in ["i32", "ptr", "[2 x double]", "<4 x i32>", "{ i32, i64 }", "<{ i8, i16 }>"]:
        assert str(parse_type(text)) == text
