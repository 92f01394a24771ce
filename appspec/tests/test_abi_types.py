from __future__ import annotations

import pytest

from appspec.abi.types import (
    AddressType,
    BoolType,
    BytesType,
    DynamicArrayType,
    StaticArrayType,
    StringType,
    TupleType,
    UintType,
    is_dynamic,
    parse_type,
    static_size,
)
from appspec.errors import ABITypeError, UnresolvedTypeError


@pytest.mark.parametrize(
    "spec, expected",
    [
        ("uint8", UintType(8)),
        ("uint64", UintType(64)),
        ("uint512", UintType(512)),
        ("byte", UintType(8)),
        ("bool", BoolType()),
        ("string", StringType()),
        ("address", AddressType()),
        ("bytes", BytesType()),
        ("byte[]", BytesType()),
        ("byte[32]", BytesType(32)),
        ("bytes[32]", BytesType(32)),
        ("bytes[]", DynamicArrayType(BytesType())),
        ("uint16[3]", StaticArrayType(UintType(16), 3)),
        ("uint16[]", DynamicArrayType(UintType(16))),
        ("byte[4][2]", StaticArrayType(BytesType(4), 2)),
        ("(uint8,bool)", TupleType((UintType(8), BoolType()))),
        ("()", TupleType(())),
        ("( uint8 , string )[]", DynamicArrayType(TupleType((UintType(8), StringType())))),
    ],
)
def test_parse_type_grammar(spec: str, expected) -> None:
    assert parse_type(spec) == expected


def test_type_names_are_canonical() -> None:
    assert parse_type("address").name == "address"
    assert parse_type("bytes[32]").name == "byte[32]"
    assert parse_type("(uint8,(bool,string)[])").name == "(uint8,(bool,string)[])"


@pytest.mark.parametrize(
    "spec",
    ["uint7", "uint0", "uint520", "int64", "ufixed64x2", "fixed128x10", "(uint8", "uint8[", "uint8[x]", "uint8]", ""],
)
def test_malformed_or_unsupported_types_raise(spec: str) -> None:
    with pytest.raises(ABITypeError):
        parse_type(spec)


def test_unknown_identifier_without_resolver() -> None:
    with pytest.raises(UnresolvedTypeError) as excinfo:
        parse_type("Thing[]")
    assert excinfo.value.name == "Thing"


def test_unknown_identifier_goes_to_resolver() -> None:
    seen = []

    def resolver(name: str):
        seen.append(name)
        return UintType(32)

    assert parse_type("Counter[2]", resolver) == StaticArrayType(UintType(32), 2)
    assert seen == ["Counter"]


def test_dynamic_and_static_sizes() -> None:
    assert not is_dynamic(parse_type("(address,uint64)"))
    assert static_size(parse_type("(address,uint64)")) == 40
    # Bool runs pack eight per byte.
    assert static_size(parse_type("bool[9]")) == 2
    assert static_size(parse_type("(bool,uint8,bool)")) == 3
    assert is_dynamic(parse_type("(uint8,string)"))
    assert is_dynamic(parse_type("string[2]"))
    with pytest.raises(ABITypeError):
        static_size(parse_type("string"))


def test_absurdly_nested_type_string_is_a_type_error() -> None:
    with pytest.raises(ABITypeError):
        parse_type("(" * 5000 + "uint8" + ")" * 5000)
