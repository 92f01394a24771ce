"""
Byte-level vectors for the ABI codec, plus the strict decoder's rejection of
truncated, malformed and over-long input.
"""
from __future__ import annotations

import pytest

from appspec.abi import decode, decode_value, encode
from appspec.errors import (
    DecodeError,
    EncodingOverflowError,
    MalformedOffsetError,
    TrailingDataError,
    TruncatedDataError,
    TypeMismatchError,
)
from appspec.typespec import AliasVariant, StructVariant, TypeResolver

ADDR = bytes(range(32))


# --------------------------------------------------------------------------------------
# Primitives
# --------------------------------------------------------------------------------------

@pytest.mark.parametrize(
    "typ, value, expected",
    [
        ("uint8", 255, b"\xff"),
        ("uint16", 1, b"\x00\x01"),
        ("uint64", 5, b"\x00" * 7 + b"\x05"),
        ("uint256", 1 << 255, b"\x80" + b"\x00" * 31),
        ("byte", 7, b"\x07"),
        ("bool", True, b"\x80"),
        ("bool", False, b"\x00"),
        ("byte[4]", b"\xde\xad\xbe\xef", b"\xde\xad\xbe\xef"),
        ("byte[]", b"ab", b"\x00\x02ab"),
        ("bytes", "0x0102", b"\x00\x02\x01\x02"),
        ("string", "héllo", b"\x00\x06" + "héllo".encode("utf-8")),
        ("address", ADDR, ADDR),
        ("address", "0x" + ADDR.hex(), ADDR),
    ],
)
def test_primitive_vectors(typ: str, value, expected: bytes) -> None:
    assert encode(typ, value) == expected


@pytest.mark.parametrize(
    "typ, value, exc",
    [
        ("uint8", 256, EncodingOverflowError),
        ("uint64", -1, EncodingOverflowError),
        ("uint64", True, TypeMismatchError),
        ("uint64", "5", TypeMismatchError),
        ("bool", 2, TypeMismatchError),
        ("string", b"abc", TypeMismatchError),
        ("byte[]", "abc", TypeMismatchError),
        ("byte[]", "0xabc", TypeMismatchError),
        ("address", b"\x00" * 31, TypeMismatchError),
        ("address", b"\x00" * 33, EncodingOverflowError),
        ("uint8[2]", [1, 2, 3], TypeMismatchError),
        ("uint8[]", "12", TypeMismatchError),
        ("(uint8,bool)", (1,), TypeMismatchError),
    ],
)
def test_encode_rejects_bad_values(typ: str, value, exc) -> None:
    with pytest.raises(exc):
        encode(typ, value)


# --------------------------------------------------------------------------------------
# Tuples, arrays and bool packing
# --------------------------------------------------------------------------------------

def test_consecutive_bools_pack_msb_first() -> None:
    assert encode("(bool,bool,bool)", (True, False, True)) == b"\xa0"
    assert encode("bool[9]", [True] * 9) == b"\xff\x80"
    # A non-bool element breaks the run.
    assert encode("(bool,uint8,bool)", (True, 7, False)) == b"\x80\x07\x00"
    assert decode("(bool,bool,bool)", b"\xa0") == (True, False, True)
    assert decode("bool[9]", b"\xff\x80") == [True] * 9


def test_head_tail_offsets_are_relative_to_tuple_start() -> None:
    data = encode("(uint16,string,bool)", (1, "ab", True))
    assert data == b"\x00\x01" + b"\x00\x05" + b"\x80" + b"\x00\x02ab"
    assert decode("(uint16,string,bool)", data) == (1, "ab", True)


def test_multiple_dynamic_elements_keep_declaration_order() -> None:
    data = encode("(string,string)", ("a", "bc"))
    assert data == b"\x00\x04\x00\x07" + b"\x00\x01a" + b"\x00\x02bc"


def test_arrays() -> None:
    assert encode("uint16[]", [1, 2]) == b"\x00\x02\x00\x01\x00\x02"
    assert encode("uint16[2]", [1, 2]) == b"\x00\x01\x00\x02"
    assert encode("string[]", ["a", "b"]) == b"\x00\x02" + b"\x00\x04\x00\x07" + b"\x00\x01a\x00\x01b"
    assert encode("uint8[]", []) == b"\x00\x00"
    assert decode("string[]", encode("string[]", ["a", "b"])) == ["a", "b"]


def test_nested_dynamic_tuple_offsets() -> None:
    typ = "(uint8,(string,bool))"
    data = encode(typ, (9, ("x", True)))
    # outer head: uint8 + offset(3); inner tuple: offset(3) + bool, then "x"
    assert data == b"\x09\x00\x03" + b"\x00\x03\x80" + b"\x00\x01x"
    assert decode(typ, data) == (9, ("x", True))


def test_decode_value_reports_next_offset() -> None:
    buf = b"\x00\x01" + b"\x00\x02"
    value, pos = decode_value(buf, "uint16")
    assert (value, pos) == (1, 2)
    value, pos = decode_value(buf, "uint16", pos)
    assert (value, pos) == (2, 4)


# --------------------------------------------------------------------------------------
# User-defined types
# --------------------------------------------------------------------------------------

@pytest.fixture
def resolver() -> TypeResolver:
    return TypeResolver(
        {
            "Thing": StructVariant((("addr", "address"), ("balance", "uint64"))),
            "HashDigest": AliasVariant("byte[32]"),
        }
    )


def test_thing_struct_encodes_to_forty_bytes(resolver: TypeResolver) -> None:
    thing = resolver.resolve("Thing")
    assert thing.name == "(address,uint64)"
    data = encode(thing, {"addr": ADDR, "balance": 5})
    assert len(data) == 40
    assert data == ADDR + b"\x00" * 7 + b"\x05"
    # Positional values are accepted in field order.
    assert encode(thing, (ADDR, 5)) == data
    assert decode(thing, data) == {"addr": ADDR, "balance": 5}


def test_struct_mapping_must_match_fields(resolver: TypeResolver) -> None:
    thing = resolver.resolve("Thing")
    with pytest.raises(TypeMismatchError):
        encode(thing, {"addr": ADDR})
    with pytest.raises(TypeMismatchError):
        encode(thing, {"addr": ADDR, "balance": 1, "extra": 2})


def test_hash_digest_alias(resolver: TypeResolver) -> None:
    digest = resolver.resolve("HashDigest")
    value = bytes(range(100, 132))
    data = encode(digest, value)
    assert data == value
    assert decode(digest, data) == value

    with pytest.raises(TypeMismatchError):
        encode(digest, value[:31])
    with pytest.raises(EncodingOverflowError):
        encode(digest, value + b"\x00")
    with pytest.raises(TruncatedDataError):
        decode(digest, value[:31])
    with pytest.raises(TrailingDataError):
        decode(digest, value + b"\x00")


# --------------------------------------------------------------------------------------
# Strict decoding
# --------------------------------------------------------------------------------------

@pytest.mark.parametrize(
    "typ, data, exc",
    [
        ("uint64", b"\x00" * 7, TruncatedDataError),
        ("string", b"\x00\x05ab", TruncatedDataError),
        ("uint8[]", b"\x00\x03\x01\x02", TruncatedDataError),
        ("uint8", b"\x01\x02", TrailingDataError),
        ("bool", b"\x01", DecodeError),
        ("string", b"\x00\x02\xff\xfe", DecodeError),
        # first offset must equal the head length
        ("(string)", b"\x00\x03\x00\x00\x01a", MalformedOffsetError),
        # second offset goes backwards
        ("(string,string)", b"\x00\x04\x00\x03\x00\x01a", MalformedOffsetError),
        # second offset points past the end
        ("(string,string)", b"\x00\x04\x00\x64\x00\x00", MalformedOffsetError),
        # first element does not fill its span
        ("(string,string)", b"\x00\x04\x00\x08\x00\x01a\x00\x00\x01b", MalformedOffsetError),
    ],
)
def test_decode_rejects_bad_input(typ: str, data: bytes, exc) -> None:
    with pytest.raises(exc):
        decode(typ, data)


def test_decode_requires_bytes() -> None:
    with pytest.raises(DecodeError):
        decode("uint8", "00")  # type: ignore[arg-type]


def test_encode_respects_configured_size_cap(monkeypatch, fresh_config) -> None:
    monkeypatch.setenv("APPSPEC_MAX_ABI_BYTES", "1024")
    assert len(encode("byte[]", b"\x00" * 1000)) == 1002
    with pytest.raises(EncodingOverflowError):
        encode("byte[]", b"\x00" * 1100)


@pytest.mark.parametrize(
    "typ, value",
    [("byte[]", b"\xab" * 65_535), ("string", "x" * 65_535)],
)
def test_largest_length_prefixed_values_round_trip(fresh_config, typ: str, value) -> None:
    out = encode(typ, value)
    assert len(out) == 65_537
    assert out[:2] == b"\xff\xff"
    assert decode(typ, out) == value


def test_length_prefix_limit_still_applies(fresh_config) -> None:
    with pytest.raises(EncodingOverflowError):
        encode("byte[]", b"\x00" * 65_536)


@pytest.mark.parametrize(
    "typ, data",
    [
        ("(bool,uint8)", b"\x81\x05"),
        ("bool[3]", b"\xa1"),
        ("bool[]", b"\x00\x02\xe0"),
        ("(bool,bool,bool,bool,bool,bool,bool,bool,bool)", b"\xff\xc0"),
    ],
)
def test_packed_bool_padding_bits_must_be_zero(typ: str, data: bytes) -> None:
    with pytest.raises(DecodeError, match="padding"):
        decode(typ, data)


def test_full_byte_of_packed_bools_has_no_padding() -> None:
    assert decode("bool[8]", b"\xff") == [True] * 8
    assert decode("(bool,uint8)", b"\x80\x05") == (True, 5)
