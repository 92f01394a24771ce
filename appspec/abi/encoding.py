"""
ABI encoding (ARC-4 layout).

Primitives
----------
- uintN:              N/8 bytes, big-endian
- bool (standalone):  1 byte: 0x80 (true) or 0x00 (false)
- bytes[N] / address: raw bytes (exactly N)
- bytes (dynamic):    uint16be(len) || raw bytes
- string:             uint16be(len(utf8)) || utf8

Composites
----------
- T[N]:  encoded like a tuple of N elements
- T[]:   uint16be(count) || tuple-of-count encoding
- tuple: head || tail. Static elements are inlined in the head; a dynamic
         element contributes a uint16be offset (relative to the start of the
         tuple) and its encoding goes to the tail, in declaration order.
         Consecutive bools are packed eight per byte, MSB first.

This module only encodes; decoding lives in appspec.abi.decoding.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Sequence, Tuple, Union

from ..config import load_config
from ..errors import ABITypeError, EncodingOverflowError, TypeMismatchError
from .types import (
    MAX_LENGTH,
    ABIType,
    BoolType,
    BytesType,
    DynamicArrayType,
    StaticArrayType,
    StringType,
    TupleType,
    UintType,
    coerce_bool,
    coerce_bytes,
    coerce_sequence,
    coerce_uint,
    is_dynamic,
    parse_type,
    unwrap,
)

__all__ = [
    "encode",
    "encode_uint",
    "encode_bool",
    "encode_bytes",
    "encode_string",
    "encode_tuple",
]


def _u16(n: int, what: str) -> bytes:
    if n > MAX_LENGTH:
        raise EncodingOverflowError(f"{what} {n} exceeds {MAX_LENGTH}")
    return n.to_bytes(2, "big")


# ──────────────────────────────────────────────────────────────────────────────
# Primitive encoders
# ──────────────────────────────────────────────────────────────────────────────


def encode_uint(value: Any, *, bits: int = 64) -> bytes:
    v = coerce_uint(value, bits=bits)
    return v.to_bytes(bits // 8, "big")


def encode_bool(value: Any) -> bytes:
    return b"\x80" if coerce_bool(value) else b"\x00"


def encode_bytes(value: Any, *, fixed_len: int | None = None) -> bytes:
    """
    Fixed-length byte strings are emitted verbatim; dynamic ones get a
    two-byte length prefix.
    """
    b = coerce_bytes(value, fixed_len=fixed_len)
    if fixed_len is not None:
        return b
    return _u16(len(b), "byte length") + b


def encode_string(value: Any) -> bytes:
    if not isinstance(value, str):
        raise TypeMismatchError(f"string expects str, got {type(value).__name__}")
    raw = value.encode("utf-8")
    return _u16(len(raw), "string length") + raw


# ──────────────────────────────────────────────────────────────────────────────
# Tuples and arrays
# ──────────────────────────────────────────────────────────────────────────────


def _pack_bools(values: Sequence[Any]) -> bytes:
    out = bytearray((len(values) + 7) // 8)
    for i, v in enumerate(values):
        if coerce_bool(v):
            out[i // 8] |= 0x80 >> (i % 8)
    return bytes(out)


def encode_tuple(types: Sequence[ABIType], values: Sequence[Any]) -> bytes:
    """Head-tail encode ``values`` against ``types`` (lengths must agree)."""
    if len(types) != len(values):
        raise TypeMismatchError(
            f"expected {len(types)} elements, got {len(values)}"
        )

    # Head parts are bytes for static data, or an int index into `tails`
    # standing for a not-yet-known offset.
    heads: List[Union[bytes, int]] = []
    tails: List[bytes] = []
    i = 0
    while i < len(types):
        t = unwrap(types[i])
        if isinstance(t, BoolType):
            j = i
            while j < len(types) and isinstance(unwrap(types[j]), BoolType):
                j += 1
            heads.append(_pack_bools(values[i:j]))
            i = j
            continue
        if is_dynamic(t):
            heads.append(len(tails))
            tails.append(_encode(t, values[i]))
        else:
            heads.append(_encode(t, values[i]))
        i += 1

    head_len = sum(2 if isinstance(h, int) else len(h) for h in heads)
    offsets: List[int] = []
    cursor = head_len
    for tail in tails:
        offsets.append(cursor)
        cursor += len(tail)

    out = bytearray()
    for h in heads:
        if isinstance(h, int):
            out += _u16(offsets[h], "tuple offset")
        else:
            out += h
    for tail in tails:
        out += tail
    return bytes(out)


def _struct_values(typ: TupleType, value: Any) -> Tuple[Any, ...]:
    if isinstance(value, Mapping):
        names = typ.field_names or ()
        missing = [n for n in names if n not in value]
        extra = [k for k in value if k not in names]
        if missing or extra:
            raise TypeMismatchError(
                f"struct {typ.struct_name or typ.name} fields mismatch "
                f"(missing={missing}, unexpected={extra})"
            )
        return tuple(value[n] for n in names)
    return coerce_sequence(value, what=typ.struct_name or typ.name)


# ──────────────────────────────────────────────────────────────────────────────
# High-level dispatch
# ──────────────────────────────────────────────────────────────────────────────


def _encode(typ: ABIType, value: Any) -> bytes:
    typ = unwrap(typ)

    if isinstance(typ, UintType):
        return encode_uint(value, bits=typ.bits)

    if isinstance(typ, BoolType):
        return encode_bool(value)

    if isinstance(typ, BytesType):
        return encode_bytes(value, fixed_len=typ.fixed_len)

    if isinstance(typ, StringType):
        return encode_string(value)

    if isinstance(typ, StaticArrayType):
        items = coerce_sequence(value, what=typ.name)
        if len(items) != typ.length:
            raise TypeMismatchError(
                f"{typ.name} expects {typ.length} elements, got {len(items)}"
            )
        return encode_tuple((typ.element,) * typ.length, items)

    if isinstance(typ, DynamicArrayType):
        items = coerce_sequence(value, what=typ.name)
        count = _u16(len(items), "array length")
        return count + encode_tuple((typ.element,) * len(items), items)

    if isinstance(typ, TupleType):
        if typ.field_names is not None:
            items = _struct_values(typ, value)
        else:
            items = coerce_sequence(value, what=typ.name)
        return encode_tuple(typ.elements, items)

    raise ABITypeError(f"unsupported ABI type: {typ!r}")


def encode(typ: Union[str, ABIType], value: Any) -> bytes:
    """
    Encode a single value according to ``typ`` (descriptor or built-in type
    string). Raises TypeMismatchError or EncodingOverflowError; never returns
    a partial encoding.
    """
    if isinstance(typ, str):
        typ = parse_type(typ)
    out = _encode(typ, value)
    cap = load_config().max_abi_bytes
    if cap is not None and len(out) > cap:
        raise EncodingOverflowError(f"encoded {typ.name} is {len(out)} bytes (max {cap})")
    return out
