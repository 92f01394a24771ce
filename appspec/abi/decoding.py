"""
Inverse decoder for the ARC-4 layout (see encoding.py).

Decoding is a single left-to-right scan. Every reader takes the region it
may use, ``buf[pos:limit]``, and returns ``(value, new_pos)``:

- reading past ``limit`` raises TruncatedDataError;
- tuple offsets must start exactly at the end of the head, never go
  backwards and stay inside the region, else MalformedOffsetError;
- a dynamic element must exactly fill the span up to the next offset;
- bytes left over after the top-level value raise TrailingDataError.

Top-level:
- decode(typ, data) -> value
- decode_value(buf, typ, offset=0) -> (value, new_offset)
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple, Union

from ..errors import (
    ABITypeError,
    DecodeError,
    MalformedOffsetError,
    TrailingDataError,
    TruncatedDataError,
)
from .types import (
    ABIType,
    BoolType,
    BytesType,
    DynamicArrayType,
    StaticArrayType,
    StringType,
    TupleType,
    UintType,
    is_dynamic,
    parse_type,
    unwrap,
)

__all__ = [
    "decode",
    "decode_value",
    "decode_uint",
    "decode_bool",
    "decode_bytes",
    "decode_string",
    "decode_tuple",
]


# ──────────────────────────────────────────────────────────────────────────────
# Primitive decoders
# ──────────────────────────────────────────────────────────────────────────────


def _read_exact(buf: bytes, pos: int, n: int, limit: int) -> Tuple[bytes, int]:
    j = pos + n
    if j > limit:
        raise TruncatedDataError(
            f"need {n} bytes at offset {pos}, only {max(limit - pos, 0)} available"
        )
    return bytes(buf[pos:j]), j


def _read_u16(buf: bytes, pos: int, limit: int) -> Tuple[int, int]:
    raw, j = _read_exact(buf, pos, 2, limit)
    return int.from_bytes(raw, "big"), j


def decode_uint(buf: bytes, pos: int = 0, *, bits: int = 64, limit: Optional[int] = None) -> Tuple[int, int]:
    raw, j = _read_exact(buf, pos, bits // 8, len(buf) if limit is None else limit)
    return int.from_bytes(raw, "big"), j


def decode_bool(buf: bytes, pos: int = 0, *, limit: Optional[int] = None) -> Tuple[bool, int]:
    raw, j = _read_exact(buf, pos, 1, len(buf) if limit is None else limit)
    if raw[0] == 0x80:
        return True, j
    if raw[0] == 0x00:
        return False, j
    raise DecodeError(f"invalid bool byte 0x{raw[0]:02x} at offset {pos}")


def decode_bytes(
    buf: bytes,
    pos: int = 0,
    *,
    fixed_len: Optional[int] = None,
    limit: Optional[int] = None,
) -> Tuple[bytes, int]:
    end = len(buf) if limit is None else limit
    if fixed_len is not None:
        return _read_exact(buf, pos, fixed_len, end)
    length, i = _read_u16(buf, pos, end)
    return _read_exact(buf, i, length, end)


def decode_string(buf: bytes, pos: int = 0, *, limit: Optional[int] = None) -> Tuple[str, int]:
    raw, j = decode_bytes(buf, pos, limit=limit)
    try:
        return raw.decode("utf-8"), j
    except UnicodeDecodeError as e:
        raise DecodeError(f"string at offset {pos} is not valid UTF-8") from e


# ──────────────────────────────────────────────────────────────────────────────
# Tuples and arrays
# ──────────────────────────────────────────────────────────────────────────────


def decode_tuple(
    buf: bytes,
    types: Sequence[ABIType],
    pos: int = 0,
    *,
    limit: Optional[int] = None,
) -> Tuple[List[Any], int]:
    """
    Decode a head-tail tuple starting at ``pos``. Returns the element values
    in declaration order and the offset just past the tuple encoding.
    """
    end = len(buf) if limit is None else limit
    values: List[Any] = [None] * len(types)
    dynamic: List[Tuple[int, int]] = []  # (element index, absolute start)

    p = pos
    i = 0
    while i < len(types):
        t = unwrap(types[i])
        if isinstance(t, BoolType):
            j = i
            while j < len(types) and isinstance(unwrap(types[j]), BoolType):
                j += 1
            packed, p = _read_exact(buf, p, (j - i + 7) // 8, end)
            unused = (8 - (j - i) % 8) % 8
            if packed[-1] & ((1 << unused) - 1):
                raise DecodeError(f"non-zero padding bits after {j - i} packed bools at offset {p - 1}")
            for k in range(j - i):
                values[i + k] = bool(packed[k // 8] & (0x80 >> (k % 8)))
            i = j
            continue
        if is_dynamic(t):
            off, p = _read_u16(buf, p, end)
            dynamic.append((i, pos + off))
        else:
            values[i], p = _decode_at(t, buf, p, end)
        i += 1

    if not dynamic:
        return values, p

    head_end = p
    if dynamic[0][1] != head_end:
        raise MalformedOffsetError(
            f"first tail offset {dynamic[0][1] - pos} does not match head length {head_end - pos}"
        )
    prev = head_end
    for _, start in dynamic:
        if start < prev:
            raise MalformedOffsetError(f"tail offset {start - pos} goes backwards")
        if start > end:
            raise MalformedOffsetError(f"tail offset {start - pos} points outside the buffer")
        prev = start

    for n, (idx, start) in enumerate(dynamic):
        last = n == len(dynamic) - 1
        stop = end if last else dynamic[n + 1][1]
        values[idx], p = _decode_at(unwrap(types[idx]), buf, start, stop)
        if not last and p != stop:
            raise MalformedOffsetError(
                f"element {idx} ends at {p - pos}, next offset is {stop - pos}"
            )
    return values, p


def _decode_at(typ: ABIType, buf: bytes, pos: int, limit: int) -> Tuple[Any, int]:
    typ = unwrap(typ)

    if isinstance(typ, UintType):
        return decode_uint(buf, pos, bits=typ.bits, limit=limit)

    if isinstance(typ, BoolType):
        return decode_bool(buf, pos, limit=limit)

    if isinstance(typ, BytesType):
        return decode_bytes(buf, pos, fixed_len=typ.fixed_len, limit=limit)

    if isinstance(typ, StringType):
        return decode_string(buf, pos, limit=limit)

    if isinstance(typ, StaticArrayType):
        return decode_tuple(buf, (typ.element,) * typ.length, pos, limit=limit)

    if isinstance(typ, DynamicArrayType):
        count, i = _read_u16(buf, pos, limit)
        return decode_tuple(buf, (typ.element,) * count, i, limit=limit)

    if isinstance(typ, TupleType):
        items, j = decode_tuple(buf, typ.elements, pos, limit=limit)
        if typ.field_names is not None:
            return dict(zip(typ.field_names, items)), j
        return tuple(items), j

    raise ABITypeError(f"unsupported ABI type: {typ!r}")


# ──────────────────────────────────────────────────────────────────────────────
# High-level dispatch
# ──────────────────────────────────────────────────────────────────────────────


def decode_value(
    buf: bytes,
    typ: Union[str, ABIType],
    offset: int = 0,
) -> Tuple[Any, int]:
    """
    Decode a single value of the given ABI type from buf[offset:].
    Returns (value, new_offset).
    """
    if isinstance(typ, str):
        typ = parse_type(typ)
    return _decode_at(typ, buf, offset, len(buf))


def decode(typ: Union[str, ABIType], data: bytes) -> Any:
    """
    Decode ``data`` as exactly one value of ``typ``. Structs come back as
    dicts in field order, other tuples as tuples, arrays as lists and byte
    strings (including ``address``) as ``bytes``.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise DecodeError(f"decode expects bytes, got {type(data).__name__}")
    buf = bytes(data)
    value, end = decode_value(buf, typ)
    if end != len(buf):
        raise TrailingDataError(f"{len(buf) - end} trailing bytes after value")
    return value
