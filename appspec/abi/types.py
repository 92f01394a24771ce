"""
ABI type descriptors and the type-string parser.

Descriptors are small frozen dataclasses; composite descriptors own their
element descriptors, so a resolved type is a plain immutable tree:

  - UintType(bits)                 uintN, byte (uint8)
  - BoolType                       bool
  - BytesType(fixed_len | None)    bytes, byte[], bytes[N], byte[N]
  - AddressType                    address (32 fixed bytes, keeps its name)
  - StringType                     string
  - StaticArrayType(element, n)    T[N]
  - DynamicArrayType(element)      T[]
  - TupleType(elements, ...)       (T1,T2,...) and resolved structs
  - ReferenceType(name, target)    a resolved alias; encodes exactly as target

Utilities here *only* describe and coerce values; the wire layout lives in
appspec.abi.encoding/decoding.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple, Union

from ..errors import ABITypeError, EncodingOverflowError, TypeMismatchError, UnresolvedTypeError

__all__ = [
    "ABIType",
    "UintType",
    "BoolType",
    "BytesType",
    "AddressType",
    "StringType",
    "StaticArrayType",
    "DynamicArrayType",
    "TupleType",
    "ReferenceType",
    "unwrap",
    "is_dynamic",
    "static_size",
    "parse_type",
    "normalize_hex",
    "coerce_uint",
    "coerce_bool",
    "coerce_bytes",
    "coerce_sequence",
    "MAX_LENGTH",
]

# Two-byte length prefixes and tuple offsets.
MAX_LENGTH = 0xFFFF

ADDRESS_LENGTH = 32

_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMERIC_FAMILY = re.compile(r"(u?int|u?fixed)\d+(x\d+)?")


# ──────────────────────────────────────────────────────────────────────────────
# Descriptors
# ──────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UintType:
    bits: int = 64

    def __post_init__(self) -> None:
        if self.bits < 8 or self.bits > 512 or self.bits % 8 != 0:
            raise ABITypeError(f"uint width must be a multiple of 8 in 8..512, got {self.bits}")

    @property
    def name(self) -> str:
        return f"uint{self.bits}"


@dataclass(frozen=True)
class BoolType:
    @property
    def name(self) -> str:
        return "bool"


@dataclass(frozen=True)
class BytesType:
    fixed_len: Optional[int] = None

    def __post_init__(self) -> None:
        if self.fixed_len is not None and not (0 <= self.fixed_len <= MAX_LENGTH):
            raise ABITypeError(f"fixed byte length must be in 0..{MAX_LENGTH}")

    @property
    def name(self) -> str:
        if self.fixed_len is not None:
            return f"byte[{self.fixed_len}]"
        return "byte[]"


@dataclass(frozen=True)
class AddressType(BytesType):
    fixed_len: Optional[int] = ADDRESS_LENGTH

    @property
    def name(self) -> str:
        return "address"


@dataclass(frozen=True)
class StringType:
    @property
    def name(self) -> str:
        return "string"


@dataclass(frozen=True)
class StaticArrayType:
    element: "ABIType"
    length: int

    def __post_init__(self) -> None:
        if self.length < 0 or self.length > MAX_LENGTH:
            raise ABITypeError(f"static array length must be in 0..{MAX_LENGTH}")

    @property
    def name(self) -> str:
        return f"{self.element.name}[{self.length}]"


@dataclass(frozen=True)
class DynamicArrayType:
    element: "ABIType"

    @property
    def name(self) -> str:
        return f"{self.element.name}[]"


@dataclass(frozen=True)
class TupleType:
    elements: Tuple["ABIType", ...]
    # Set for resolved structs: values are dicts keyed by these names.
    field_names: Optional[Tuple[str, ...]] = None
    struct_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.field_names is not None and len(self.field_names) != len(self.elements):
            raise ABITypeError("struct field names and element types differ in length")

    @property
    def name(self) -> str:
        return "(" + ",".join(e.name for e in self.elements) + ")"

    @property
    def fields(self) -> List[Tuple[str, "ABIType"]]:
        if self.field_names is None:
            return []
        return list(zip(self.field_names, self.elements))


@dataclass(frozen=True)
class ReferenceType:
    """A named alias; encoded and decoded exactly as ``target``."""

    alias: str
    target: "ABIType"

    @property
    def name(self) -> str:
        return self.target.name


ABIType = Union[
    UintType,
    BoolType,
    BytesType,
    AddressType,
    StringType,
    StaticArrayType,
    DynamicArrayType,
    TupleType,
    ReferenceType,
]


# ──────────────────────────────────────────────────────────────────────────────
# Layout helpers
# ──────────────────────────────────────────────────────────────────────────────


def unwrap(typ: ABIType) -> ABIType:
    while isinstance(typ, ReferenceType):
        typ = typ.target
    return typ


def is_dynamic(typ: ABIType) -> bool:
    typ = unwrap(typ)
    if isinstance(typ, (StringType, DynamicArrayType)):
        return True
    if isinstance(typ, BytesType):
        return typ.fixed_len is None
    if isinstance(typ, StaticArrayType):
        return is_dynamic(typ.element)
    if isinstance(typ, TupleType):
        return any(is_dynamic(e) for e in typ.elements)
    return False


def _head_size(types: Tuple[ABIType, ...]) -> int:
    """Head size of a tuple: bool runs pack eight per byte, dynamics take 2."""
    size = 0
    i = 0
    while i < len(types):
        t = unwrap(types[i])
        if isinstance(t, BoolType):
            run = 0
            while i < len(types) and isinstance(unwrap(types[i]), BoolType):
                run += 1
                i += 1
            size += (run + 7) // 8
            continue
        size += 2 if is_dynamic(t) else static_size(t)
        i += 1
    return size


def static_size(typ: ABIType) -> int:
    """Encoded byte length of a static type."""
    typ = unwrap(typ)
    if is_dynamic(typ):
        raise ABITypeError(f"{typ.name} is dynamic and has no static size")
    if isinstance(typ, UintType):
        return typ.bits // 8
    if isinstance(typ, BoolType):
        return 1
    if isinstance(typ, BytesType):
        return typ.fixed_len or 0
    if isinstance(typ, StaticArrayType):
        return _head_size((typ.element,) * typ.length)
    if isinstance(typ, TupleType):
        return _head_size(typ.elements)
    raise ABITypeError(f"unsupported ABI type: {typ!r}")


# ──────────────────────────────────────────────────────────────────────────────
# Value coercion
# ──────────────────────────────────────────────────────────────────────────────


def normalize_hex(s: str) -> bytes:
    """Convert a 0x-prefixed hex string to bytes, accepting even-length only."""
    hex_part = s[2:]
    if len(hex_part) % 2 != 0:
        raise TypeMismatchError("hex string must have an even number of digits")
    try:
        return bytes.fromhex(hex_part)
    except ValueError as e:
        raise TypeMismatchError(f"invalid hex: {e}") from e


def coerce_uint(value: Any, *, bits: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeMismatchError(f"uint{bits} expects an int, got {type(value).__name__}")
    if value < 0 or value.bit_length() > bits:
        raise EncodingOverflowError(f"{value} does not fit in uint{bits}")
    return int(value)


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise TypeMismatchError("bool must be True/False")


def coerce_bytes(value: Any, *, fixed_len: Optional[int] = None) -> bytes:
    """Accept bytes, bytearray or 0x-hex; enforce the fixed length if any."""
    if isinstance(value, bytes):
        b = value
    elif isinstance(value, (bytearray, memoryview)):
        b = bytes(value)
    elif isinstance(value, str) and value.startswith("0x"):
        b = normalize_hex(value)
    else:
        raise TypeMismatchError("bytes must be bytes, bytearray, or 0x-hex string")
    if fixed_len is not None:
        if len(b) > fixed_len:
            raise EncodingOverflowError(f"{len(b)} bytes exceed the fixed length {fixed_len}")
        if len(b) < fixed_len:
            raise TypeMismatchError(f"expected exactly {fixed_len} bytes, got {len(b)}")
    elif len(b) > MAX_LENGTH:
        raise EncodingOverflowError(f"byte string of {len(b)} bytes exceeds {MAX_LENGTH}")
    return b


def coerce_sequence(value: Any, *, what: str) -> Tuple[Any, ...]:
    if isinstance(value, (str, bytes, bytearray)) or not isinstance(value, (list, tuple)):
        raise TypeMismatchError(f"{what} expects a list or tuple, got {type(value).__name__}")
    return tuple(value)


# ──────────────────────────────────────────────────────────────────────────────
# Parser for textual type specs
# ──────────────────────────────────────────────────────────────────────────────

Resolver = Callable[[str], ABIType]


def parse_type(spec: str, resolver: Optional[Resolver] = None) -> ABIType:
    """
    Parse a textual type spec into a descriptor.

    Supported forms: ``uintN``, ``byte``, ``bool``, ``address``, ``string``,
    ``bytes``, ``byte[]``, ``bytes[N]``, ``byte[N]``, ``T[N]``, ``T[]`` and
    ``(T1,T2,...)``. Any other identifier is handed to ``resolver``; without
    one it raises UnresolvedTypeError.
    """
    if not isinstance(spec, str) or not spec.strip():
        raise ABITypeError("type spec must be a non-empty string")
    s = spec.replace(" ", "")
    try:
        typ, pos = _parse_at(s, 0, resolver)
    except RecursionError:
        raise ABITypeError(f"type spec nests too deeply: {spec[:40]!r}...") from None
    if pos != len(s):
        raise ABITypeError(f"unexpected {s[pos:]!r} in type spec {spec!r}")
    return typ


def _parse_at(s: str, pos: int, resolver: Optional[Resolver]) -> Tuple[ABIType, int]:
    if pos >= len(s):
        raise ABITypeError(f"truncated type spec {s!r}")

    if s[pos] == "(":
        elements: List[ABIType] = []
        pos += 1
        if pos < len(s) and s[pos] == ")":
            pos += 1
        else:
            while True:
                elem, pos = _parse_at(s, pos, resolver)
                elements.append(elem)
                if pos >= len(s):
                    raise ABITypeError(f"unclosed tuple in {s!r}")
                if s[pos] == ",":
                    pos += 1
                    continue
                if s[pos] == ")":
                    pos += 1
                    break
                raise ABITypeError(f"unexpected {s[pos]!r} in tuple {s!r}")
        return _parse_suffixes(s, pos, TupleType(tuple(elements)))

    m = _IDENT.match(s, pos)
    if m is None:
        raise ABITypeError(f"expected a type name at {s[pos:]!r}")
    word = m.group(0)
    pos = m.end()

    # byte[N] / bytes[N] / byte[] absorb their first suffix as a byte string.
    if word in ("byte", "bytes") and s.startswith("[", pos):
        length, after = _read_suffix(s, pos)
        if length is not None:
            return _parse_suffixes(s, after, BytesType(fixed_len=length))
        if word == "byte":
            return _parse_suffixes(s, after, BytesType())

    return _parse_suffixes(s, pos, _base_type(word, resolver))


def _base_type(word: str, resolver: Optional[Resolver]) -> ABIType:
    if word == "bool":
        return BoolType()
    if word == "byte":
        return UintType(8)
    if word == "bytes":
        return BytesType()
    if word == "string":
        return StringType()
    if word == "address":
        return AddressType()
    if word.startswith("uint") and word[4:].isdigit():
        return UintType(int(word[4:]))
    if _NUMERIC_FAMILY.fullmatch(word):
        raise ABITypeError(f"unsupported ABI type: {word!r}")
    if resolver is None:
        raise UnresolvedTypeError(word)
    return resolver(word)


def _read_suffix(s: str, pos: int) -> Tuple[Optional[int], int]:
    end = s.find("]", pos)
    if end < 0:
        raise ABITypeError(f"unclosed array suffix in {s!r}")
    inner = s[pos + 1 : end]
    if inner == "":
        return None, end + 1
    if not inner.isdigit():
        raise ABITypeError(f"array length must be a decimal integer, got {inner!r}")
    return int(inner), end + 1


def _parse_suffixes(s: str, pos: int, typ: ABIType) -> Tuple[ABIType, int]:
    while pos < len(s) and s[pos] == "[":
        length, pos = _read_suffix(s, pos)
        typ = DynamicArrayType(typ) if length is None else StaticArrayType(typ, length)
    return typ, pos
