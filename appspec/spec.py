"""
spec.py — the immutable ApplicationSpec and its document form.

An ApplicationSpec is produced by ``appspec.parser.parse`` and never patched
in place: recompiling a program yields a new spec, and attaching a freshly
built error table goes through ``with_errors`` which returns a copy.

Codec helpers on the spec resolve type references against its TypeSpec, so
callers can write::

    spec.encode("Thing", {"addr": b"\\x00" * 32, "balance": 5})
    spec.decode_state_value("global", "counter", 7)
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Union

from .abi.decoding import decode
from .abi.encoding import encode
from .abi.types import ABIType
from .contract import Contract
from .errors import ParseError, TypeMismatchError
from .schema import SchemaSpec
from .typespec import TypeResolver, UserDefinedType, user_type_to_raw

__all__ = ["SourceSpec", "ApplicationSpec", "errors_from_raw", "errors_to_raw"]

UINT64_MAX = (1 << 64) - 1


@dataclass(frozen=True)
class SourceSpec:
    approval: bytes
    clear: bytes

    @classmethod
    def from_raw(cls, raw: Any, *, path: str = "source") -> "SourceSpec":
        if not isinstance(raw, Mapping):
            raise ParseError("source must be an object", path=path)
        out = {}
        for part in ("approval", "clear"):
            value = raw.get(part)
            if not isinstance(value, str):
                raise ParseError(f"{part} must be a base64 string", path=f"{path}.{part}")
            try:
                out[part] = base64.b64decode(value, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ParseError(f"{part} is not valid base64: {e}", path=f"{path}.{part}") from e
        return cls(approval=out["approval"], clear=out["clear"])

    def to_dict(self) -> Dict[str, str]:
        return {
            "approval": base64.b64encode(self.approval).decode("ascii"),
            "clear": base64.b64encode(self.clear).decode("ascii"),
        }


# --------------------------------------------------------------------------- #
# ErrorSpec boundary: documents use decimal string keys, the library uses int.
# --------------------------------------------------------------------------- #


# ASCII decimal without leading zeros.
_PC_KEY = re.compile(r"0|[1-9][0-9]*")


def errors_from_raw(raw: Any, *, path: str = "errors") -> Dict[int, str]:
    if not isinstance(raw, Mapping):
        raise ParseError("errors must be an object", path=path)
    out: Dict[int, str] = {}
    for key, message in raw.items():
        if isinstance(key, bool):
            raise ParseError(f"invalid program counter {key!r}", path=f"{path}.{key}")
        if isinstance(key, int):
            pc = key
        elif isinstance(key, str) and _PC_KEY.fullmatch(key):
            pc = int(key)
        else:
            raise ParseError(f"program counter must be a decimal integer, got {key!r}", path=f"{path}.{key}")
        if pc < 0:
            raise ParseError(f"program counter must be non-negative, got {pc}", path=f"{path}.{key}")
        if not isinstance(message, str):
            raise ParseError("error message must be a string", path=f"{path}.{key}")
        if pc in out:
            raise ParseError(f"program counter {pc} appears more than once", path=f"{path}.{key}")
        out[pc] = message
    return dict(sorted(out.items()))


def errors_to_raw(errors: Mapping[int, str]) -> Dict[str, str]:
    return {str(pc): msg for pc, msg in sorted(errors.items())}


# --------------------------------------------------------------------------- #
# ApplicationSpec
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class ApplicationSpec:
    contract: Contract
    source: Optional[SourceSpec] = None
    schema: Optional[SchemaSpec] = None
    types: Optional[Mapping[str, UserDefinedType]] = None
    errors: Optional[Mapping[int, str]] = None
    # Fully resolved TypeSpec, filled by the parser.
    resolved: Mapping[str, ABIType] = field(default_factory=dict, compare=False, repr=False)

    @property
    def resolver(self) -> TypeResolver:
        return TypeResolver(self.types or {})

    def resolve_type(self, type_ref: Union[str, ABIType]) -> ABIType:
        """Resolve a user type name or an inline ABI type string."""
        if not isinstance(type_ref, str):
            return type_ref
        if type_ref in self.resolved:
            return self.resolved[type_ref]
        return self.resolver.resolve(type_ref)

    # --- codec ----------------------------------------------------------------

    def encode(self, type_ref: Union[str, ABIType], value: Any) -> bytes:
        return encode(self.resolve_type(type_ref), value)

    def decode(self, type_ref: Union[str, ABIType], data: bytes) -> Any:
        return decode(self.resolve_type(type_ref), data)

    def decode_state_value(self, scope: str, ref: str, raw: Any) -> Any:
        """
        Interpret a raw state value read from the chain.

        AVM ``uint64`` entries take an int and return it; AVM ``bytes`` entries
        return the bytes unchanged; any other type is ABI-decoded.
        """
        if self.schema is None:
            raise KeyError(f"spec has no state schema ({scope} {ref!r})")
        entry = self.schema.scope(scope).lookup(ref)
        if entry is None:
            raise KeyError(f"no {scope} state entry named {ref!r}")
        if entry.type == "uint64":
            if isinstance(raw, bool) or not isinstance(raw, int) or not 0 <= raw <= UINT64_MAX:
                raise TypeMismatchError(f"{scope} state {ref!r} expects a uint64 value, got {raw!r}")
            return raw
        if not isinstance(raw, (bytes, bytearray)):
            raise TypeMismatchError(f"{scope} state {ref!r} expects bytes, got {type(raw).__name__}")
        if entry.type == "bytes":
            return bytes(raw)
        return self.decode(entry.type, bytes(raw))

    # --- errors ---------------------------------------------------------------

    def error_message(self, pc: int) -> Optional[str]:
        return (self.errors or {}).get(pc)

    def with_errors(self, errors: Mapping[int, str]) -> "ApplicationSpec":
        """Return a copy carrying ``errors`` as its ErrorSpec."""
        return replace(self, errors=errors_from_raw(errors))

    # --- document form ----------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        out = self.contract.to_dict()
        if self.source is not None:
            out["source"] = self.source.to_dict()
        if self.schema is not None:
            out["schema"] = self.schema.to_dict()
        if self.types is not None:
            out["types"] = {name: user_type_to_raw(udt) for name, udt in self.types.items()}
        if self.errors is not None:
            out["errors"] = errors_to_raw(self.errors)
        return out

    def to_json(self, *, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
