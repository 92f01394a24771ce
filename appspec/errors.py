"""
appspec.errors — structured error taxonomy.

Every error carries a short machine-readable ``code``, a human ``message`` and
a ``context`` dict (``context["path"]`` locates the offending document field
when one is known). Concrete errors also subclass the closest builtin so that
callers catching ``ValueError``/``TypeError`` keep working.

Parse/validate-time errors (fatal for a document):
    ParseError, UnresolvedTypeError, CyclicTypeError, ABITypeError,
    ValidationError, ConflictingErrorEntryError

Per-call codec errors (the resolved spec stays usable):
    TypeMismatchError, EncodingOverflowError,
    TruncatedDataError, MalformedOffsetError, TrailingDataError
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence


class AppSpecError(Exception):
    """
    Base class for all appspec errors.

        AppSpecError("message")
        AppSpecError("message", path="schema.global", context={...})
    """

    code: str = "appspec_error"

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})
        if path is not None:
            self.context["path"] = path

    @property
    def path(self) -> Optional[str]:
        return self.context.get("path")

    def at(self, path: str) -> "AppSpecError":
        """Attach a document path unless a more specific one is already set."""
        if "path" not in self.context:
            self.context["path"] = path
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": dict(self.context),
        }

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


# --- document / type namespace ----------------------------------------------


class ParseError(AppSpecError, ValueError):
    """Malformed document shape."""

    code = "parse_error"


class ABITypeError(AppSpecError, TypeError):
    """Raised when an ABI type string is malformed or unsupported."""

    code = "abi_type_error"


class UnresolvedTypeError(AppSpecError, LookupError):
    """A type string names a user-defined type that does not exist."""

    code = "unresolved_type"

    def __init__(self, name: str, **kwargs: Any) -> None:
        super().__init__(f"unknown type {name!r}", **kwargs)
        self.name = name
        self.context.setdefault("type", name)


class CyclicTypeError(AppSpecError, ValueError):
    """A user-defined type references itself directly or transitively."""

    code = "cyclic_type"

    def __init__(self, cycle: Sequence[str], **kwargs: Any) -> None:
        self.cycle = tuple(cycle)
        super().__init__("cyclic type reference: " + " -> ".join(self.cycle), **kwargs)
        self.context.setdefault("cycle", list(self.cycle))


class ValidationError(AppSpecError, ValueError):
    """Schema key/count/reference violation."""

    code = "validation_error"


class ConflictingErrorEntryError(AppSpecError, ValueError):
    """Two different diagnostics target the same program counter."""

    code = "conflicting_error_entry"

    def __init__(self, pc: int, existing: str, incoming: str, **kwargs: Any) -> None:
        super().__init__(
            f"program counter {pc} already maps to {existing!r}, refusing {incoming!r}",
            **kwargs,
        )
        self.pc = pc
        self.existing = existing
        self.incoming = incoming
        self.context.update({"pc": pc, "existing": existing, "incoming": incoming})


# --- codec --------------------------------------------------------------------


class CodecError(AppSpecError):
    code = "codec_error"


class EncodeError(CodecError, ValueError):
    code = "encode_error"


class TypeMismatchError(EncodeError, TypeError):
    """The value's runtime shape does not match the descriptor."""

    code = "type_mismatch"


class EncodingOverflowError(EncodeError):
    """Value exceeds the declared bit width or length."""

    code = "encoding_overflow"


class DecodeError(CodecError, ValueError):
    code = "decode_error"


class TruncatedDataError(DecodeError):
    """Buffer ends before a declared length."""

    code = "truncated_data"


class MalformedOffsetError(DecodeError):
    """A head offset points outside the tail region or goes backwards."""

    code = "malformed_offset"


class TrailingDataError(DecodeError):
    """Bytes left over after a complete top-level value."""

    code = "trailing_data"


__all__ = [
    "AppSpecError",
    "ParseError",
    "ABITypeError",
    "UnresolvedTypeError",
    "CyclicTypeError",
    "ValidationError",
    "ConflictingErrorEntryError",
    "CodecError",
    "EncodeError",
    "TypeMismatchError",
    "EncodingOverflowError",
    "DecodeError",
    "TruncatedDataError",
    "MalformedOffsetError",
    "TrailingDataError",
]
