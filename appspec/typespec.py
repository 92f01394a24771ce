"""
typespec.py — user-defined types and their resolution into ABI descriptors.

A TypeSpec maps a type name to either

  • StructVariant: ordered (field name, ABI type string) pairs, encoded as a
    tuple in exactly that order, or
  • AliasVariant: one ABI type string, encoded exactly as that type.

Type strings may name other user-defined types. Resolution is a depth-first
expansion with an explicit stack of names being expanded; meeting a name that
is already on the stack is a cycle. Each call to ``TypeResolver.resolve``
uses its own stack and memo, so a resolver can be shared across threads.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .abi.types import ABIType, ReferenceType, TupleType, parse_type, unwrap
from .errors import ABITypeError, CyclicTypeError, ParseError, UnresolvedTypeError
from .log import get_logger

log = get_logger(__name__)

_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

__all__ = [
    "StructVariant",
    "AliasVariant",
    "UserDefinedType",
    "TypeResolver",
    "user_type_from_raw",
    "user_type_to_raw",
    "resolve_all",
]


@dataclass(frozen=True)
class StructVariant:
    fields: Tuple[Tuple[str, str], ...]

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.fields)


@dataclass(frozen=True)
class AliasVariant:
    abi_type: str


UserDefinedType = Union[StructVariant, AliasVariant]


# --------------------------------------------------------------------------- #
# Document form
# --------------------------------------------------------------------------- #


def _check_type_name(name: Any, path: str) -> None:
    if not isinstance(name, str) or not name:
        raise ParseError("type name must be a non-empty string", path=path)
    if not _NAME.fullmatch(name):
        raise ParseError(f"{name!r} is not a valid user type name", path=path)
    try:
        parse_type(name)
    except UnresolvedTypeError:
        return
    except ABITypeError:
        raise ParseError(f"{name!r} is not a valid user type name", path=path)
    raise ParseError(f"user type {name!r} shadows a built-in ABI type", path=path)


def user_type_from_raw(name: str, raw: Any, *, path: str = "types") -> UserDefinedType:
    """Build a StructVariant (list of pairs) or AliasVariant (string)."""
    path = f"{path}.{name}"
    _check_type_name(name, path)

    if isinstance(raw, str):
        if not raw.strip():
            raise ParseError("alias type must be a non-empty ABI type string", path=path)
        return AliasVariant(raw.strip())

    if not isinstance(raw, (list, tuple)):
        raise ParseError(
            "user type must be an ABI type string or a list of [field, type] pairs",
            path=path,
        )

    fields: List[Tuple[str, str]] = []
    seen: set = set()
    for i, element in enumerate(raw):
        epath = f"{path}[{i}]"
        if not isinstance(element, (list, tuple)) or len(element) != 2:
            raise ParseError("struct element must be a [field, type] pair", path=epath)
        fname, ftype = element
        if not isinstance(fname, str) or not fname:
            raise ParseError("struct field name must be a non-empty string", path=epath)
        if not isinstance(ftype, str) or not ftype.strip():
            raise ParseError("struct field type must be a non-empty string", path=epath)
        if fname in seen:
            raise ParseError(f"duplicate struct field {fname!r}", path=epath)
        seen.add(fname)
        fields.append((fname, ftype.strip()))
    return StructVariant(tuple(fields))


def user_type_to_raw(udt: UserDefinedType) -> Union[str, List[List[str]]]:
    if isinstance(udt, AliasVariant):
        return udt.abi_type
    return [[name, typ] for name, typ in udt.fields]


# --------------------------------------------------------------------------- #
# Resolution
# --------------------------------------------------------------------------- #


class _Pass:
    """
    State of one resolution call: finished names plus an explicit DFS.

    Each type string is pre-scanned for the user-defined names it mentions;
    those are finished first, so building a descriptor only ever looks up
    memoized results and resolution depth never grows the Python stack.
    """

    def __init__(self, types: Mapping[str, UserDefinedType]) -> None:
        self.types = types
        self.done: Dict[str, ABIType] = {}

    def _deps(self, name: str) -> Iterator[str]:
        udt = self.types[name]
        strings = [udt.abi_type] if isinstance(udt, AliasVariant) else [t for _, t in udt.fields]
        seen: set = set()
        for s in strings:
            for ident in _NAME.findall(s):
                if ident in self.types and ident not in seen:
                    seen.add(ident)
                    yield ident

    def _build(self, name: str) -> ABIType:
        udt = self.types[name]
        if isinstance(udt, AliasVariant):
            # Alias chains collapse onto the first non-alias target.
            return ReferenceType(name, unwrap(parse_type(udt.abi_type, self.resolve_name)))
        elements = tuple(parse_type(t, self.resolve_name) for _, t in udt.fields)
        return TupleType(elements, field_names=udt.field_names, struct_name=name)

    def resolve_name(self, name: str) -> ABIType:
        if name in self.done:
            return self.done[name]
        if name not in self.types:
            raise UnresolvedTypeError(name)

        path: List[str] = [name]
        work: List[Tuple[str, Iterator[str]]] = [(name, self._deps(name))]
        while work:
            current, deps = work[-1]
            for dep in deps:
                if dep in self.done:
                    continue
                if dep in path:
                    raise CyclicTypeError(path[path.index(dep):] + [dep])
                path.append(dep)
                work.append((dep, self._deps(dep)))
                break
            else:
                self.done[current] = self._build(current)
                work.pop()
                path.pop()
        return self.done[name]


class TypeResolver:
    """
    Resolves names and inline type strings against a TypeSpec.

        resolver = TypeResolver({"Thing": StructVariant((("addr", "address"),
                                                         ("balance", "uint64")))})
        resolver.resolve("Thing").name   # "(address,uint64)"
        resolver.resolve("Thing[]")      # DynamicArrayType(TupleType(...))
    """

    def __init__(self, types: Optional[Mapping[str, UserDefinedType]] = None) -> None:
        self._types: Mapping[str, UserDefinedType] = types or {}

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._types)

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def resolve(self, type_ref: str) -> ABIType:
        """Resolve a user type name or an inline ABI type string."""
        p = _Pass(self._types)
        if type_ref in self._types:
            return p.resolve_name(type_ref)
        return parse_type(type_ref, p.resolve_name)


def resolve_all(types: Mapping[str, UserDefinedType], *, path: str = "types") -> Dict[str, ABIType]:
    """
    Resolve every entry of a TypeSpec, failing on the first unresolved or
    cyclic name. Errors carry the path of the entry being resolved.
    """
    p = _Pass(types)
    out: Dict[str, ABIType] = {}
    for name in types:
        try:
            out[name] = p.resolve_name(name)
        except (UnresolvedTypeError, CyclicTypeError, ABITypeError) as e:
            raise e.at(f"{path}.{name}")
    log.debug("resolved %d user types", len(out))
    return out
