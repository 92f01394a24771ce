"""
schema.py — application state schema and its validation.

Each scope (``global`` and ``local``) holds two explicit collections:

  declared   name -> DeclaredSchemaValueSpec   fixed on-chain key known up front
  reserved   id   -> ReservedSchemaValueSpec   up to ``max_keys`` runtime keys

The AVM counts uint64 keys and bytes keys separately. A value typed
``uint64`` takes a uint slot; every other type (AVM ``bytes`` or any ABI type,
which is stored ABI-encoded) takes a bytes slot. Worst case per scope is
declared entries plus every reserved entry at its ``max_keys``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union

from .abi.types import StringType, UintType, unwrap
from .config import StateLimits, load_config
from .contract import NON_ABI_ARG_TYPES, Contract, DefaultArgument
from .errors import AppSpecError, ParseError, ValidationError
from .log import get_logger
from .typespec import TypeResolver

log = get_logger(__name__)

__all__ = [
    "AVM_TYPES",
    "SCOPES",
    "MAX_KEY_BYTES",
    "DeclaredSchemaValueSpec",
    "ReservedSchemaValueSpec",
    "Schema",
    "SchemaSpec",
    "validate_schema",
    "validate_default_arguments",
]

AVM_TYPES = ("uint64", "bytes")
SCOPES = ("global", "local")

# AVM limit on the length of a state key.
MAX_KEY_BYTES = 64


def _is_uint_slot(typ: str) -> bool:
    return typ == "uint64"


@dataclass(frozen=True)
class DeclaredSchemaValueSpec:
    type: str
    key: str
    desc: str = ""

    @property
    def is_avm_type(self) -> bool:
        return self.type in AVM_TYPES

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "key": self.key, "desc": self.desc}


@dataclass(frozen=True)
class ReservedSchemaValueSpec:
    type: str
    max_keys: int
    desc: str = ""

    @property
    def is_avm_type(self) -> bool:
        return self.type in AVM_TYPES

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "desc": self.desc, "max_keys": self.max_keys}


SchemaEntry = Union[DeclaredSchemaValueSpec, ReservedSchemaValueSpec]


@dataclass(frozen=True)
class Schema:
    declared: Mapping[str, DeclaredSchemaValueSpec] = field(default_factory=dict)
    reserved: Mapping[str, ReservedSchemaValueSpec] = field(default_factory=dict)

    def lookup(self, ref: str) -> Optional[SchemaEntry]:
        """
        Find an entry by declared name, declared on-chain key, or reserved
        identifier (in that order).
        """
        if ref in self.declared:
            return self.declared[ref]
        for spec in self.declared.values():
            if spec.key == ref:
                return spec
        return self.reserved.get(ref)

    def entries(self) -> Iterator[Tuple[str, SchemaEntry]]:
        yield from self.declared.items()
        yield from self.reserved.items()

    def num_uints(self) -> int:
        """Worst-case uint64 key count."""
        return sum(1 for s in self.declared.values() if _is_uint_slot(s.type)) + sum(
            s.max_keys for s in self.reserved.values() if _is_uint_slot(s.type)
        )

    def num_bytes(self) -> int:
        """Worst-case bytes key count."""
        return sum(1 for s in self.declared.values() if not _is_uint_slot(s.type)) + sum(
            s.max_keys for s in self.reserved.values() if not _is_uint_slot(s.type)
        )

    @classmethod
    def from_raw(cls, raw: Any, *, path: str) -> "Schema":
        if not isinstance(raw, Mapping):
            raise ParseError("schema must be an object", path=path)
        declared_raw = raw.get("declared") or {}
        reserved_raw = raw.get("reserved") or {}
        if not isinstance(declared_raw, Mapping):
            raise ParseError("declared must be an object", path=f"{path}.declared")
        if not isinstance(reserved_raw, Mapping):
            raise ParseError("reserved must be an object", path=f"{path}.reserved")

        declared: Dict[str, DeclaredSchemaValueSpec] = {}
        for name, spec in declared_raw.items():
            p = f"{path}.declared.{name}"
            if not isinstance(spec, Mapping):
                raise ParseError("declared value must be an object", path=p)
            typ, key = spec.get("type"), spec.get("key")
            if not isinstance(typ, str) or not typ:
                raise ParseError("declared value requires a type", path=f"{p}.type")
            if not isinstance(key, str):
                raise ParseError("declared value requires a string key", path=f"{p}.key")
            declared[name] = DeclaredSchemaValueSpec(type=typ, key=key, desc=spec.get("desc") or "")

        reserved: Dict[str, ReservedSchemaValueSpec] = {}
        for name, spec in reserved_raw.items():
            p = f"{path}.reserved.{name}"
            if not isinstance(spec, Mapping):
                raise ParseError("reserved value must be an object", path=p)
            typ = spec.get("type")
            if not isinstance(typ, str) or not typ:
                raise ParseError("reserved value requires a type", path=f"{p}.type")
            reserved[name] = ReservedSchemaValueSpec(
                type=typ, max_keys=spec.get("max_keys"), desc=spec.get("desc") or ""
            )
        return cls(declared=declared, reserved=reserved)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "declared": {k: v.to_dict() for k, v in self.declared.items()},
            "reserved": {k: v.to_dict() for k, v in self.reserved.items()},
        }


@dataclass(frozen=True)
class SchemaSpec:
    global_: Schema = field(default_factory=Schema)
    local: Schema = field(default_factory=Schema)

    def scope(self, name: str) -> Schema:
        if name == "global":
            return self.global_
        if name == "local":
            return self.local
        raise KeyError(f"unknown state scope: {name!r}")

    @classmethod
    def from_raw(cls, raw: Any, *, path: str = "schema") -> "SchemaSpec":
        if not isinstance(raw, Mapping):
            raise ParseError("schema must be an object", path=path)
        return cls(
            global_=Schema.from_raw(raw.get("global", {}), path=f"{path}.global"),
            local=Schema.from_raw(raw.get("local", {}), path=f"{path}.local"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"global": self.global_.to_dict(), "local": self.local.to_dict()}


# --------------------------------------------------------------------------- #
# Validation
# --------------------------------------------------------------------------- #


def _validate_scope(
    scope: str,
    schema: Schema,
    limits: StateLimits,
    resolver: Optional[TypeResolver],
    path: str,
) -> None:
    keys: Dict[str, str] = {}
    for name, spec in schema.declared.items():
        p = f"{path}.declared.{name}"
        if spec.key in keys:
            raise ValidationError(
                f"declared key {spec.key!r} is used by both {keys[spec.key]!r} and {name!r}",
                path=p,
            )
        keys[spec.key] = name
        if len(spec.key.encode("utf-8")) > MAX_KEY_BYTES:
            raise ValidationError(f"key {spec.key!r} is longer than {MAX_KEY_BYTES} bytes", path=p)

    for name, spec in schema.reserved.items():
        if isinstance(spec.max_keys, bool) or not isinstance(spec.max_keys, int) or spec.max_keys < 0:
            raise ValidationError(
                f"max_keys must be a non-negative integer, got {spec.max_keys!r}",
                path=f"{path}.reserved.{name}.max_keys",
            )

    if resolver is not None:
        for kind, items in (("declared", schema.declared), ("reserved", schema.reserved)):
            for name, spec in items.items():
                if spec.is_avm_type:
                    continue
                try:
                    resolver.resolve(spec.type)
                except AppSpecError as e:
                    raise e.at(f"{path}.{kind}.{name}.type")

    uints, nbytes = schema.num_uints(), schema.num_bytes()
    if uints > limits.uint_limit:
        raise ValidationError(
            f"{scope} schema needs {uints} uint64 keys, limit is {limits.uint_limit}",
            path=path,
            context={"uints": uints, "limit": limits.uint_limit},
        )
    if nbytes > limits.bytes_limit:
        raise ValidationError(
            f"{scope} schema needs {nbytes} bytes keys, limit is {limits.bytes_limit}",
            path=path,
            context={"bytes": nbytes, "limit": limits.bytes_limit},
        )
    if uints + nbytes > limits.max_keys:
        raise ValidationError(
            f"{scope} schema needs {uints + nbytes} keys in total, limit is {limits.max_keys}",
            path=path,
            context={"uints": uints, "bytes": nbytes, "limit": limits.max_keys},
        )
    log.debug("%s schema ok: %d uint64 / %d bytes keys", scope, uints, nbytes)


def validate_schema(
    schema_spec: SchemaSpec,
    *,
    limits: Optional[Mapping[str, StateLimits]] = None,
    resolver: Optional[TypeResolver] = None,
    contract: Optional[Contract] = None,
    path: str = "schema",
) -> None:
    """
    Validate both scopes independently; raises ValidationError on the first
    violation. ``limits`` maps scope name to StateLimits and defaults to the
    configured AVM limits. When a resolver is given, non-AVM value types must
    resolve against it. When a contract is given, its method default
    arguments are checked against this schema as well.
    """
    cfg = load_config()
    for scope in SCOPES:
        scope_limits = (limits or {}).get(scope) or cfg.state_limits(scope)
        _validate_scope(scope, schema_spec.scope(scope), scope_limits, resolver, f"{path}.{scope}")
    if contract is not None:
        validate_default_arguments(contract, schema_spec, resolver=resolver)


def _check_constant(default: DefaultArgument, arg_type: str, resolver: Optional[TypeResolver], path: str) -> None:
    if resolver is None or arg_type in NON_ABI_ARG_TYPES:
        return
    typ = unwrap(resolver.resolve(arg_type))
    data = default.data
    if isinstance(typ, UintType):
        if isinstance(data, bool) or not isinstance(data, int):
            raise ValidationError(f"constant default for {arg_type} must be an integer", path=path)
        if data < 0 or data.bit_length() > typ.bits:
            raise ValidationError(f"constant default {data} does not fit {arg_type}", path=path)
    elif isinstance(typ, StringType) and not isinstance(data, str):
        raise ValidationError(f"constant default for {arg_type} must be a string", path=path)


def validate_default_arguments(
    contract: Contract,
    schema_spec: Optional[SchemaSpec],
    *,
    resolver: Optional[TypeResolver] = None,
) -> None:
    """
    Check every method argument default:
      - global-state / local-state data names an entry in that scope,
      - abi-method data names exactly one method of the contract,
      - constant data fits the argument type when it is a uint or string.
    """
    for i, method in enumerate(contract.methods):
        for j, arg in enumerate(method.args):
            default = arg.default_argument
            if default is None:
                continue
            p = f"methods[{i}].args[{j}].default_argument"
            if default.source in ("global-state", "local-state"):
                scope = default.source.split("-")[0]
                if schema_spec is None or schema_spec.scope(scope).lookup(str(default.data)) is None:
                    raise ValidationError(
                        f"{default.source} default {default.data!r} is not in the {scope} schema",
                        path=f"{p}.data",
                    )
            elif default.source == "abi-method":
                try:
                    target = contract.find_method(default.data)  # type: ignore[arg-type]
                except ValidationError as e:
                    raise e.at(f"{p}.data")
                if target is method:
                    raise ValidationError(
                        f"method {method.name!r} cannot default an argument to itself",
                        path=f"{p}.data",
                    )
                if not target.readonly:
                    log.warning(
                        "default for %s.%s calls %s, which is not marked readonly",
                        method.name, arg.name or j, target.signature(),
                    )
            else:
                _check_constant(default, arg.type, resolver, f"{p}.data")
