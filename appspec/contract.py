"""
contract.py — the embedded ARC-4 style contract interface.

The contract interface is owned by an external collaborator; this module only
reads it so that default arguments can be checked and method arg/return types
can be resolved against the TypeSpec. Selector computation and argument
marshaling are not provided here.

Document shape:

    {
      "name": "Counter",
      "desc": "...",
      "methods": [
        {"name": "add", "readonly": false,
         "args": [{"type": "uint64", "name": "a",
                   "default_argument": {"source": "global-state", "data": "counter"}}],
         "returns": {"type": "uint64"}}
      ],
      "networks": {...}
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .errors import ParseError, ValidationError

__all__ = [
    "DEFAULT_SOURCES",
    "DefaultArgument",
    "MethodArg",
    "MethodReturns",
    "Method",
    "Contract",
]

DEFAULT_SOURCES = ("global-state", "local-state", "abi-method", "constant")

# Transaction and reference argument types, plus the void return type. These
# are not ABI value types and never resolve against a TypeSpec.
NON_ABI_ARG_TYPES = frozenset(
    {
        "void",
        "txn", "pay", "keyreg", "acfg", "axfer", "afrz", "appl",
        "account", "asset", "application",
    }
)


@dataclass(frozen=True)
class DefaultArgument:
    source: str
    data: Union[str, int, Mapping[str, Any]]

    @classmethod
    def from_raw(cls, raw: Any, *, path: str) -> "DefaultArgument":
        if not isinstance(raw, Mapping):
            raise ParseError("default argument must be an object", path=path)
        source = raw.get("source")
        if source not in DEFAULT_SOURCES:
            raise ParseError(
                f"default argument source must be one of {list(DEFAULT_SOURCES)}, got {source!r}",
                path=f"{path}.source",
            )
        if "data" not in raw:
            raise ParseError("default argument requires data", path=f"{path}.data")
        data = raw["data"]
        if source in ("global-state", "local-state"):
            if not isinstance(data, str) or not data:
                raise ParseError("state default must name a schema key", path=f"{path}.data")
        elif source == "abi-method":
            if not (isinstance(data, str) and data) and not (
                isinstance(data, Mapping) and isinstance(data.get("name"), str)
            ):
                raise ParseError(
                    "abi-method default must be a method name, signature or method object",
                    path=f"{path}.data",
                )
        elif isinstance(data, bool) or not isinstance(data, (str, int)):
            raise ParseError("constant default must be a string or integer", path=f"{path}.data")
        return cls(source=source, data=data)

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "data": self.data}


@dataclass(frozen=True)
class MethodArg:
    type: str
    name: Optional[str] = None
    desc: Optional[str] = None
    default_argument: Optional[DefaultArgument] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type}
        if self.name is not None:
            out["name"] = self.name
        if self.desc is not None:
            out["desc"] = self.desc
        if self.default_argument is not None:
            out["default_argument"] = self.default_argument.to_dict()
        return out


@dataclass(frozen=True)
class MethodReturns:
    type: str = "void"
    desc: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type}
        if self.desc is not None:
            out["desc"] = self.desc
        return out


@dataclass(frozen=True)
class Method:
    name: str
    args: Tuple[MethodArg, ...] = ()
    returns: MethodReturns = field(default_factory=MethodReturns)
    desc: Optional[str] = None
    readonly: bool = False

    def signature(self) -> str:
        """ARC-4 style signature as written, e.g. ``add(uint64,uint64)uint64``."""
        return f"{self.name}({','.join(a.type for a in self.args)}){self.returns.type}"

    def matches(self, ref: Union[str, Mapping[str, Any]]) -> bool:
        if isinstance(ref, Mapping):
            if ref.get("name") != self.name:
                return False
            args = ref.get("args")
            if args is None:
                return True
            types = [a.get("type") if isinstance(a, Mapping) else None for a in args]
            return types == [a.type for a in self.args]
        if "(" in ref:
            return ref == self.signature()
        return ref == self.name

    @classmethod
    def from_raw(cls, raw: Any, *, path: str) -> "Method":
        if not isinstance(raw, Mapping):
            raise ParseError("method must be an object", path=path)
        name = raw.get("name")
        if not isinstance(name, str) or not name:
            raise ParseError("method name must be a non-empty string", path=f"{path}.name")
        args: List[MethodArg] = []
        for i, a in enumerate(raw.get("args") or []):
            apath = f"{path}.args[{i}]"
            if not isinstance(a, Mapping) or not isinstance(a.get("type"), str):
                raise ParseError("method arg must be an object with a type", path=apath)
            default = a.get("default_argument")
            args.append(
                MethodArg(
                    type=a["type"],
                    name=a.get("name"),
                    desc=a.get("desc"),
                    default_argument=(
                        DefaultArgument.from_raw(default, path=f"{apath}.default_argument")
                        if default is not None
                        else None
                    ),
                )
            )
        ret = raw.get("returns") or {}
        if not isinstance(ret, Mapping):
            raise ParseError("method returns must be an object", path=f"{path}.returns")
        return cls(
            name=name,
            args=tuple(args),
            returns=MethodReturns(type=ret.get("type", "void"), desc=ret.get("desc")),
            desc=raw.get("desc"),
            readonly=bool(raw.get("readonly", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "args": [a.to_dict() for a in self.args],
            "returns": self.returns.to_dict(),
        }
        if self.desc is not None:
            out["desc"] = self.desc
        if self.readonly:
            out["readonly"] = True
        return out


@dataclass(frozen=True)
class Contract:
    name: str
    methods: Tuple[Method, ...] = ()
    desc: Optional[str] = None
    # Anything else the interface carries (networks, events, ...), kept verbatim.
    extra: Mapping[str, Any] = field(default_factory=dict)

    def find_method(self, ref: Union[str, Mapping[str, Any]]) -> Method:
        """Look a method up by name, signature or method object."""
        found = [m for m in self.methods if m.matches(ref)]
        shown = ref if isinstance(ref, str) else ref.get("name")
        if not found:
            raise ValidationError(f"contract {self.name!r} has no method {shown!r}")
        if len(found) > 1:
            raise ValidationError(
                f"method reference {shown!r} is ambiguous: "
                + ", ".join(m.signature() for m in found)
            )
        return found[0]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], *, path: str = "") -> "Contract":
        name = raw.get("name")
        if not isinstance(name, str) or not name:
            raise ParseError("contract name must be a non-empty string", path=f"{path}name")
        methods_raw = raw.get("methods") or []
        if not isinstance(methods_raw, list):
            raise ParseError("methods must be a list", path=f"{path}methods")
        methods = tuple(
            Method.from_raw(m, path=f"{path}methods[{i}]") for i, m in enumerate(methods_raw)
        )
        extra = {k: v for k, v in raw.items() if k not in ("name", "desc", "methods")}
        return cls(name=name, methods=methods, desc=raw.get("desc"), extra=extra)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name}
        if self.desc is not None:
            out["desc"] = self.desc
        out["methods"] = [m.to_dict() for m in self.methods]
        out.update(self.extra)
        return out
