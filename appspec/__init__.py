"""
appspec — Application Specification codec and validator.

A small, stable façade over the package:

- parse(raw) -> ApplicationSpec
    Decode and validate a spec document (JSON text or a decoded mapping).
- encode(typ, value) -> bytes / decode(typ, data) -> value
    ARC-4 ABI codec over resolved type descriptors or type strings.
- TypeResolver(types).resolve(name)
    Expand user-defined structs and aliases into ABI descriptors.
- validate_schema(schema_spec) / validate_default_arguments(contract, schema)
    State schema and default argument checks.
- build_error_map(source, source_map) -> {pc: message}
    Program counter → diagnostic table from an annotated program.
"""

from __future__ import annotations

from .abi import decode, encode, parse_type
from .config import AppSpecConfig, StateLimits, load_config
from .contract import Contract, DefaultArgument, Method, MethodArg, MethodReturns
from .errormap import ErrorMapBuilder, build_error_map, merge_error_maps
from .errors import *  # noqa: F401,F403
from .errors import __all__ as _all_errors
from .parser import parse, parse_file
from .schema import (
    DeclaredSchemaValueSpec,
    ReservedSchemaValueSpec,
    Schema,
    SchemaSpec,
    validate_default_arguments,
    validate_schema,
)
from .spec import ApplicationSpec, SourceSpec
from .typespec import AliasVariant, StructVariant, TypeResolver
from .version import __version__


def version() -> str:
    """Return the appspec version string."""
    return __version__


__all__ = [
    "__version__",
    "version",
    "parse",
    "parse_file",
    "ApplicationSpec",
    "SourceSpec",
    "Contract",
    "Method",
    "MethodArg",
    "MethodReturns",
    "DefaultArgument",
    "Schema",
    "SchemaSpec",
    "DeclaredSchemaValueSpec",
    "ReservedSchemaValueSpec",
    "StructVariant",
    "AliasVariant",
    "TypeResolver",
    "encode",
    "decode",
    "parse_type",
    "validate_schema",
    "validate_default_arguments",
    "ErrorMapBuilder",
    "build_error_map",
    "merge_error_maps",
    "AppSpecConfig",
    "StateLimits",
    "load_config",
    *_all_errors,
]
