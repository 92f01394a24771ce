"""
parser.py — raw document -> validated, immutable ApplicationSpec.

Pipeline (first failure wins and carries the document path):

  1. JSON decoding (``str``/``bytes`` input only), duplicate keys rejected
  2. structural validation against the packaged JSON Schema
  3. TypeSpec: every entry resolved, unknown names and cycles rejected
  4. SchemaSpec: key uniqueness, ``max_keys`` and per-scope key limits
  5. contract: method arg/return types resolved, default arguments checked

    spec = parse(open("app.json").read())
    spec = parse_file("app.json", limits={"global": StateLimits(32)})
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .config import StateLimits
from .contract import NON_ABI_ARG_TYPES, Contract
from .errors import AppSpecError, ParseError
from .log import get_logger
from .schema import SchemaSpec, validate_default_arguments, validate_schema
from .schemas import iter_document_errors
from .spec import ApplicationSpec, SourceSpec, errors_from_raw
from .typespec import TypeResolver, UserDefinedType, resolve_all, user_type_from_raw

log = get_logger(__name__)

__all__ = ["SECTIONS", "loads", "parse", "parse_file"]

# Top-level keys owned by the application spec; everything else is contract.
SECTIONS = ("source", "schema", "types", "errors")

RawDocument = Union[str, bytes, bytearray, Mapping[str, Any]]


def _reject_duplicates(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in pairs:
        if key in out:
            raise ParseError(f"duplicate key {key!r} in JSON object")
        out[key] = value
    return out


def loads(text: Union[str, bytes, bytearray]) -> Dict[str, Any]:
    """Strict JSON decoding: duplicate object keys are an error."""
    try:
        doc = json.loads(text, object_pairs_hook=_reject_duplicates)
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})") from e
    except UnicodeDecodeError as e:
        raise ParseError(f"document is not valid UTF-8: {e}") from e
    return doc


def _check_structure(doc: Any) -> None:
    if not isinstance(doc, Mapping):
        raise ParseError(f"application spec must be a JSON object, got {type(doc).__name__}")
    for path, message in iter_document_errors(dict(doc)):
        raise ParseError(message, path=path or None)


def _resolve_contract_types(contract: Contract, resolver: TypeResolver) -> None:
    for i, method in enumerate(contract.methods):
        refs = [(f"methods[{i}].args[{j}].type", a.type) for j, a in enumerate(method.args)]
        refs.append((f"methods[{i}].returns.type", method.returns.type))
        for path, type_ref in refs:
            if type_ref in NON_ABI_ARG_TYPES:
                continue
            try:
                resolver.resolve(type_ref)
            except AppSpecError as e:
                raise e.at(path)


def parse(
    raw: RawDocument,
    *,
    limits: Optional[Mapping[str, StateLimits]] = None,
) -> ApplicationSpec:
    """
    Parse and validate an application spec document.

    ``raw`` is a JSON string/bytes or an already decoded mapping. ``limits``
    overrides the configured per-scope StateLimits. Default arguments are
    always checked against the schema and the contract.
    """
    doc = loads(raw) if isinstance(raw, (str, bytes, bytearray)) else raw
    _check_structure(doc)

    types: Optional[Dict[str, UserDefinedType]] = None
    resolved: Dict[str, Any] = {}
    if "types" in doc:
        types = {name: user_type_from_raw(name, entry) for name, entry in doc["types"].items()}
        resolved = resolve_all(types)
    resolver = TypeResolver(types)

    contract = Contract.from_raw({k: v for k, v in doc.items() if k not in SECTIONS})

    schema: Optional[SchemaSpec] = None
    if "schema" in doc:
        schema = SchemaSpec.from_raw(doc["schema"])
        validate_schema(schema, limits=limits, resolver=resolver)

    _resolve_contract_types(contract, resolver)

    validate_default_arguments(contract, schema, resolver=resolver)

    source = SourceSpec.from_raw(doc["source"]) if "source" in doc else None
    errors = errors_from_raw(doc["errors"]) if "errors" in doc else None

    spec = ApplicationSpec(
        contract=contract,
        source=source,
        schema=schema,
        types=types,
        errors=errors,
        resolved=resolved,
    )
    log.info(
        "parsed application spec %r: %d methods, %d types, %d error entries",
        contract.name, len(contract.methods), len(resolved), len(errors or {}),
    )
    return spec


def parse_file(path: Union[str, Path], **kwargs: Any) -> ApplicationSpec:
    """Read a JSON document from disk and :func:`parse` it."""
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise ParseError(f"cannot read {p}: {e}") from e
    return parse(data, **kwargs)
