"""
appspec.schemas — packaged JSON Schema for the Application Specification.

- application_spec.schema.json : structural grammar of the document

Example:

    from appspec.schemas import load_application_spec_schema, iter_document_errors

    schema = load_application_spec_schema()
    for path, message in iter_document_errors(doc):
        print(path, message)
"""

from __future__ import annotations

import hashlib
import json
from functools import lru_cache
from importlib import resources as _res
from typing import Any, Dict, Iterable, Iterator, Tuple, Union

import jsonschema

_SCHEMA_FILES = {
    "application_spec": "application_spec.schema.json",
}


def _read_text(filename: str) -> str:
    return _res.files(__package__).joinpath(filename).read_text(encoding="utf-8")


@lru_cache(maxsize=None)
def load_application_spec_schema() -> Dict[str, Any]:
    """Return the parsed JSON object from `application_spec.schema.json`."""
    return json.loads(_read_text(_SCHEMA_FILES["application_spec"]))


def schema_checksum(logical: str = "application_spec") -> str:
    """SHA3-256 (0x-hex) of a schema resource, for pinning in tooling."""
    if logical not in _SCHEMA_FILES:
        raise KeyError(f"unknown schema logical name: {logical}")
    raw = _read_text(_SCHEMA_FILES[logical]).encode("utf-8")
    return "0x" + hashlib.sha3_256(raw).hexdigest()


@lru_cache(maxsize=1)
def _validator() -> "jsonschema.protocols.Validator":
    schema = load_application_spec_schema()
    cls = jsonschema.validators.validator_for(schema)
    cls.check_schema(schema)
    return cls(schema)


def format_path(parts: Iterable[Union[str, int]]) -> str:
    """['schema', 'global', 'reserved', 'x'] -> 'schema.global.reserved.x'; ints become [i]."""
    out = ""
    for part in parts:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out


def iter_document_errors(instance: Any) -> Iterator[Tuple[str, str]]:
    """
    Yield ``(path, message)`` for every structural violation, shallowest
    path first so the most general problem is reported before its details.
    """
    errors = sorted(
        _validator().iter_errors(instance),
        key=lambda e: (len(e.absolute_path), [str(p) for p in e.absolute_path]),
    )
    for err in errors:
        yield format_path(err.absolute_path), err.message


__all__ = [
    "load_application_spec_schema",
    "schema_checksum",
    "format_path",
    "iter_document_errors",
]
