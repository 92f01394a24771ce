from __future__ import annotations

from typing import Any, Dict, Optional

import pytest

from appspec.config import StateLimits
from appspec.errors import UnresolvedTypeError, ValidationError
from appspec.schema import SchemaSpec, validate_schema
from appspec.typespec import StructVariant, TypeResolver


def _schema(
    global_: Optional[Dict[str, Any]] = None,
    local: Optional[Dict[str, Any]] = None,
) -> SchemaSpec:
    empty = {"declared": {}, "reserved": {}}
    return SchemaSpec.from_raw({"global": global_ or empty, "local": local or empty})


def _reserved(typ: str, max_keys: Any) -> Dict[str, Any]:
    return {"declared": {}, "reserved": {"r": {"type": typ, "desc": "", "max_keys": max_keys}}}


# --------------------------------------------------------------------------------------
# Key-count limits
# --------------------------------------------------------------------------------------

@pytest.mark.parametrize("typ", ["bytes", "uint64"])
def test_global_reserved_max_keys_boundary(typ: str) -> None:
    validate_schema(_schema(global_=_reserved(typ, 64)))
    with pytest.raises(ValidationError) as excinfo:
        validate_schema(_schema(global_=_reserved(typ, 65)))
    assert excinfo.value.path == "schema.global"


@pytest.mark.parametrize("typ", ["bytes", "uint64"])
def test_local_reserved_max_keys_boundary(typ: str) -> None:
    validate_schema(_schema(local=_reserved(typ, 16)))
    with pytest.raises(ValidationError) as excinfo:
        validate_schema(_schema(local=_reserved(typ, 17)))
    assert excinfo.value.path == "schema.local"


def test_declared_and_reserved_share_the_scope_total() -> None:
    declared = {"counter": {"type": "uint64", "key": "c", "desc": ""}}
    ok = {"declared": declared, "reserved": {"r": {"type": "bytes", "desc": "", "max_keys": 63}}}
    validate_schema(_schema(global_=ok))

    over = {"declared": declared, "reserved": {"r": {"type": "bytes", "desc": "", "max_keys": 64}}}
    with pytest.raises(ValidationError) as excinfo:
        validate_schema(_schema(global_=over))
    assert excinfo.value.context["limit"] == 64


def test_abi_typed_values_take_bytes_slots() -> None:
    spec = _schema(
        global_={
            "declared": {
                "n": {"type": "uint64", "key": "n", "desc": ""},
                "t": {"type": "(uint8,bool)", "key": "t", "desc": ""},
                "b": {"type": "bytes", "key": "b", "desc": ""},
            },
            "reserved": {
                "u": {"type": "uint64", "desc": "", "max_keys": 3},
                "s": {"type": "string", "desc": "", "max_keys": 2},
            },
        }
    )
    assert spec.global_.num_uints() == 4
    assert spec.global_.num_bytes() == 4


def test_explicit_per_type_limits() -> None:
    limits = {"global": StateLimits(max_keys=8, max_uints=2, max_bytes=6)}
    validate_schema(_schema(global_=_reserved("uint64", 2)), limits=limits)
    with pytest.raises(ValidationError):
        validate_schema(_schema(global_=_reserved("uint64", 3)), limits=limits)
    validate_schema(_schema(global_=_reserved("bytes", 6)), limits=limits)
    with pytest.raises(ValidationError):
        validate_schema(_schema(global_=_reserved("bytes", 7)), limits=limits)


def test_limits_from_environment(monkeypatch, fresh_config) -> None:
    monkeypatch.setenv("APPSPEC_MAX_LOCAL_KEYS", "4")
    validate_schema(_schema(local=_reserved("bytes", 4)))
    with pytest.raises(ValidationError):
        validate_schema(_schema(local=_reserved("bytes", 5)))


# --------------------------------------------------------------------------------------
# Entry checks
# --------------------------------------------------------------------------------------

@pytest.mark.parametrize("max_keys", [-1, True, 1.5, "3", None])
def test_max_keys_must_be_a_non_negative_integer(max_keys: Any) -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_schema(_schema(global_=_reserved("bytes", max_keys)))
    assert excinfo.value.path == "schema.global.reserved.r.max_keys"


def test_zero_max_keys_is_allowed() -> None:
    validate_schema(_schema(global_=_reserved("bytes", 0)))


def test_declared_keys_must_be_unique() -> None:
    declared = {
        "first": {"type": "uint64", "key": "k", "desc": ""},
        "second": {"type": "bytes", "key": "k", "desc": ""},
    }
    with pytest.raises(ValidationError) as excinfo:
        validate_schema(_schema(global_={"declared": declared, "reserved": {}}))
    assert excinfo.value.path == "schema.global.declared.second"


def test_same_key_in_different_scopes_is_fine() -> None:
    declared = {"d": {"type": "uint64", "key": "k", "desc": ""}}
    validate_schema(
        _schema(
            global_={"declared": declared, "reserved": {}},
            local={"declared": declared, "reserved": {}},
        )
    )


def test_key_length_limit() -> None:
    ok = {"d": {"type": "bytes", "key": "k" * 64, "desc": ""}}
    validate_schema(_schema(global_={"declared": ok, "reserved": {}}))
    too_long = {"d": {"type": "bytes", "key": "k" * 65, "desc": ""}}
    with pytest.raises(ValidationError):
        validate_schema(_schema(global_={"declared": too_long, "reserved": {}}))


def test_abi_types_must_resolve_when_a_resolver_is_given() -> None:
    resolver = TypeResolver({"Thing": StructVariant((("addr", "address"), ("balance", "uint64")))})
    declared = {"owner": {"type": "Thing", "key": "o", "desc": ""}}
    validate_schema(_schema(global_={"declared": declared, "reserved": {}}), resolver=resolver)

    missing = {"owner": {"type": "Missing", "key": "o", "desc": ""}}
    with pytest.raises(UnresolvedTypeError) as excinfo:
        validate_schema(_schema(global_={"declared": missing, "reserved": {}}), resolver=resolver)
    assert excinfo.value.path == "schema.global.declared.owner.type"


# --------------------------------------------------------------------------------------
# Lookup
# --------------------------------------------------------------------------------------

def test_lookup_by_name_key_then_reserved_id() -> None:
    spec = _schema(
        global_={
            "declared": {"counter": {"type": "uint64", "key": "c", "desc": ""}},
            "reserved": {"digests": {"type": "bytes", "desc": "", "max_keys": 2}},
        }
    )
    schema = spec.scope("global")
    assert schema.lookup("counter") is schema.declared["counter"]
    assert schema.lookup("c") is schema.declared["counter"]
    assert schema.lookup("digests") is schema.reserved["digests"]
    assert schema.lookup("nope") is None
    with pytest.raises(KeyError):
        spec.scope("box")


def test_document_round_trip() -> None:
    raw = {
        "global": {
            "declared": {"counter": {"type": "uint64", "key": "c", "desc": "total"}},
            "reserved": {"digests": {"type": "bytes", "desc": "", "max_keys": 2}},
        },
        "local": {"declared": {}, "reserved": {}},
    }
    assert SchemaSpec.from_raw(raw).to_dict() == raw
