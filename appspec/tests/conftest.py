from __future__ import annotations

import base64
import copy
from typing import Any, Dict, Iterator

import pytest

from appspec.config import load_config

_APP_DOC: Dict[str, Any] = {
    "name": "Counter",
    "desc": "Counts things and remembers who owns them",
    "methods": [
        {"name": "get", "readonly": True, "args": [], "returns": {"type": "uint64"}},
        {
            "name": "add",
            "args": [
                {
                    "type": "uint64",
                    "name": "a",
                    "default_argument": {"source": "global-state", "data": "counter"},
                },
                {
                    "type": "uint64",
                    "name": "b",
                    "default_argument": {"source": "abi-method", "data": "get"},
                },
            ],
            "returns": {"type": "uint64"},
        },
        {
            "name": "store",
            "args": [{"type": "Thing", "name": "thing"}, {"type": "pay", "name": "fee"}],
            "returns": {"type": "void"},
        },
    ],
    "networks": {},
    "source": {
        "approval": base64.b64encode(b"#pragma version 8\nint 1\n").decode("ascii"),
        "clear": base64.b64encode(b"#pragma version 8\nint 1\n").decode("ascii"),
    },
    "schema": {
        "global": {
            "declared": {
                "counter": {"type": "uint64", "key": "c", "desc": "running total"},
                "owner": {"type": "Thing", "key": "o", "desc": ""},
            },
            "reserved": {
                "digests": {"type": "HashDigest", "desc": "", "max_keys": 4},
            },
        },
        "local": {"declared": {}, "reserved": {}},
    },
    "types": {
        "Thing": [["addr", "address"], ["balance", "uint64"]],
        "HashDigest": "byte[32]",
    },
    "errors": {"10": "Sorry but 2 is not less than 1"},
}


@pytest.fixture
def app_doc() -> Dict[str, Any]:
    """A complete, valid application spec document (fresh copy per test)."""
    return copy.deepcopy(_APP_DOC)


@pytest.fixture
def fresh_config() -> Iterator[None]:
    """Drop the cached config so monkeypatched APPSPEC_* variables apply."""
    load_config.cache_clear()
    yield
    load_config.cache_clear()
