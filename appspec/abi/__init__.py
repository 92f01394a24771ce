"""
appspec.abi
===========

ABI codec for application specifications.

This package provides:
  • Type descriptors for canonical ABI types (uintN, bool, bytes, address,
    string, arrays, tuples, resolved structs and aliases).
  • A parser for ABI type strings.
  • encode(typ, value) / decode(typ, data) over the ARC-4 binary layout.

Everything here is pure-Python and deterministic.
"""

from __future__ import annotations

from .decoding import *  # noqa: F401,F403
from .encoding import *  # noqa: F401,F403
from .types import *  # noqa: F401,F403

from .decoding import __all__ as _all_decoding
from .encoding import __all__ as _all_encoding
from .types import __all__ as _all_types

__all__ = tuple(
    dict.fromkeys(  # preserve order, dedupe
        (*_all_types, *_all_encoding, *_all_decoding)
    )
)
