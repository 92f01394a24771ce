"""
appspec.config — platform limits and feature flags.

Configuration precedence:
  1) Environment variables (APPSPEC_*)
  2) Hardcoded defaults below (AVM application limits)

Key env vars:
  - APPSPEC_MAX_GLOBAL_KEYS    (int)  default: 64
  - APPSPEC_MAX_LOCAL_KEYS     (int)  default: 16
  - APPSPEC_MAX_GLOBAL_UINTS   (int)  default: APPSPEC_MAX_GLOBAL_KEYS
  - APPSPEC_MAX_GLOBAL_BYTES   (int)  default: APPSPEC_MAX_GLOBAL_KEYS
  - APPSPEC_MAX_LOCAL_UINTS    (int)  default: APPSPEC_MAX_LOCAL_KEYS
  - APPSPEC_MAX_LOCAL_BYTES    (int)  default: APPSPEC_MAX_LOCAL_KEYS
  - APPSPEC_MAX_ABI_BYTES      (int)  default: unset (no cap)
  - APPSPEC_LOGLEVEL           (str)  default: WARNING

The AVM tracks uint64 and bytes keys with independent counters, but both draw
from one per-scope total; the per-type caps default to that total.

Usage:
    from appspec.config import load_config
    CFG = load_config()
    limits = CFG.state_limits("global")
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Optional


# ----------------------------- helpers ---------------------------------------


def _env_int(name: str, default: int, *, min_v: int, max_v: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        v = int(raw, 0)
    except ValueError:
        return default
    if v < min_v:
        return min_v
    if v > max_v:
        return max_v
    return v


def _env_opt_int(name: str, *, min_v: int, max_v: int) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        v = int(raw, 0)
    except ValueError:
        return None
    return max(min_v, min(v, max_v))


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    return raw.strip() if raw and raw.strip() else default


# ------------------------------- limits --------------------------------------


@dataclass(frozen=True)
class StateLimits:
    """Key-count limits for one state scope (global or local)."""

    max_keys: int
    max_uints: Optional[int] = None
    max_bytes: Optional[int] = None

    @property
    def uint_limit(self) -> int:
        return self.max_keys if self.max_uints is None else min(self.max_uints, self.max_keys)

    @property
    def bytes_limit(self) -> int:
        return self.max_keys if self.max_bytes is None else min(self.max_bytes, self.max_keys)


# ------------------------------- config --------------------------------------


@dataclass(frozen=True)
class AppSpecConfig:
    global_limits: StateLimits
    local_limits: StateLimits
    log_level: str
    # None: encoded values are bounded only by the u16 length prefixes.
    max_abi_bytes: Optional[int] = None

    def state_limits(self, scope: str) -> StateLimits:
        if scope == "global":
            return self.global_limits
        if scope == "local":
            return self.local_limits
        raise KeyError(f"unknown state scope: {scope!r}")

    def as_dict(self) -> Dict[str, Any]:
        return {
            "global_limits": {
                "max_keys": self.global_limits.max_keys,
                "max_uints": self.global_limits.uint_limit,
                "max_bytes": self.global_limits.bytes_limit,
            },
            "local_limits": {
                "max_keys": self.local_limits.max_keys,
                "max_uints": self.local_limits.uint_limit,
                "max_bytes": self.local_limits.bytes_limit,
            },
            "max_abi_bytes": self.max_abi_bytes,
            "log_level": self.log_level,
        }


@lru_cache(maxsize=1)
def load_config() -> AppSpecConfig:
    """
    Build and cache an AppSpecConfig from environment + defaults.
    """
    g_total = _env_int("APPSPEC_MAX_GLOBAL_KEYS", 64, min_v=0, max_v=4096)
    l_total = _env_int("APPSPEC_MAX_LOCAL_KEYS", 16, min_v=0, max_v=4096)

    cfg = AppSpecConfig(
        global_limits=StateLimits(
            max_keys=g_total,
            max_uints=_env_int("APPSPEC_MAX_GLOBAL_UINTS", g_total, min_v=0, max_v=g_total),
            max_bytes=_env_int("APPSPEC_MAX_GLOBAL_BYTES", g_total, min_v=0, max_v=g_total),
        ),
        local_limits=StateLimits(
            max_keys=l_total,
            max_uints=_env_int("APPSPEC_MAX_LOCAL_UINTS", l_total, min_v=0, max_v=l_total),
            max_bytes=_env_int("APPSPEC_MAX_LOCAL_BYTES", l_total, min_v=0, max_v=l_total),
        ),
        log_level=_env_str("APPSPEC_LOGLEVEL", "WARNING").upper(),
        max_abi_bytes=_env_opt_int("APPSPEC_MAX_ABI_BYTES", min_v=1_024, max_v=8_388_608),
    )
    return cfg


# Module-level singleton for convenience; load_config() stays the canonical
# (cached) accessor.
CFG: AppSpecConfig = load_config()

__all__ = ["StateLimits", "AppSpecConfig", "load_config", "CFG"]
