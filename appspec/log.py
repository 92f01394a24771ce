"""
appspec.log — package logger wiring.

Module loggers live under the ``appspec`` namespace. The package logger level
comes from ``APPSPEC_LOGLEVEL`` (default WARNING) and a single stream handler
is installed the first time a logger is requested, unless the host
application already attached one.
"""

from __future__ import annotations

import logging

from .config import load_config

_ROOT = "appspec"
_configured = False


def _configure() -> None:
    global _configured
    if _configured:
        return
    root = logging.getLogger(_ROOT)
    level = getattr(logging, load_config().log_level, logging.WARNING)
    root.setLevel(level)
    if not root.handlers:
        h = logging.StreamHandler()
        h.setLevel(level)
        h.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
        root.addHandler(h)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``appspec`` namespace."""
    _configure()
    if name != _ROOT and not name.startswith(_ROOT + "."):
        name = f"{_ROOT}.{name}"
    return logging.getLogger(name)


__all__ = ["get_logger"]
