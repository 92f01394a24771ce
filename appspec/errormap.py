"""
errormap.py — program counter → diagnostic message table.

Annotated programs put a comment on the line right before an ``assert`` or
``err`` opcode:

    int 1
    int 2
    <
    // Sorry but 2 is not less than 1
    assert

The builder scans the source, pairs each such opcode with its comment, and
looks the opcode's line up in an externally supplied source map to find the
program counter. The source map is produced by the assembler; anything that
exposes ``line_to_pc`` (line number -> pc or list of pcs) works, as does a
plain mapping of the same shape. Line numbers are 0-based unless
``first_line`` says otherwise.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .errors import ConflictingErrorEntryError, ParseError
from .log import get_logger

log = get_logger(__name__)

__all__ = ["ERROR_OPS", "ErrorMapBuilder", "build_error_map", "merge_error_maps"]

ERROR_OPS = frozenset({"assert", "err"})
COMMENT = "//"

LineToPc = Mapping[int, Union[int, Sequence[int]]]


def _line_to_pc(source_map: Any) -> LineToPc:
    table = getattr(source_map, "line_to_pc", source_map)
    if not isinstance(table, Mapping):
        raise ParseError(
            f"source map must be a mapping or expose line_to_pc, got {type(source_map).__name__}"
        )
    return table


def _as_pcs(value: Union[int, Sequence[int], None], line: int) -> List[int]:
    if value is None:
        return []
    pcs = [value] if isinstance(value, int) else list(value)
    for pc in pcs:
        if isinstance(pc, bool) or not isinstance(pc, int) or pc < 0:
            raise ParseError(f"source map line {line} has invalid program counter {pc!r}")
    return pcs


class ErrorMapBuilder:
    """
    Accumulates ``{pc: message}`` entries. Re-adding the same message for a
    pc is a no-op; a different message raises ConflictingErrorEntryError.
    """

    def __init__(self, source_map: Any, *, first_line: int = 0) -> None:
        self._line_to_pc = _line_to_pc(source_map)
        self._first_line = first_line
        self._errors: Dict[int, str] = {}

    def add(self, pc: int, message: str) -> None:
        existing = self._errors.get(pc)
        if existing is None:
            self._errors[pc] = message
        elif existing != message:
            raise ConflictingErrorEntryError(pc, existing, message)

    def scan(self, source: str) -> "ErrorMapBuilder":
        # Only LF or CRLF ends a line; form feeds and U+2028 stay inside it.
        lines = [line.rstrip("\r") for line in source.split("\n")]
        for idx, line in enumerate(lines):
            if line.strip() not in ERROR_OPS:
                continue
            message = _preceding_comment(lines, idx)
            if message is None:
                continue
            lineno = idx + self._first_line
            pcs = _as_pcs(self._line_to_pc.get(lineno), lineno)
            if not pcs:
                log.debug("line %d (%s) has no program counter in the source map", lineno, line.strip())
                continue
            for pc in pcs:
                self.add(pc, message)
        return self

    def build(self) -> Dict[int, str]:
        return dict(sorted(self._errors.items()))


def _preceding_comment(lines: Sequence[str], idx: int) -> Optional[str]:
    k = idx - 1
    while k >= 0 and not lines[k].strip():
        k -= 1
    if k < 0:
        return None
    prev = lines[k].strip()
    if not prev.startswith(COMMENT):
        return None
    return prev[len(COMMENT):].strip() or None


def build_error_map(source: str, source_map: Any, *, first_line: int = 0) -> Dict[int, str]:
    """Build the ErrorSpec for one annotated program."""
    errors = ErrorMapBuilder(source_map, first_line=first_line).scan(source).build()
    log.debug("error map: %d entries", len(errors))
    return errors


def merge_error_maps(maps: Iterable[Mapping[int, str]]) -> Dict[int, str]:
    """Merge several ErrorSpecs with the same conflict rules as the builder."""
    builder = ErrorMapBuilder({})
    for m in maps:
        for pc, message in m.items():
            builder.add(pc, message)
    return builder.build()
