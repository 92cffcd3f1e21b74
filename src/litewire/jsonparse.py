"""Incremental JSON-object checks for streamed tool-call arguments."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ParseResult:
    """Outcome of :func:`try_parse_object`.

    ``ok`` is ``False`` while the text is not (yet) a complete JSON object;
    that is a normal state during streaming, not an error.
    """

    ok: bool
    value: dict | None = None


NOT_READY = ParseResult(ok=False)


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not JSON.
    raise ValueError(f"invalid JSON constant {name}")


def try_parse_object(text: str | None) -> ParseResult:
    """Parse *text* if it is a JSON document whose top level is an object."""
    if not text or not text.strip():
        return NOT_READY
    try:
        value = json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return NOT_READY
    if not isinstance(value, dict):
        return NOT_READY
    return ParseResult(ok=True, value=value)


def canonical_json(value: Any) -> str:
    """Deterministic serialization used for dedup keys.

    Key order is whatever the parser produced, which is stable for the same
    input text within a process.
    """
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
