"""Output parts emitted while decoding a response stream."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Union


@dataclass
class ResponsePart:
    """Base for all output parts."""


@dataclass
class TextPart(ResponsePart):
    """Visible assistant text."""

    value: str = ""


@dataclass
class ThinkingPart(ResponsePart):
    """Reasoning text streamed on the ``thinking`` channel."""

    text: str = ""
    id: str | None = None
    metadata: Any = None


@dataclass
class ToolCallPart(ResponsePart):
    """A complete tool call with parsed JSON-object arguments."""

    call_id: str = ""
    name: str = ""
    arguments: dict = field(default_factory=dict)


class PartSink(Protocol):
    """Consumer of output parts, e.g. a chat UI progress reporter."""

    def report(self, part: ResponsePart) -> None: ...


Sink = Union[PartSink, Callable[[ResponsePart], Any]]


def as_report(sink: Sink) -> Callable[[ResponsePart], Any]:
    """Return the callable that delivers a part to *sink*."""
    report = getattr(sink, "report", None)
    if callable(report):
        return report
    if callable(sink):
        return sink
    raise TypeError(f"sink must be callable or define report(), got {type(sink).__name__}")
