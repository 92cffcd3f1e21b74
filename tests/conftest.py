import pytest

from litewire.decoder import StreamDecoder
from litewire.events import ResponsePart, TextPart
from litewire.sse import format_sse
from litewire.state import ResponseStreamState


# ---------------------------------------------------------------------------
# Wire payload builders (mirror the OpenAI chat.completion.chunk shape)
# ---------------------------------------------------------------------------

def make_chunk(
    content: str | None = None,
    tool_calls: list[dict] | None = None,
    finish_reason: str | None = None,
    thinking=None,
    choice_thinking=None,
) -> dict:
    """Build a ``chat.completion.chunk`` payload with a single choice."""
    delta: dict = {}
    if content is not None:
        delta["content"] = content
    if tool_calls is not None:
        delta["tool_calls"] = tool_calls
    if thinking is not None:
        delta["thinking"] = thinking
    choice: dict = {"index": 0, "delta": delta, "finish_reason": finish_reason}
    if choice_thinking is not None:
        choice["thinking"] = choice_thinking
    return {"object": "chat.completion.chunk", "choices": [choice]}


def make_tool_fragment(
    index: int,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> dict:
    """Build one entry of ``delta.tool_calls``."""
    fragment: dict = {"index": index}
    if call_id is not None:
        fragment["id"] = call_id
        fragment["type"] = "function"
    function: dict = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    if function:
        fragment["function"] = function
    return fragment


def sse_body(*payloads, done: bool = True) -> bytes:
    """Encode payloads as an SSE body, optionally ending with ``[DONE]``."""
    events = [format_sse(p) for p in payloads]
    if done:
        events.append(format_sse("[DONE]"))
    return "".join(events).encode("utf-8")


def split_at(data: bytes, *offsets: int) -> list[bytes]:
    """Cut *data* at the given byte offsets."""
    pieces = []
    start = 0
    for offset in sorted(offsets):
        pieces.append(data[start:offset])
        start = offset
    pieces.append(data[start:])
    return pieces


async def byte_stream(*pieces: bytes):
    for piece in pieces:
        yield piece


def merge_text(parts: list[ResponsePart]) -> list[ResponsePart]:
    """Collapse adjacent text parts so chunking does not affect comparisons."""
    merged: list[ResponsePart] = []
    for part in parts:
        if isinstance(part, TextPart) and merged and isinstance(merged[-1], TextPart):
            merged[-1] = TextPart(value=merged[-1].value + part.value)
        else:
            merged.append(part)
    return merged


def without_ids(parts: list[ResponsePart]) -> list[tuple]:
    """Comparable view of parts with generated call ids dropped."""
    view = []
    for part in parts:
        kind = type(part).__name__
        if kind == "ToolCallPart":
            view.append((kind, part.name, part.arguments))
        elif kind == "TextPart":
            view.append((kind, part.value))
        else:
            view.append((kind, part.text))
    return view


class CollectingSink:
    """Sink test double that records every reported part."""

    def __init__(self):
        self.parts: list[ResponsePart] = []

    def report(self, part: ResponsePart) -> None:
        self.parts.append(part)

    def of_type(self, cls) -> list:
        return [p for p in self.parts if isinstance(p, cls)]

    @property
    def text(self) -> str:
        return "".join(p.value for p in self.of_type(TextPart))


async def decode(*pieces: bytes, decoder: StreamDecoder | None = None) -> list[ResponsePart]:
    """Run a decoder over raw byte pieces and return the parts."""
    sink = CollectingSink()
    await (decoder or StreamDecoder()).run(byte_stream(*pieces), sink)
    return sink.parts


@pytest.fixture
def sink():
    return CollectingSink()


@pytest.fixture
def state():
    return ResponseStreamState()


@pytest.fixture
def emitted():
    """List that collects parts from components under test."""
    return []
