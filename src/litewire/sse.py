"""Server-Sent Events framing for OpenAI-compatible completion streams."""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable
from typing import Any

from pydantic import ValidationError

from litewire.message import ChatCompletionChunk

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_PAYLOAD = "[DONE]"


class _Done:
    """Marker for the ``data: [DONE]`` stream terminator."""

    def __repr__(self) -> str:
        return "DONE"


DONE = _Done()


class LineFramer:
    """Splits decoded text into complete lines.

    The trailing fragment of every chunk is held back until a later chunk
    completes it, so a line is never split across two deliveries.
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, text: str) -> list[str]:
        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")
        return [line[:-1] if line.endswith("\r") else line for line in lines]

    def reset(self) -> None:
        self._buffer = ""


async def iter_lines(
    byte_stream: AsyncIterable[bytes],
    is_cancelled: Callable[[], bool] | None = None,
) -> AsyncIterator[str]:
    """Yield complete lines from a UTF-8 byte stream.

    ``is_cancelled`` is polled before every read; once it returns true no
    further reads happen. An unterminated final fragment is discarded.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    framer = LineFramer()
    reader = byte_stream.__aiter__()
    while not (is_cancelled and is_cancelled()):
        try:
            raw = await reader.__anext__()
        except StopAsyncIteration:
            break
        for line in framer.feed(decoder.decode(raw)):
            yield line
    if framer.pending:
        logger.debug(f"Discarding unterminated SSE fragment: {framer.pending[:200]!r}")


def decode_event(line: str) -> ChatCompletionChunk | _Done | None:
    """Decode one SSE line.

    Returns ``DONE`` for the terminator, a validated chunk for a JSON
    payload, or ``None`` for anything to skip (comments, other fields,
    malformed or partial payloads).
    """
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):]
    if data == DONE_PAYLOAD:
        return DONE
    try:
        payload = json.loads(data)
    except ValueError:
        logger.debug(f"Skipping malformed SSE payload: {data[:200]!r}")
        return None
    try:
        return ChatCompletionChunk.model_validate(payload)
    except ValidationError as e:
        logger.debug(f"Skipping SSE payload with unexpected shape: {e}")
        return None


def format_sse(payload: Any) -> str:
    """Format a single ``data:`` event as a server would send it."""
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"{DATA_PREFIX}{data}\n\n"


async def sse_generator(payloads: Iterable[Any] | AsyncIterable[Any]) -> AsyncIterator[bytes]:
    """Encode chunk payloads into an SSE byte stream terminated by ``[DONE]``."""
    if isinstance(payloads, AsyncIterable):
        async for payload in payloads:
            yield format_sse(payload).encode("utf-8")
    else:
        for payload in payloads:
            yield format_sse(payload).encode("utf-8")
    yield format_sse(DONE_PAYLOAD).encode("utf-8")
