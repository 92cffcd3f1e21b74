"""Streaming response decoder.

:class:`StreamDecoder` turns the SSE byte stream of an OpenAI-compatible
``/chat/completions`` call into output parts: visible text, thinking text
and complete tool calls. It drives the standard tool-call accumulator and
the inline control-token parser through one shared
:class:`~litewire.state.ResponseStreamState`.

``run()`` drains ``iter()`` into a sink.  ``iter()`` is the async generator
entry point.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from pydantic import ValidationError

from litewire.events import ResponsePart, Sink, TextPart, ThinkingPart, as_report
from litewire.inline import InlineToolCallParser
from litewire.message import ChatCompletionChunk, Choice, ThinkingDelta
from litewire.sse import DONE, decode_event, iter_lines
from litewire.state import ResponseStreamState
from litewire.streaming import ToolCallAccumulator, ToolCallFragment

logger = logging.getLogger(__name__)

TURN_COMPLETE_REASONS = frozenset({"tool_calls", "stop"})

# Forces downstream text buffers (link detection etc.) to drain before the
# first tool call arrives.
BEGIN_TOOL_CALLS_HINT = " "


class StreamDecoder:
    """Decodes one response stream at a time.

    Args:
        state: Optional state object, mostly useful for inspection in
            tests. It is reset when a stream starts and when it ends.
    """

    def __init__(self, state: ResponseStreamState | None = None):
        self.state = state if state is not None else ResponseStreamState()
        self._pending: list[ResponsePart] = []
        self.tool_calls = ToolCallAccumulator(self.state, self._pending.append)
        self.inline = InlineToolCallParser(self.state, self._pending.append)

    async def run(
        self,
        byte_stream: AsyncIterable[bytes],
        sink: Sink,
        cancel: Any = None,
    ) -> int:
        """Decode *byte_stream* and report every part to *sink*.

        A sink that raises is logged and skipped; decoding carries on.
        Returns the number of parts produced.
        """
        report = as_report(sink)
        count = 0
        async for part in self.iter(byte_stream, cancel=cancel):
            count += 1
            try:
                report(part)
            except Exception:
                logger.warning(
                    f"Sink failed to accept {type(part).__name__}", exc_info=True,
                )
        return count

    async def iter(
        self,
        byte_stream: AsyncIterable[bytes],
        cancel: Any = None,
    ) -> AsyncIterator[ResponsePart]:
        """Yield output parts as they become ready.

        ``cancel`` is anything with ``is_set()`` (e.g. ``asyncio.Event``).
        It is checked before each read; once set, decoding stops without
        flushing. The state is reset however the stream ends.
        """
        is_cancelled = (lambda: cancel.is_set()) if cancel is not None else None
        self.state.reset()
        self._pending.clear()
        try:
            async for line in iter_lines(byte_stream, is_cancelled):
                try:
                    self.process_line(line)
                except Exception:
                    # Parts made ready before the failure still go out.
                    for part in self._drain():
                        yield part
                    raise
                for part in self._drain():
                    yield part
            if is_cancelled is None or not is_cancelled():
                self.inline.flush()
                for part in self._drain():
                    yield part
            else:
                logger.debug("Stream cancelled, discarding partial output")
        finally:
            self._pending.clear()
            self.state.reset()

    def _drain(self) -> list[ResponsePart]:
        parts = list(self._pending)
        self._pending.clear()
        return parts

    # ------------------------------------------------------------------
    # Per-line and per-chunk processing
    # ------------------------------------------------------------------

    def process_line(self, line: str) -> None:
        event = decode_event(line)
        if event is None:
            return
        if event is DONE:
            # Lenient: a stream ending is not evidence of a malformed call.
            self.tool_calls.flush(strict=False)
            self.inline.flush()
            return
        emitted = self.process_chunk(event)
        if not emitted:
            logger.debug("Chunk produced no output")

    def process_chunk(self, chunk: ChatCompletionChunk) -> bool:
        """Route one decoded chunk. Returns ``True`` if anything was emitted.

        Raises:
            InvalidToolCallError: the chunk finished the turn while a
                buffered tool call still had unparseable arguments.
        """
        choice = chunk.first_choice
        if choice is None:
            return False
        state = self.state
        before = len(self._pending)

        self._emit_thinking(choice)

        delta = choice.delta
        if delta is not None and delta.content:
            result = self.inline.feed(delta.content)
            if result.emitted_text:
                state.has_emitted_text = True

        if delta is not None and delta.tool_calls:
            if state.has_emitted_text and not state.emitted_begin_tool_calls_hint:
                self._pending.append(TextPart(value=BEGIN_TOOL_CALLS_HINT))
                state.emitted_begin_tool_calls_hint = True
            for tool_call in delta.tool_calls:
                self.tool_calls.feed(ToolCallFragment.from_delta(tool_call))

        if choice.finish_reason in TURN_COMPLETE_REASONS:
            self.tool_calls.flush(strict=True)

        return len(self._pending) > before

    def _emit_thinking(self, choice: Choice) -> None:
        raw = choice.thinking
        if raw is None and choice.delta is not None:
            raw = choice.delta.thinking
        if raw is None:
            return
        try:
            thinking = ThinkingDelta.from_raw(raw)
        except ValidationError:
            logger.debug("Ignoring malformed thinking payload", exc_info=True)
            return
        if thinking is not None and thinking.text:
            self._pending.append(ThinkingPart(
                text=thinking.text, id=thinking.id, metadata=thinking.metadata,
            ))
