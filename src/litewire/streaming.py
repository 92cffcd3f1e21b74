"""Reassembly of standard-format (OpenAI style) streamed tool calls.

Servers stream a tool call as a series of fragments sharing an ``index``:
the first usually carries the ``id`` and function ``name``, later ones
append pieces of the ``arguments`` JSON string. The
:class:`ToolCallAccumulator` buffers those fragments per index and emits a
:class:`~litewire.events.ToolCallPart` as soon as the arguments parse as a
JSON object, or when the turn is flushed.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from litewire.events import ResponsePart, ToolCallPart
from litewire.exceptions import InvalidToolCallError
from litewire.jsonparse import try_parse_object
from litewire.message import ToolCallDelta
from litewire.state import ResponseStreamState, ToolCallBuffer

logger = logging.getLogger(__name__)

UNKNOWN_TOOL = "unknown_tool"


def generate_call_id(prefix: str = "call") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


@dataclass
class ToolCallFragment:
    """A fragment of a tool call from a streaming chunk."""

    index: int
    call_id: str | None = None
    name: str | None = None
    arguments_delta: str | None = None

    @classmethod
    def from_delta(cls, delta: ToolCallDelta) -> ToolCallFragment:
        function = delta.function
        return cls(
            index=delta.index,
            call_id=delta.id,
            name=function.name if function else None,
            arguments_delta=function.arguments if function else None,
        )


class ToolCallAccumulator:
    """Assembles complete tool calls from streaming fragments.

    All bookkeeping lives in the shared :class:`ResponseStreamState`; the
    accumulator itself only holds the state and the emit callback.
    """

    def __init__(
        self,
        state: ResponseStreamState,
        emit: Callable[[ResponsePart], None],
    ) -> None:
        self.state = state
        self._emit = emit

    def feed(self, fragment: ToolCallFragment) -> bool:
        """Buffer a fragment and emit its call if it is now complete.

        Returns ``True`` when a tool call part was emitted.
        """
        state = self.state
        if fragment.index in state.completed_indices:
            # Some servers resend a call that already finished.
            return False
        buf = state.tool_call_buffers.setdefault(fragment.index, ToolCallBuffer())
        if fragment.call_id:
            buf.id = fragment.call_id
        if fragment.name:
            buf.name = fragment.name
        if fragment.arguments_delta is not None:
            buf.args += fragment.arguments_delta
        return self.try_emit(fragment.index)

    def try_emit(self, index: int) -> bool:
        """Emit the call at *index* early if it has a name and valid args."""
        buf = self.state.tool_call_buffers.get(index)
        if buf is None or not buf.name:
            return False
        parsed = try_parse_object(buf.args)
        if not parsed.ok:
            return False
        logger.debug(f"Tool call {buf.name} (index {index}) complete before turn end")
        self._emit_buffer(index, buf, parsed.value)
        return True

    def flush(self, strict: bool) -> int:
        """Emit every remaining buffered call.

        With ``strict`` a buffer whose arguments do not parse raises
        :class:`InvalidToolCallError`; otherwise it is dropped and its index
        closed, so later fragments cannot revive it. Returns the number of
        calls emitted.
        """
        emitted = 0
        for index, buf in list(self.state.tool_call_buffers.items()):
            parsed = try_parse_object(buf.args)
            if not parsed.ok:
                if strict:
                    snippet = (buf.args or "")[:200]
                    logger.error(f"Invalid JSON for tool call at index {index}: {snippet!r}")
                    raise InvalidToolCallError(index, snippet)
                logger.debug(f"Dropping incomplete tool call at index {index}")
                del self.state.tool_call_buffers[index]
                self.state.completed_indices.add(index)
                continue
            self._emit_buffer(index, buf, parsed.value)
            emitted += 1
        return emitted

    def _emit_buffer(self, index: int, buf: ToolCallBuffer, arguments: dict) -> None:
        name = buf.name or UNKNOWN_TOOL
        self.state.ledger.record(name, arguments)
        self._emit(ToolCallPart(
            call_id=buf.id or generate_call_id(),
            name=name,
            arguments=arguments,
        ))
        del self.state.tool_call_buffers[index]
        self.state.completed_indices.add(index)
