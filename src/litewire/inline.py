"""Tool calls embedded in text content with control tokens.

Some backends do not use the structured ``tool_calls`` field and instead
stream calls in-band inside ``content``::

    <|tool_call_begin|>search:0<|tool_call_argument_begin|>{"q": "x"}<|tool_call_end|>

:class:`InlineToolCallParser` separates those calls from the visible text
across arbitrary chunk boundaries. Anything that might be the start of a
control token is held back in ``state.inline_parser_carry`` until the next
fragment decides it, so a partial token never reaches the user.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from litewire.events import ResponsePart, TextPart, ToolCallPart
from litewire.jsonparse import try_parse_object
from litewire.state import InlineCall, ResponseStreamState
from litewire.streaming import UNKNOWN_TOOL, generate_call_id

logger = logging.getLogger(__name__)

BEGIN = "<|tool_call_begin|>"
ARG_BEGIN = "<|tool_call_argument_begin|>"
END = "<|tool_call_end|>"

_HEADER = re.compile(r"^([A-Za-z0-9_\-.]+)(?::(\d+))?")
_SECTION_TOKEN = re.compile(r"<\|[a-zA-Z0-9_-]+_section_(?:begin|end)\|>")
_CALL_TOKEN = re.compile(r"<\|tool_call_(?:argument_)?(?:begin|end)\|>")
# An unfinished ``<|name`` tail that more input could turn into a token.
_TOKEN_TAIL = re.compile(r"<(?:\|[a-zA-Z0-9_-]*\|?)?\Z")
_MAX_TOKEN_TAIL = 64


def strip_control_tokens(text: str) -> str:
    """Remove stray section and call markers that must never be shown."""
    return _CALL_TOKEN.sub("", _SECTION_TOKEN.sub("", text))


def partial_prefix_length(data: str, token: str) -> int:
    """Length of the longest suffix of *data* that is a proper prefix of *token*."""
    for k in range(min(len(token) - 1, len(data)), 0, -1):
        if data.endswith(token[:k]):
            return k
    return 0


def held_back_length(data: str) -> int:
    """How many trailing characters of *data* must wait for more input."""
    held = partial_prefix_length(data, BEGIN)
    start = data.rfind("<", max(0, len(data) - _MAX_TOKEN_TAIL))
    if start != -1 and _TOKEN_TAIL.match(data, start):
        held = max(held, len(data) - start)
    return held


def parse_header(header: str) -> tuple[str | None, int | None]:
    """Split a ``name[:index]`` call header."""
    m = _HEADER.match(header.strip())
    if m is None:
        return None, None
    index = int(m.group(2)) if m.group(2) else None
    return m.group(1), index


@dataclass
class InlineResult:
    """What one :meth:`InlineToolCallParser.feed` call emitted."""

    emitted_text: bool = False
    emitted_any: bool = False


class InlineToolCallParser:
    """Incremental tokenizer for control-token encoded tool calls."""

    def __init__(
        self,
        state: ResponseStreamState,
        emit: Callable[[ResponsePart], None],
    ) -> None:
        self.state = state
        self._emit = emit
        self._visible: list[str] = []

    def feed(self, fragment: str) -> InlineResult:
        state = self.state
        result = InlineResult()
        data = state.inline_parser_carry + fragment
        state.inline_parser_carry = ""

        while data:
            call = state.active_inline_call
            if call is None:
                begin = data.find(BEGIN)
                if begin == -1:
                    held = held_back_length(data)
                    self._add_visible(data[:len(data) - held])
                    state.inline_parser_carry = data[len(data) - held:]
                    break
                self._add_visible(data[:begin])
                data = data[begin + len(BEGIN):]

                arg_at = data.find(ARG_BEGIN)
                end_at = data.find(END)
                if arg_at != -1 and (end_at == -1 or arg_at < end_at):
                    self._open_call(data[:arg_at])
                    data = data[arg_at + len(ARG_BEGIN):]
                elif end_at != -1:
                    # No argument segment: the call takes no arguments.
                    call = self._open_call(data[:end_at])
                    data = data[end_at + len(END):]
                    if self._emit_call(call, "{}", result):
                        call.emitted = True
                    state.active_inline_call = None
                else:
                    # Header not complete yet, wait for the delimiter.
                    state.inline_parser_carry = BEGIN + data
                    break
                continue

            end_at = data.find(END)
            if end_at == -1:
                held = partial_prefix_length(data, END)
                call.arg_buffer += data[:len(data) - held]
                state.inline_parser_carry = data[len(data) - held:]
                if not call.emitted and self._emit_call(call, call.arg_buffer, result):
                    call.emitted = True
                break
            call.arg_buffer += data[:end_at]
            data = data[end_at + len(END):]
            if not call.emitted:
                self._emit_call(call, call.arg_buffer, result)
            state.active_inline_call = None

        self._flush_visible(result)
        return result

    def flush(self) -> InlineResult:
        """End-of-stream handling; never raises.

        An open call is emitted if its arguments are complete and dropped
        otherwise. A held-back tail that never became a token is released as
        text.
        """
        state = self.state
        result = InlineResult()
        call = state.active_inline_call
        if call is not None:
            # A held-back partial END marker is not part of the arguments.
            state.inline_parser_carry = ""
            if not call.emitted:
                if try_parse_object(call.arg_buffer).ok:
                    self._emit_call(call, call.arg_buffer, result)
                else:
                    logger.debug(f"Dropping unfinished inline tool call {call.name}")
            state.active_inline_call = None
        carry = state.inline_parser_carry
        state.inline_parser_carry = ""
        if carry and not carry.startswith(BEGIN):
            self._add_visible(carry)
        self._flush_visible(result)
        return result

    def _open_call(self, header: str) -> InlineCall:
        name, index = parse_header(header)
        call = InlineCall(name=name, index=index)
        self.state.active_inline_call = call
        return call

    def _emit_call(self, call: InlineCall, arg_text: str, result: InlineResult) -> bool:
        parsed = try_parse_object(arg_text)
        if not parsed.ok:
            return False
        name = call.name or UNKNOWN_TOOL
        if not self.state.ledger.claim(name, parsed.value, call.index):
            logger.debug(f"Suppressing duplicate inline tool call {name}")
            return False
        # Text that preceded the call goes out first.
        self._flush_visible(result)
        self._emit(ToolCallPart(
            call_id=generate_call_id("tct"),
            name=name,
            arguments=parsed.value,
        ))
        result.emitted_any = True
        return True

    def _add_visible(self, text: str) -> None:
        if text:
            self._visible.append(strip_control_tokens(text))

    def _flush_visible(self, result: InlineResult) -> None:
        text = "".join(self._visible)
        self._visible.clear()
        if text:
            self._emit(TextPart(value=text))
            result.emitted_text = True
            result.emitted_any = True
