from pydantic import BaseModel, Field

from litewire.dedup import DedupLedger


class ToolCallBuffer(BaseModel):
    """Fragments received so far for one standard-format tool call."""

    id: str | None = None
    name: str | None = None
    args: str = ""


class InlineCall(BaseModel):
    """Tool call being assembled from control tokens inside text content."""

    name: str | None = None
    index: int | None = None
    arg_buffer: str = ""
    emitted: bool = False


class ResponseStreamState(BaseModel):
    """Mutable decoding state for a single in-flight response stream.

    One instance belongs to one stream-processing call. It is reset when the
    stream starts and again when it ends, however it ends, so nothing leaks
    into the next request.

    Invariants:
        * an index in ``completed_indices`` is never in ``tool_call_buffers``
        * at most one ``active_inline_call``
        * ``inline_parser_carry`` only ever holds a proper prefix of a
          sentinel token (or an unfinished call header)
    """

    tool_call_buffers: dict[int, ToolCallBuffer] = Field(default_factory=dict)
    completed_indices: set[int] = Field(default_factory=set)
    has_emitted_text: bool = False
    emitted_begin_tool_calls_hint: bool = False
    inline_parser_carry: str = ""
    active_inline_call: InlineCall | None = None
    ledger: DedupLedger = Field(default_factory=DedupLedger)

    def reset(self) -> None:
        self.tool_call_buffers.clear()
        self.completed_indices.clear()
        self.has_emitted_text = False
        self.emitted_begin_tool_calls_hint = False
        self.inline_parser_carry = ""
        self.active_inline_call = None
        self.ledger.clear()
