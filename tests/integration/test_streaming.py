"""End-to-end decoding of complete SSE bodies."""

import pytest

from litewire.decoder import StreamDecoder
from litewire.events import TextPart, ThinkingPart, ToolCallPart
from litewire.exceptions import InvalidToolCallError
from litewire.sse import sse_generator

from tests.conftest import (
    CollectingSink,
    byte_stream,
    decode,
    make_chunk,
    make_tool_fragment,
    merge_text,
    sse_body,
    split_at,
    without_ids,
)


def _realistic_body() -> bytes:
    return sse_body(
        make_chunk(thinking="Checking the weather"),
        make_chunk(content="Héllo 🌍, "),
        make_chunk(content="one moment <|tool_calls_section_begin|>"),
        make_chunk(content='<|tool_call_begin|>lookup:0<|tool_call_argument_begin|>{"city": '),
        make_chunk(content='"Zürich"}<|tool_call_end|><|tool_calls_section_end|>'),
        make_chunk(tool_calls=[
            make_tool_fragment(0, call_id="call_w1", name="weather", arguments='{"unit"'),
        ]),
        make_chunk(tool_calls=[make_tool_fragment(0, arguments=': "C"}')]),
        make_chunk(finish_reason="tool_calls"),
    )


class TestByteSplitInvariance:
    @pytest.mark.asyncio
    async def test_single_split_at_every_offset(self):
        body = _realistic_body()
        whole = without_ids(merge_text(await decode(body)))
        assert whole == [
            ("ThinkingPart", "Checking the weather"),
            ("TextPart", "Héllo 🌍, one moment "),
            ("ToolCallPart", "lookup", {"city": "Zürich"}),
            ("TextPart", " "),
            ("ToolCallPart", "weather", {"unit": "C"}),
        ]
        for offset in range(1, len(body)):
            parts = await decode(*split_at(body, offset))
            assert without_ids(merge_text(parts)) == whole, offset

    @pytest.mark.asyncio
    async def test_one_byte_at_a_time(self):
        body = _realistic_body()
        whole = without_ids(merge_text(await decode(body)))
        pieces = [body[i:i + 1] for i in range(len(body))]
        assert without_ids(merge_text(await decode(*pieces))) == whole

    @pytest.mark.asyncio
    async def test_crlf_line_endings(self):
        body = sse_body(make_chunk(content="a"), make_chunk(content="b"))
        parts = await decode(body.replace(b"\n", b"\r\n"))
        assert merge_text(parts) == [TextPart(value="ab")]


class TestToolCallCompletion:
    @pytest.mark.asyncio
    async def test_invalid_arguments_fail_the_turn(self):
        body = sse_body(
            make_chunk(tool_calls=[
                make_tool_fragment(0, call_id="c1", name="search", arguments="{invalid"),
            ]),
            make_chunk(finish_reason="tool_calls"),
        )
        with pytest.raises(InvalidToolCallError) as exc_info:
            await decode(body)
        assert exc_info.value.index == 0

    @pytest.mark.asyncio
    async def test_invalid_arguments_dropped_at_done(self):
        body = sse_body(make_chunk(tool_calls=[
            make_tool_fragment(0, call_id="c1", name="search", arguments="{invalid"),
        ]))
        assert await decode(body) == []

    @pytest.mark.asyncio
    async def test_frames_after_done_still_processed(self):
        body = sse_body(make_chunk(tool_calls=[
            make_tool_fragment(0, call_id="c1", name="search", arguments="{invalid"),
        ])) + sse_body(
            make_chunk(finish_reason="stop"),
            make_chunk(content="late text"),
            done=False,
        )
        parts = await decode(body)
        assert parts == [TextPart(value="late text")]

    @pytest.mark.asyncio
    async def test_dropped_index_not_revived_after_done(self):
        body = sse_body(make_chunk(tool_calls=[
            make_tool_fragment(0, call_id="c1", name="search", arguments='{"q": '),
        ])) + sse_body(
            make_chunk(tool_calls=[make_tool_fragment(0, arguments='"x"}')]),
            make_chunk(finish_reason="tool_calls"),
            done=False,
        )
        assert await decode(body) == []

    @pytest.mark.asyncio
    async def test_resent_index_emitted_once(self):
        fragment = make_tool_fragment(0, call_id="c1", name="search", arguments='{"q": "x"}')
        body = sse_body(
            make_chunk(tool_calls=[fragment]),
            make_chunk(tool_calls=[fragment]),
            make_chunk(finish_reason="tool_calls"),
        )
        parts = await decode(body)
        assert parts == [ToolCallPart(call_id="c1", name="search", arguments={"q": "x"})]

    @pytest.mark.asyncio
    async def test_early_emission_then_flush_at_stop(self):
        body = sse_body(
            make_chunk(tool_calls=[
                make_tool_fragment(0, call_id="c1", name="a", arguments="{}"),
                make_tool_fragment(1, call_id="c2", arguments='{"b": 2}'),
            ]),
            make_chunk(finish_reason="stop"),
        )
        parts = await decode(body)
        assert parts == [
            ToolCallPart(call_id="c1", name="a", arguments={}),
            ToolCallPart(call_id="c2", name="unknown_tool", arguments={"b": 2}),
        ]

    @pytest.mark.asyncio
    async def test_standard_call_suppresses_matching_inline_call(self):
        body = sse_body(
            make_chunk(tool_calls=[
                make_tool_fragment(0, call_id="c1", name="search", arguments='{"q": "x"}'),
            ]),
            make_chunk(content='<|tool_call_begin|>search<|tool_call_argument_begin|>{"q":"x"}<|tool_call_end|>'),
        )
        parts = await decode(body)
        assert [p.call_id for p in parts if isinstance(p, ToolCallPart)] == ["c1"]


class TestThinking:
    @pytest.mark.asyncio
    async def test_malformed_thinking_does_not_block_text(self):
        body = sse_body(
            make_chunk(content="visible", thinking={"text": {"parts": ["x"]}}),
            make_chunk(thinking={"text": "fine", "id": "r1"}),
        )
        assert await decode(body) == [
            TextPart(value="visible"),
            ThinkingPart(text="fine", id="r1"),
        ]


class TestRoundTrip:
    @pytest.mark.asyncio
    async def test_sse_generator_feeds_decoder(self):
        payloads = [
            make_chunk(content="Sure. "),
            make_chunk(tool_calls=[
                make_tool_fragment(0, call_id="c7", name="echo", arguments='{"text": "hi"}'),
            ]),
            make_chunk(finish_reason="tool_calls"),
        ]
        sink = CollectingSink()
        count = await StreamDecoder().run(sse_generator(payloads), sink)
        assert count == 3
        assert sink.parts == [
            TextPart(value="Sure. "),
            TextPart(value=" "),
            ToolCallPart(call_id="c7", name="echo", arguments={"text": "hi"}),
        ]

    @pytest.mark.asyncio
    async def test_stream_without_done(self):
        body = sse_body(make_chunk(content="partial answer"), done=False)
        sink = CollectingSink()
        await StreamDecoder().run(byte_stream(body + b"data: {\"choi"), sink)
        assert sink.text == "partial answer"
