import json
import logging

import pytest

from toolstream.events import ToolCompleteEvent
from toolstream.executor import ToolExecutionRecord
from toolstream.sse import decode_sse, decode_sse_lines, event_name, split_lines, sse_generator
from toolstream.streaming import Provider, ToolCall, ToolCallDelta


async def _collect(agen):
    return [item async for item in agen]


class TestSplitLines:
    @pytest.mark.asyncio
    async def test_rejoins_lines_across_chunks(self):
        chunks = [b"data: {\"a\"", b": 1}\n\nda", "ta: 2\r\n", "tail"]
        lines = await _collect(split_lines(chunks))
        assert lines == ['data: {"a": 1}', "", "data: 2", "tail"]

    @pytest.mark.asyncio
    async def test_multibyte_character_split_across_chunks(self):
        raw = "data: café\n".encode("utf-8")
        cut = raw.index(b"\xc3") + 1
        lines = await _collect(split_lines([raw[:cut], raw[cut:]]))
        assert lines == ["data: café"]

    @pytest.mark.asyncio
    async def test_accepts_async_iterables(self):
        async def chunks():
            yield "a\nb"
            yield "\n"

        assert await _collect(split_lines(chunks())) == ["a", "b"]


class TestDecodeSseLines:
    @pytest.mark.asyncio
    async def test_skips_non_data_blank_and_done(self):
        lines = [
            "event: message_start",
            'data: {"type": "ping"}',
            "",
            "data: [DONE]",
            ": comment",
        ]
        assert await _collect(decode_sse_lines(lines)) == [{"type": "ping"}]

    @pytest.mark.asyncio
    async def test_invalid_json_is_logged_and_dropped(self, caplog):
        lines = ['data: {"broken"', 'data: {"ok": true}']
        with caplog.at_level(logging.WARNING, logger="toolstream.sse"):
            frames = await _collect(decode_sse_lines(lines))
        assert frames == [{"ok": True}]
        assert any("undecodable" in r.message for r in caplog.records)

    @pytest.mark.asyncio
    async def test_dedupe_drops_redelivered_sequence_numbers(self):
        lines = [
            'data: {"type": "response.output_item.added", "sequence_number": 1}',
            'data: {"type": "response.function_call_arguments.delta", "sequence_number": 2}',
            'data: {"type": "response.function_call_arguments.delta", "sequence_number": 2}',
            'data: {"type": "response.output_item.done", "sequence_number": 3}',
        ]
        frames = await _collect(decode_sse_lines(lines, dedupe=True))
        assert [f["sequence_number"] for f in frames] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_dedupe_keeps_unnumbered_frames(self):
        lines = ['data: {"id": "chatcmpl-1", "n": 1}'] * 2
        assert len(await _collect(decode_sse_lines(lines, dedupe=True))) == 2

    @pytest.mark.asyncio
    async def test_without_dedupe_keeps_repeats(self):
        lines = ['data: {"sequence_number": 1}', 'data: {"sequence_number": 1}']
        assert len(await _collect(decode_sse_lines(lines))) == 2


class TestDecodeSse:
    @pytest.mark.asyncio
    async def test_bytes_to_frames(self):
        raw = b'data: {"type": "a"}\n\ndata: {"type": "b"}\n\ndata: [DONE]\n\n'
        chunks = [raw[i:i + 7] for i in range(0, len(raw), 7)]
        frames = await _collect(decode_sse(chunks))
        assert frames == [{"type": "a"}, {"type": "b"}]


class TestSseGenerator:
    @pytest.mark.asyncio
    async def test_encodes_events_and_terminates(self):
        call = ToolCall(id="c1", name="search", provider=Provider.CLAUDE)
        events = [
            ToolCallDelta(tool_call_id="c1", partial_json='{"q"'),
            ToolCompleteEvent(tool_call=call, result={"temp": 21}),
            ToolExecutionRecord(tool_call=call, error=RuntimeError("boom")),
        ]
        out = await _collect(sse_generator(events))

        assert len(out) == 4
        assert out[0].startswith("event: tool_call:delta\ndata: ")
        assert out[1].startswith("event: tool:complete\n")
        assert out[2].startswith("event: tool:result\n")
        assert out[-1] == "event: done\ndata: {}\n\n"

        complete = json.loads(out[1].split("data: ", 1)[1])
        assert complete["result"] == {"temp": 21}
        assert complete["tool_call"]["provider"] == "claude"
        record = json.loads(out[2].split("data: ", 1)[1])
        assert record["error"] == {"type": "RuntimeError", "message": "boom"}
        assert record["success"] is False

    def test_event_name_fallback(self):
        assert event_name(object()) == "object"
