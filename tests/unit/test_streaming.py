"""Unit tests for the pending-call table and argument parsing."""

import json
import logging

import pytest

from toolstream.errors import ArgumentParseError
from toolstream.streaming import (
    CompletedCallSet,
    PendingCallTable,
    Provider,
    ToolCall,
    ToolCallComplete,
    ToolCallStatus,
    parse_arguments,
)


def _call(call_id="c1", provider=Provider.CLAUDE, name="search"):
    return ToolCall(id=call_id, name=name, provider=provider)


class TestToolCall:
    def test_provider_is_immutable(self):
        call = _call()
        with pytest.raises(AttributeError):
            call.provider = Provider.OPENAI
        assert call.provider == Provider.CLAUDE

    def test_other_fields_are_mutable(self):
        call = _call()
        call.name = "lookup"
        call.status = ToolCallStatus.COMPLETE
        assert call.name == "lookup"
        assert not call.is_open

    def test_complete_event_exposes_single_call(self):
        call = _call()
        event = ToolCallComplete(tool_calls=[call])
        assert event.type == "complete"
        assert event.tool_call is call


class TestParseArguments:
    def test_empty_text_is_empty_object(self):
        assert parse_arguments("") == {}
        assert parse_arguments(None) == {}

    def test_parses_object(self):
        assert parse_arguments('{"a": 1}') == {"a": 1}

    def test_rejects_truncated_json(self):
        with pytest.raises(ArgumentParseError):
            parse_arguments('{"a":')

    def test_rejects_non_object(self):
        with pytest.raises(ArgumentParseError, match="JSON object"):
            parse_arguments("[1, 2]")


class TestPendingCallTable:
    def test_register_creates_buffer_for_streaming_providers(self):
        table = PendingCallTable()
        table.register(_call("c1", Provider.CLAUDE))
        table.register(_call("c2", Provider.OPENAI))
        table.register(_call("c3", Provider.OPENAI_RESPONSES))
        assert table.buffer("c1") == ""
        assert table.buffer("c2") == ""
        assert table.buffer("c3") == ""

    def test_register_skips_buffer_for_gemini(self):
        table = PendingCallTable()
        table.register(_call("g1", Provider.GEMINI))
        assert "g1" in table
        assert table.buffer("g1") is None

    def test_append_delta_accumulates_without_parsing(self):
        table = PendingCallTable()
        table.register(_call())
        table.append_delta("c1", '{"query": "wea')
        table.append_delta("c1", 'ther"}')
        assert table.buffer("c1") == '{"query": "weather"}'
        assert table.get("c1").status == ToolCallStatus.STREAMING

    def test_append_delta_unknown_id_raises(self):
        table = PendingCallTable()
        with pytest.raises(KeyError):
            table.append_delta("missing", "{}")

    def test_finalize_parses_and_removes(self):
        table = PendingCallTable()
        table.register(_call())
        table.append_delta("c1", '{"query": "weather"}')
        call = table.finalize("c1")

        assert call.arguments == {"query": "weather"}
        assert call.status == ToolCallStatus.COMPLETE
        assert "c1" not in table
        assert table.buffer("c1") is None

    def test_finalize_malformed_falls_back_to_empty(self, caplog):
        table = PendingCallTable()
        table.register(_call())
        table.append_delta("c1", '{"a":')
        with caplog.at_level(logging.WARNING, logger="toolstream.streaming"):
            call = table.finalize("c1")

        assert call.arguments == {}
        assert call.status == ToolCallStatus.COMPLETE
        assert any("Invalid JSON" in r.message for r in caplog.records)

    def test_finalize_with_explicit_text_ignores_buffer(self):
        table = PendingCallTable()
        table.register(_call())
        table.append_delta("c1", '{"stale": true}')
        call = table.finalize("c1", '{"fresh": true}')
        assert call.arguments == {"fresh": True}

    @pytest.mark.parametrize("cuts", [[1], [3, 9], [1, 2, 3, 4, 5], [10, 11, 20]])
    def test_any_fragmentation_reassembles(self, cuts):
        payload = {"query": "weather in Paris", "limit": 3, "tags": ["a", "b"]}
        text = json.dumps(payload)
        bounds = [0, *cuts, len(text)]
        table = PendingCallTable()
        table.register(_call())
        for start, end in zip(bounds, bounds[1:]):
            table.append_delta("c1", text[start:end])
        assert table.finalize("c1").arguments == payload

    def test_open_calls_and_last_started(self):
        table = PendingCallTable()
        table.register(_call("a", Provider.OPENAI))
        table.register(_call("b", Provider.CLAUDE))
        table.register(_call("c", Provider.OPENAI))

        assert [c.id for c in table.open_calls(Provider.OPENAI)] == ["a", "c"]
        assert table.first_open(Provider.OPENAI).id == "a"
        assert table.last_started(Provider.OPENAI).id == "c"
        assert table.last_started().id == "c"
        assert table.last_started(Provider.GEMINI) is None

    def test_mark_error_removes_call(self):
        table = PendingCallTable()
        table.register(_call())
        call = table.mark_error("c1")
        assert call.status == ToolCallStatus.ERROR
        assert len(table) == 0
        assert table.mark_error("c1") is None

    def test_clear_empties_table_and_buffers(self):
        table = PendingCallTable()
        table.register(_call("c1"))
        table.append_delta("c1", '{"a"')
        table.clear()

        assert len(table) == 0
        assert table.pending() == []
        assert table.buffer("c1") is None

    def test_reregistered_id_after_clear_starts_fresh(self):
        table = PendingCallTable()
        table.register(_call("c1"))
        table.append_delta("c1", '{"old": ')
        table.clear()
        table.register(_call("c1"))
        table.append_delta("c1", '{"new": 1}')
        assert table.finalize("c1").arguments == {"new": 1}


class TestCompletedCallSet:
    def test_membership(self):
        completed = CompletedCallSet()
        completed.add("c1")
        completed.add("c1")
        assert "c1" in completed
        assert "c2" not in completed
        assert len(completed) == 1
        completed.discard("c1")
        completed.discard("c1")
        assert "c1" not in completed
        completed.add("c1")
        completed.clear()
        assert "c1" not in completed
