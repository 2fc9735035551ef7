import pytest

from toolstream.events import EventSink, ToolEventName
from toolstream.session import ToolCallSession
from toolstream.tools import Tool, ToolRegistry, tool


# ---------------------------------------------------------------------------
# Frame builders (decoded JSON, as each provider streams it)
# ---------------------------------------------------------------------------

def claude_start(call_id: str, name: str) -> dict:
    return {
        "type": "content_block_start",
        "index": 1,
        "content_block": {"type": "tool_use", "id": call_id, "name": name, "input": {}},
    }


def claude_delta(partial_json: str) -> dict:
    return {
        "type": "content_block_delta",
        "index": 1,
        "delta": {"type": "input_json_delta", "partial_json": partial_json},
    }


def claude_text_delta(text: str) -> dict:
    return {
        "type": "content_block_delta",
        "index": 0,
        "delta": {"type": "text_delta", "text": text},
    }


def claude_stop(index: int = 1) -> dict:
    return {"type": "content_block_stop", "index": index}


def openai_chunk(delta: dict | None = None, finish_reason: str | None = None) -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "choices": [{"index": 0, "delta": delta or {}, "finish_reason": finish_reason}],
    }


def openai_start(call_id: str, name: str, index: int = 0) -> dict:
    return openai_chunk({"tool_calls": [{
        "index": index,
        "id": call_id,
        "type": "function",
        "function": {"name": name, "arguments": ""},
    }]})


def openai_args(arguments: str, index: int = 0) -> dict:
    return openai_chunk({"tool_calls": [{
        "index": index,
        "function": {"arguments": arguments},
    }]})


def openai_finish(reason: str = "tool_calls") -> dict:
    return openai_chunk(finish_reason=reason)


def responses_added(call_id: str, name: str, item_id: str = "fc_1") -> dict:
    return {
        "type": "response.output_item.added",
        "output_index": 0,
        "item": {
            "type": "function_call",
            "id": item_id,
            "call_id": call_id,
            "name": name,
            "arguments": "",
        },
    }


def responses_delta(delta: str, call_id: str | None = None) -> dict:
    frame = {"type": "response.function_call_arguments.delta", "delta": delta}
    if call_id is not None:
        frame["call_id"] = call_id
    return frame


def responses_args_done(arguments: str, call_id: str | None = None) -> dict:
    frame = {"type": "response.function_call_arguments.done", "arguments": arguments}
    if call_id is not None:
        frame["call_id"] = call_id
    return frame


def responses_item_done(call_id: str, name: str, arguments="", item_id: str = "fc_1") -> dict:
    return {
        "type": "response.output_item.done",
        "output_index": 0,
        "item": {
            "type": "function_call",
            "id": item_id,
            "call_id": call_id,
            "name": name,
            "arguments": arguments,
        },
    }


def gemini_frame(*calls: tuple[str, dict], text: str | None = None) -> dict:
    parts = []
    if text is not None:
        parts.append({"text": text})
    parts.extend({"functionCall": {"name": name, "args": args}} for name, args in calls)
    return {"candidates": [{"content": {"role": "model", "parts": parts}}]}


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class RecordingExecutor:
    """Executor double that records every argument dict it receives."""

    def __init__(self, result="ok", error: Exception | None = None):
        self.calls: list[dict] = []
        self.result = result
        self.error = error

    async def execute(self, arguments):
        self.calls.append(arguments)
        if self.error is not None:
            raise self.error
        return self.result


class EventRecorder:
    """Subscribes to every tool lifecycle event on a sink."""

    def __init__(self, sink: EventSink):
        self.events = []
        for name in ToolEventName:
            sink.on(name, self.events.append)

    @property
    def names(self) -> list[str]:
        return [e.name.value for e in self.events]


@pytest.fixture
def search_executor():
    return RecordingExecutor(result={"results": ["sunny"]})


@pytest.fixture
def registry(search_executor):
    @tool
    def echo(text: str):
        """Echo the text back."""
        return text

    return ToolRegistry([
        Tool(name="search", description="Search the web.", executor=search_executor),
        echo,
    ])


@pytest.fixture
def make_session(registry):
    """Factory fixture for sessions bound to the shared registry."""
    def _make(provider=None, config=None, sink=None):
        return ToolCallSession(
            registry=registry, provider=provider, config=config, sink=sink,
        )
    return _make
