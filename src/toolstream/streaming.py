"""Streaming primitives for tool calls.

Provider adapters turn raw frames into canonical :class:`ToolCallEvent`
objects.  The :class:`PendingCallTable` reassembles tool calls whose
arguments arrive as JSON fragments spread across multiple frames.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from toolstream.errors import ArgumentParseError

logger = logging.getLogger(__name__)


class Provider(str, Enum):
    CLAUDE = "claude"
    OPENAI = "openai"
    OPENAI_RESPONSES = "openai-responses"
    GEMINI = "gemini"


class ToolCallStatus(str, Enum):
    STARTED = "started"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERROR = "error"


# Providers whose arguments arrive in fragments and need a buffer.
STREAMING_PROVIDERS = frozenset(
    {Provider.CLAUDE, Provider.OPENAI, Provider.OPENAI_RESPONSES}
)


@dataclass
class ToolCall:
    """A tool call as seen by the engine.

    ``provider`` is fixed at creation; reassigning it raises
    ``AttributeError``.
    """

    id: str
    name: str = ""
    arguments: dict[str, Any] = field(default_factory=dict)
    status: ToolCallStatus = ToolCallStatus.STARTED
    provider: Provider = Provider.OPENAI

    def __setattr__(self, key: str, value: Any) -> None:
        if key == "provider" and "provider" in self.__dict__:
            raise AttributeError("ToolCall.provider cannot be changed")
        super().__setattr__(key, value)

    @property
    def is_open(self) -> bool:
        """True while the call can still receive argument fragments."""
        return self.status in (ToolCallStatus.STARTED, ToolCallStatus.STREAMING)


# ---------------------------------------------------------------------------
# Canonical events
# ---------------------------------------------------------------------------


@dataclass
class ToolCallEvent:
    """Base for all canonical tool-call events."""

    type = ""


@dataclass
class ToolCallStart(ToolCallEvent):
    """A new tool call was detected."""

    tool_call: ToolCall
    type = "start"


@dataclass
class ToolCallDelta(ToolCallEvent):
    """A fragment of JSON arguments arrived for a pending call."""

    tool_call_id: str
    partial_json: str
    type = "delta"


@dataclass
class ToolCallComplete(ToolCallEvent):
    """One or more calls finished streaming and are ready to execute.

    OpenAI Chat Completions flushes every open call at once, so a single
    event can carry a batch.
    """

    tool_calls: list[ToolCall]
    type = "complete"

    @property
    def tool_call(self) -> ToolCall:
        return self.tool_calls[0]


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def parse_arguments(text: str | None) -> dict[str, Any]:
    """Parse accumulated argument text into a dict.

    Empty text yields ``{}``.  Anything that is not a JSON object raises
    :class:`ArgumentParseError`.
    """
    if not text:
        return {}
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise ArgumentParseError(text, str(e)) from e
    if not isinstance(value, dict):
        raise ArgumentParseError(text, f"expected a JSON object, got {type(value).__name__}")
    return value


def parse_arguments_or_empty(text: str | None, call_id: str = "") -> dict[str, Any]:
    """Like :func:`parse_arguments` but falls back to ``{}`` on failure."""
    try:
        return parse_arguments(text)
    except ArgumentParseError as e:
        logger.warning(f"Invalid JSON in arguments for call {call_id}: {e}")
        return {}


# ---------------------------------------------------------------------------
# Pending calls and their argument buffers
# ---------------------------------------------------------------------------


class PendingCallTable:
    """In-flight tool calls and their partial argument buffers.

    Calls are kept in insertion order, which is what the "last started"
    lookups rely on.  A buffer entry exists only while its call is open
    and is dropped exactly once, on finalize, discard or clear.
    """

    def __init__(self) -> None:
        self._calls: dict[str, ToolCall] = {}
        self._buffers: dict[str, str] = {}

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._calls

    def __len__(self) -> int:
        return len(self._calls)

    def get(self, call_id: str) -> ToolCall | None:
        return self._calls.get(call_id)

    def pending(self) -> list[ToolCall]:
        return list(self._calls.values())

    def buffer(self, call_id: str) -> str | None:
        return self._buffers.get(call_id)

    def register(self, call: ToolCall) -> ToolCall:
        """Track a newly detected call.

        Streaming providers get an empty argument buffer; Gemini calls
        arrive whole and skip it.
        """
        if call.id in self._calls:
            logger.warning(f"Tool call {call.id} registered twice; replacing")
        self._calls[call.id] = call
        if call.provider in STREAMING_PROVIDERS:
            self._buffers[call.id] = ""
        return call

    def append_delta(self, call_id: str, fragment: str) -> None:
        """Append an argument fragment.  No parsing happens here."""
        if call_id not in self._calls:
            raise KeyError(call_id)
        self._buffers[call_id] = self._buffers.get(call_id, "") + fragment
        call = self._calls[call_id]
        if call.status == ToolCallStatus.STARTED:
            call.status = ToolCallStatus.STREAMING

    def open_calls(self, provider: Provider) -> list[ToolCall]:
        return [
            c for c in self._calls.values()
            if c.provider == provider and c.is_open
        ]

    def first_open(self, provider: Provider) -> ToolCall | None:
        calls = self.open_calls(provider)
        return calls[0] if calls else None

    def last_started(self, provider: Provider | None = None) -> ToolCall | None:
        """Most recently registered call, optionally for one provider."""
        for call in reversed(self._calls.values()):
            if provider is None or call.provider == provider:
                return call
        return None

    def finalize(self, call_id: str, arguments_text: str | None = None) -> ToolCall:
        """Parse the buffered arguments and retire the call.

        ``arguments_text`` overrides the buffer when given.  Malformed
        JSON becomes ``{}``; the call is still marked complete.
        """
        call = self._calls.pop(call_id)
        buffered = self._buffers.pop(call_id, "")
        text = buffered if arguments_text is None else arguments_text
        call.arguments = parse_arguments_or_empty(text, call_id)
        call.status = ToolCallStatus.COMPLETE
        return call

    def mark_error(self, call_id: str) -> ToolCall | None:
        call = self.discard(call_id)
        if call is not None:
            call.status = ToolCallStatus.ERROR
        return call

    def discard(self, call_id: str) -> ToolCall | None:
        self._buffers.pop(call_id, None)
        return self._calls.pop(call_id, None)

    def clear(self) -> None:
        """Drop every pending call and buffer, e.g. after a stream abort."""
        self._calls.clear()
        self._buffers.clear()


class CompletedCallSet:
    """Ids that have already been finalized in this session."""

    def __init__(self) -> None:
        self._ids: set[str] = set()

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, call_id: str) -> None:
        self._ids.add(call_id)

    def discard(self, call_id: str) -> None:
        self._ids.discard(call_id)

    def clear(self) -> None:
        self._ids.clear()
