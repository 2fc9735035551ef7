"""Provider adapters: one raw streaming frame in, canonical events out.

Each adapter understands a single vendor's streaming format and mutates
the session's :class:`PendingCallTable` as frames arrive.  Adapters are
built once per session and provider with :func:`adapter_for`.
"""

from __future__ import annotations

import logging
import random
import string
import time
import warnings
from abc import ABC, abstractmethod
from typing import Any

from toolstream.errors import ArgumentParseError, ProtocolAmbiguityWarning
from toolstream.streaming import (
    CompletedCallSet,
    PendingCallTable,
    Provider,
    ToolCall,
    ToolCallComplete,
    ToolCallDelta,
    ToolCallEvent,
    ToolCallStart,
    ToolCallStatus,
    parse_arguments,
)

logger = logging.getLogger(__name__)


def _as_dict(frame: Any) -> dict:
    """Accept decoded JSON or a pydantic model from a provider SDK."""
    if isinstance(frame, dict):
        return frame
    if hasattr(frame, "model_dump"):
        return frame.model_dump()
    return {}


def _synthetic_id(prefix: str, suffix: bool = False) -> str:
    call_id = f"{prefix}_{int(time.time() * 1000)}"
    if suffix:
        alphabet = string.ascii_lowercase + string.digits
        call_id += "_" + "".join(random.choices(alphabet, k=9))
    return call_id


class ProviderAdapter(ABC):
    """Turns one provider's streaming frames into :class:`ToolCallEvent`s.

    Args:
        table: Pending calls shared by every adapter in the session.
        completed: Ids already finalized in the session.
        warn_on_ambiguous_delta: Issue a :class:`ProtocolAmbiguityWarning`
            when a fragment without a call id has to be matched to the
            last started call.  The match is logged either way.
    """

    provider: Provider

    def __init__(
        self,
        table: PendingCallTable,
        completed: CompletedCallSet,
        warn_on_ambiguous_delta: bool = True,
    ):
        self.table = table
        self.completed = completed
        self.warn_on_ambiguous_delta = warn_on_ambiguous_delta

    @abstractmethod
    def detect_all(self, frame: Any) -> list[ToolCallEvent]:
        """Inspect one frame and return every event it carries, in order."""
        ...

    def detect(self, frame: Any) -> ToolCallEvent | None:
        """Inspect one frame and return its first event, if any.

        Most frames carry at most one event.  A Gemini frame with several
        function calls, or an OpenAI chunk that starts and finishes a call
        at once, carries more; use :meth:`detect_all` for those.
        """
        events = self.detect_all(frame)
        return events[0] if events else None

    def _start(self, call_id: str, name: str | None) -> ToolCallStart:
        call = ToolCall(id=call_id, name=name or "", provider=self.provider)
        # A restarted id is a new call, even if an earlier one completed.
        self.completed.discard(call_id)
        self.table.register(call)
        logger.debug(f"{self.provider.value}: tool call {call_id} ({call.name}) started")
        return ToolCallStart(tool_call=call)

    def _append(self, call_id: str, fragment: str) -> ToolCallDelta:
        self.table.append_delta(call_id, fragment)
        return ToolCallDelta(tool_call_id=call_id, partial_json=fragment)

    def _last_started(self) -> ToolCall | None:
        """Resolve a fragment that carries no call id.

        The newest open call of this provider wins.  With more than one
        candidate the choice is a guess, so it gets reported.
        """
        candidates = self.table.open_calls(self.provider)
        if not candidates:
            return None
        call = candidates[-1]
        if len(candidates) > 1:
            message = (
                f"{self.provider.value}: fragment without call id attributed "
                f"to last started call {call.id} ({len(candidates)} open)"
            )
            logger.warning(message)
            if self.warn_on_ambiguous_delta:
                warnings.warn(message, ProtocolAmbiguityWarning, stacklevel=4)
        return call


class ClaudeAdapter(ProviderAdapter):
    """Anthropic Messages API.

    Claude keeps at most one tool block open at a time, so deltas and the
    closing ``content_block_stop`` go to the single open Claude call.
    """

    provider = Provider.CLAUDE

    def detect_all(self, frame: Any) -> list[ToolCallEvent]:
        event = self._detect_one(frame)
        return [event] if event is not None else []

    def _detect_one(self, frame: Any) -> ToolCallEvent | None:
        event = _as_dict(frame)
        event_type = event.get("type")

        if event_type == "content_block_start":
            block = event.get("content_block") or {}
            if block.get("type") == "tool_use":
                return self._start(block.get("id") or _synthetic_id("toolu"), block.get("name"))

        elif event_type == "content_block_delta":
            delta = event.get("delta") or {}
            if delta.get("type") == "input_json_delta":
                call = self.table.first_open(self.provider)
                if call is None:
                    logger.debug("claude: input_json_delta with no open tool call")
                    return None
                return self._append(call.id, delta.get("partial_json") or "")

        elif event_type == "content_block_stop":
            # Text blocks close the same way; only act if a tool block is open.
            call = self.table.first_open(self.provider)
            if call is not None:
                return ToolCallComplete(tool_calls=[self.table.finalize(call.id)])

        return None


class OpenAIChatAdapter(ProviderAdapter):
    """OpenAI Chat Completions.

    The first fragment of a call carries its id; later fragments do not,
    and ``finish_reason == "tool_calls"`` closes every open call at once.
    A single chunk may do all three: start a call, carry its arguments
    and finish it.
    """

    provider = Provider.OPENAI

    def detect_all(self, frame: Any) -> list[ToolCallEvent]:
        event = _as_dict(frame)
        choices = event.get("choices") or []
        if not choices:
            return []
        choice = choices[0] or {}
        delta = choice.get("delta") or {}
        events: list[ToolCallEvent] = []

        tool_calls = delta.get("tool_calls") or []
        if tool_calls:
            entry = tool_calls[0] or {}
            function = entry.get("function") or {}
            arguments = function.get("arguments")
            if entry.get("id"):
                events.append(self._start(entry["id"], function.get("name")))
                if arguments:
                    events.append(self._append(entry["id"], arguments))
            elif arguments:
                call = self._last_started()
                if call is not None:
                    events.append(self._append(call.id, arguments))
                else:
                    logger.debug("openai: argument fragment with no open tool call")

        if choice.get("finish_reason") == "tool_calls":
            finished = [
                self.table.finalize(call.id)
                for call in self.table.open_calls(self.provider)
            ]
            if finished:
                events.append(ToolCallComplete(tool_calls=finished))

        return events


class OpenAIResponsesAdapter(ProviderAdapter):
    """OpenAI Responses API.

    A function call completes twice: ``response.function_call_arguments.done``
    and then ``response.output_item.done``.  The first one wins and the id
    goes into the completed set so the second is dropped.
    """

    provider = Provider.OPENAI_RESPONSES

    def detect_all(self, frame: Any) -> list[ToolCallEvent]:
        event = self._detect_one(frame)
        return [event] if event is not None else []

    def _detect_one(self, frame: Any) -> ToolCallEvent | None:
        event = _as_dict(frame)
        event_type = event.get("type")

        if event_type == "response.output_item.added":
            item = event.get("item") or {}
            if item.get("type") == "function_call":
                call_id = item.get("call_id") or item.get("id") or _synthetic_id("resp")
                return self._start(call_id, item.get("name"))

        elif event_type == "response.function_call_arguments.delta":
            call_id = event.get("call_id") or self._resolve_id()
            if not call_id:
                return None
            if call_id not in self.table:
                self._start(call_id, event.get("name"))
            return self._append(call_id, event.get("delta") or "")

        elif event_type == "response.function_call_arguments.done":
            call_id = event.get("call_id") or self._resolve_id()
            call = self.table.get(call_id) if call_id else None
            if call is None:
                return None
            if event.get("name"):
                call.name = event["name"]
            return self._complete(call_id, event.get("arguments"))

        elif event_type == "response.output_item.done":
            item = event.get("item") or {}
            if item.get("type") != "function_call":
                return None
            call_id = item.get("call_id") or item.get("id") or self._resolve_id()
            if call_id and call_id in self.completed:
                logger.debug(f"openai-responses: {call_id} already completed, skipping")
                return None
            call = self.table.get(call_id) if call_id else None
            if call is None:
                # Completed without ever streaming a delta.
                call = self.table.register(ToolCall(
                    id=call_id or _synthetic_id("resp"),
                    name=item.get("name") or "",
                    provider=self.provider,
                ))
            if item.get("name"):
                call.name = item["name"]
            return self._complete(call.id, item.get("arguments"))

        return None

    def _resolve_id(self) -> str | None:
        call = self._last_started()
        return call.id if call is not None else None

    def _complete(self, call_id: str, arguments: Any) -> ToolCallComplete:
        """Finalize from the event's own arguments, else the buffer."""
        override = None
        if isinstance(arguments, dict):
            override = arguments
        elif arguments:
            try:
                override = parse_arguments(arguments)
            except ArgumentParseError as e:
                logger.warning(f"openai-responses: {e}; using buffered arguments for {call_id}")
        call = self.table.finalize(call_id, "" if override is not None else None)
        if override is not None:
            call.arguments = dict(override)
        self.completed.add(call_id)
        return ToolCallComplete(tool_calls=[call])


class GeminiAdapter(ProviderAdapter):
    """Google Gemini.

    Function calls arrive whole in a single frame.  Each one becomes its
    own complete event, in part order.  Gemini assigns no ids, so each
    call gets a synthetic one.  Nothing touches the pending table.
    """

    provider = Provider.GEMINI

    def detect_all(self, frame: Any) -> list[ToolCallEvent]:
        event = _as_dict(frame)
        candidates = event.get("candidates") or []
        if not candidates:
            return []
        content = (candidates[0] or {}).get("content") or {}

        events: list[ToolCallEvent] = []
        for part in content.get("parts") or []:
            function_call = (part or {}).get("functionCall") or (part or {}).get("function_call")
            if not function_call:
                continue
            call = ToolCall(
                id=_synthetic_id("gemini", suffix=True),
                name=function_call.get("name") or "",
                arguments=dict(function_call.get("args") or {}),
                status=ToolCallStatus.COMPLETE,
                provider=self.provider,
            )
            events.append(ToolCallComplete(tool_calls=[call]))
        return events


ADAPTERS: dict[Provider, type[ProviderAdapter]] = {
    Provider.CLAUDE: ClaudeAdapter,
    Provider.OPENAI: OpenAIChatAdapter,
    Provider.OPENAI_RESPONSES: OpenAIResponsesAdapter,
    Provider.GEMINI: GeminiAdapter,
}


def adapter_for(
    provider: Provider | str,
    table: PendingCallTable,
    completed: CompletedCallSet,
    warn_on_ambiguous_delta: bool = True,
) -> ProviderAdapter:
    """Build the adapter for *provider*.

    Raises:
        ValueError: If *provider* is not a known provider name.
    """
    adapter_cls = ADAPTERS[Provider(provider)]
    return adapter_cls(table, completed, warn_on_ambiguous_delta=warn_on_ambiguous_delta)


def provider_for_model(model: str | None) -> Provider:
    """Guess the provider from a model name.  Defaults to OpenAI."""
    if not model:
        return Provider.OPENAI
    lowered = model.lower()
    if "claude" in lowered:
        return Provider.CLAUDE
    if "gemini" in lowered:
        return Provider.GEMINI
    return Provider.OPENAI
