"""Lifecycle events emitted while tools execute."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from toolstream.streaming import ToolCall

logger = logging.getLogger(__name__)


class ToolEventName(str, Enum):
    START = "tool:start"
    PROGRESS = "tool:progress"
    COMPLETE = "tool:complete"
    ERROR = "tool:error"


@dataclass
class ToolEvent:
    """Base for all tool lifecycle events."""

    tool_call: ToolCall
    name = ""


@dataclass
class ToolStartEvent(ToolEvent):
    name = ToolEventName.START


@dataclass
class ToolProgressEvent(ToolEvent):
    """Human-readable status while the tool runs."""

    message: str = ""
    name = ToolEventName.PROGRESS


@dataclass
class ToolCompleteEvent(ToolEvent):
    result: Any = None
    name = ToolEventName.COMPLETE


@dataclass
class ToolErrorEvent(ToolEvent):
    error: BaseException | None = None
    name = ToolEventName.ERROR


Listener = Callable[[ToolEvent], Any]


class EventSink:
    """Publish/subscribe surface for the four tool lifecycle events.

    Listeners may be plain callables or coroutine functions.  A listener
    that raises is logged and skipped; it never interrupts the executor
    or the other listeners.
    """

    def __init__(self) -> None:
        self._listeners: dict[ToolEventName, list[Listener]] = {
            name: [] for name in ToolEventName
        }

    def on(self, event: ToolEventName | str, callback: Listener) -> None:
        self._listeners[self._name(event)].append(callback)

    def off(self, event: ToolEventName | str, callback: Listener) -> None:
        name = self._name(event)
        self._listeners[name] = [cb for cb in self._listeners[name] if cb != callback]

    def listeners(self, event: ToolEventName | str) -> list[Listener]:
        return list(self._listeners[self._name(event)])

    def emit(self, event: ToolEvent) -> None:
        """Deliver *event* synchronously.  Coroutine listeners are skipped."""
        for callback in self.listeners(event.name):
            if inspect.iscoroutinefunction(callback):
                logger.warning(f"Async listener {callback!r} skipped by sync emit ({event.name.value})")
                continue
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Listener for {event.name.value} raised: {e}")

    async def emit_async(self, event: ToolEvent) -> None:
        """Deliver *event*, awaiting listeners that return awaitables."""
        for callback in self.listeners(event.name):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Listener for {event.name.value} raised: {e}")

    @staticmethod
    def _name(event: ToolEventName | str) -> ToolEventName:
        try:
            return ToolEventName(event)
        except ValueError:
            raise ValueError(f"Unknown tool event: {event!r}") from None
