import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from typing import Any

from toolstream.adapters import ProviderAdapter, adapter_for
from toolstream.config import ToolStreamConfig
from toolstream.events import EventSink, Listener, ToolEventName
from toolstream.executor import ToolExecutionRecord, ToolExecutor
from toolstream.instrumentation import record_tool_calls, stream_span
from toolstream.sse import aiter_any
from toolstream.streaming import (
    CompletedCallSet,
    PendingCallTable,
    Provider,
    ToolCall,
    ToolCallComplete,
    ToolCallEvent,
    ToolCallStart,
)
from toolstream.tools import ToolRegistry

logger = logging.getLogger(__name__)


class ToolCallSession:
    """Owns the tool-call state of one streaming conversation.

    The session holds the pending table, the completed set, one adapter
    per provider and the executor.  Nothing here is shared between
    sessions, since call ids are only unique within one stream.

    ``process()`` handles a single frame.  ``iter()`` consumes a whole
    stream and yields canonical events followed by the execution records
    of each completed batch.  ``run()`` drains ``iter()``.

    Args:
        registry: Tools the model may call.
        provider: Default provider for frames fed without one.
        config: Execution and detection settings.
        sink: Event sink for ``tool:*`` events.
    """

    def __init__(
        self,
        registry: ToolRegistry | None = None,
        provider: Provider | str | None = None,
        config: ToolStreamConfig | None = None,
        sink: EventSink | None = None,
    ):
        self.config = config or ToolStreamConfig()
        self.registry = registry if registry is not None else ToolRegistry()
        self.provider = Provider(provider) if provider is not None else None
        self.table = PendingCallTable()
        self.completed = CompletedCallSet()
        self.sink = sink if sink is not None else EventSink()
        self.executor = ToolExecutor(self.registry, self.table, self.sink, self.config)
        self._adapters: dict[Provider, ProviderAdapter] = {}
        self._executed: set[str] = set()

    def on(self, event: ToolEventName | str, callback: Listener) -> None:
        self.sink.on(event, callback)

    def off(self, event: ToolEventName | str, callback: Listener) -> None:
        self.sink.off(event, callback)

    def adapter(self, provider: Provider | str | None = None) -> ProviderAdapter:
        """Adapter for *provider*, built on first use and then reused."""
        resolved = Provider(provider) if provider is not None else self.provider
        if resolved is None:
            raise ValueError("No provider given and the session has no default provider")
        if resolved not in self._adapters:
            self._adapters[resolved] = adapter_for(
                resolved, self.table, self.completed,
                warn_on_ambiguous_delta=self.config.warn_on_ambiguous_delta,
            )
        return self._adapters[resolved]

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect_tool_calls(
        self, frame: Any, provider: Provider | str | None = None,
    ) -> list[ToolCallEvent]:
        """Feed one decoded frame and return every canonical event it carries.

        Unknown providers and malformed frames are logged and yield no
        events; they never break the caller's stream loop.
        """
        try:
            adapter = self.adapter(provider)
        except ValueError as e:
            logger.warning(f"Cannot detect tool calls: {e}")
            return []
        try:
            events = adapter.detect_all(frame)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed {adapter.provider.value} frame: {e}")
            return []
        for event in events:
            if isinstance(event, ToolCallStart):
                # A restarted id runs again.
                self._executed.discard(event.tool_call.id)
        return events

    def detect_tool_call(
        self, frame: Any, provider: Provider | str | None = None,
    ) -> ToolCallEvent | None:
        """Like :meth:`detect_tool_calls`, returning only the first event."""
        events = self.detect_tool_calls(frame, provider)
        return events[0] if events else None

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def process(
        self, frame: Any, provider: Provider | str | None = None,
    ) -> list[ToolExecutionRecord]:
        """Detect on one frame and execute whatever it completed."""
        records = []
        for event in self.detect_tool_calls(frame, provider):
            if isinstance(event, ToolCallComplete):
                records.extend(await self.execute_calls(event.tool_calls))
        return records

    async def execute_calls(self, tool_calls: list[ToolCall]) -> list[ToolExecutionRecord]:
        """Execute calls not yet executed in this session, in order."""
        fresh = []
        for call in tool_calls:
            if call.id in self._executed:
                logger.debug(f"Tool call {call.id} already executed, skipping")
                continue
            self._executed.add(call.id)
            fresh.append(call)
        return await self.executor.execute_all(fresh)

    async def iter(
        self,
        frames: AsyncIterable | Iterable,
        provider: Provider | str | None = None,
    ) -> AsyncIterator[ToolCallEvent | ToolExecutionRecord]:
        """Consume a stream of frames, yielding events as they happen.

        Stopping early (``aclose()`` or task cancellation) aborts the
        stream and discards pending partial calls.
        """
        name = Provider(provider).value if provider is not None else (
            self.provider.value if self.provider is not None else "unknown"
        )
        seen = 0
        try:
            async with stream_span(name) as span:
                async for frame in aiter_any(frames):
                    for event in self.detect_tool_calls(frame, provider):
                        yield event
                        if isinstance(event, ToolCallComplete):
                            seen += len(event.tool_calls)
                            for record in await self.execute_calls(event.tool_calls):
                                yield record
                record_tool_calls(span, seen)
        except (asyncio.CancelledError, GeneratorExit):
            self.abort()
            raise

    async def run(
        self,
        frames: AsyncIterable | Iterable,
        provider: Provider | str | None = None,
    ) -> list[ToolExecutionRecord]:
        """Process a whole stream and return every execution record."""
        records = []
        async for item in self.iter(frames, provider):
            if isinstance(item, ToolExecutionRecord):
                records.append(item)
        return records

    # ------------------------------------------------------------------
    # Introspection and reset
    # ------------------------------------------------------------------

    def get_pending_tool_calls(self) -> list[ToolCall]:
        return self.executor.get_pending_tool_calls()

    def clear_pending(self) -> None:
        """Forget partial calls and executed ids.

        An id seen after this is a brand-new call and runs again.  The
        completed set survives, so a late duplicate completion for an id
        that is not restarted is still dropped.
        """
        self.executor.clear_pending()
        self._executed.clear()

    def abort(self) -> None:
        """Discard partial calls after the owning stream was aborted."""
        if len(self.table):
            logger.info(f"Stream aborted; discarding {len(self.table)} pending tool call(s)")
        self.clear_pending()
