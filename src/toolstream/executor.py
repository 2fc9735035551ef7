import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from toolstream.config import ToolStreamConfig
from toolstream.errors import ToolTimeoutError, UnregisteredToolError
from toolstream.events import (
    EventSink,
    Listener,
    ToolCompleteEvent,
    ToolErrorEvent,
    ToolEventName,
    ToolProgressEvent,
    ToolStartEvent,
)
from toolstream.instrumentation import record_error, tool_span
from toolstream.streaming import PendingCallTable, ToolCall, ToolCallStatus
from toolstream.tools import Tool, ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class ToolExecutionRecord:
    """Outcome of one call inside :meth:`ToolExecutor.execute_all`."""

    tool_call: ToolCall
    result: Any = None
    error: BaseException | None = None
    success: bool = False


class ToolExecutor:
    """Runs completed tool calls against a :class:`ToolRegistry`.

    Every run emits ``tool:start``, then ``tool:progress`` and
    ``tool:complete`` on success, or ``tool:error`` on failure.  Failures
    are re-raised from :meth:`execute`; :meth:`execute_all` turns them
    into per-call records instead.

    Args:
        registry: Tools available to this executor.
        table: Pending-call table of the owning session.  Finished calls
            are removed from it.
        sink: Event sink for lifecycle events.  A private one is created
            when omitted.
        config: Execution settings (timeout, parallelism, progress text).
    """

    def __init__(
        self,
        registry: ToolRegistry,
        table: PendingCallTable | None = None,
        sink: EventSink | None = None,
        config: ToolStreamConfig | None = None,
    ):
        self.registry = registry
        self.table = table if table is not None else PendingCallTable()
        self.sink = sink if sink is not None else EventSink()
        self.config = config or ToolStreamConfig()

    def on(self, event: ToolEventName | str, callback: Listener) -> None:
        self.sink.on(event, callback)

    def off(self, event: ToolEventName | str, callback: Listener) -> None:
        self.sink.off(event, callback)

    async def execute(self, tool_call: ToolCall) -> Any:
        """Run one completed call and return the tool's result.

        Raises:
            ValueError: If the call has not finished streaming.
            UnregisteredToolError: If no tool has the call's name.
            ToolTimeoutError: If ``execution_timeout`` elapsed.
            Exception: Whatever the tool itself raised, unchanged.
        """
        if tool_call.status != ToolCallStatus.COMPLETE:
            raise ValueError(
                f"Tool call {tool_call.id} is {tool_call.status.value}, not complete"
            )

        await self.sink.emit_async(ToolStartEvent(tool_call=tool_call))
        async with tool_span(tool_call.name, tool_call.id) as span:
            try:
                tool_obj = self.registry.get(tool_call.name)
                if tool_obj is None:
                    raise UnregisteredToolError(tool_call.name)
                await self.sink.emit_async(ToolProgressEvent(
                    tool_call=tool_call,
                    message=self.config.progress_message.format(name=tool_call.name),
                ))
                logger.info(f"Calling {tool_call.name} with {tool_call.arguments}")
                result = await self._invoke(tool_obj, tool_call)
            except Exception as e:
                logger.error(f"Tool {tool_call.name} ({tool_call.id}) failed: {e}")
                record_error(span, e)
                tool_call.status = ToolCallStatus.ERROR
                self.table.discard(tool_call.id)
                await self.sink.emit_async(ToolErrorEvent(tool_call=tool_call, error=e))
                raise

        await self.sink.emit_async(ToolCompleteEvent(tool_call=tool_call, result=result))
        self.table.discard(tool_call.id)
        return result

    async def execute_all(self, tool_calls: list[ToolCall]) -> list[ToolExecutionRecord]:
        """Run every call, collecting a record per call in input order.

        Calls run one after another unless ``parallel_tool_calls`` is set.
        A failing call never stops the rest.
        """
        if self.config.parallel_tool_calls and len(tool_calls) > 1:
            return list(await asyncio.gather(*(self._record(tc) for tc in tool_calls)))
        return [await self._record(tc) for tc in tool_calls]

    def get_pending_tool_calls(self) -> list[ToolCall]:
        return self.table.pending()

    def clear_pending(self) -> None:
        self.table.clear()

    async def _record(self, tool_call: ToolCall) -> ToolExecutionRecord:
        try:
            result = await self.execute(tool_call)
        except Exception as e:
            return ToolExecutionRecord(tool_call=tool_call, error=e, success=False)
        return ToolExecutionRecord(tool_call=tool_call, result=result, success=True)

    async def _invoke(self, tool_obj: Tool, tool_call: ToolCall) -> Any:
        timeout = self.config.execution_timeout
        if timeout is None:
            return await tool_obj(tool_call.arguments)
        try:
            return await asyncio.wait_for(tool_obj(tool_call.arguments), timeout)
        except asyncio.TimeoutError as e:
            raise ToolTimeoutError(tool_call.name, timeout) from e
