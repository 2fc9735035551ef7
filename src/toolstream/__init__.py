"""Normalize streaming tool calls from Claude, OpenAI and Gemini, then run them."""

from toolstream.adapters import (
    ClaudeAdapter,
    GeminiAdapter,
    OpenAIChatAdapter,
    OpenAIResponsesAdapter,
    ProviderAdapter,
    adapter_for,
    provider_for_model,
)
from toolstream.config import ToolStreamConfig
from toolstream.errors import (
    ArgumentParseError,
    ProtocolAmbiguityWarning,
    ToolStreamError,
    ToolTimeoutError,
    UnregisteredToolError,
)
from toolstream.events import (
    EventSink,
    ToolCompleteEvent,
    ToolErrorEvent,
    ToolEventName,
    ToolProgressEvent,
    ToolStartEvent,
)
from toolstream.executor import ToolExecutionRecord, ToolExecutor
from toolstream.instrumentation import instrument, uninstrument
from toolstream.schema import convert_tools, format_tool_error, format_tool_result
from toolstream.session import ToolCallSession
from toolstream.sse import decode_sse, sse_generator
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
)
from toolstream.tools import Tool, ToolRegistry, tool

__all__ = [
    "ArgumentParseError",
    "ClaudeAdapter",
    "CompletedCallSet",
    "EventSink",
    "GeminiAdapter",
    "OpenAIChatAdapter",
    "OpenAIResponsesAdapter",
    "PendingCallTable",
    "ProtocolAmbiguityWarning",
    "Provider",
    "ProviderAdapter",
    "Tool",
    "ToolCall",
    "ToolCallComplete",
    "ToolCallDelta",
    "ToolCallEvent",
    "ToolCallSession",
    "ToolCallStart",
    "ToolCallStatus",
    "ToolCompleteEvent",
    "ToolErrorEvent",
    "ToolEventName",
    "ToolExecutionRecord",
    "ToolExecutor",
    "ToolProgressEvent",
    "ToolRegistry",
    "ToolStartEvent",
    "ToolStreamConfig",
    "ToolStreamError",
    "ToolTimeoutError",
    "UnregisteredToolError",
    "adapter_for",
    "convert_tools",
    "decode_sse",
    "format_tool_error",
    "format_tool_result",
    "instrument",
    "provider_for_model",
    "sse_generator",
    "tool",
    "uninstrument",
]
