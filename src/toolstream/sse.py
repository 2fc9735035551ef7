"""Server-Sent Events in and out.

``decode_sse`` turns a provider's raw SSE byte stream into decoded JSON
frames for a :class:`~toolstream.session.ToolCallSession`.
``sse_generator`` goes the other way, encoding the session's events for
a browser or any other SSE consumer.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Any

from toolstream.events import ToolEvent
from toolstream.executor import ToolExecutionRecord
from toolstream.streaming import ToolCallEvent

logger = logging.getLogger(__name__)

DONE = "[DONE]"


async def aiter_any(source: AsyncIterable | Iterable) -> AsyncIterator:
    if isinstance(source, AsyncIterable):
        async for item in source:
            yield item
    else:
        for item in source:
            yield item


async def split_lines(chunks: AsyncIterable | Iterable) -> AsyncIterator[str]:
    """Re-cut arbitrary byte or text chunks into complete lines."""
    buffer = ""
    # Multi-byte characters may straddle chunk boundaries.
    decoder = codecs.getincrementaldecoder("utf-8")()
    async for chunk in aiter_any(chunks):
        if isinstance(chunk, bytes):
            chunk = decoder.decode(chunk)
        buffer += chunk
        *lines, buffer = buffer.split("\n")
        for line in lines:
            yield line.rstrip("\r")
    if buffer:
        yield buffer.rstrip("\r")


async def decode_sse_lines(
    lines: AsyncIterable | Iterable, *, dedupe: bool = False,
) -> AsyncIterator[dict]:
    """Decode ``data:`` lines into JSON frames.

    Blank lines, ``event:``/``id:`` lines and the ``[DONE]`` sentinel are
    skipped.  A payload that is not valid JSON is logged and dropped.

    Args:
        lines: SSE lines, without trailing newlines.
        dedupe: Drop redelivered frames, matched on their
            ``sequence_number``.  Only the Responses API numbers its
            events; frames without a number always pass, since Chat
            Completions chunks share one ``id`` and may repeat a payload.
    """
    seen: set = set()
    async for line in aiter_any(lines):
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        line = line.rstrip("\r\n")
        if not line.startswith("data:"):
            continue
        payload = line[5:].strip()
        if not payload or payload == DONE:
            continue
        try:
            frame = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping undecodable SSE payload: {e}")
            continue
        sequence = frame.get("sequence_number") if isinstance(frame, dict) else None
        if dedupe and sequence is not None:
            if sequence in seen:
                logger.debug(f"Skipping duplicate SSE frame {sequence}")
                continue
            seen.add(sequence)
        yield frame


async def decode_sse(
    chunks: AsyncIterable | Iterable, *, dedupe: bool = False,
) -> AsyncIterator[dict]:
    """Decode a raw SSE byte/text stream straight into JSON frames."""
    async for frame in decode_sse_lines(split_lines(chunks), dedupe=dedupe):
        yield frame


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _default(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: getattr(value, f.name) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseException):
        return {"type": type(value).__name__, "message": str(value)}
    return str(value)


def event_name(event: Any) -> str:
    if isinstance(event, ToolEvent):
        return event.name.value
    if isinstance(event, ToolCallEvent):
        return f"tool_call:{event.type}"
    if isinstance(event, ToolExecutionRecord):
        return "tool:result"
    return type(event).__name__


async def sse_generator(
    event_stream: AsyncIterable | Iterable,
) -> AsyncIterator[str]:
    """Convert toolstream events into SSE-formatted strings."""
    async for event in aiter_any(event_stream):
        data = json.dumps(event, default=_default)
        yield f"event: {event_name(event)}\ndata: {data}\n\n"
    yield "event: done\ndata: {}\n\n"
