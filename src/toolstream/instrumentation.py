"""Tracing hooks for sessions and tool runs.

Each ``ToolCallSession.iter()`` gets a ``stream_tool_calls`` span and each
executed call an ``execute_tool`` span nested inside it.  Until
``instrument()`` is called every helper here is a no-op, so
``opentelemetry-api`` stays optional.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "toolstream") -> None:
    """Start emitting stream and tool spans from the global TracerProvider.

    Sessions created before or after the call are both traced; the tracer
    is looked up at span time.  Install the ``otel`` extra first.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "Tracing needs opentelemetry-api: pip install toolstream[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info("No TracerProvider configured; stream and tool spans will be dropped")
    else:
        logger.info(f"Tracing tool streams with tracer {tracer_name!r}")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing."""
    global _tracer
    _tracer = None


@asynccontextmanager
async def stream_span(provider: str):
    """Wrap the processing of one provider stream."""
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(
        f"stream_tool_calls {provider}",
        attributes={
            "gen_ai.operation.name": "stream_tool_calls",
            "gen_ai.provider.name": provider,
        },
    ) as span:
        yield span


@asynccontextmanager
async def tool_span(tool_name: str, call_id: str):
    """Span for one ``ToolExecutor.execute`` run, keyed by the call id."""
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(
        f"execute_tool {tool_name}",
        attributes={
            "gen_ai.operation.name": "execute_tool",
            "gen_ai.tool.name": tool_name,
            "gen_ai.tool.call.id": call_id,
        },
    ) as span:
        yield span


def record_tool_calls(span, count: int) -> None:
    """Set the number of tool calls seen on a stream span."""
    if span is None:
        return
    span.set_attribute("toolstream.tool_calls", count)


def record_error(span, exception: BaseException) -> None:
    """Mark a failed tool run on its span, tagged with the exception type."""
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute("error.type", type(exception).__qualname__)
