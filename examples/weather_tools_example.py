"""Streaming tool-call example against OpenAI Chat Completions.

Demonstrates:
- Defining tools with @tool and collecting them in a ToolRegistry
- Rendering the registry for a provider with convert_tools
- Feeding a live SDK stream into a ToolCallSession
- Listening to tool lifecycle events
- Sending results back with format_tool_result

Usage:
    uv run --env-file=.env examples/weather_tools_example.py --model gpt-4o-mini --trace
"""

import argparse
import asyncio
import json

from openai import AsyncOpenAI

from toolstream import (
    Provider,
    ToolCallComplete,
    ToolCallSession,
    ToolCompleteEvent,
    ToolExecutionRecord,
    ToolRegistry,
    convert_tools,
    format_tool_error,
    format_tool_result,
    tool,
)


def setup_tracing(service_name: str):
    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        SimpleSpanProcessor, ConsoleSpanExporter,
    )
    from toolstream.instrumentation import instrument

    provider = TracerProvider(
        resource=Resource({SERVICE_NAME: service_name})
    )
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    instrument()


@tool
def get_weather(city: str, unit: str = "celsius"):
    """Look up the current weather for a city.

    Args:
        city: City name, e.g. "Paris".
        unit: "celsius" or "fahrenheit".
    """
    temp = 21 if unit == "celsius" else 70
    return {"city": city, "temperature": temp, "unit": unit, "conditions": "sunny"}


@tool
async def get_time(city: str):
    """Return the local time in a city.

    Args:
        city: City name.
    """
    await asyncio.sleep(0)
    return f"It is 14:05 in {city}."


def print_complete(event: ToolCompleteEvent):
    print(f"  [{event.tool_call.name}] -> {event.result}")


async def main(model: str, prompt: str):
    client = AsyncOpenAI()
    registry = ToolRegistry([get_weather, get_time])
    session = ToolCallSession(registry=registry, provider=Provider.OPENAI)
    session.on("tool:start", lambda e: print(f"  calling {e.tool_call.name}..."))
    session.on("tool:complete", print_complete)

    messages = [{"role": "user", "content": prompt}]
    stream = await client.chat.completions.create(
        model=model,
        messages=messages,
        tools=convert_tools(registry.schemas(), Provider.OPENAI),
        stream=True,
    )

    assistant_calls = []
    results = []
    async for item in session.iter(stream):
        if isinstance(item, ToolCallComplete):
            assistant_calls.extend(item.tool_calls)
        elif isinstance(item, ToolExecutionRecord):
            results.append(item)

    if not assistant_calls:
        print("Model answered without calling a tool.")
        return

    messages.append({
        "role": "assistant",
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
            }
            for call in assistant_calls
        ],
    })
    for record in results:
        if record.success:
            messages.append(format_tool_result(record.tool_call, record.result, Provider.OPENAI))
        else:
            messages.append(format_tool_error(record.tool_call, record.error, Provider.OPENAI))

    reply = await client.chat.completions.create(model=model, messages=messages)
    print(reply.choices[0].message.content)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="toolstream weather example")
    parser.add_argument("--model", default="gpt-4o-mini")
    parser.add_argument(
        "--prompt", default="What's the weather and local time in Paris?",
    )
    parser.add_argument("--trace", action="store_true")
    args = parser.parse_args()
    if args.trace:
        setup_tracing("toolstream-weather")
    asyncio.run(main(args.model, args.prompt))
