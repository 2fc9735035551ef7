"""Provider-specific tool definitions and tool-result messages.

Tool definitions are kept provider-neutral (``name``, ``description``,
``parameters`` as JSON schema).  These helpers render them, and the
results of running them, in each provider's wire shape.
"""

from __future__ import annotations

import json
from typing import Any

from toolstream.streaming import Provider, ToolCall

_GEMINI_TYPES = {
    "string": "STRING",
    "number": "NUMBER",
    "integer": "INTEGER",
    "boolean": "BOOLEAN",
    "array": "ARRAY",
    "object": "OBJECT",
}


def _normalize_schema(schema: Any) -> dict:
    if not isinstance(schema, dict):
        return {"type": "object", "properties": {}, "required": []}
    normalized = {
        "type": schema.get("type") or "object",
        "properties": schema.get("properties") or {},
        "required": schema.get("required") or [],
    }
    if "additionalProperties" in schema:
        normalized["additionalProperties"] = schema["additionalProperties"]
    return normalized


def _gemini_property(prop: dict) -> dict:
    result = {"type": _GEMINI_TYPES.get(prop.get("type"), "STRING")}
    if prop.get("description"):
        result["description"] = prop["description"]
    if prop.get("enum"):
        result["enum"] = prop["enum"]
    if prop.get("type") == "array" and prop.get("items"):
        result["items"] = _gemini_property(prop["items"])
    if prop.get("type") == "object" and prop.get("properties"):
        result["properties"] = {
            key: _gemini_property(value) for key, value in prop["properties"].items()
        }
        if prop.get("required"):
            result["required"] = prop["required"]
    return result


def _gemini_schema(schema: Any) -> dict:
    # Gemini accepts only a subset of JSON schema, with upper-case types.
    if not isinstance(schema, dict):
        return {"type": "OBJECT", "properties": {}}
    result = {
        "type": _GEMINI_TYPES.get(schema.get("type"), "STRING"),
        "properties": {
            key: _gemini_property(value)
            for key, value in (schema.get("properties") or {}).items()
        },
    }
    if schema.get("required"):
        result["required"] = schema["required"]
    return result


def convert_tools(tools: list[dict], provider: Provider | str) -> list[dict]:
    """Render provider-neutral tool definitions for *provider*.

    Args:
        tools: Definitions as returned by ``ToolRegistry.schemas()``.
        provider: Target provider.

    Returns:
        The provider's ``tools`` payload.  Gemini wraps every function in
        a single ``functionDeclarations`` entry.
    """
    if not tools:
        return []
    provider = Provider(provider)

    if provider == Provider.CLAUDE:
        return [
            {
                "name": t["name"],
                "description": t.get("description", ""),
                "input_schema": _normalize_schema(t.get("parameters")),
            }
            for t in tools
        ]
    if provider == Provider.OPENAI:
        return [
            {
                "type": "function",
                "function": {
                    "name": t["name"],
                    "description": t.get("description", ""),
                    "parameters": _normalize_schema(t.get("parameters")),
                },
            }
            for t in tools
        ]
    if provider == Provider.OPENAI_RESPONSES:
        return [
            {
                "type": "function",
                "name": t["name"],
                "description": t.get("description", ""),
                "parameters": _normalize_schema(t.get("parameters")),
            }
            for t in tools
        ]
    return [{
        "functionDeclarations": [
            {
                "name": t["name"],
                "description": t.get("description", ""),
                "parameters": _gemini_schema(t.get("parameters")),
            }
            for t in tools
        ]
    }]


def _content(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


def format_tool_result(tool_call: ToolCall, result: Any, provider: Provider | str) -> dict:
    """Build the message that returns *result* to the model."""
    provider = Provider(provider)
    if provider == Provider.CLAUDE:
        return {"type": "tool_result", "tool_use_id": tool_call.id, "content": _content(result)}
    if provider == Provider.OPENAI:
        return {"role": "tool", "tool_call_id": tool_call.id, "content": _content(result)}
    if provider == Provider.OPENAI_RESPONSES:
        return {"type": "function_call_output", "call_id": tool_call.id, "output": _content(result)}
    response = result if isinstance(result, dict) else {"result": result}
    return {"functionResponse": {"name": tool_call.name, "response": response}}


def format_tool_error(tool_call: ToolCall, error: BaseException, provider: Provider | str) -> dict:
    """Build the message that reports a failed call to the model."""
    provider = Provider(provider)
    message = f"Tool execution error: {str(error) or 'Unknown error'}"
    if provider == Provider.CLAUDE:
        return {
            "type": "tool_result",
            "tool_use_id": tool_call.id,
            "content": message,
            "is_error": True,
        }
    if provider == Provider.OPENAI:
        return {"role": "tool", "tool_call_id": tool_call.id, "content": message}
    if provider == Provider.OPENAI_RESPONSES:
        return {"type": "function_call_output", "call_id": tool_call.id, "output": message}
    return {"functionResponse": {"name": tool_call.name, "response": {"error": message}}}
