import inspect
import logging
import re
from typing import Any, Callable, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ToolImplementation(Protocol):
    """Anything with an ``execute(arguments)`` method, sync or async."""

    def execute(self, arguments: dict[str, Any]) -> Any: ...


class Tool(BaseModel):
    """A registered tool: its definition plus the object that runs it.

    ``model_dump()`` returns the provider-neutral definition
    (``name``/``description``/``parameters``); use
    :func:`toolstream.schema.convert_tools` for a provider's format.
    """

    name: str
    description: str = ""
    parameters: dict = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    executor: Any = Field(default=None, exclude=True)
    model_config = {"arbitrary_types_allowed": True}

    def model_dump(self, **kwargs):
        """Override to return the tool definition instead of all fields"""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    async def __call__(self, arguments: dict[str, Any]) -> Any:
        result = self.executor.execute(arguments)
        if inspect.isawaitable(result):
            result = await result
        return result


class FunctionExecutor:
    """Adapts a plain function (sync or async) to the executor contract."""

    def __init__(self, func: Callable):
        self.func = func

    async def execute(self, arguments: dict[str, Any]) -> Any:
        result = self.func(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return result


# ---------------------------------------------------------------------------
# Schema inference for @tool
# ---------------------------------------------------------------------------

_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    set: "array",
    dict: "object",
}


def _parse_param_descriptions(func: Callable) -> dict[str, str]:
    """Pull ``name: description`` pairs out of a Google-style Args section."""
    doc = inspect.getdoc(func)
    if not doc:
        return {}
    lines = doc.splitlines()
    try:
        start = lines.index("Args:")
    except ValueError:
        return {}

    descriptions: dict[str, list[str]] = {}
    current = None
    entry_indent = None
    for line in lines[start + 1:]:
        if not line.strip():
            break
        indent = len(line) - len(line.lstrip())
        if indent == 0:
            break
        if entry_indent is None:
            entry_indent = indent
        entry = re.match(r"(\w+)(?:\s*\([^)]*\))?:\s*(.*)$", line.strip())
        if indent == entry_indent and entry:
            current = entry.group(1)
            descriptions[current] = [entry.group(2)]
        elif current is not None:
            descriptions[current].append(line.strip())
    return {name: "\n".join(parts) for name, parts in descriptions.items()}


def _build_parameters_schema(func: Callable) -> dict:
    signature = inspect.signature(func)
    descriptions = _parse_param_descriptions(func)
    properties = {}
    required = []
    for param_name, param in signature.parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        annotation = param.annotation
        json_type = _JSON_TYPES.get(annotation, "string")
        properties[param_name] = {
            "type": json_type,
            "description": descriptions.get(param_name, ""),
        }
        if param.default is inspect.Parameter.empty:
            required.append(param_name)
    return {"type": "object", "properties": properties, "required": required}


def tool(func: Callable | None = None, *, name: str | None = None, description: str | None = None):
    """Turn a function into a :class:`Tool`.

    Works bare (``@tool``) or with overrides
    (``@tool(name="search", description="...")``).  Parameters are read
    from the signature; the description defaults to the docstring summary.
    """
    def wrap(f: Callable) -> Tool:
        doc = inspect.getdoc(f) or ""
        return Tool(
            name=name or f.__name__,
            description=description if description is not None else doc.split("\n\n")[0],
            parameters=_build_parameters_schema(f),
            executor=FunctionExecutor(f),
        )

    if func is not None:
        return wrap(func)
    return wrap


class ToolRegistry:
    """Name -> :class:`Tool` lookup owned by one session."""

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for t in tools or []:
            self.register(t)

    def register(self, tool_obj: Tool) -> None:
        if not tool_obj.name:
            raise ValueError("Tool name is required")
        if tool_obj.executor is None or not hasattr(tool_obj.executor, "execute"):
            raise ValueError(f"Tool {tool_obj.name} needs an executor with an execute() method")
        if tool_obj.name in self._tools:
            logger.warning(f"Replacing registered tool: {tool_obj.name}")
        self._tools[tool_obj.name] = tool_obj
        logger.debug(f"Registered tool: {tool_obj.name}")

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def clear(self) -> None:
        self._tools.clear()

    def names(self) -> list[str]:
        return list(self._tools)

    def all(self) -> list[Tool]:
        return list(self._tools.values())

    def schemas(self) -> list[dict]:
        """Definitions without executors, ready for schema conversion."""
        return [t.model_dump() for t in self._tools.values()]
