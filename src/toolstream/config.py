import os

from pydantic import BaseModel


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class ToolStreamConfig(BaseModel):
    """Settings for a :class:`toolstream.session.ToolCallSession`.

    Args:
        parallel_tool_calls: Run a batch of calls concurrently.  Results
            still come back in input order.
        execution_timeout: Seconds a single tool may run.  ``None`` means
            no limit.
        progress_message: Template for ``tool:progress`` messages;
            ``{name}`` is the tool name.
        warn_on_ambiguous_delta: Issue a ``ProtocolAmbiguityWarning`` when
            an id-less fragment is matched to the last started call.
    """

    parallel_tool_calls: bool = False
    execution_timeout: float | None = None
    progress_message: str = "Running {name}..."
    warn_on_ambiguous_delta: bool = True

    @classmethod
    def from_env(cls) -> "ToolStreamConfig":
        """Read ``TOOLSTREAM_*`` environment variables over the defaults."""
        timeout = os.getenv("TOOLSTREAM_EXECUTION_TIMEOUT")
        return cls(
            parallel_tool_calls=_env_bool("TOOLSTREAM_PARALLEL_TOOL_CALLS", False),
            execution_timeout=float(timeout) if timeout else None,
            progress_message=os.getenv("TOOLSTREAM_PROGRESS_MESSAGE", "Running {name}..."),
            warn_on_ambiguous_delta=_env_bool("TOOLSTREAM_WARN_ON_AMBIGUOUS_DELTA", True),
        )
