"""Exceptions and warnings raised by toolstream."""


class ToolStreamError(Exception):
    """Base class for toolstream errors."""


class ArgumentParseError(ToolStreamError, ValueError):
    """Accumulated argument text is not a JSON object.

    Raised by :func:`toolstream.streaming.parse_arguments`.  Finalization
    catches it and substitutes ``{}``, so it never escapes a stream.
    """

    def __init__(self, text: str, reason: str):
        self.text = text
        self.reason = reason
        super().__init__(f"could not parse arguments {text!r}: {reason}")


class UnregisteredToolError(ToolStreamError, LookupError):
    """The model asked for a tool that has no registered implementation."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool not registered: {name}")


class ToolTimeoutError(ToolStreamError, TimeoutError):
    """A tool ran past the configured execution timeout."""

    def __init__(self, name: str, timeout: float):
        self.name = name
        self.timeout = timeout
        super().__init__(f"Tool {name} timed out after {timeout}s")


class ProtocolAmbiguityWarning(UserWarning):
    """A delta frame had no call id and was matched to the last started call."""
