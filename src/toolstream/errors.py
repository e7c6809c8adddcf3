"""Error taxonomy for the agent loop.

Only :class:`TransportError` ever ends a cycle. Decode and tool-argument
errors are contained where they happen and reported as data.
"""


class ToolstreamError(Exception):
    """Base class for all toolstream errors."""


class ConfigurationError(ToolstreamError):
    """Required configuration (e.g. the API key) is missing."""


class TransportError(ToolstreamError):
    """Network or HTTP failure talking to the model or search endpoint."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class DecodeError(ToolstreamError):
    """A single stream record could not be decoded."""


class ToolArgumentError(ToolstreamError):
    """Tool-call arguments are missing or invalid.

    Raise this from inside a tool; the executor turns it into an
    ``ok=False`` outcome instead of letting it reach the loop.
    """


class RequestCanceled(ToolstreamError):
    """The user canceled the in-flight cycle. Not a failure."""
