"""Exception hierarchy for the HTTP tracer.

Transport failures raised by the wrapped transport are never wrapped in these
types; they travel back to the caller unchanged. The classes below cover the
tracer's own failure modes (configuration and entry delivery) so callers and
sinks can tell them apart from network errors.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "HTTPTracerError",
    "ConfigurationError",
    "SinkWriteError",
]


class HTTPTracerError(RuntimeError):
    """Base exception for tracer configuration and delivery failures."""


class ConfigurationError(HTTPTracerError):
    """Raised when tracer options are invalid."""


class SinkWriteError(HTTPTracerError):
    """Raised by a sink when a serialized trace entry could not be written."""

    def __init__(self, message: str, *, destination: Optional[str] = None) -> None:
        super().__init__(message)
        self.destination = destination
