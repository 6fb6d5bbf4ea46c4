"""
Error taxonomy for answer streaming.

Only transport failures, non-success responses and empty streams ever reach
the caller. Parsing faults are absorbed inside the pipeline and never raised.
"""

from __future__ import annotations

from typing import Any


class StreamError(Exception):
    """Base stream error with response context."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}


class TransportError(StreamError):
    """Network or connection failure while talking to the backend."""
    pass


class BadResponseError(StreamError):
    """Backend answered with a non-success status."""
    pass


class EmptyStreamError(StreamError):
    """Stream ended normally without delivering any content."""

    def __init__(self, message: str = "No content received", **kwargs: Any):
        super().__init__(message, **kwargs)


class StreamingError(StreamError):
    """Unexpected failure inside the ingestion pipeline."""
    pass
