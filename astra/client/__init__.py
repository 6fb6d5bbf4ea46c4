"""
Streaming answer client.

This package provides the answer backend integration:
- Query and request models
- Byte transports over httpx
- The streaming ingestion pipeline
- A client that keeps at most one live stream
"""

from __future__ import annotations

from astra.exceptions import (
    BadResponseError,
    EmptyStreamError,
    StreamError,
    StreamingError,
    TransportError,
)

from .client import StreamClient, StreamHandle
from .models import (
    Citation,
    Completed,
    Failed,
    QueryMode,
    StreamOutcome,
    StreamQuery,
    StreamRequest,
)
from .transport import ByteTransport, HttpxTransport

__all__ = [
    "BadResponseError",
    "ByteTransport",
    "Citation",
    "Completed",
    "EmptyStreamError",
    "Failed",
    "HttpxTransport",
    "QueryMode",
    "StreamClient",
    "StreamError",
    "StreamHandle",
    "StreamOutcome",
    "StreamQuery",
    "StreamRequest",
    "StreamingError",
    "TransportError",
]
