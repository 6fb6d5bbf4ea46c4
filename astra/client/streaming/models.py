"""
Streaming-specific dataclasses for the ingestion pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..models import Citation


class SSEEventType(Enum):
    """Server-Sent Event types the parser can produce."""
    CHUNK = "chunk"
    COMPLETION = "completion"


class SessionState(Enum):
    """Lifecycle of a single stream session. Everything but ACTIVE is terminal."""
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SSEEvent:
    """One data event taken from a complete line."""
    event_type: SSEEventType
    payload: str = ""


@dataclass(frozen=True)
class ExtractedPayload:
    """What a single data event contributed."""
    text: str | None = None
    citations: list[Citation] | None = None


@dataclass(frozen=True)
class InlineCitation:
    """Position of a `[n]` marker that refers to a captured citation."""
    source_number: int
    start: int
    end: int
