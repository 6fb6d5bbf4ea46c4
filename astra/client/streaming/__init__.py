"""
Streaming pipeline for the answer backend.

Bytes flow one way through this package:
- FrameDecoder: bytes to complete lines
- EventParser: lines to data events and the terminator
- PayloadExtractor: events to text deltas and citation lists
- StreamSession: orchestration and the single terminal outcome
"""

from __future__ import annotations

from .citations import (
    DEFAULT_SOURCE_LABELS,
    normalize_citations,
    parse_inline_citations,
    source_label,
)
from .decoder import FrameDecoder
from .models import ExtractedPayload, InlineCitation, SessionState, SSEEvent, SSEEventType
from .parser import EventParser, PayloadExtractor, extract_error_message, extract_text
from .session import StreamSession

__all__ = [
    "DEFAULT_SOURCE_LABELS",
    "EventParser",
    "ExtractedPayload",
    "FrameDecoder",
    "InlineCitation",
    "PayloadExtractor",
    "SSEEvent",
    "SSEEventType",
    "SessionState",
    "StreamSession",
    "extract_error_message",
    "extract_text",
    "normalize_citations",
    "parse_inline_citations",
    "source_label",
]
