"""
Event parsing and payload extraction for the answer stream.

Lines become events, events become text deltas and citation lists. Nothing in
this module raises on bad input: a malformed event is counted, logged at debug
level and skipped so one bad frame never aborts a healthy stream.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import structlog

from .citations import DEFAULT_SOURCE_LABELS, normalize_citations
from .models import ExtractedPayload, SSEEvent, SSEEventType

logger = structlog.get_logger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class EventParser:
    """Classify complete lines as data events, the terminator, or noise."""

    def __init__(self, prefix: str = DATA_PREFIX, sentinel: str = DONE_SENTINEL):
        self.prefix = prefix
        self.sentinel = sentinel
        self.stats = {
            'total_events': 0,
            'skipped_lines': 0,
            'empty_payloads': 0,
        }

    def parse(self, line: str) -> SSEEvent | None:
        """
        Parse one line.

        Returns None for comments, keep-alives, other SSE fields and data
        events with an empty payload.
        """
        stripped = line.strip()
        if not stripped.startswith(self.prefix):
            if stripped:
                self.stats['skipped_lines'] += 1
            return None

        payload = stripped[len(self.prefix):].strip()

        if payload == self.sentinel:
            self.stats['total_events'] += 1
            return SSEEvent(event_type=SSEEventType.COMPLETION)

        if not payload:
            self.stats['empty_payloads'] += 1
            return None

        self.stats['total_events'] += 1
        return SSEEvent(event_type=SSEEventType.CHUNK, payload=payload)

    def get_stats(self) -> dict[str, int]:
        """Get parsing statistics for monitoring."""
        return self.stats.copy()

    def reset_stats(self) -> None:
        """Reset statistics counters."""
        self.stats = {
            'total_events': 0,
            'skipped_lines': 0,
            'empty_payloads': 0,
        }


class PayloadExtractor:
    """Pull text deltas and citation lists out of JSON event payloads."""

    def __init__(self, source_labels: Mapping[str, str] | None = None):
        self.source_labels = (
            DEFAULT_SOURCE_LABELS if source_labels is None else source_labels
        )
        self.stats = {
            'malformed_payloads': 0,
            'content_events': 0,
            'citation_events': 0,
        }

    def extract(
        self, payload: str, *, want_citations: bool = False
    ) -> ExtractedPayload | None:
        """
        Parse a payload and extract what it carries.

        Returns None when the payload is not valid JSON.
        """
        # ValueError also covers integer literals over the int digit limit
        try:
            data = json.loads(payload)
        except (ValueError, RecursionError) as e:
            self.stats['malformed_payloads'] += 1
            logger.debug("Skipping malformed event payload", error=str(e))
            return None

        if not isinstance(data, Mapping):
            return ExtractedPayload()

        citations = None
        if want_citations:
            raw = data.get("citations")
            if isinstance(raw, list):
                citations = normalize_citations(raw, self.source_labels)
                self.stats['citation_events'] += 1

        text = extract_text(data)
        if text is not None:
            self.stats['content_events'] += 1

        return ExtractedPayload(text=text, citations=citations)

    def get_stats(self) -> dict[str, int]:
        return self.stats.copy()


def extract_text(data: Any) -> str | None:
    """
    Return the answer text carried by a response object.

    Shapes are tried in priority order: choices[0].delta.content,
    choices[0].message.content, content, text. The first non-empty string wins.
    """
    if not isinstance(data, Mapping):
        return None

    candidates: list[Any] = []
    choice = _first_choice(data)
    if choice is not None:
        candidates.append(_nested_content(choice, "delta"))
        candidates.append(_nested_content(choice, "message"))
    candidates.append(data.get("content"))
    candidates.append(data.get("text"))

    for candidate in candidates:
        if isinstance(candidate, str) and candidate:
            return candidate
    return None


def extract_error_message(body: bytes | str) -> str | None:
    """Find a human-readable message in an error response body."""
    try:
        data = json.loads(body)
    except (ValueError, RecursionError):
        return None
    if not isinstance(data, Mapping):
        return None

    error = data.get("error")
    if isinstance(error, Mapping):
        message = error.get("message")
        if isinstance(message, str) and message:
            return message
    if isinstance(error, str) and error:
        return error

    message = data.get("message")
    if isinstance(message, str) and message:
        return message
    return None


def _first_choice(data: Mapping[str, Any]) -> Mapping[str, Any] | None:
    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], Mapping):
        return choices[0]
    return None


def _nested_content(choice: Mapping[str, Any], key: str) -> Any:
    part = choice.get(key)
    if isinstance(part, Mapping):
        return part.get("content")
    return None
