"""
Accumulating text sink for a streamed answer.

A StreamingTranscript collects deltas for the turn being answered and passes
each change on to subscribers as a delta, so a view can render incrementally.
"""

from __future__ import annotations

import io
from collections.abc import Callable
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)


class StringBuilder:
    """Append-only text buffer backed by StringIO."""

    def __init__(self):
        self._buffer = io.StringIO()

    def append(self, text: str) -> None:
        self._buffer.write(text)

    def get_value(self) -> str:
        return self._buffer.getvalue()

    def clear(self) -> None:
        self._buffer.seek(0)
        self._buffer.truncate(0)


@dataclass(frozen=True)
class TranscriptSnapshot:
    """Full transcript state, built on demand."""
    text: str
    is_streaming: bool


@dataclass(frozen=True)
class TranscriptUpdate:
    """What listeners see after each change: only the newly appended text."""
    delta: str
    is_streaming: bool
    cleared: bool = False


Listener = Callable[[TranscriptUpdate], None]


class StreamingTranscript:
    """Text of the answer currently being streamed."""

    def __init__(self):
        self._builder = StringBuilder()
        self._enabled = False
        self._streaming = False
        self._listeners: list[Listener] = []

    @property
    def text(self) -> str:
        return self._builder.get_value()

    @property
    def is_streaming(self) -> bool:
        return self._streaming

    def enable(self) -> None:
        """Start accepting deltas for a new answer."""
        self._enabled = True
        self._streaming = True
        self._notify(TranscriptUpdate(delta="", is_streaming=True))

    def append(self, text: str) -> None:
        """Text sink: ignores empty deltas and deltas while disabled."""
        if not text or not self._enabled:
            return
        self._builder.append(text)
        self._notify(TranscriptUpdate(delta=text, is_streaming=self._streaming))

    def finish(self) -> None:
        """Stop streaming but keep the text."""
        self._enabled = False
        self._streaming = False
        self._notify(TranscriptUpdate(delta="", is_streaming=False))

    def reset(self) -> None:
        self._enabled = False
        self._streaming = False
        self._builder.clear()
        self._notify(TranscriptUpdate(delta="", is_streaming=False, cleared=True))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> TranscriptSnapshot:
        return TranscriptSnapshot(text=self.text, is_streaming=self._streaming)

    def _notify(self, update: TranscriptUpdate) -> None:
        for listener in list(self._listeners):
            try:
                listener(update)
            except Exception as e:
                logger.warning(
                    "Transcript listener failed",
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
