"""
Core answer-stream models.

This module provides the value types shared by the client and the streaming
pipeline:
- Query modes and the outbound query description
- The transport-level request
- Citations captured from the stream
- Terminal stream outcomes
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PositiveInt

from astra.exceptions import StreamError


class QueryMode(Enum):
    """Backend answer modes."""
    SEARCH = "search"
    REASON = "reason"
    WRITE = "write"


class Citation(BaseModel):
    """A numbered source reference attached to an answer."""
    model_config = ConfigDict(frozen=True)

    number: PositiveInt
    title: str = Field(min_length=1)
    url: str = Field(min_length=1)
    authors: str = ""


@dataclass(frozen=True)
class StreamQuery:
    """One user question plus the mode flags sent with it."""
    query: str
    is_clinical: bool = False
    is_reason: bool = False
    is_write: bool = False
    collect_citations: bool | None = None

    @property
    def mode(self) -> QueryMode:
        if self.is_reason:
            return QueryMode.REASON
        if self.is_write:
            return QueryMode.WRITE
        return QueryMode.SEARCH

    @property
    def should_collect_citations(self) -> bool:
        """Citations are only produced by the search backend unless overridden."""
        if self.collect_citations is not None:
            return self.collect_citations
        return self.mode is QueryMode.SEARCH

    def to_payload(self, stream: bool) -> dict[str, Any]:
        return {
            "query": self.query,
            "isClinical": self.is_clinical,
            "isReason": self.is_reason,
            "isWrite": self.is_write,
            "mode": self.mode.value,
            "stream": stream,
        }


@dataclass(frozen=True)
class StreamRequest:
    """Fully built outbound request handed to a transport."""
    url: str
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Completed:
    """Stream finished normally."""
    citations: list[Citation] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed:
    """Stream failed; `cause` says why."""
    cause: StreamError

    @property
    def success(self) -> bool:
        return False


StreamOutcome = Completed | Failed
