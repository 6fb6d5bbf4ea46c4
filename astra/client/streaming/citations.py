"""
Citation normalization.

The backend sends citations in one of two shapes:
- a list of records: {"number": 1, "title": ..., "url": ..., "authors": ...}
- a list of bare URL strings, numbered by position

Both are turned into a canonical list of `Citation` models. Candidates that do
not validate are dropped; the rest of the list is still used.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlsplit

import structlog
from pydantic import ValidationError

from ..models import Citation
from .models import InlineCitation

logger = structlog.get_logger(__name__)

# Host fragment -> display name, first match wins
DEFAULT_SOURCE_LABELS: dict[str, str] = {
    "pubmed": "PubMed",
    "pmc": "PMC Article",
    "dynamed": "DynaMed",
    "heart.org": "American Heart Association",
    "wikipedia": "Wikipedia",
}

UNKNOWN_AUTHORS = "Unknown"
FALLBACK_TITLE = "External Link"

_INLINE_MARKER = re.compile(r"\[(\d+)\]")


def url_host(url: Any) -> str | None:
    """Host of an absolute URL, or None when `url` is not one."""
    if not isinstance(url, str):
        return None
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    if not parts.scheme:
        return None
    return parts.hostname or None


def source_label(
    url: str, source_labels: Mapping[str, str] = DEFAULT_SOURCE_LABELS
) -> str:
    """Short display name for the site a URL points at."""
    host = url_host(url)
    if not host:
        return FALLBACK_TITLE
    for fragment, label in source_labels.items():
        if fragment in host:
            return label
    return host


def normalize_citations(
    raw: list[Any],
    source_labels: Mapping[str, str] = DEFAULT_SOURCE_LABELS,
) -> list[Citation]:
    """Convert a raw `citations` list into canonical citations."""
    if not raw:
        return []
    if all(isinstance(item, str) for item in raw):
        return _from_urls(raw, source_labels)
    return _from_records(raw)


def _from_urls(
    urls: list[str], source_labels: Mapping[str, str]
) -> list[Citation]:
    citations: list[Citation] = []
    for number, url in enumerate(urls, start=1):
        host = url_host(url)
        if host is None:
            logger.debug("Dropping citation with invalid URL", position=number)
            continue
        citations.append(
            Citation(
                number=number,
                title=source_label(url, source_labels),
                url=url,
                authors=host,
            )
        )
    return citations


def _from_records(records: list[Any]) -> list[Citation]:
    citations: list[Citation] = []
    seen: set[int] = set()

    for record in records:
        citation = _record_to_citation(record)
        if citation is None:
            continue
        if citation.number in seen:
            logger.debug("Dropping duplicate citation", number=citation.number)
            continue
        seen.add(citation.number)
        citations.append(citation)

    return citations


def _record_to_citation(record: Any) -> Citation | None:
    if not isinstance(record, Mapping):
        return None

    number = _coerce_number(record.get("number"))
    if number is None:
        return None

    url = record.get("url")
    authors = record.get("authors")
    if not isinstance(authors, str) or not authors:
        authors = url_host(url) or UNKNOWN_AUTHORS

    try:
        return Citation.model_validate(
            {
                "number": number,
                "title": record.get("title"),
                "url": url,
                "authors": authors,
            }
        )
    except ValidationError as e:
        logger.debug(
            "Dropping malformed citation record",
            number=number,
            error_count=e.error_count(),
        )
        return None


def _coerce_number(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdecimal():
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def parse_inline_citations(
    text: str, citations: Iterable[Citation]
) -> list[InlineCitation]:
    """Locate `[n]` markers in answer text that refer to a known citation."""
    known = {citation.number for citation in citations}
    return [
        InlineCitation(
            source_number=int(match.group(1)),
            start=match.start(),
            end=match.end(),
        )
        for match in _INLINE_MARKER.finditer(text)
        if int(match.group(1)) in known
    ]
