#!/usr/bin/env python3
"""
Tests for payload extraction: text delta shapes, citations and error bodies.
"""

import json

import pytest

from astra.client.streaming.parser import (
    PayloadExtractor,
    extract_error_message,
    extract_text,
)


class TestExtractText:
    """Test text delta probing order."""

    def test_delta_content(self):
        assert extract_text({"choices": [{"delta": {"content": "Hel"}}]}) == "Hel"

    def test_message_content(self):
        assert extract_text({"choices": [{"message": {"content": "Full"}}]}) == "Full"

    def test_top_level_content_and_text(self):
        assert extract_text({"content": "c"}) == "c"
        assert extract_text({"text": "t"}) == "t"

    def test_priority_order(self):
        data = {
            "choices": [{"delta": {"content": "delta"}, "message": {"content": "message"}}],
            "content": "content",
            "text": "text",
        }
        assert extract_text(data) == "delta"

        data["choices"][0]["delta"] = {}
        assert extract_text(data) == "message"

        del data["choices"]
        assert extract_text(data) == "content"

        data["content"] = ""
        assert extract_text(data) == "text"

    def test_empty_values_fall_through(self):
        data = {"choices": [{"delta": {"content": ""}}], "text": "fallback"}
        assert extract_text(data) == "fallback"

    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"choices": []},
            {"choices": "nope"},
            {"choices": [None]},
            {"choices": [{"delta": "x"}]},
            {"choices": [{"delta": {"content": 5}}]},
            {"content": {"nested": True}},
            {"text": None},
            ["not", "a", "mapping"],
            "plain string",
        ],
    )
    def test_unrecognized_shapes_yield_nothing(self, data):
        assert extract_text(data) is None


class TestPayloadExtractor:
    """Test PayloadExtractor over raw payload strings."""

    def test_malformed_json_is_skipped(self):
        extractor = PayloadExtractor()
        assert extractor.extract("{not json") is None
        assert extractor.get_stats()["malformed_payloads"] == 1

    @pytest.mark.parametrize(
        "payload",
        [
            pytest.param('{"n": 1' + "0" * 5000 + "}", id="oversized-int"),
            pytest.param("[" * 100000 + "]" * 100000, id="deeply-nested"),
        ],
    )
    def test_oversized_or_deeply_nested_json_is_skipped(self, payload):
        extractor = PayloadExtractor()
        assert extractor.extract(payload) is None
        assert extractor.get_stats()["malformed_payloads"] == 1

    def test_non_object_json(self):
        extracted = PayloadExtractor().extract("[1, 2, 3]", want_citations=True)
        assert extracted.text is None
        assert extracted.citations is None

    def test_text_only(self):
        extracted = PayloadExtractor().extract('{"text": "hi"}')
        assert extracted.text == "hi"
        assert extracted.citations is None

    def test_citations_ignored_when_not_wanted(self):
        payload = json.dumps({"citations": ["https://pubmed.ncbi.nlm.nih.gov/1"]})
        extracted = PayloadExtractor().extract(payload, want_citations=False)
        assert extracted.citations is None

    def test_citations_and_text_in_one_event(self):
        payload = json.dumps({
            "citations": ["https://pubmed.ncbi.nlm.nih.gov/123"],
            "choices": [{"delta": {"content": "Answer"}}],
        })
        extracted = PayloadExtractor().extract(payload, want_citations=True)
        assert extracted.text == "Answer"
        assert [c.number for c in extracted.citations] == [1]

    def test_citations_field_not_a_list(self):
        payload = json.dumps({"citations": "https://example.com"})
        extracted = PayloadExtractor().extract(payload, want_citations=True)
        assert extracted.citations is None

    def test_custom_source_labels(self):
        payload = json.dumps({"citations": ["https://uptodate.com/x"]})
        extracted = PayloadExtractor({"uptodate": "UpToDate"}).extract(
            payload, want_citations=True
        )
        assert extracted.citations[0].title == "UpToDate"


class TestExtractErrorMessage:
    """Test error body message extraction."""

    def test_nested_error_message(self):
        assert extract_error_message(b'{"error":{"message":"overloaded"}}') == "overloaded"

    def test_string_error(self):
        assert extract_error_message('{"error":"quota exceeded"}') == "quota exceeded"

    def test_top_level_message(self):
        assert extract_error_message(b'{"message":"bad key"}') == "bad key"

    @pytest.mark.parametrize(
        "body",
        [
            b"",
            b"<html>502</html>",
            b'{"error":{}}',
            b"[]",
            b'{"error":{"message":""}}',
            b"\xff\xfe",
            pytest.param(b"[" * 100000 + b"]" * 100000, id="deeply-nested"),
            pytest.param(b'{"code": 1' + b"0" * 5000 + b"}", id="oversized-int"),
        ],
    )
    def test_no_message(self, body):
        assert extract_error_message(body) is None
