#!/usr/bin/env python3
"""
Tests for the streaming transcript text sink.
"""

from astra.transcript import (
    StreamingTranscript,
    StringBuilder,
    TranscriptSnapshot,
    TranscriptUpdate,
)


def test_string_builder():
    builder = StringBuilder()
    builder.append("Hel")
    builder.append("lo")
    assert builder.get_value() == "Hello"
    builder.clear()
    assert builder.get_value() == ""
    builder.append("again")
    assert builder.get_value() == "again"


class TestStreamingTranscript:
    """Test transcript accumulation and notifications."""

    def test_appends_in_order(self):
        transcript = StreamingTranscript()
        transcript.enable()
        for delta in ["Atrial ", "fibrillation ", "is..."]:
            transcript.append(delta)
        assert transcript.text == "Atrial fibrillation is..."
        assert transcript.is_streaming

    def test_ignored_until_enabled(self):
        transcript = StreamingTranscript()
        transcript.append("early")
        assert transcript.text == ""

    def test_empty_deltas_do_not_notify(self):
        transcript = StreamingTranscript()
        seen = []
        transcript.enable()
        transcript.subscribe(seen.append)
        transcript.append("")
        assert seen == []

    def test_finish_keeps_text(self):
        transcript = StreamingTranscript()
        transcript.enable()
        transcript.append("done")
        transcript.finish()
        transcript.append("late")
        assert transcript.snapshot() == TranscriptSnapshot(text="done", is_streaming=False)

    def test_reset_clears_text(self):
        transcript = StreamingTranscript()
        transcript.enable()
        transcript.append("old answer")
        transcript.reset()
        assert transcript.snapshot() == TranscriptSnapshot(text="", is_streaming=False)

    def test_listeners_see_every_change(self):
        transcript = StreamingTranscript()
        seen: list[TranscriptUpdate] = []
        unsubscribe = transcript.subscribe(seen.append)

        transcript.enable()
        transcript.append("a")
        transcript.append("b")
        transcript.finish()
        transcript.reset()
        unsubscribe()
        transcript.enable()

        assert seen == [
            TranscriptUpdate("", True),
            TranscriptUpdate("a", True),
            TranscriptUpdate("b", True),
            TranscriptUpdate("", False),
            TranscriptUpdate("", False, cleared=True),
        ]
        unsubscribe()

    def test_deltas_rebuild_the_full_text(self):
        transcript = StreamingTranscript()
        received = []
        transcript.subscribe(lambda update: received.append(update.delta))
        transcript.enable()
        for delta in ["Rate ", "control ", "first"]:
            transcript.append(delta)

        assert "".join(received) == transcript.text == "Rate control first"

    def test_failing_listener_does_not_stop_others(self):
        transcript = StreamingTranscript()
        seen = []

        def broken(_update):
            raise RuntimeError("render failed")

        transcript.subscribe(broken)
        transcript.subscribe(seen.append)
        transcript.enable()
        transcript.append("x")

        assert [update.delta for update in seen] == ["", "x"]
