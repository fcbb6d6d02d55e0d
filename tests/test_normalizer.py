"""Tests for provider response parsing and word normalization.

WHY: Every downstream time is in seconds; a wrong conversion here shifts
every cue. Terminal errors must surface the provider's text verbatim.
"""

from __future__ import annotations

import pytest

from caption_studio.api.models import TranscriptResponse
from caption_studio.core.errors import TranscriptionError, TranscriptNotReadyError
from caption_studio.core.normalizer import average_confidence, normalize_words
from caption_studio.core.models import Word


# ---------------------------------------------------------------------------
# TranscriptResponse.from_dict
# ---------------------------------------------------------------------------


class TestTranscriptResponse:

    def test_parses_completed_payload(self, bonjour_payload):
        transcript = TranscriptResponse.from_dict(bonjour_payload)
        assert transcript.id == "tr-123"
        assert transcript.status == "completed"
        assert transcript.is_terminal
        assert len(transcript.words) == 4
        assert transcript.words[0].start == 0
        assert transcript.words[3].end == 1100
        assert transcript.audio_duration == 4.0

    def test_queued_payload_has_no_words(self):
        transcript = TranscriptResponse.from_dict({"id": "x", "status": "queued"})
        assert transcript.words is None
        assert transcript.text is None
        assert not transcript.is_terminal
        assert transcript.is_pending

    def test_error_payload_keeps_message(self):
        transcript = TranscriptResponse.from_dict(
            {"id": "x", "status": "error", "error": "Audio file is empty"}
        )
        assert transcript.is_terminal
        assert transcript.error == "Audio file is empty"


# ---------------------------------------------------------------------------
# normalize_words
# ---------------------------------------------------------------------------


class TestNormalizeWords:

    def test_converts_milliseconds_to_seconds(self, bonjour_transcript, bonjour_words):
        assert normalize_words(bonjour_transcript) == bonjour_words

    def test_preserves_order_and_cardinality(self, bonjour_transcript):
        words = normalize_words(bonjour_transcript)
        assert [w.text for w in words] == ["Bonjour", "le", "monde", "!"]

    def test_confidence_passed_through(self, bonjour_transcript):
        words = normalize_words(bonjour_transcript)
        assert [w.confidence for w in words] == [0.95, 0.9, 0.98, 0.99]

    def test_completed_without_words_is_empty(self):
        transcript = TranscriptResponse(id="x", status="completed", words=None)
        assert normalize_words(transcript) == []

    def test_error_status_raises_provider_message_verbatim(self):
        transcript = TranscriptResponse(id="x", status="error", error="Unsupported codec: xyz")
        with pytest.raises(TranscriptionError) as excinfo:
            normalize_words(transcript)
        assert str(excinfo.value) == "Unsupported codec: xyz"

    def test_error_without_message_uses_generic_text(self):
        with pytest.raises(TranscriptionError, match="Transcription failed"):
            normalize_words(TranscriptResponse(id="x", status="error"))

    @pytest.mark.parametrize("status", ["queued", "processing"])
    def test_pending_status_is_not_ready(self, status):
        with pytest.raises(TranscriptNotReadyError, match=status):
            normalize_words(TranscriptResponse(id="x", status=status))


# ---------------------------------------------------------------------------
# average_confidence
# ---------------------------------------------------------------------------


class TestAverageConfidence:

    def test_empty_is_zero(self):
        assert average_confidence([]) == 0.0

    def test_percentage_with_two_decimals(self):
        words = [
            Word(text="a", start=0.0, end=0.1, confidence=0.9),
            Word(text="b", start=0.1, end=0.2, confidence=0.95),
        ]
        assert average_confidence(words) == 92.5

    def test_rounds_to_two_decimals(self, bonjour_words):
        # mean of 0.95, 0.9, 0.98, 0.99 = 0.955
        assert average_confidence(bonjour_words) == 95.5

    def test_rounds_half_up(self):
        words = [Word(text="a", start=0.0, end=0.1, confidence=0.123456)]
        assert average_confidence(words) == 12.35
