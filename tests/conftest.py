"""Shared test fixtures for the caption_studio test suite.

WHY: Several test modules need the same provider payload and the same
normalized words. Centralizing them here keeps every module on one
authoritative sample.

HOW: Pytest fixtures provide the raw AssemblyAI transcript dict, the
parsed TranscriptResponse, the normalized Word list, and a small cue list
in the segment view.

RULES:
- BONJOUR_WORDS is the "Bonjour le monde !" scenario, in provider milliseconds
- SENTENCE_WORDS spans two sentences and a long pause (raw grouping cases)
"""

from typing import Any, Dict, List

import pytest

from caption_studio.api.models import TranscriptResponse
from caption_studio.core.models import Subtitle, Word


# ---------------------------------------------------------------------------
# Provider samples (integer milliseconds)
# ---------------------------------------------------------------------------

BONJOUR_WORDS: List[Dict[str, Any]] = [
    {"text": "Bonjour", "start": 0,    "end": 400,  "confidence": 0.95},
    {"text": "le",      "start": 400,  "end": 550,  "confidence": 0.90},
    {"text": "monde",   "start": 550,  "end": 1000, "confidence": 0.98},
    {"text": "!",       "start": 1000, "end": 1100, "confidence": 0.99},
]

SENTENCE_WORDS: List[Dict[str, Any]] = [
    {"text": "Hello",   "start": 100,  "end": 400,  "confidence": 0.97},
    {"text": "world.",  "start": 420,  "end": 800,  "confidence": 0.95},
    {"text": "This",    "start": 900,  "end": 1100, "confidence": 0.92},
    {"text": "is",      "start": 1120, "end": 1250, "confidence": 0.93},
    {"text": "a",       "start": 1260, "end": 1300, "confidence": 0.90},
    {"text": "test",    "start": 1310, "end": 1700, "confidence": 0.96},
    # 1.5 s of silence
    {"text": "After",   "start": 3200, "end": 3500, "confidence": 0.94},
    {"text": "pause?",  "start": 3520, "end": 3900, "confidence": 0.91},
]


def completed_payload(words: List[Dict[str, Any]], transcript_id: str = "tr-123") -> Dict[str, Any]:
    """A GET /transcript/{id} body with status 'completed'."""
    return {
        "id": transcript_id,
        "status": "completed",
        "text": " ".join(w["text"] for w in words),
        "words": [dict(w) for w in words],
        "audio_duration": 4.0,
    }


@pytest.fixture
def bonjour_payload() -> Dict[str, Any]:
    return completed_payload(BONJOUR_WORDS)


@pytest.fixture
def bonjour_transcript(bonjour_payload) -> TranscriptResponse:
    return TranscriptResponse.from_dict(bonjour_payload)


@pytest.fixture
def bonjour_words() -> List[Word]:
    """BONJOUR_WORDS normalized to seconds."""
    return [
        Word(text="Bonjour", start=0.0, end=0.4, confidence=0.95),
        Word(text="le", start=0.4, end=0.55, confidence=0.9),
        Word(text="monde", start=0.55, end=1.0, confidence=0.98),
        Word(text="!", start=1.0, end=1.1, confidence=0.99),
    ]


@pytest.fixture
def sentence_words() -> List[Word]:
    return [
        Word(text=w["text"], start=w["start"] / 1000.0, end=w["end"] / 1000.0,
             confidence=w["confidence"])
        for w in SENTENCE_WORDS
    ]


def _make_words(*texts: str, step: float = 0.5) -> List[Word]:
    """Evenly spaced words, e.g. make_words("a", "b") -> a@0.0-0.5, b@0.5-1.0."""
    return [
        Word(text=t, start=i * step, end=(i + 1) * step, confidence=0.9)
        for i, t in enumerate(texts)
    ]


@pytest.fixture
def two_cues() -> List[Subtitle]:
    """Two cues with word detail, ids "c-0" and "c-1"."""
    first = _make_words("Hello", "big")
    second = [
        Word(text="world", start=1.0, end=1.5, confidence=0.9),
        Word(text="again", start=1.5, end=2.0, confidence=0.8),
    ]
    return [
        Subtitle(id="c-0", text="Hello big", start=0.0, end=1.0, words=first),
        Subtitle(id="c-1", text="world again", start=1.0, end=2.0, words=second),
    ]
