"""Word timeline normalization: provider transcript → Word records in seconds.

WHY: The provider reports word timings in integer milliseconds, while every
other part of the package (segmenter, editor, renderer) works in float
seconds. This module is the single place where that conversion happens.

HOW: Checks the transcript's status, then converts each provider word into
a Word with start_ms / 1000.0 and end_ms / 1000.0. Order and cardinality
are preserved; nothing is merged, dropped, or re-grouped here.

RULES:
- Terminal "error" status → TranscriptionError with the provider's text verbatim
- Non-terminal status ("queued"/"processing") → TranscriptNotReadyError;
  polling belongs to the API client
- A completed transcript with no words yields an empty list
- Confidence is passed through unchanged
"""

from __future__ import annotations

import math
from typing import List

from caption_studio.api.models import TranscriptResponse
from caption_studio.core.errors import TranscriptionError, TranscriptNotReadyError
from caption_studio.core.models import Word


def normalize_words(transcript: TranscriptResponse) -> List[Word]:
    """Convert a completed provider transcript into Word records in seconds.

    Args:
        transcript: Parsed provider response (see TranscriptResponse.from_dict).

    Returns:
        One Word per provider word, same order.

    Raises:
        TranscriptionError: If the provider reported status "error".
        TranscriptNotReadyError: If the transcript is still queued/processing.
    """
    if transcript.status == "error":
        raise TranscriptionError(transcript.error or "Transcription failed")

    if transcript.status != "completed":
        raise TranscriptNotReadyError(
            "Transcript {} is not completed (status: {}); poll until it "
            "reaches a terminal state".format(transcript.id, transcript.status)
        )

    if not transcript.words:
        return []

    return [
        Word(
            text=w.text,
            start=w.start / 1000.0,
            end=w.end / 1000.0,
            confidence=w.confidence,
        )
        for w in transcript.words
    ]


def average_confidence(words: List[Word]) -> float:
    """Mean word confidence as a percentage, rounded half-up to 2 decimals.

    Returns 0 for an empty list, e.g. [0.9, 0.95] → 92.5.
    """
    if not words:
        return 0.0
    mean = sum(w.confidence for w in words) / len(words)
    return math.floor(mean * 10000 + 0.5) / 100
