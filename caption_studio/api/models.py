"""AssemblyAI API response dataclasses.

WHY: The provider returns flat JSON objects for the transcript status and
its words. Typed dataclasses make these structures explicit and catch
field mismatches at the boundary instead of deep inside the segmenter.

HOW: Each dataclass maps 1:1 to a provider JSON object. Factory methods
(from_dict) handle parsing from raw API responses. Fields only present in
some states (words, text, error) are Optional.

RULES:
- ProviderWord start/end are integer milliseconds, exactly as received
- status is one of: "queued", "processing", "completed", "error"
- words is None until the transcript is completed
- error is only present when status is "error"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

TERMINAL_STATUSES = frozenset({"completed", "error"})
PENDING_STATUSES = frozenset({"queued", "processing"})


@dataclass
class ProviderWord:
    """A single word from the provider transcript.

    RULES:
    - text: the word as recognized, punctuation attached
    - start/end: integer milliseconds from the start of the media
    - confidence: float 0.0 to 1.0
    - speaker: label when speaker labels are enabled, else None
    """

    text: str
    start: int
    end: int
    confidence: float
    speaker: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> ProviderWord:
        return cls(
            text=data["text"],
            start=int(data["start"]),
            end=int(data["end"]),
            confidence=float(data["confidence"]),
            speaker=data.get("speaker"),
        )


@dataclass
class TranscriptResponse:
    """Response from GET /v2/transcript/{id}.

    WHY: The same endpoint serves both polling (status only) and the final
    result (text + words), so one dataclass covers both.

    RULES:
    - id and status are always required
    - text/words are None until status is "completed"
    - error carries the provider's message when status is "error"
    - audio_duration is in seconds when reported
    """

    id: str
    status: str
    text: Optional[str] = None
    words: Optional[List[ProviderWord]] = None
    error: Optional[str] = None
    audio_duration: Optional[float] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_pending(self) -> bool:
        return self.status in PENDING_STATUSES

    @classmethod
    def from_dict(cls, data: dict) -> TranscriptResponse:
        raw_words = data.get("words")
        return cls(
            id=data["id"],
            status=data["status"],
            text=data.get("text"),
            words=[ProviderWord.from_dict(w) for w in raw_words] if raw_words is not None else None,
            error=data.get("error"),
            audio_duration=data.get("audio_duration"),
        )
