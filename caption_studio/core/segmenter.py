"""Cue segmentation: raw word grouping and words-per-cue splitting.

WHY: A transcript is a flat timeline of words. Viewers read short cues, and
editors want to change "words per cue" with a slider and see the captions
re-flow instantly. Two passes produce this:
  1. group_words() builds "raw" subtitles from the provider words, breaking
     on a word budget, a duration budget, and silent gaps.
  2. split_subtitles() re-segments each raw subtitle into cues of at most
     N words, also breaking after sentence-ending punctuation.
The raw subtitles are kept, and split_subtitles() is re-run on them for
every new N, so re-segmentation never compounds.

HOW: Both passes walk words in order with a pending bucket and flush it into
a Subtitle whose start/end/text are derived from the bucket.

RULES:
- Flush after appending a word when the bucket holds max_words_per_cue words
  OR the word's text ends with ".", "!" or "?" (one flush when both hold)
- Cue id: "{source id, or source start}-{chunk index}", chunk index per source
- Trailing partial buckets are flushed, never dropped
- A source without word detail (words is None) passes through as "{id}-0"
- A source with an empty word list produces no cues
- max_words_per_cue must be an int >= 1, else SegmentationError
- Pure: identical inputs always give identical output
"""

from __future__ import annotations

import dataclasses
import re
from typing import List, Optional

from caption_studio.config import (
    DEFAULT_MAX_WORDS_PER_CUE,
    RAW_MAX_DURATION_S,
    RAW_MAX_GAP_S,
    RAW_MAX_WORDS,
)
from caption_studio.core.errors import SegmentationError
from caption_studio.core.models import Subtitle, Word, join_word_text

# A word whose own text ends with one of these closes the current cue.
_SENTENCE_END_RE = re.compile(r"[.!?]$")


def ends_sentence(text: str) -> bool:
    """True if the word text ends with sentence punctuation (. ! ?)."""
    return bool(_SENTENCE_END_RE.search(text))


def _validate_max_words(max_words_per_cue: int) -> None:
    if isinstance(max_words_per_cue, bool) or not isinstance(max_words_per_cue, int):
        raise SegmentationError(
            "max_words_per_cue must be an integer, got {!r}".format(max_words_per_cue)
        )
    if max_words_per_cue < 1:
        raise SegmentationError(
            "max_words_per_cue must be >= 1, got {}".format(max_words_per_cue)
        )


def _format_prefix(value: float) -> str:
    """Id prefix for a source without id: 2.0 → "2", 0.4 → "0.4"."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _source_prefix(source: Subtitle) -> str:
    if source.id is not None:
        return source.id
    return _format_prefix(source.start)


def _copy_style(source: Subtitle) -> Optional[dict]:
    return dict(source.style) if source.style is not None else None


def _split_source(source: Subtitle, max_words_per_cue: int) -> List[Subtitle]:
    """Re-segment one source subtitle. Assumes max_words_per_cue is valid."""
    if source.words is None:
        passthrough_id = "{}-0".format(source.id if source.id is not None else "")
        return [dataclasses.replace(source, id=passthrough_id, style=_copy_style(source))]

    prefix = _source_prefix(source)
    cues: List[Subtitle] = []
    bucket: List[Word] = []

    def _flush() -> None:
        nonlocal bucket
        if not bucket:
            return
        cues.append(dataclasses.replace(
            source,
            id="{}-{}".format(prefix, len(cues)),
            start=bucket[0].start,
            end=bucket[-1].end,
            text=join_word_text(bucket),
            words=bucket,
            style=_copy_style(source),
        ))
        bucket = []

    for word in source.words:
        bucket.append(word)
        if len(bucket) == max_words_per_cue or ends_sentence(word.text):
            _flush()

    _flush()
    return cues


def split_subtitles(
    subtitles: List[Subtitle],
    max_words_per_cue: int = DEFAULT_MAX_WORDS_PER_CUE,
) -> List[Subtitle]:
    """Re-segment pre-grouped subtitles into cues of at most N words.

    Each source subtitle is split independently; output order follows the
    source order. Sources are never modified.

    Args:
        subtitles: Raw (pre-grouped) subtitles, usually from group_words().
        max_words_per_cue: Word budget per cue (>= 1).

    Returns:
        The display cues.

    Raises:
        SegmentationError: If max_words_per_cue is not an int >= 1.
    """
    _validate_max_words(max_words_per_cue)
    cues: List[Subtitle] = []
    for source in subtitles:
        cues.extend(_split_source(source, max_words_per_cue))
    return cues


def segment(
    words: List[Word],
    max_words_per_cue: int,
    source_id: Optional[str] = None,
) -> List[Subtitle]:
    """Segment one flat word sequence into cues.

    The word sequence is treated as a single source group. Without a
    source_id, cue ids are prefixed with the first word's start time.
    An empty word list yields no cues.
    """
    _validate_max_words(max_words_per_cue)
    if not words:
        return []
    source = Subtitle(
        id=source_id,
        text=join_word_text(words),
        start=words[0].start,
        end=words[-1].end,
        words=list(words),
    )
    return _split_source(source, max_words_per_cue)


def group_words(
    words: List[Word],
    max_words: int = RAW_MAX_WORDS,
    max_duration_s: float = RAW_MAX_DURATION_S,
    max_gap_s: float = RAW_MAX_GAP_S,
) -> List[Subtitle]:
    """Group normalized words into raw subtitles.

    WHY: The provider gives no sentence or pause structure. Raw subtitles
    approximate it so that the words-per-cue split never joins words across
    a long silence or an overly long stretch of speech.

    HOW: Walk the words; open a new group at a word when there is no open
    group, the open group already has max_words words, the word would
    stretch the group beyond max_duration_s, or the silence since the
    group's end exceeds max_gap_s.

    RULES:
    - Group id is "subtitle-{i}", i = input index of the group's first word
    - start/end/text derive from the group's words
    - Empty input yields an empty list
    """
    if max_words < 1:
        raise SegmentationError("max_words must be >= 1, got {}".format(max_words))

    groups: List[Subtitle] = []
    current: List[Word] = []
    current_index = 0

    def _close() -> None:
        if current:
            groups.append(Subtitle(
                id="subtitle-{}".format(current_index),
                text=join_word_text(current),
                start=current[0].start,
                end=current[-1].end,
                words=list(current),
            ))

    for index, word in enumerate(words):
        starts_new = (
            not current
            or len(current) >= max_words
            or word.end - current[0].start > max_duration_s
            or word.start - current[-1].end > max_gap_s
        )
        if starts_new:
            _close()
            current = [word]
            current_index = index
        else:
            current.append(word)

    _close()
    return groups
