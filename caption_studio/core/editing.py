"""Pure editor operations on cues.

WHY: Caption editors change single words (text, color, timing), insert and
delete words, retime cues, and delete whole cues. Every such edit must keep
the cue invariants (text re-derivable from words, bounds following the
first/last word) and must never mutate a value that the history manager
or another cue may still hold.

HOW: Each function takes a cue (or a cue list) and returns a new value
built with dataclasses.replace(). Word-level edits funnel through
_with_words(), which re-derives text and bounds.

RULES:
- Inputs are never mutated
- After a word edit: text == " ".join(word texts); when words remain,
  start/end follow the first/last word, otherwise they are kept
- Line breaks are word flags (Word.line_break); they never alter cue text
- Every edit keeps start < end for the cue and for each word it touches
- On cues with words, text/start/end are only changed through the words;
  update_timing moves the first word start and the last word end
- Out-of-range word indices, unknown colors, and edits on cues without
  words raise ValueError; unknown cue ids raise KeyError
"""

from __future__ import annotations

import dataclasses
from typing import Any, List, Optional

from caption_studio.core.models import WORD_COLORS, Subtitle, Word, join_word_text

# Duration given to an inserted word that has no following word.
INSERTED_WORD_DURATION_S = 0.3

# Cue fields re-derived from the words whenever a cue has any.
_DERIVED_FIELDS = frozenset({"text", "start", "end"})


def _require_words(cue: Subtitle) -> List[Word]:
    if cue.words is None:
        raise ValueError("Cue {} has no word-level detail".format(cue.id))
    return list(cue.words)


def _check_index(cue: Subtitle, words: List[Word], index: int) -> None:
    if not 0 <= index < len(words):
        raise ValueError(
            "Word index {} out of range for cue {} ({} words)".format(index, cue.id, len(words))
        )


def _with_words(cue: Subtitle, words: List[Word]) -> Subtitle:
    if not words:
        return dataclasses.replace(cue, words=[], text="")
    return dataclasses.replace(
        cue,
        words=words,
        text=join_word_text(words),
        start=words[0].start,
        end=words[-1].end,
    )


def _check_word_timing(word: Word) -> None:
    if word.start >= word.end:
        raise ValueError(
            "Word {!r} start ({}) must be before its end ({})".format(word.text, word.start, word.end)
        )


def update_word(cue: Subtitle, index: int, **changes: Any) -> Subtitle:
    """Replace fields of one word, e.g. update_word(cue, 0, text="Hi")."""
    words = _require_words(cue)
    _check_index(cue, words, index)
    words[index] = dataclasses.replace(words[index], **changes)
    if "start" in changes or "end" in changes:
        _check_word_timing(words[index])
    return _with_words(cue, words)


def delete_word(cue: Subtitle, index: int) -> Subtitle:
    words = _require_words(cue)
    _check_index(cue, words, index)
    del words[index]
    return _with_words(cue, words)


def insert_word(cue: Subtitle, after_index: int, text: str) -> Subtitle:
    """Insert a word after ``after_index`` (-1 inserts at the front).

    The new word starts where the previous word ends (or at the cue start)
    and ends where the next word starts (or INSERTED_WORD_DURATION_S later).
    Inserted words get confidence 1.0.
    """
    text = text.strip()
    if not text:
        raise ValueError("Inserted word text must not be empty")

    words = _require_words(cue)
    if not -1 <= after_index < len(words):
        raise ValueError(
            "Insert position {} out of range for cue {} ({} words)".format(
                after_index, cue.id, len(words)
            )
        )

    prev_word = words[after_index] if after_index >= 0 else None
    next_word = words[after_index + 1] if after_index + 1 < len(words) else None
    start = prev_word.end if prev_word is not None else cue.start
    end = next_word.start if next_word is not None else start + INSERTED_WORD_DURATION_S

    words.insert(after_index + 1, Word(text=text, start=start, end=end, confidence=1.0))
    return _with_words(cue, words)


def set_word_color(cue: Subtitle, index: int, color: Optional[str]) -> Subtitle:
    """Set (or clear, with None) the highlight color of one word."""
    if color is not None and color not in WORD_COLORS:
        raise ValueError(
            "Unknown word color {!r}. Available: {}".format(color, ", ".join(sorted(WORD_COLORS)))
        )
    return update_word(cue, index, color=color)


def add_line_break(cue: Subtitle, index: int) -> Subtitle:
    """Force a visual line break after the word at ``index``."""
    return update_word(cue, index, line_break=True)


def update_timing(
    cue: Subtitle,
    start: Optional[float] = None,
    end: Optional[float] = None,
) -> Subtitle:
    """Retime a cue; omitted bounds are kept. Requires start < end.

    On a cue with words the first word starts at the new start and the last
    word ends at the new end. Raises ValueError when that would leave one of
    those words with start >= end.
    """
    new_start = cue.start if start is None else float(start)
    new_end = cue.end if end is None else float(end)
    if new_start >= new_end:
        raise ValueError(
            "Cue start ({}) must be before its end ({})".format(new_start, new_end)
        )
    if not cue.words:
        return dataclasses.replace(cue, start=new_start, end=new_end)

    words = list(cue.words)
    words[0] = dataclasses.replace(words[0], start=new_start)
    words[-1] = dataclasses.replace(words[-1], end=new_end)
    for word in (words[0], words[-1]):
        _check_word_timing(word)
    return _with_words(cue, words)


# ---------------------------------------------------------------------------
# List-level edits
# ---------------------------------------------------------------------------


def _index_of(cues: List[Subtitle], cue_id: str) -> int:
    for index, cue in enumerate(cues):
        if cue.id == cue_id:
            return index
    raise KeyError(cue_id)


def update_cue(cues: List[Subtitle], cue_id: str, **changes: Any) -> List[Subtitle]:
    """Return a new list with the cue ``cue_id`` patched.

    On a cue with words, text and bounds are derived: changing them raises
    ValueError (use the word edits or update_timing). A ``words`` change
    re-derives them.
    """
    index = _index_of(cues, cue_id)
    cue = cues[index]
    words = changes.pop("words", cue.words)
    if words is not None and words is not cue.words:
        for word in words:
            _check_word_timing(word)
    derived = sorted(_DERIVED_FIELDS.intersection(changes))
    if words and derived:
        raise ValueError(
            "Cannot set {} on cue {}: derived from its words".format(", ".join(derived), cue_id)
        )
    cue = dataclasses.replace(cue, **changes)
    if words is not None:
        cue = _with_words(cue, list(words))
    elif cue.start >= cue.end:
        raise ValueError(
            "Cue start ({}) must be before its end ({})".format(cue.start, cue.end)
        )
    updated = list(cues)
    updated[index] = cue
    return updated


def delete_cue(cues: List[Subtitle], cue_id: str) -> List[Subtitle]:
    index = _index_of(cues, cue_id)
    return cues[:index] + cues[index + 1:]


def find_active_cue(cues: List[Subtitle], t: float) -> Optional[Subtitle]:
    """First cue whose [start, end] contains playback time ``t``."""
    for cue in cues:
        if cue.start <= t <= cue.end:
            return cue
    return None
