"""Tests for raw word grouping and words-per-cue segmentation.

WHY: The segmenter is re-run on every move of the words-per-cue slider.
It must be deterministic, never lose or duplicate a word, respect the
word budget, and close cues on sentence punctuation.

HOW: Tests are organized by concern:
  - TestSegment: segment() on one flat word sequence
  - TestSplitSubtitles: split_subtitles() on pre-grouped sources
  - TestValidation: invalid words-per-cue values fail fast
  - TestGroupWords: raw grouping by count, duration and pause
  - TestPipeline: group_words() then split_subtitles() end to end
"""

from __future__ import annotations

import pytest

from caption_studio.core.errors import SegmentationError
from caption_studio.core.models import Subtitle, Word, join_word_text
from caption_studio.core.segmenter import (
    ends_sentence,
    group_words,
    segment,
    split_subtitles,
)


def make_words(*texts, step=0.5):
    """Evenly spaced words: make_words("a", "b") -> a@0.0-0.5, b@0.5-1.0."""
    return [
        Word(text=t, start=i * step, end=(i + 1) * step, confidence=0.9)
        for i, t in enumerate(texts)
    ]


def _flatten(cues):
    return [w for cue in cues for w in cue.words]


# ---------------------------------------------------------------------------
# TestSegment
# ---------------------------------------------------------------------------


class TestSegment:

    def test_bonjour_scenario_caps_at_three_words(self, bonjour_words):
        cues = segment(bonjour_words, 3)

        # "monde" fills the 3-word bucket; the lone "!" token then closes
        # its own cue through the punctuation rule.
        assert len(cues) == 2
        assert cues[0].text == "Bonjour le monde"
        assert (cues[0].start, cues[0].end) == (0.0, 1.0)
        assert cues[0].words == bonjour_words[:3]
        assert cues[1].text == "!"
        assert (cues[1].start, cues[1].end) == (1.0, 1.1)

    def test_bonjour_scenario_with_room_keeps_one_cue(self, bonjour_words):
        cues = segment(bonjour_words, 4)
        assert len(cues) == 1
        assert cues[0].text == "Bonjour le monde !"
        assert (cues[0].start, cues[0].end) == (0.0, 1.1)
        assert cues[0].words == bonjour_words

    def test_punctuation_flushes_early(self):
        cues = segment(make_words("Hello", "world."), 5)
        assert len(cues) == 1
        assert len(cues[0].words) == 2
        assert cues[0].text == "Hello world."

    def test_one_word_per_cue(self):
        words = make_words("one", "two", "three", "four")
        cues = segment(words, 1)
        assert len(cues) == 4
        assert all(len(c.words) == 1 for c in cues)
        assert [c.text for c in cues] == ["one", "two", "three", "four"]

    def test_limit_and_punctuation_on_same_word_flush_once(self):
        cues = segment(make_words("a", "b", "c.", "d"), 3)
        assert [c.text for c in cues] == ["a b c.", "d"]

    def test_trailing_partial_bucket_is_kept(self):
        cues = segment(make_words("a", "b", "c", "d", "e"), 2)
        assert [c.text for c in cues] == ["a b", "c d", "e"]

    def test_empty_word_list_yields_no_cues(self):
        assert segment([], 3) == []

    def test_ids_use_source_id_and_chunk_index(self):
        cues = segment(make_words("a", "b", "c"), 1, source_id="s7")
        assert [c.id for c in cues] == ["s7-0", "s7-1", "s7-2"]

    def test_ids_without_source_id_use_start_time(self):
        words = make_words("x", "y", "z", step=0.4)
        assert [c.id for c in segment(words, 2)] == ["0-0", "0-1"]

    def test_deterministic(self, sentence_words):
        first = segment(sentence_words, 3)
        second = segment(sentence_words, 3)
        assert [c.to_dict() for c in first] == [c.to_dict() for c in second]

    @pytest.mark.parametrize("limit", [1, 2, 3, 5, 8])
    def test_cue_invariants(self, sentence_words, limit):
        cues = segment(sentence_words, limit)

        assert _flatten(cues) == sentence_words
        for cue in cues:
            assert 1 <= len(cue.words) <= limit
            assert cue.text == join_word_text(cue.words)
            assert cue.start == cue.words[0].start
            assert cue.end == cue.words[-1].end
            assert cue.start < cue.end
        assert len({c.id for c in cues}) == len(cues)

    def test_input_words_are_not_mutated(self, bonjour_words):
        before = list(bonjour_words)
        segment(bonjour_words, 2)
        assert bonjour_words == before


# ---------------------------------------------------------------------------
# TestSplitSubtitles
# ---------------------------------------------------------------------------


class TestSplitSubtitles:

    def test_each_source_is_split_independently(self):
        sources = [
            Subtitle(id="subtitle-0", text="a b c", start=0.0, end=1.5,
                     words=make_words("a", "b", "c")),
            Subtitle(id="subtitle-3", text="d", start=2.0, end=2.5,
                     words=[make_words("d")[0]]),
        ]
        cues = split_subtitles(sources, 2)
        assert [c.id for c in cues] == ["subtitle-0-0", "subtitle-0-1", "subtitle-3-0"]
        assert [c.text for c in cues] == ["a b", "c", "d"]

    def test_source_without_words_passes_through(self):
        source = Subtitle(id="intro", text="Title card", start=0.0, end=2.0)
        cues = split_subtitles([source], 3)
        assert len(cues) == 1
        assert cues[0].id == "intro-0"
        assert cues[0].text == "Title card"
        assert (cues[0].start, cues[0].end) == (0.0, 2.0)
        assert cues[0].words is None

    def test_source_without_words_or_id(self):
        source = Subtitle(id=None, text="Untitled", start=1.0, end=2.0)
        assert split_subtitles([source], 3)[0].id == "-0"

    def test_source_with_empty_words_yields_nothing(self):
        source = Subtitle(id="empty", text="", start=0.0, end=1.0, words=[])
        assert split_subtitles([source], 3) == []

    def test_source_without_id_uses_start(self):
        words = make_words("a", "b", "c")
        source = Subtitle(id=None, text="a b c", start=2.5, end=4.0, words=words)
        assert [c.id for c in split_subtitles([source], 2)] == ["2.5-0", "2.5-1"]

    def test_resegmenting_does_not_compound(self, sentence_words):
        raw = group_words(sentence_words)
        narrow = split_subtitles(raw, 1)
        wide = split_subtitles(raw, 4)
        again = split_subtitles(raw, 4)
        assert len(narrow) == len(sentence_words)
        assert [c.to_dict() for c in wide] == [c.to_dict() for c in again]

    def test_sources_are_not_mutated(self, sentence_words):
        raw = group_words(sentence_words)
        before = [s.to_dict() for s in raw]
        split_subtitles(raw, 2)
        assert [s.to_dict() for s in raw] == before

    def test_style_is_copied_per_cue(self):
        source = Subtitle(id="s", text="a b", start=0.0, end=1.0,
                          words=make_words("a", "b"), style={"color": "#FFF"})
        cues = split_subtitles([source], 1)
        cues[0].style["color"] = "#000"
        assert cues[1].style == {"color": "#FFF"}
        assert source.style == {"color": "#FFF"}

    def test_default_limit_is_three(self):
        source = Subtitle(id="s", text="", start=0.0, end=2.5,
                          words=make_words("a", "b", "c", "d", "e"))
        assert [len(c.words) for c in split_subtitles([source])] == [3, 2]


# ---------------------------------------------------------------------------
# TestValidation
# ---------------------------------------------------------------------------


class TestValidation:

    @pytest.mark.parametrize("bad", [0, -1, 2.5, "3", None, True])
    def test_invalid_limit_fails_fast(self, bad):
        with pytest.raises(SegmentationError):
            segment(make_words("a"), bad)

    def test_invalid_limit_fails_even_for_empty_input(self):
        with pytest.raises(SegmentationError, match=">= 1"):
            split_subtitles([], 0)

    def test_segmentation_error_is_value_error(self):
        with pytest.raises(ValueError):
            segment([], 0)


# ---------------------------------------------------------------------------
# TestGroupWords
# ---------------------------------------------------------------------------


class TestGroupWords:

    def test_empty_input(self):
        assert group_words([]) == []

    def test_breaks_on_long_pause(self, sentence_words):
        groups = group_words(sentence_words)
        assert [g.text for g in groups] == [
            "Hello world. This is a test",
            "After pause?",
        ]
        assert [g.id for g in groups] == ["subtitle-0", "subtitle-6"]

    def test_breaks_on_word_count(self):
        groups = group_words(make_words(*"abcdefghij", step=0.1))
        assert [len(g.words) for g in groups] == [8, 2]
        assert [g.id for g in groups] == ["subtitle-0", "subtitle-8"]

    def test_breaks_on_duration(self):
        groups = group_words(make_words("a", "b", "c", "d", "e", step=1.0))
        # a group may span at most 4 s from its first start to its last end
        assert [g.text for g in groups] == ["a b c d", "e"]

    def test_group_bounds_follow_words(self, sentence_words):
        for group in group_words(sentence_words):
            assert group.start == group.words[0].start
            assert group.end == group.words[-1].end
            assert group.text == join_word_text(group.words)

    def test_custom_limits(self):
        groups = group_words(make_words("a", "b", "c"), max_words=2)
        assert [g.text for g in groups] == ["a b", "c"]

    def test_invalid_max_words(self):
        with pytest.raises(SegmentationError):
            group_words(make_words("a"), max_words=0)


# ---------------------------------------------------------------------------
# TestPipeline
# ---------------------------------------------------------------------------


class TestPipeline:

    def test_group_then_split(self, sentence_words):
        cues = split_subtitles(group_words(sentence_words), 3)
        assert [c.text for c in cues] == [
            "Hello world.",
            "This is a",
            "test",
            "After pause?",
        ]
        assert [c.id for c in cues] == [
            "subtitle-0-0",
            "subtitle-0-1",
            "subtitle-0-2",
            "subtitle-6-0",
        ]
        assert _flatten(cues) == sentence_words


def test_ends_sentence():
    assert ends_sentence("world.")
    assert ends_sentence("!")
    assert ends_sentence("really?")
    assert not ends_sentence("Mr")
    assert not ends_sentence("a,")
    assert not ends_sentence("")
