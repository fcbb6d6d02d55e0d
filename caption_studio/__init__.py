"""Caption Studio: word-timed subtitle generation and editing toolkit.

WHY: A transcription provider returns a flat list of timed words. Viewers
need short, readable captions, and editors need to tweak those captions
(text, timing, style) with reliable undo/redo before the captioned video
is rendered. This package turns the word timeline into display-ready cues
and keeps the editing history.

HOW: Three-stage pipeline: ingest (provider API client + normalizer),
segment (raw grouping + words-per-cue cue segmentation), edit (pure cue
operations + history manager). The render stage is an external
collaborator reached through a small backend interface.

RULES:
- All times inside the package are float seconds
- Segmentation is a pure function of (words, max words per cue)
- The history manager deep-copies everything it stores
"""

__version__ = "0.1.0"
