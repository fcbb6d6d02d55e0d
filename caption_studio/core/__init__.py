"""Core data model, segmentation, editing, and history modules.

WHY: The core package holds the pure heart of Caption Studio: the cue data
model, the word normalizer, the segmenter, the editor operations, and the
undo/redo history. None of it performs I/O, so every piece is testable with
plain in-memory values.

HOW: models.py defines the records, normalizer.py converts provider words
to seconds, segmenter.py groups and splits them into cues, editing.py
applies editor changes, history.py snapshots (cues, style) pairs.

RULES:
- No I/O and no provider-specific HTTP logic here
- Functions return new values; inputs are never mutated
- Errors are the typed exceptions in errors.py
"""
