"""Exception types raised by the core caption modules.

WHY: Callers (CLI, HTTP service, tests) need typed exceptions to tell a
bad segmentation setting apart from a failed transcription or an unknown
history entry, and to map each one to the right user-facing response.

RULES:
- Configuration mistakes subclass ValueError
- Lookups of unknown ids subclass KeyError
- Provider failures carry the provider's message unchanged
"""


class SegmentationError(ValueError):
    """Raised when the cue segmenter is given an invalid configuration."""


class TranscriptionError(Exception):
    """Raised when the provider reports a terminal ``error`` status.

    The exception message is the provider's error text, verbatim.
    """


class TranscriptNotReadyError(ValueError):
    """Raised when a transcript is normalized before reaching ``completed``."""


class HistoryStateNotFoundError(KeyError):
    """Raised by HistoryManager.go_to_state() for an unknown state id."""

    def __init__(self, state_id: str) -> None:
        self.state_id = state_id
        super().__init__(state_id)

    def __str__(self) -> str:
        return "History state not found: {}".format(self.state_id)
