"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation. Pydantic
models enforce field types at runtime and generate the JSON Schema shown
in the /docs UI.

HOW: Wire names are camelCase (startTime, maxWordsPerCue, ...), matching
the JSON produced by the core to_dict() methods. Every model uses the
camelCase alias generator with populate_by_name, so core dicts validate
directly (Model.model_validate(obj.to_dict())) and Python code can still
use snake_case names. FastAPI serializes responses by alias.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Styles are opaque dicts; only the render endpoint expands them
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from caption_studio import config


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Cues
# ---------------------------------------------------------------------------


class WordModel(CamelModel):
    """A single timed word (seconds)."""

    text: str = Field(description="Word text as displayed, punctuation attached.")
    start: float = Field(ge=0, description="Start time in seconds.")
    end: float = Field(ge=0, description="End time in seconds.")
    confidence: float = Field(ge=0, le=1, description="Recognition confidence (0-1).")
    color: Optional[Literal["red", "green", "yellow"]] = Field(
        default=None,
        description="Editor highlight color.",
    )
    line_break: bool = Field(
        default=False,
        description="Force a visual line break after this word.",
    )


class SubtitleModel(CamelModel):
    """One display cue in the start/end view."""

    id: Optional[str] = Field(default=None, description="Cue identifier, unique within a list.")
    text: str = Field(default="", description="Display text (space-joined word texts).")
    start: float = Field(description="Cue start in seconds.")
    end: float = Field(description="Cue end in seconds.")
    words: Optional[List[WordModel]] = Field(
        default=None,
        description="Word-level detail. Omitted for cues without word timing.",
    )
    style: Optional[Dict[str, Any]] = Field(default=None, description="Per-cue style override.")


class SegmentModel(CamelModel):
    """One cue in the editor's segment view (startTime/endTime)."""

    id: Optional[str] = Field(default=None, description="Cue identifier.")
    start_time: float = Field(description="Cue start in seconds.")
    end_time: float = Field(description="Cue end in seconds.")
    text: str = Field(default="", description="Display text.")
    words: Optional[List[WordModel]] = Field(default=None, description="Word-level detail.")
    style: Optional[Dict[str, Any]] = Field(default=None, description="Per-cue style override.")


# ---------------------------------------------------------------------------
# Segmentation
# ---------------------------------------------------------------------------


class SegmentationRequest(CamelModel):
    """Re-segment pre-grouped subtitles into cues of at most N words."""

    subtitles: List[SubtitleModel] = Field(description="Raw (pre-grouped) subtitles.")
    max_words_per_cue: int = Field(
        default=3,
        description="Maximum words per cue (>= 1). Sentence punctuation also ends a cue.",
    )


class SegmentationResponse(CamelModel):
    subtitles: List[SubtitleModel] = Field(description="The resulting display cues.")


# ---------------------------------------------------------------------------
# Transcriptions
# ---------------------------------------------------------------------------


class JobCreatedResponse(CamelModel):
    """Response returned when a new background job is accepted."""

    id: str = Field(description="Unique job identifier for polling status.")
    status: str = Field(description="Initial job status (always 'pending').")
    filename: str = Field(description="Uploaded filename, or project id for renders.")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "id": "550e8400e29b41d4a716446655440000",
                    "status": "pending",
                    "filename": "interview.mp4",
                }
            ]
        },
    )


class TranscriptionResult(CamelModel):
    raw_subtitles: List[SubtitleModel] = Field(
        description="Subtitles grouped by word count, duration and pauses. Re-segment these.",
    )
    subtitles: List[SubtitleModel] = Field(description="Display cues for the requested words per cue.")
    confidence: float = Field(description="Average word confidence as a percentage (2 decimals).")
    word_count: int = Field(description="Number of transcribed words.")
    audio_duration: Optional[float] = Field(
        default=None,
        description="Media duration in seconds, when reported by the provider.",
    )


class TranscriptionJobResponse(CamelModel):
    """Transcription job status response.

    RULES:
    - error is only set when status is 'failed'
    - result is only set when status is 'completed'
    """

    id: str = Field(description="Unique job identifier.")
    status: str = Field(description="Current job status.")
    filename: str = Field(description="Original uploaded filename.")
    created_at: float = Field(description="Job creation timestamp (Unix epoch seconds).")
    config: Dict[str, Any] = Field(description="Transcription settings used for this job.")
    progress: Optional[Dict[str, Any]] = Field(default=None, description="Latest progress report.")
    error: Optional[str] = Field(
        default=None,
        description="Error message, only present when status is 'failed'.",
    )
    result: Optional[TranscriptionResult] = Field(
        default=None,
        description="Cues and statistics, only present when status is 'completed'.",
    )


# ---------------------------------------------------------------------------
# Editing sessions
# ---------------------------------------------------------------------------


class HistoryMetadataModel(CamelModel):
    action: str = Field(description="Edit kind, e.g. 'text-edit' or 'slider-change'.")
    affected_segments: Optional[List[str]] = Field(
        default=None,
        description="Ids of the cues touched by the edit.",
    )
    changes: Optional[Dict[str, Any]] = Field(default=None, description="Free-form edit detail.")


class SessionCreateRequest(CamelModel):
    segments: List[SegmentModel] = Field(description="Initial cues in the segment view.")
    style: Dict[str, Any] = Field(default_factory=dict, description="Initial global style.")
    description: str = Field(default="Initial state", description="Label of the first entry.")


class SaveStateRequest(CamelModel):
    segments: List[SegmentModel] = Field(description="Cues after the edit.")
    style: Dict[str, Any] = Field(default_factory=dict, description="Global style after the edit.")
    description: str = Field(description="Human-readable label of the edit.")
    metadata: Optional[HistoryMetadataModel] = Field(
        default=None,
        description="Edit kind. Bursts of the same groupable action merge into one entry.",
    )


class HistoryStateModel(CamelModel):
    id: str = Field(description="State identifier.")
    timestamp: int = Field(description="Creation time (ms since epoch).")
    description: str = Field(description="Human-readable label.")
    segments: List[SegmentModel] = Field(description="Snapshot of the cues.")
    style: Dict[str, Any] = Field(description="Snapshot of the global style.")
    metadata: Optional[HistoryMetadataModel] = Field(default=None, description="Edit kind.")


class HistoryStatsModel(CamelModel):
    total_states: int = Field(description="Number of stored entries.")
    current_index: int = Field(description="Index of the current entry (-1 when empty).")
    can_undo: bool = Field(description="Whether undo is possible.")
    can_redo: bool = Field(description="Whether redo is possible.")
    memory_usage: str = Field(description="Approximate serialized size, e.g. '0.01 MB'.")


class SessionStateResponse(CamelModel):
    """The current entry of a session after a transition."""

    session_id: str = Field(description="Editing session identifier.")
    state: HistoryStateModel = Field(description="The current history entry.")
    stats: HistoryStatsModel = Field(description="History statistics for undo/redo controls.")


class HistoryEntrySummary(CamelModel):
    id: str = Field(description="State identifier.")
    timestamp: int = Field(description="Creation time (ms since epoch).")
    description: str = Field(description="Human-readable label.")
    action: Optional[str] = Field(default=None, description="Edit kind, when recorded.")


class HistoryResponse(CamelModel):
    session_id: str = Field(description="Editing session identifier.")
    entries: List[HistoryEntrySummary] = Field(description="All entries, oldest first.")
    stats: HistoryStatsModel = Field(description="History statistics.")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class RenderRequest(CamelModel):
    """A VideoProject plus the render mode."""

    id: str = Field(description="Project identifier. One render per project and mode at a time.")
    video_url: str = Field(description="Source video URL.")
    video_duration: float = Field(gt=0, description="Source duration in seconds.")
    subtitles: List[SubtitleModel] = Field(description="Cues to burn in.")
    style: Dict[str, Any] = Field(
        default_factory=dict,
        description="Global style. Missing fields take the default look.",
    )
    width: int = Field(gt=0, description="Output width in pixels.")
    height: int = Field(gt=0, description="Output height in pixels.")
    fps: int = Field(
        default_factory=lambda: config.DEFAULT_FPS,
        gt=0,
        description="Output frame rate. Defaults to the DEFAULT_FPS setting.",
    )
    brightness: Optional[float] = Field(default=None, description="Brightness percentage.")
    contrast: Optional[float] = Field(default=None, description="Contrast percentage.")
    saturation: Optional[float] = Field(default=None, description="Saturation percentage.")
    render_mode: str = Field(default="optimized", description="Render mode key, see /render-modes.")


class RenderModeInfo(CamelModel):
    id: str = Field(description="Render mode key.")
    name: str = Field(description="Human-readable name.")
    description: str = Field(description="What the mode trades off.")
    speed_multiplier: int = Field(description="Estimated speed relative to 'standard'.")
    recommended: bool = Field(description="Whether this is the recommended mode.")


class RenderModesResponse(CamelModel):
    available_modes: List[RenderModeInfo] = Field(description="All render modes.")
    default_mode: str = Field(description="Mode used when none is given.")


class RenderProgress(CamelModel):
    stage: str = Field(description="Render stage, e.g. 'rendering'.")
    percent: int = Field(description="Completion percentage (0-100).")
    eta: int = Field(description="Estimated seconds remaining.")


class RenderJobResponse(CamelModel):
    id: str = Field(description="Render job identifier.")
    status: str = Field(description="Current job status.")
    project_id: str = Field(description="Rendered project identifier.")
    render_mode: str = Field(description="Render mode key.")
    estimated_time: int = Field(description="Static render time estimate in seconds.")
    progress: Optional[RenderProgress] = Field(default=None, description="Latest progress report.")
    download_url: Optional[str] = Field(
        default=None,
        description="Rendered video URL, only present when status is 'completed'.",
    )
    render_time: Optional[int] = Field(
        default=None,
        description="Actual render time in seconds, only present when completed.",
    )
    error: Optional[str] = Field(
        default=None,
        description="Error message, only present when status is 'failed'.",
    )


# ---------------------------------------------------------------------------
# Misc
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error response body.

    RULES:
    - detail is always a human-readable error message
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(CamelModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
    render_enabled: bool = Field(description="Whether a render command is configured.")
