"""Render collaborator boundary: modes, progress staging, and backends.

WHY: Producing the captioned video is done by an external renderer (a
headless browser composition tool). Caption Studio only needs to hand it a
VideoProject, follow its fractional progress, and receive a download URL.

HOW: modes.py holds the render mode table and the pure progress helpers
(estimate, stage, ETA). backend.py defines the RenderBackend interface and
CommandRenderBackend, which drives a configured external command.

RULES:
- No automatic retry; a failed render surfaces as RenderError
- Progress is a float in [0, 1]
"""

from caption_studio.render.backend import CommandRenderBackend, RenderBackend, RenderError
from caption_studio.render.modes import (
    DEFAULT_RENDER_MODE,
    RENDER_MODES,
    RenderMode,
    estimate_eta,
    estimate_render_seconds,
    get_render_mode,
    stage_from_progress,
)

__all__ = [
    "CommandRenderBackend",
    "DEFAULT_RENDER_MODE",
    "RENDER_MODES",
    "RenderBackend",
    "RenderError",
    "RenderMode",
    "estimate_eta",
    "estimate_render_seconds",
    "get_render_mode",
    "stage_from_progress",
]
