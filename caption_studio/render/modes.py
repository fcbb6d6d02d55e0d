"""Render modes and pure progress helpers.

WHY: Users pick between a standard and a faster multi-core render, and the
UI shows a stage label plus an ETA while the render runs. All of that is
plain arithmetic on the video duration and the reported progress.

RULES:
- Static estimate: round(duration_s * 8 / speed_multiplier) seconds
- Until progress exceeds 0.1 the ETA is the static estimate, then it is
  extrapolated from elapsed time: round(elapsed / p * (1 - p))
- Python round() is used (ties to even)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

_SECONDS_PER_VIDEO_SECOND = 8
_ETA_MIN_PROGRESS = 0.1


@dataclass(frozen=True)
class RenderMode:
    key: str
    name: str
    description: str
    speed_multiplier: int

    def to_dict(self, recommended: bool = False) -> dict:
        return {
            "id": self.key,
            "name": self.name,
            "description": self.description,
            "speedMultiplier": self.speed_multiplier,
            "recommended": recommended,
        }


RENDER_MODES: Dict[str, RenderMode] = {
    "standard": RenderMode(
        key="standard",
        name="Standard",
        description="60 FPS, high quality, normal speed",
        speed_multiplier=1,
    ),
    "optimized": RenderMode(
        key="optimized",
        name="Optimized",
        description="60 FPS, multi-core, about 3x faster",
        speed_multiplier=3,
    ),
}

DEFAULT_RENDER_MODE = "optimized"

# (upper bound, stage) pairs, checked in order
_STAGES = (
    (0.05, "initializing"),
    (0.15, "bundling"),
    (0.2, "preparing composition"),
    (0.8, "rendering"),
    (0.95, "finalizing"),
)


def get_render_mode(key: str) -> RenderMode:
    """Look up a render mode; unknown keys raise ValueError listing the options."""
    try:
        return RENDER_MODES[key]
    except KeyError:
        raise ValueError(
            "Unknown render mode {!r}. Available: {}".format(key, ", ".join(RENDER_MODES))
        )


def estimate_render_seconds(video_duration_s: float, mode: RenderMode) -> int:
    return round(video_duration_s * _SECONDS_PER_VIDEO_SECOND / mode.speed_multiplier)


def stage_from_progress(progress: float) -> str:
    for upper, stage in _STAGES:
        if progress < upper:
            return stage
    return "done"


def estimate_eta(elapsed_s: float, progress: float, estimated_s: int) -> int:
    if progress > _ETA_MIN_PROGRESS:
        return round(elapsed_s / progress * (1 - progress))
    return estimated_s
