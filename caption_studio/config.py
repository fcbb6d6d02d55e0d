"""Configuration constants, segmentation/history defaults, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. Provider settings, segmentation limits, history
sizes, and renderer settings are plain data, not buried in logic, so
the CLI, the HTTP service, and tests all agree on the same defaults.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level values read from the environment with typed fallbacks.
The load_api_key() function provides a clear error when the key is missing.

RULES:
- API key is loaded from .env via python-dotenv, never hardcoded
- All defaults can be overridden via environment variables
- Numeric overrides that fail to parse raise ValueError at import time
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError("{} must be an integer, got {!r}".format(name, raw))


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError("{} must be a number, got {!r}".format(name, raw))


# ---------------------------------------------------------------------------
# Transcription provider (AssemblyAI v2)
# ---------------------------------------------------------------------------

ASSEMBLYAI_BASE_URL = os.getenv("ASSEMBLYAI_BASE_URL", "https://api.assemblyai.com/v2")
DEFAULT_LANGUAGE_CODE = os.getenv("DEFAULT_LANGUAGE_CODE", "fr")
TRANSCRIPT_POLL_INTERVAL_S = _env_float("TRANSCRIPT_POLL_INTERVAL_S", 3.0)

SUPPORTED_MEDIA_FORMATS: set[str] = {
    ".mp4", ".mov", ".webm", ".mkv", ".avi", ".m4v",
    ".mp3", ".wav", ".m4a", ".aac", ".flac", ".ogg",
}
"""Uploadable video/audio file extensions (lowercase, with dot)."""

# ---------------------------------------------------------------------------
# Segmentation defaults
# ---------------------------------------------------------------------------

DEFAULT_MAX_WORDS_PER_CUE = _env_int("DEFAULT_MAX_WORDS_PER_CUE", 3)

# Raw grouping of provider words before words-per-cue segmentation
RAW_MAX_WORDS = _env_int("RAW_MAX_WORDS", 8)
RAW_MAX_DURATION_S = _env_float("RAW_MAX_DURATION_S", 4.0)
RAW_MAX_GAP_S = _env_float("RAW_MAX_GAP_S", 1.0)

# ---------------------------------------------------------------------------
# Editing history
# ---------------------------------------------------------------------------

HISTORY_MAX_SIZE = _env_int("HISTORY_MAX_SIZE", 50)
HISTORY_GROUPING_DELAY_MS = _env_int("HISTORY_GROUPING_DELAY_MS", 800)

# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

RENDER_COMMAND = os.getenv("RENDER_COMMAND", "").strip()
"""External render command (e.g. ``node scripts/render.mjs``). Empty disables rendering."""

DEFAULT_FPS = _env_int("DEFAULT_FPS", 60)


def load_api_key() -> str:
    """Load the AssemblyAI API key from the environment.

    WHY: The API key is required for all provider calls. Loading it
    from the environment (via .env) keeps it out of source code.

    RULES:
    - Raises ValueError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    key = os.getenv("ASSEMBLYAI_API_KEY", "").strip()
    if not key:
        raise ValueError(
            "AssemblyAI API key not configured. "
            "Add ASSEMBLYAI_API_KEY to the .env file in the app folder."
        )
    return key
