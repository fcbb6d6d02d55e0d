"""JSON Schema validation of serialized cue lists.

WHY: Cue files written by the CLI are read back by the editor front-end
and by the renderer. Validating them against the published schema before
writing catches a malformed cue at the source instead of in a consumer.

RULES:
- The schema ships as package data: caption_studio/schemas/subtitles.schema.json
- Loaded once, cached at module level
- validate_cues() raises jsonschema.ValidationError on failure
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema

_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schemas" / "subtitles.schema.json"

_CACHED_SCHEMA: Optional[Dict[str, Any]] = None


def get_schema() -> Dict[str, Any]:
    global _CACHED_SCHEMA
    if _CACHED_SCHEMA is None:
        with open(_SCHEMA_PATH, encoding="utf-8") as f:
            _CACHED_SCHEMA = json.load(f)
    return _CACHED_SCHEMA


def validate_cues(cues: List[Dict[str, Any]]) -> None:
    """Validate a list of Subtitle.to_dict() payloads (start/end view)."""
    jsonschema.validate(instance=cues, schema=get_schema())
