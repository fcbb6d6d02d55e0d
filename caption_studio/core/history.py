"""Undo/redo history over (cues, style) snapshots.

WHY: Editors need reliable undo/redo while they retype words, drag a
caption around, or scrub a slider. A slider drag fires dozens of edits per
second; recording each one would make undo useless, so rapid edits of the
same kind are merged into a single history entry.

HOW: A HistoryManager owns a linear list of HistoryState entries and a
current index. save_state() either replaces the current entry (grouping
window open for the same groupable action) or truncates the redo tail,
appends, and evicts from the front when the size bound is exceeded.
Every stored payload is deep-copied with copy.deepcopy so later mutation
of the live editor model cannot corrupt history.

The grouping window is evaluated on each save_state() call: it is open
while ``now - current.timestamp < grouping_delay_ms``. The grouped write
stamps the replaced entry with ``now``, so each grouped write extends the
window.

RULES:
- -1 <= current_index < len(entries) <= max_history_size
- undo()/redo() at the boundary return None and log a warning, never raise
- go_to_state() with an unknown id raises HistoryStateNotFoundError
- One HistoryManager per editing session; it is not thread-safe on its own
"""

from __future__ import annotations

import copy
import json
import logging
import random
import string
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from caption_studio.core.errors import HistoryStateNotFoundError
from caption_studio.core.models import Subtitle, style_to_dict, subtitle_to_segment

logger = logging.getLogger(__name__)

GROUPABLE_ACTIONS: FrozenSet[str] = frozenset({
    "text-edit",
    "style-change",
    "position-drag",
    "slider-change",
    "color-pick",
})
"""Actions whose bursts are merged into one history entry."""

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _now_ms() -> int:
    return int(time.time() * 1000)


def _state_id(timestamp: int) -> str:
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(9))
    return "state-{}-{}".format(timestamp, suffix)


@dataclass
class HistoryMetadata:
    """What an entry records: the action kind plus optional detail."""

    action: str
    affected_segments: Optional[List[str]] = None
    changes: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"action": self.action}
        if self.affected_segments is not None:
            data["affectedSegments"] = list(self.affected_segments)
        if self.changes is not None:
            data["changes"] = copy.deepcopy(self.changes)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> HistoryMetadata:
        return cls(
            action=data["action"],
            affected_segments=data.get("affectedSegments"),
            changes=data.get("changes"),
        )


@dataclass
class HistoryState:
    """One immutable snapshot of the editor: cues + style + description.

    RULES:
    - segments and style are private deep copies made by HistoryManager
    - timestamp is integer milliseconds since epoch
    """

    id: str
    timestamp: int
    description: str
    segments: List[Subtitle]
    style: Any
    metadata: Optional[HistoryMetadata] = None

    @property
    def action(self) -> Optional[str]:
        return self.metadata.action if self.metadata is not None else None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "description": self.description,
            "segments": [subtitle_to_segment(s) for s in self.segments],
            "style": copy.deepcopy(style_to_dict(self.style)),
        }
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data


@dataclass
class HistoryStats:
    total_states: int
    current_index: int
    can_undo: bool
    can_redo: bool
    memory_usage: str = field(default="0.00 MB")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalStates": self.total_states,
            "currentIndex": self.current_index,
            "canUndo": self.can_undo,
            "canRedo": self.can_redo,
            "memoryUsage": self.memory_usage,
        }


class HistoryManager:
    """Linear undo/redo stack with time-windowed grouping.

    Args:
        max_history_size: Upper bound on stored entries (>= 1).
        enable_grouping: Merge bursts of the same groupable action.
        grouping_delay_ms: Width of the grouping window (>= 0).
        groupable_actions: Action names eligible for grouping.
        clock: Returns integer ms since epoch. Injected by tests.
    """

    def __init__(
        self,
        max_history_size: int = 100,
        enable_grouping: bool = True,
        grouping_delay_ms: int = 1000,
        groupable_actions: FrozenSet[str] = GROUPABLE_ACTIONS,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        if max_history_size < 1:
            raise ValueError("max_history_size must be >= 1, got {}".format(max_history_size))
        if grouping_delay_ms < 0:
            raise ValueError("grouping_delay_ms must be >= 0, got {}".format(grouping_delay_ms))

        self.max_history_size = max_history_size
        self.enable_grouping = enable_grouping
        self.grouping_delay_ms = grouping_delay_ms
        self.groupable_actions = frozenset(groupable_actions)
        self._clock = clock or _now_ms
        self._entries: List[HistoryState] = []
        self._current_index = -1

    # -- inspection --------------------------------------------------------

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_state(self) -> Optional[HistoryState]:
        if self._current_index < 0:
            return None
        return self._entries[self._current_index]

    def __len__(self) -> int:
        return len(self._entries)

    def can_undo(self) -> bool:
        return self._current_index > 0

    def can_redo(self) -> bool:
        return self._current_index < len(self._entries) - 1

    def get_history(self) -> List[HistoryState]:
        return list(self._entries)

    def get_stats(self) -> HistoryStats:
        # Style is opaque; non-JSON values are sized by their str() form.
        payload = json.dumps([state.to_dict() for state in self._entries], default=str)
        megabytes = len(payload.encode("utf-8")) / 1024 / 1024
        return HistoryStats(
            total_states=len(self._entries),
            current_index=self._current_index,
            can_undo=self.can_undo(),
            can_redo=self.can_redo(),
            memory_usage="{:.2f} MB".format(megabytes),
        )

    # -- transitions -------------------------------------------------------

    def _should_group(self, metadata: Optional[HistoryMetadata], now: int) -> bool:
        if not self.enable_grouping or metadata is None:
            return False
        if metadata.action not in self.groupable_actions:
            return False
        current = self.current_state
        if current is None or current.action != metadata.action:
            return False
        return now - current.timestamp < self.grouping_delay_ms

    def save_state(
        self,
        segments: List[Subtitle],
        style: Any,
        description: str,
        metadata: Optional[HistoryMetadata] = None,
    ) -> HistoryState:
        """Record a snapshot and return the stored entry."""
        now = self._clock()
        state = HistoryState(
            id=_state_id(now),
            timestamp=now,
            description=description,
            segments=copy.deepcopy(list(segments)),
            style=copy.deepcopy(style),
            metadata=copy.deepcopy(metadata),
        )

        if self._should_group(metadata, now):
            self._entries[self._current_index] = state
            logger.debug("Grouped '%s' into entry %d", metadata.action, self._current_index)
            return state

        del self._entries[self._current_index + 1:]
        self._entries.append(state)
        self._current_index += 1

        if len(self._entries) > self.max_history_size:
            self._entries.pop(0)
            self._current_index -= 1

        logger.debug("Saved state %s (%s)", state.id, description)
        return state

    def undo(self) -> Optional[HistoryState]:
        if not self.can_undo():
            logger.warning("Nothing to undo")
            return None
        self._current_index -= 1
        return self._entries[self._current_index]

    def redo(self) -> Optional[HistoryState]:
        if not self.can_redo():
            logger.warning("Nothing to redo")
            return None
        self._current_index += 1
        return self._entries[self._current_index]

    def go_to_state(self, state_id: str) -> HistoryState:
        for index, state in enumerate(self._entries):
            if state.id == state_id:
                self._current_index = index
                return state
        raise HistoryStateNotFoundError(state_id)

    def clear(self) -> None:
        self._entries = []
        self._current_index = -1

    # -- convenience recorders ---------------------------------------------

    def save_text_edit(
        self,
        segments: List[Subtitle],
        style: Any,
        segment_id: str,
        old_text: str,
        new_text: str,
    ) -> HistoryState:
        return self.save_state(
            segments,
            style,
            "Edit text: \"{}\" -> \"{}\"".format(_shorten(old_text), _shorten(new_text)),
            HistoryMetadata(
                action="text-edit",
                affected_segments=[segment_id],
                changes={"oldText": old_text, "newText": new_text},
            ),
        )

    def save_style_change(
        self,
        segments: List[Subtitle],
        style: Any,
        property_name: str,
        old_value: Any,
        new_value: Any,
    ) -> HistoryState:
        return self.save_state(
            segments,
            style,
            "Style {}: {} -> {}".format(property_name, old_value, new_value),
            HistoryMetadata(
                action="style-change",
                changes={"property": property_name, "oldValue": old_value, "newValue": new_value},
            ),
        )

    def save_segment_deletion(
        self,
        segments: List[Subtitle],
        style: Any,
        deleted: Subtitle,
    ) -> HistoryState:
        return self.save_state(
            segments,
            style,
            "Delete segment: \"{}\"".format(_shorten(deleted.text)),
            HistoryMetadata(
                action="segment-delete",
                affected_segments=[deleted.id],
                changes={"deletedSegment": subtitle_to_segment(deleted)},
            ),
        )

    def save_position_change(
        self,
        segments: List[Subtitle],
        style: Any,
        old_position: Dict[str, float],
        new_position: Dict[str, float],
    ) -> HistoryState:
        """Positions are {"x": percent, "y": percent} dicts."""
        return self.save_state(
            segments,
            style,
            "Position: ({}%, {}%) -> ({}%, {}%)".format(
                old_position["x"], old_position["y"], new_position["x"], new_position["y"]
            ),
            HistoryMetadata(
                action="position-drag",
                changes={"oldPosition": old_position, "newPosition": new_position},
            ),
        )

    def save_preset_application(
        self,
        segments: List[Subtitle],
        style: Any,
        preset_name: str,
    ) -> HistoryState:
        return self.save_state(
            segments,
            style,
            "Apply preset: {}".format(preset_name),
            HistoryMetadata(action="preset-apply", changes={"presetName": preset_name}),
        )


def _shorten(text: str, limit: int = 30) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
