"""Editing sessions: one HistoryManager per editor session.

WHY: Undo/redo history belongs to one editing session, never to the
process. Each session owns its own HistoryManager, so two editors working
on different videos can never undo each other's changes.

HOW: SessionStore keeps sessions in a dict guarded by a threading.Lock.
Each Session carries its own lock; callers hold it while driving the
HistoryManager, which is not thread-safe on its own.

RULES:
- Managers are built with HISTORY_MAX_SIZE / HISTORY_GROUPING_DELAY_MS
- Idle sessions expire after ttl_seconds without use
- create() refuses new sessions beyond max_sessions (ValueError)
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from caption_studio.config import HISTORY_GROUPING_DELAY_MS, HISTORY_MAX_SIZE
from caption_studio.core.history import HistoryManager

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 4 * 3600


@dataclass
class Session:
    id: str
    history: HistoryManager
    created_at: float
    last_used_at: float
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def touch(self) -> None:
        self.last_used_at = time.time()


class SessionStore:
    """Thread-safe registry of editing sessions."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        max_sessions: int = 500,
        history_factory: Optional[Callable[[], HistoryManager]] = None,
    ) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self._history_factory = history_factory or _default_history

    def create(self) -> Session:
        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                raise ValueError(
                    "Maximum number of editing sessions ({}) reached".format(self.max_sessions)
                )
            now = time.time()
            session = Session(
                id=uuid.uuid4().hex,
                history=self._history_factory(),
                created_at=now,
                last_used_at=now,
            )
            self._sessions[session.id] = session

        logger.info("Created editing session %s", session.id)
        return session

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is not None:
            session.touch()
        return session

    def delete(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        logger.info("Closed editing session %s", session_id)
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def cleanup_idle(self) -> int:
        """Drop sessions unused for longer than the TTL. Returns the count."""
        now = time.time()
        with self._lock:
            idle = [
                sid for sid, s in self._sessions.items()
                if now - s.last_used_at > self._ttl_seconds
            ]
            for sid in idle:
                del self._sessions[sid]

        for sid in idle:
            logger.info("Expired idle editing session %s", sid)
        return len(idle)


def _default_history() -> HistoryManager:
    return HistoryManager(
        max_history_size=HISTORY_MAX_SIZE,
        grouping_delay_ms=HISTORY_GROUPING_DELAY_MS,
    )
