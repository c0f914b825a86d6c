"""
In-memory store of refinement sessions.

Sessions live for the lifetime of the process. The store is bounded: when it
is full, the least recently used session is evicted.
"""

import logging
from collections import OrderedDict
from typing import Optional

from pinesmith.services.refinement import RefinementSession

logger = logging.getLogger(__name__)


class SessionStore:
    """LRU-bounded map of session id -> RefinementSession."""

    def __init__(self, max_sessions: int = 256):
        if max_sessions < 1:
            raise ValueError(f"max_sessions must be at least 1, got {max_sessions}")
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, RefinementSession]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def add(self, session: RefinementSession) -> None:
        self._sessions[session.session_id] = session
        self._sessions.move_to_end(session.session_id)
        while len(self._sessions) > self.max_sessions:
            if not self._evict_oldest_idle():
                logger.warning(
                    f"Session store over capacity ({len(self._sessions)}/{self.max_sessions}): "
                    "all sessions are busy"
                )
                break

    def _evict_oldest_idle(self) -> bool:
        # Busy sessions are skipped: a running turn still holds them.
        for session_id, session in self._sessions.items():
            if not session.is_busy:
                del self._sessions[session_id]
                logger.info(f"Evicted refinement session {session_id}")
                return True
        return False

    def get(self, session_id: str) -> Optional[RefinementSession]:
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions.move_to_end(session_id)
        return session

    def remove(self, session_id: str) -> Optional[RefinementSession]:
        return self._sessions.pop(session_id, None)

    def clear(self) -> None:
        self._sessions.clear()
