"""Per-conversation memory for specialist agents.

The pipeline never reads or writes history itself; it only hands each
specialist run the agents-SDK session that belongs to ``conversation_id``.
Sessions are in-memory SQLite, one per conversation and domain, created on
first use.  At most ``MAX_SESSIONS`` are kept; the least recently used one
is closed and dropped when a new one would exceed the cap.  Callers that
know a conversation has ended can drop it early with ``forget``.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict

from agents import SQLiteSession

from ..config.settings import MAX_SESSIONS

logger = logging.getLogger(__name__)


class ConversationMemory:
    """Thread-safe, size-capped ``conversation_id`` → ``SQLiteSession`` map."""

    def __init__(self, max_sessions: int = MAX_SESSIONS):
        self.max_sessions = max(1, max_sessions)
        self._sessions: OrderedDict[str, SQLiteSession] = OrderedDict()
        self._lock = threading.Lock()

    def session_for(self, conversation_id: str, domain: str = "") -> SQLiteSession | None:
        """Return the session for a conversation, or ``None`` without an id.

        Each specialist gets its own session inside a conversation so the
        tool-call history of one domain never leaks into another.
        """
        if not conversation_id:
            return None
        key = f"{conversation_id}:{domain}"
        with self._lock:
            session = self._sessions.get(key)
            if session is not None:
                self._sessions.move_to_end(key)
                return session
            session = SQLiteSession(key)
            self._sessions[key] = session
            logger.debug("Created session %s", key)
            while len(self._sessions) > self.max_sessions:
                old_key, old = self._sessions.popitem(last=False)
                old.close()
                logger.debug("Evicted session %s", old_key)
            return session

    def forget(self, conversation_id: str) -> None:
        with self._lock:
            for key in [k for k in self._sessions if k.rsplit(":", 1)[0] == conversation_id]:
                self._sessions.pop(key).close()

    def __len__(self) -> int:
        return len(self._sessions)


# Process-wide default used by the specialists.
default_memory = ConversationMemory()
