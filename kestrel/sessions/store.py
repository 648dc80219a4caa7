"""
Kestrel Sessions - Storage backends.

Defines:
- SessionStore: Protocol for storage backends
- MemoryStore: In-process storage (development, tests, single worker)
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from .core import Session, SessionID


class SessionStore(Protocol):
    """Storage backend contract used by SessionManager."""

    def load(self, session_id: SessionID) -> Session | None:
        """Return the stored session or None."""
        ...

    def save(self, session: Session) -> None:
        ...

    def delete(self, session_id: SessionID) -> None:
        ...

    def exists(self, session_id: SessionID) -> bool:
        ...

    def cleanup_expired(self, lifetime: timedelta) -> int:
        """Remove sessions idle longer than ``lifetime``; return the count."""
        ...


class MemoryStore:
    """
    In-memory session storage.

    Features:
    - Dict storage guarded by a lock
    - Least-recently-used eviction past ``max_sessions``
    - Expiry sweep via ``cleanup_expired``

    Sessions do not survive a process restart.

    Example:
        >>> store = MemoryStore(max_sessions=10000)
        >>> store.save(session)
        >>> store.load(session.id).id == session.id
        True
    """

    def __init__(self, max_sessions: int = 10000):
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, Session] = OrderedDict()
        self._lock = threading.Lock()

    def load(self, session_id: SessionID) -> Session | None:
        with self._lock:
            key = str(session_id)
            session = self._sessions.get(key)
            if session is not None:
                self._sessions.move_to_end(key)
            return session

    def save(self, session: Session) -> None:
        with self._lock:
            key = str(session.id)
            if key not in self._sessions and len(self._sessions) >= self.max_sessions:
                self._sessions.popitem(last=False)
            self._sessions[key] = session
            self._sessions.move_to_end(key)
            session.mark_clean()

    def delete(self, session_id: SessionID) -> None:
        with self._lock:
            self._sessions.pop(str(session_id), None)

    def exists(self, session_id: SessionID) -> bool:
        return str(session_id) in self._sessions

    def cleanup_expired(self, lifetime: timedelta) -> int:
        now = datetime.now(timezone.utc)
        with self._lock:
            expired = [
                key for key, session in self._sessions.items()
                if session.is_expired(lifetime, now)
            ]
            for key in expired:
                del self._sessions[key]
        return len(expired)

    def shutdown(self) -> None:
        with self._lock:
            self._sessions.clear()

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_sessions": len(self._sessions),
            "max_sessions": self.max_sessions,
            "utilization": len(self._sessions) / self.max_sessions if self.max_sessions > 0 else 0,
        }
