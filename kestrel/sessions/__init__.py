"""
Kestrel Sessions - server-side sessions with flash data and CSRF tokens.

    from kestrel.sessions import SessionManager

    manager = SessionManager(secret_key=config.app_key)
    session = manager.load(cookie_value)
    session.flash("success", "Saved!")
    manager.save(session)
"""

from .core import Session, SessionID
from .store import MemoryStore, SessionStore
from .manager import SessionManager, derive_fernet_key

__all__ = [
    "Session",
    "SessionID",
    "SessionStore",
    "MemoryStore",
    "SessionManager",
    "derive_fernet_key",
]
