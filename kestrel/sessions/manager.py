"""
Kestrel Sessions - Session manager.

Binds sessions to requests: the session identifier travels in a cookie
encrypted and authenticated with Fernet (key derived from APP_KEY), the
session data stays server-side in a SessionStore.
"""

from __future__ import annotations

import base64
import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional, TYPE_CHECKING

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes

from .core import Session, SessionID
from .store import MemoryStore, SessionStore

if TYPE_CHECKING:
    from ..config import ConfigLoader

logger = logging.getLogger("kestrel.sessions")


def derive_fernet_key(secret: str | bytes) -> bytes:
    """Fernet key (urlsafe base64 of 32 bytes) from an arbitrary secret."""
    if isinstance(secret, str):
        secret = secret.encode()
    digest = hashes.Hash(hashes.SHA256())
    digest.update(secret)
    return base64.urlsafe_b64encode(digest.finalize())


class SessionManager:
    """
    Loads the session for a request and writes it back afterwards.

    Args:
        store: Session storage (MemoryStore by default)
        secret_key: Secret the cookie key is derived from
        cookie_name: Name of the session cookie
        lifetime: Idle lifetime in minutes
        secure: Send the cookie over HTTPS only
        same_site: SameSite cookie attribute

    Example:
        manager = SessionManager(secret_key=config.app_key)
        session = manager.load(request.cookie("kestrel_session"))
        ...
        manager.save(session)
        response.set_cookie(manager.cookie_name, manager.cookie_value(session),
                            **manager.cookie_options())
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        *,
        secret_key: Optional[str | bytes] = None,
        cookie_name: str = "kestrel_session",
        lifetime: int = 120,
        secure: bool = False,
        same_site: str = "Lax",
    ):
        if not secret_key:
            logger.warning("APP_KEY is not set; session cookies use a per-process key")
            secret_key = secrets.token_bytes(32)

        self.store = store or MemoryStore()
        self.cookie_name = cookie_name
        self.lifetime = timedelta(minutes=lifetime)
        self.secure = secure
        self.same_site = same_site
        self._fernet = Fernet(derive_fernet_key(secret_key))

    @classmethod
    def from_config(cls, config: ConfigLoader, store: Optional[SessionStore] = None) -> SessionManager:
        session_config = config.get_session_config()
        return cls(
            store,
            secret_key=config.app_key,
            cookie_name=session_config.get("cookie", "kestrel_session"),
            lifetime=session_config.get("lifetime", 120),
            secure=bool(session_config.get("secure", False)),
            same_site=session_config.get("same_site", "Lax"),
        )

    # ------------------------------------------------------------------
    # Cookie encoding
    # ------------------------------------------------------------------

    def cookie_value(self, session: Session) -> str:
        return self._fernet.encrypt(str(session.id).encode()).decode()

    def decode_cookie(self, value: Optional[str]) -> Optional[SessionID]:
        """Session ID carried by a cookie value, or None if it is not valid."""
        if not value:
            return None
        try:
            raw = self._fernet.decrypt(value.encode(), ttl=int(self.lifetime.total_seconds()))
            return SessionID.from_string(raw.decode())
        except (InvalidToken, ValueError):
            logger.debug("Discarding invalid session cookie")
            return None

    def cookie_options(self) -> Dict[str, Any]:
        return {
            "max_age": int(self.lifetime.total_seconds()),
            "path": "/",
            "secure": self.secure,
            "httponly": True,
            "samesite": self.same_site,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> Session:
        session = Session(id=SessionID())
        session.mark_clean()
        return session

    def load(self, cookie_value: Optional[str]) -> Session:
        """Session for the cookie, or a new one when missing or expired."""
        session_id = self.decode_cookie(cookie_value)
        if session_id is not None:
            session = self.store.load(session_id)
            if session is not None and not session.is_expired(self.lifetime):
                session.touch()
                return session
            if session is not None:
                self.store.delete(session_id)
        return self.start()

    def save(self, session: Session) -> None:
        if session._previous_id is not None:
            self.store.delete(session._previous_id)
            session._previous_id = None
        session.touch()
        self.store.save(session)

    def destroy(self, session: Session) -> None:
        self.store.delete(session.id)
        session.clear()

    def cleanup(self) -> int:
        removed = self.store.cleanup_expired(self.lifetime)
        if removed:
            logger.info(f"Removed {removed} expired sessions")
        return removed
