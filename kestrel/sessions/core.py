"""
Kestrel Sessions - Core types.

Defines:
- SessionID: Opaque cryptographic identifier
- Session: Request-spanning state container with flash data, old input,
  validation errors and the CSRF token
"""

from __future__ import annotations

import base64
import binascii
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from cryptography.hazmat.primitives import constant_time


# Reserved keys inside Session.data
FLASH_KEY = "_flash"
OLD_INPUT_KEY = "_old_input"
ERRORS_KEY = "_errors"
TOKEN_KEY = "_token"
AGING_KEY = "_aging"


# ============================================================================
# SessionID - Opaque Cryptographic Identifier
# ============================================================================

class SessionID:
    """
    Opaque session identifier with cryptographic randomness.

    32 random bytes, URL-safe encoded and prefixed with ``sess_``.

    Example:
        >>> sid = SessionID()
        >>> str(sid)
        'sess_kJ8...'
        >>> SessionID.from_string(str(sid)) == sid
        True
    """

    __slots__ = ("_raw", "_encoded")

    def __init__(self, raw: bytes | None = None):
        if raw is None:
            raw = secrets.token_bytes(32)
        elif len(raw) != 32:
            raise ValueError("Session ID must be exactly 32 bytes")

        self._raw = raw
        self._encoded = f"sess_{base64.urlsafe_b64encode(raw).decode().rstrip('=')}"

    def __str__(self) -> str:
        return self._encoded

    def __repr__(self) -> str:
        return f"SessionID({self._encoded[:16]}...)"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SessionID):
            return False
        return self._raw == other._raw

    def __hash__(self) -> int:
        return hash(self._raw)

    @classmethod
    def from_string(cls, encoded: str) -> SessionID:
        """
        Parse session ID from encoded string.

        Raises:
            ValueError: If format is invalid
        """
        if not encoded.startswith("sess_"):
            raise ValueError("Invalid session ID format: must start with 'sess_'")

        raw_b64 = encoded[5:]
        padding = 4 - (len(raw_b64) % 4)
        if padding != 4:
            raw_b64 += "=" * padding

        try:
            raw = base64.urlsafe_b64decode(raw_b64)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid session ID encoding: {e}")

        return cls(raw)


# ============================================================================
# Session - State Container
# ============================================================================

@dataclass
class Session:
    """
    Session state carried between requests.

    Flash values, old input and validation errors are short-lived: anything
    written during one request is still readable during the next request
    and is dropped when that next request ends (see ``age_flash_data``).
    Reading a flash value with ``get_flash`` consumes it immediately.

    Example:
        >>> session = Session(id=SessionID())
        >>> session.flash("success", "Saved!")
        >>> session.get_flash("success")
        'Saved!'
        >>> session.get_flash("success") is None
        True
    """

    id: SessionID
    data: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_accessed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    # Internal tracking (not serialized)
    _dirty: bool = field(default=False, repr=False)
    _previous_id: Optional[SessionID] = field(default=None, repr=False)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __contains__(self, key: str) -> bool:
        return key in self.data

    # ------------------------------------------------------------------
    # Plain data
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value
        self._dirty = True

    def has(self, key: str) -> bool:
        return key in self.data

    def remove(self, key: str) -> None:
        if key in self.data:
            del self.data[key]
            self._dirty = True

    def all(self) -> Dict[str, Any]:
        return dict(self.data)

    def clear(self) -> None:
        self.data.clear()
        self._dirty = True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def is_expired(self, lifetime: timedelta, now: datetime | None = None) -> bool:
        """Idle longer than ``lifetime``."""
        if now is None:
            now = datetime.now(timezone.utc)
        return now - self.last_accessed_at >= lifetime

    def touch(self, now: datetime | None = None) -> None:
        self.last_accessed_at = now or datetime.now(timezone.utc)

    def regenerate_id(self) -> SessionID:
        """Issue a fresh identifier, keeping the data."""
        if self._previous_id is None:
            self._previous_id = self.id
        self.id = SessionID()
        self._dirty = True
        return self.id

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def mark_clean(self) -> None:
        self._dirty = False

    # ------------------------------------------------------------------
    # Aging of short-lived data
    # ------------------------------------------------------------------

    def _aging(self) -> Dict[str, List[str]]:
        return self.data.setdefault(AGING_KEY, {"new": [], "old": []})

    def _mark_new(self, entry: str) -> None:
        aging = self._aging()
        if entry in aging["old"]:
            aging["old"].remove(entry)
        if entry not in aging["new"]:
            aging["new"].append(entry)
        self._dirty = True

    def age_flash_data(self) -> None:
        """
        End-of-request bookkeeping.

        Drops what was written during the previous request and marks what
        was written during this one to be dropped after the next.
        """
        aging = self.data.get(AGING_KEY)
        if not aging:
            return

        for entry in aging["old"]:
            if entry.startswith("flash:"):
                self.data.get(FLASH_KEY, {}).pop(entry[len("flash:"):], None)
            else:
                self.data.pop(entry, None)

        if FLASH_KEY in self.data and not self.data[FLASH_KEY]:
            del self.data[FLASH_KEY]

        if aging["new"]:
            self.data[AGING_KEY] = {"new": [], "old": list(aging["new"])}
        else:
            del self.data[AGING_KEY]
        self._dirty = True

    # ------------------------------------------------------------------
    # Flash messages
    # ------------------------------------------------------------------

    def flash(self, key: str, value: Any) -> None:
        self.data.setdefault(FLASH_KEY, {})[key] = value
        self._mark_new(f"flash:{key}")

    def get_flash(self, key: str, default: Any = None) -> Any:
        """Read a flash value once; later reads return ``default``."""
        messages = self.data.get(FLASH_KEY, {})
        if key not in messages:
            return default
        self._dirty = True
        return messages.pop(key)

    def has_flash(self, key: str) -> bool:
        return key in self.data.get(FLASH_KEY, {})

    def get_flash_messages(self) -> Dict[str, Any]:
        """Read and consume every pending flash value."""
        messages = self.data.pop(FLASH_KEY, {})
        if messages:
            self._dirty = True
        return dict(messages)

    # ------------------------------------------------------------------
    # Old input & validation errors
    # ------------------------------------------------------------------

    def set_old_input(self, data: Mapping[str, Any]) -> None:
        """Store submitted input for the next request. Password fields are never kept."""
        self.data[OLD_INPUT_KEY] = {k: v for k, v in data.items() if "password" not in k}
        self._mark_new(OLD_INPUT_KEY)

    def get_old_input(self, key: Optional[str] = None, default: Any = None) -> Any:
        old = self.data.get(OLD_INPUT_KEY, {})
        if key is None:
            return dict(old)
        return old.get(key, default)

    def set_errors(self, errors: Mapping[str, Any]) -> None:
        normalized = {
            field_name: list(messages) if isinstance(messages, (list, tuple)) else [messages]
            for field_name, messages in errors.items()
        }
        self.data[ERRORS_KEY] = normalized
        self._mark_new(ERRORS_KEY)

    def get_errors(self, key: Optional[str] = None) -> Any:
        """All errors (field -> messages), or the messages for one field."""
        errors = self.data.get(ERRORS_KEY, {})
        if key is None:
            return {k: list(v) for k, v in errors.items()}
        return list(errors.get(key, []))

    def get_error(self, key: str) -> Optional[str]:
        """First error message for ``key``."""
        messages = self.data.get(ERRORS_KEY, {}).get(key)
        return messages[0] if messages else None

    def has_errors(self, key: Optional[str] = None) -> bool:
        errors = self.data.get(ERRORS_KEY, {})
        if key is None:
            return bool(errors)
        return bool(errors.get(key))

    # ------------------------------------------------------------------
    # CSRF
    # ------------------------------------------------------------------

    def csrf_token(self) -> str:
        """Current CSRF token, generated on first use."""
        token = self.data.get(TOKEN_KEY)
        if not token:
            token = self.generate_csrf_token()
        return token

    def generate_csrf_token(self) -> str:
        token = secrets.token_hex(32)
        self.set(TOKEN_KEY, token)
        return token

    def verify_csrf_token(self, token: Optional[str]) -> bool:
        expected = self.data.get(TOKEN_KEY)
        if not expected or not token or not isinstance(token, str):
            return False
        return constant_time.bytes_eq(expected.encode(), token.encode())

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "data": self.data,
            "created_at": self.created_at.isoformat(),
            "last_accessed_at": self.last_accessed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Session:
        return cls(
            id=SessionID.from_string(data["id"]),
            data=dict(data.get("data", {})),
            created_at=datetime.fromisoformat(data["created_at"]),
            last_accessed_at=datetime.fromisoformat(data["last_accessed_at"]),
        )
