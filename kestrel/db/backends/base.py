"""
Kestrel DB Backend - Base Adapter Interface.

All database backends implement this interface. The ``Database`` engine
delegates to the adapter chosen from the connection URL. Adapters are
synchronous: one blocking handle, one statement at a time.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger("kestrel.db.backends")

__all__ = [
    "DatabaseAdapter",
    "AdapterCapabilities",
    "ExecuteResult",
]


@dataclass
class AdapterCapabilities:
    """Describes what a specific backend supports."""

    supports_returning: bool = False
    supports_savepoints: bool = True
    param_style: str = "qmark"
    name: str = "base"


@dataclass
class ExecuteResult:
    """Outcome of a write statement."""

    rowcount: int = 0
    lastrowid: Optional[int] = None


class DatabaseAdapter(ABC):
    """
    Abstract base for database backend adapters.

    SQL reaching an adapter always uses ``?`` placeholders; adapters with
    a different native style translate in ``adapt_sql``.
    """

    capabilities: AdapterCapabilities = AdapterCapabilities()

    # ── Connection ───────────────────────────────────────────────────

    @abstractmethod
    def connect(self, url: str, **options) -> None:
        ...

    @abstractmethod
    def disconnect(self) -> None:
        ...

    # ── Execution ────────────────────────────────────────────────────

    @abstractmethod
    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> ExecuteResult:
        """Run a write statement and report affected rows / new id."""

    @abstractmethod
    def execute_script(self, sql: str) -> None:
        """Run several statements separated by semicolons (migrations)."""

    @abstractmethod
    def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def fetch_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        ...

    # ── Transactions ─────────────────────────────────────────────────

    @abstractmethod
    def begin(self) -> None:
        ...

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...

    # ── Introspection ────────────────────────────────────────────────

    @abstractmethod
    def table_exists(self, table_name: str) -> bool:
        ...

    @abstractmethod
    def get_tables(self) -> List[str]:
        ...

    # ── Helpers ──────────────────────────────────────────────────────

    def adapt_sql(self, sql: str) -> str:
        """Translate ``?`` placeholders to the backend's native style."""
        return sql

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @property
    def in_transaction(self) -> bool:
        return False

    @property
    def dialect(self) -> str:
        return self.capabilities.name
