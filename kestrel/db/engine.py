"""
Kestrel Database Engine - synchronous connection manager.

Provides:
- Database: the collaborator models and query builders talk to
- select / first / insert / update / delete with ``?`` placeholders
- Explicit begin/commit/rollback plus a ``transaction()`` context manager
- Errors wrapped into QueryFault / DatabaseConnectionFault
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..faults import DatabaseConnectionFault, QueryFault
from .backends.base import DatabaseAdapter, AdapterCapabilities, ExecuteResult

logger = logging.getLogger("kestrel.db")


def _create_adapter(driver: str) -> DatabaseAdapter:
    """Factory - instantiate the correct backend adapter."""
    if driver == "sqlite":
        from .backends.sqlite import SQLiteAdapter
        return SQLiteAdapter()
    raise DatabaseConnectionFault(
        url=f"<{driver}>",
        reason=f"No adapter registered for driver: {driver}",
    )


class Database:
    """
    Synchronous database engine.

    Delegates to a backend adapter chosen from the URL scheme. There is
    no retry: a failed connection raises ``DatabaseConnectionFault`` and
    is fatal for the request that triggered it.

    Usage::

        db = Database("sqlite:///:memory:")
        db.connect()
        new_id = db.insert("INSERT INTO users (name) VALUES (?)", ["Ada"])
        row = db.first("SELECT * FROM users WHERE id = ?", [new_id])

        with db.transaction():
            db.update("UPDATE users SET name = ? WHERE id = ?", ["Grace", new_id])
    """

    __slots__ = ("_url", "_driver", "_adapter", "_options", "_lock")

    def __init__(self, url: str = "sqlite:///database/database.sqlite", **options: Any):
        self._url = url
        self._driver = self._detect_driver(url)
        self._adapter: DatabaseAdapter = _create_adapter(self._driver)
        self._options = options
        self._lock = threading.Lock()

    @staticmethod
    def _detect_driver(url: str) -> str:
        """Detect database driver from URL scheme."""
        if url.startswith("sqlite"):
            return "sqlite"
        raise DatabaseConnectionFault(
            url=url,
            reason=f"Unsupported database URL scheme: {url}",
        )

    # ── Connection management ────────────────────────────────────────

    def connect(self) -> None:
        """Open the database connection (idempotent)."""
        if self._adapter.is_connected:
            return
        with self._lock:
            if self._adapter.is_connected:
                return
            try:
                self._adapter.connect(self._url, **self._options)
            except Exception as exc:
                raise DatabaseConnectionFault(url=self._url, reason=str(exc)) from exc
            logger.info(f"Database connected ({self._driver})")

    def disconnect(self) -> None:
        """Close the database connection (idempotent)."""
        if not self._adapter.is_connected:
            return
        with self._lock:
            try:
                self._adapter.disconnect()
            except Exception as exc:
                raise DatabaseConnectionFault(
                    url=self._url,
                    reason=f"Disconnect failed: {exc}",
                ) from exc
            logger.info("Database disconnected")

    close = disconnect

    def ensure_connected(self) -> None:
        if not self._adapter.is_connected:
            self.connect()

    # ── Transactions ─────────────────────────────────────────────────

    def begin_transaction(self) -> None:
        self.ensure_connected()
        self._adapter.begin()

    def commit(self) -> None:
        self._adapter.commit()

    def rollback(self) -> None:
        self._adapter.rollback()

    @contextmanager
    def transaction(self) -> Iterator["Database"]:
        """
        Context manager for one unit of work.

        Commits on normal exit, rolls back and re-raises on error.
        """
        self.begin_transaction()
        try:
            yield self
            self.commit()
        except Exception:
            self.rollback()
            raise

    # ── Query execution ──────────────────────────────────────────────

    def _wrap(self, operation: str, sql: str, exc: Exception) -> QueryFault:
        return QueryFault(
            model="<raw>",
            operation=operation,
            reason=str(exc),
            metadata={"sql": sql[:200]},
        )

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> ExecuteResult:
        """
        Execute a write statement.

        Raises:
            QueryFault: When query execution fails
        """
        self.ensure_connected()
        logger.debug("SQL: %s %r", sql, list(params or []))
        try:
            return self._adapter.execute(self._adapter.adapt_sql(sql), params or [])
        except (DatabaseConnectionFault, QueryFault):
            raise
        except Exception as exc:
            raise self._wrap("execute", sql, exc) from exc

    def statement(self, sql: str, params: Optional[Sequence[Any]] = None) -> bool:
        """Run DDL or any statement whose result is irrelevant."""
        self.execute(sql, params)
        return True

    def script(self, sql: str) -> None:
        """
        Run a multi-statement script.

        sqlite3 commits any open transaction before a script, so this
        must not be called inside ``transaction()``.
        """
        self.ensure_connected()
        try:
            self._adapter.execute_script(sql)
        except Exception as exc:
            raise self._wrap("script", sql, exc) from exc

    def select(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Run a query and return every row as a dict."""
        self.ensure_connected()
        logger.debug("SQL: %s %r", sql, list(params or []))
        try:
            return self._adapter.fetch_all(self._adapter.adapt_sql(sql), params or [])
        except (DatabaseConnectionFault, QueryFault):
            raise
        except Exception as exc:
            raise self._wrap("select", sql, exc) from exc

    def first(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        """Run a query and return the first row, or None."""
        self.ensure_connected()
        logger.debug("SQL: %s %r", sql, list(params or []))
        try:
            return self._adapter.fetch_one(self._adapter.adapt_sql(sql), params or [])
        except (DatabaseConnectionFault, QueryFault):
            raise
        except Exception as exc:
            raise self._wrap("first", sql, exc) from exc

    def insert(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[int]:
        """Run an INSERT and return the new row id."""
        return self.execute(sql, params).lastrowid

    def update(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        """Run an UPDATE and return the affected row count."""
        return self.execute(sql, params).rowcount

    def delete(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        """Run a DELETE and return the affected row count."""
        return self.execute(sql, params).rowcount

    # ── Introspection ────────────────────────────────────────────────

    def table_exists(self, table_name: str) -> bool:
        self.ensure_connected()
        return self._adapter.table_exists(table_name)

    def get_tables(self) -> List[str]:
        self.ensure_connected()
        return self._adapter.get_tables()

    # ── Properties ───────────────────────────────────────────────────

    @property
    def is_connected(self) -> bool:
        return self._adapter.is_connected

    @property
    def in_transaction(self) -> bool:
        return self._adapter.in_transaction

    @property
    def url(self) -> str:
        return self._url

    @property
    def driver(self) -> str:
        return self._driver

    @property
    def capabilities(self) -> AdapterCapabilities:
        return self._adapter.capabilities

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "disconnected"
        return f"<Database {self._driver} {state}>"
