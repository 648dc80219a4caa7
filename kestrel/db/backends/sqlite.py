"""
Kestrel DB Backend - SQLite adapter via the standard library sqlite3 module.

This is the default backend. Rows come back as plain dicts; writes
commit immediately unless a transaction is open.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .base import DatabaseAdapter, AdapterCapabilities, ExecuteResult

logger = logging.getLogger("kestrel.db.backends.sqlite")

__all__ = ["SQLiteAdapter"]


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite adapter.

    Features:
    - WAL journal mode for file databases
    - Foreign key enforcement
    - Explicit BEGIN/COMMIT transaction control
    - A lock so that one statement runs at a time across threads
    """

    capabilities = AdapterCapabilities(
        supports_returning=False,
        supports_savepoints=True,
        param_style="qmark",
        name="sqlite",
    )

    def __init__(self):
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._in_transaction = False

    def connect(self, url: str, **options) -> None:
        if self._connection is not None:
            return
        db_path = self._parse_url(url)
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            # isolation_level=None: the adapter issues BEGIN/COMMIT itself
            self._connection = sqlite3.connect(
                db_path,
                check_same_thread=False,
                isolation_level=None,
                timeout=float(options.get("timeout", 5.0)),
            )
            self._connection.row_factory = sqlite3.Row
            if db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode=WAL")
            self._connection.execute("PRAGMA foreign_keys=ON")
        logger.info(f"SQLite connected: {db_path}")

    def disconnect(self) -> None:
        if self._connection is None:
            return
        with self._lock:
            self._connection.close()
            self._connection = None
            self._in_transaction = False
        logger.info("SQLite disconnected")

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise RuntimeError("Not connected")
        return self._connection

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> ExecuteResult:
        conn = self._require_connection()
        with self._lock:
            cursor = conn.execute(sql, list(params or []))
            return ExecuteResult(rowcount=cursor.rowcount, lastrowid=cursor.lastrowid)

    def execute_script(self, sql: str) -> None:
        conn = self._require_connection()
        with self._lock:
            conn.executescript(sql)

    def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        conn = self._require_connection()
        with self._lock:
            cursor = conn.execute(sql, list(params or []))
            return [dict(row) for row in cursor.fetchall()]

    def fetch_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        conn = self._require_connection()
        with self._lock:
            cursor = conn.execute(sql, list(params or []))
            row = cursor.fetchone()
            return dict(row) if row is not None else None

    # ── Transactions ─────────────────────────────────────────────────

    def begin(self) -> None:
        conn = self._require_connection()
        with self._lock:
            conn.execute("BEGIN")
            self._in_transaction = True

    def commit(self) -> None:
        conn = self._require_connection()
        with self._lock:
            conn.execute("COMMIT")
            self._in_transaction = False

    def rollback(self) -> None:
        conn = self._require_connection()
        with self._lock:
            conn.execute("ROLLBACK")
            self._in_transaction = False

    # ── Introspection ────────────────────────────────────────────────

    def table_exists(self, table_name: str) -> bool:
        row = self.fetch_one(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            [table_name],
        )
        return row is not None

    def get_tables(self) -> List[str]:
        rows = self.fetch_all(
            "SELECT name FROM sqlite_master WHERE type='table' "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [r["name"] for r in rows]

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    @staticmethod
    def _parse_url(url: str) -> str:
        """Extract file path from sqlite URL."""
        for prefix in ("sqlite:///", "sqlite://"):
            if url.startswith(prefix):
                path = url[len(prefix):]
                return path or ":memory:"
        return url.replace("sqlite:", "").lstrip("/") or ":memory:"
