"""
Kestrel DB - synchronous database access.

    from kestrel.db import Database

    db = Database("sqlite:///database/database.sqlite")
    db.connect()
"""

from .engine import Database
from .backends import DatabaseAdapter, AdapterCapabilities, ExecuteResult, SQLiteAdapter
from .migrations import MigrationRunner

__all__ = [
    "Database",
    "DatabaseAdapter",
    "AdapterCapabilities",
    "ExecuteResult",
    "SQLiteAdapter",
    "MigrationRunner",
]
