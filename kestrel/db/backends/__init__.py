"""Database backend adapters."""

from .base import DatabaseAdapter, AdapterCapabilities, ExecuteResult
from .sqlite import SQLiteAdapter

__all__ = ["DatabaseAdapter", "AdapterCapabilities", "ExecuteResult", "SQLiteAdapter"]
