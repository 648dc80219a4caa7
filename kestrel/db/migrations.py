"""
Kestrel Migration Runner - applies Python migration modules.

A migration is a module in the migrations directory exposing
``up(db)`` and ``down(db)``. Files are applied in filename order
(``2025_08_05_104129_create_users_table.py``) and recorded in the
``migrations`` table together with the batch they ran in, so that
``rollback()`` can undo the most recent batch.
"""

from __future__ import annotations

import importlib.util
import logging
from pathlib import Path
from typing import Any, Dict, List

from ..faults import MigrationFault
from .engine import Database

logger = logging.getLogger("kestrel.db.migrations")

MIGRATION_TABLE = "migrations"


class MigrationRunner:
    """
    Applies and tracks migrations against a Database.

    Usage:
        runner = MigrationRunner(db, "database/migrations")
        runner.migrate()       # apply all pending, returns their names
        runner.rollback()      # undo the last batch
    """

    def __init__(self, db: Database, migrations_dir: str | Path = "database/migrations"):
        self.db = db
        self.migrations_dir = Path(migrations_dir)

    def ensure_tracking_table(self) -> None:
        self.db.statement(
            f"CREATE TABLE IF NOT EXISTS {MIGRATION_TABLE} ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT, "
            "migration VARCHAR(255) NOT NULL UNIQUE, "
            "batch INTEGER NOT NULL, "
            "ran_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
        )

    def files(self) -> List[Path]:
        if not self.migrations_dir.is_dir():
            return []
        return sorted(
            p for p in self.migrations_dir.glob("*.py")
            if not p.name.startswith("_")
        )

    def get_applied(self) -> List[str]:
        self.ensure_tracking_table()
        rows = self.db.select(f"SELECT migration FROM {MIGRATION_TABLE} ORDER BY id")
        return [row["migration"] for row in rows]

    def get_pending(self) -> List[Path]:
        applied = set(self.get_applied())
        return [p for p in self.files() if p.stem not in applied]

    def status(self) -> Dict[str, Any]:
        applied = self.get_applied()
        return {
            "applied": applied,
            "pending": [p.stem for p in self.get_pending()],
        }

    def migrate(self) -> List[str]:
        """Apply every pending migration in one batch."""
        pending = self.get_pending()
        if not pending:
            logger.info("Nothing to migrate")
            return []

        row = self.db.first(f"SELECT MAX(batch) AS batch FROM {MIGRATION_TABLE}")
        batch = ((row or {}).get("batch") or 0) + 1

        ran = []
        for path in pending:
            module = _load_migration_module(path)
            with self.db.transaction():
                _call(module, "up", self.db, path.stem)
                self.db.insert(
                    f"INSERT INTO {MIGRATION_TABLE} (migration, batch) VALUES (?, ?)",
                    [path.stem, batch],
                )
            logger.info(f"Migrated: {path.stem}")
            ran.append(path.stem)
        return ran

    def rollback(self) -> List[str]:
        """Undo the most recent batch, newest migration first."""
        self.ensure_tracking_table()
        row = self.db.first(f"SELECT MAX(batch) AS batch FROM {MIGRATION_TABLE}")
        batch = (row or {}).get("batch")
        if not batch:
            logger.info("Nothing to roll back")
            return []

        names = [
            r["migration"]
            for r in self.db.select(
                f"SELECT migration FROM {MIGRATION_TABLE} WHERE batch = ? ORDER BY id DESC",
                [batch],
            )
        ]
        rolled = []
        for name in names:
            path = self.migrations_dir / f"{name}.py"
            if not path.exists():
                raise MigrationFault(migration=name, reason=f"file not found: {path}")
            module = _load_migration_module(path)
            with self.db.transaction():
                _call(module, "down", self.db, name)
                self.db.delete(f"DELETE FROM {MIGRATION_TABLE} WHERE migration = ?", [name])
            logger.info(f"Rolled back: {name}")
            rolled.append(name)
        return rolled


def _call(module: Any, hook: str, db: Database, name: str) -> None:
    func = getattr(module, hook, None)
    if not callable(func):
        raise MigrationFault(migration=name, reason=f"missing {hook}(db) function")
    func(db)


def _load_migration_module(path: Path) -> Any:
    """Load a migration Python module from file path."""
    spec = importlib.util.spec_from_file_location(f"migration_{path.stem}", path)
    if not spec or not spec.loader:
        raise MigrationFault(
            migration=path.stem,
            reason=f"Cannot load migration module: {path}",
        )
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise MigrationFault(
            migration=path.stem,
            reason=f"Failed to load migration: {exc}",
        ) from exc
    return module
