"""
Tests for MigrationRunner.
"""

import pytest

from kestrel.db import Database, MigrationRunner
from kestrel.faults import MigrationFault


POSTS = '''
def up(db):
    db.statement("CREATE TABLE posts (id INTEGER PRIMARY KEY, title TEXT)")


def down(db):
    db.statement("DROP TABLE posts")
'''

COMMENTS = '''
def up(db):
    db.statement("CREATE TABLE comments (id INTEGER PRIMARY KEY, body TEXT)")


def down(db):
    db.statement("DROP TABLE comments")
'''


@pytest.fixture
def migrations_dir(tmp_path):
    path = tmp_path / "migrations"
    path.mkdir()
    (path / "2025_01_01_000000_create_posts_table.py").write_text(POSTS)
    return path


@pytest.fixture
def runner(migrations_dir):
    db = Database("sqlite:///:memory:")
    yield MigrationRunner(db, migrations_dir)
    db.disconnect()


class TestMigrate:
    """Applying migrations."""

    def test_applies_pending(self, runner):
        assert runner.migrate() == ["2025_01_01_000000_create_posts_table"]
        assert runner.db.table_exists("posts")
        assert runner.get_applied() == ["2025_01_01_000000_create_posts_table"]

    def test_second_run_is_a_no_op(self, runner):
        runner.migrate()
        assert runner.migrate() == []

    def test_status(self, runner, migrations_dir):
        runner.migrate()
        (migrations_dir / "2025_01_02_000000_create_comments_table.py").write_text(COMMENTS)
        status = runner.status()
        assert status["applied"] == ["2025_01_01_000000_create_posts_table"]
        assert status["pending"] == ["2025_01_02_000000_create_comments_table"]

    def test_files_are_ordered_and_private_files_skipped(self, runner, migrations_dir):
        (migrations_dir / "2024_12_31_000000_create_comments_table.py").write_text(COMMENTS)
        (migrations_dir / "__init__.py").write_text("")
        assert [p.stem for p in runner.files()] == [
            "2024_12_31_000000_create_comments_table",
            "2025_01_01_000000_create_posts_table",
        ]

    def test_missing_up_raises(self, runner, migrations_dir):
        (migrations_dir / "2025_02_01_000000_broken.py").write_text("X = 1\n")
        with pytest.raises(MigrationFault):
            runner.migrate()

    def test_missing_directory(self, tmp_path):
        db = Database("sqlite:///:memory:")
        assert MigrationRunner(db, tmp_path / "nowhere").migrate() == []
        db.disconnect()


class TestRollback:
    """Rolling back the last batch."""

    def test_rolls_back_last_batch_only(self, runner, migrations_dir):
        runner.migrate()
        (migrations_dir / "2025_01_02_000000_create_comments_table.py").write_text(COMMENTS)
        runner.migrate()

        assert runner.rollback() == ["2025_01_02_000000_create_comments_table"]
        assert not runner.db.table_exists("comments")
        assert runner.db.table_exists("posts")

    def test_nothing_to_roll_back(self, runner):
        assert runner.rollback() == []
