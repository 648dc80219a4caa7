"""
Code generators for ``kestrel make:*``.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..models.base import table_name_for


_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def check_name(name: str) -> str:
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(f"'{name}' is not a valid Python identifier")
    return name


CONTROLLER_TEMPLATE = '''"""
{name}
"""

from kestrel import Controller


class {name}(Controller):
    def index(self):
        return self.view("{views}.index")

    def create(self):
        return self.view("{views}.create")

    def store(self):
        return self.redirect("/{views}")

    def show(self, id):
        return self.view("{views}.show", {{"id": id}})

    def edit(self, id):
        return self.view("{views}.edit", {{"id": id}})

    def update(self, id):
        return self.redirect(f"/{views}/{{id}}")

    def destroy(self, id):
        return self.redirect("/{views}")
'''


MODEL_TEMPLATE = '''"""
{name} model
"""

from kestrel import Model


class {name}(Model):
    table = "{table}"
    fillable = ("id",)
    hidden = ()
'''


MIGRATION_TEMPLATE = '''"""
{name}
"""


def up(db):
    db.statement(
        "CREATE TABLE IF NOT EXISTS {table} ("
        "id INTEGER PRIMARY KEY AUTOINCREMENT, "
        "created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP, "
        "updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
    )


def down(db):
    db.statement("DROP TABLE IF EXISTS {table}")
'''


def _write(path: Path, content: str) -> Path:
    if path.exists():
        raise FileExistsError(f"{path} already exists")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def make_controller(name: str, directory: Path) -> Path:
    check_name(name)
    views = snake_case(name[: -len("Controller")] if name.endswith("Controller") else name)
    return _write(directory / f"{snake_case(name)}.py", CONTROLLER_TEMPLATE.format(name=name, views=views))


def make_model(name: str, directory: Path) -> Path:
    check_name(name)
    return _write(
        directory / f"{snake_case(name)}.py",
        MODEL_TEMPLATE.format(name=name, table=table_name_for(name)),
    )


def make_migration(name: str, directory: Path, now: Optional[datetime] = None) -> Path:
    """``<Y_m_d_HMS>_<name>.py``; ``create_<table>_table`` names prefill the table."""
    check_name(name)
    stamp = (now or datetime.now()).strftime("%Y_%m_%d_%H%M%S")
    match = re.match(r"^create_(\w+?)_table$", name)
    table = match.group(1) if match else snake_case(name)
    return _write(directory / f"{stamp}_{name}.py", MIGRATION_TEMPLATE.format(name=name, table=table))
