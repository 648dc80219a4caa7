"""
Shared test fixtures and helpers for the Kestrel test suite.
"""

from pathlib import Path
from typing import Dict, List, Optional

import pytest

from kestrel import Application, ConfigLoader, Database, Model, View
from kestrel.mail import MemoryTransport, Mailer
from kestrel.request import Request, build_scope
from kestrel.sessions import Session, SessionID


USERS_TABLE = (
    "CREATE TABLE users ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "name VARCHAR(255) NOT NULL, "
    "email VARCHAR(255) NOT NULL UNIQUE, "
    "password VARCHAR(255) NULL, "
    "age INTEGER NULL, "
    "active INTEGER DEFAULT 1, "
    "email_verified_at TIMESTAMP NULL, "
    "remember_token VARCHAR(100) NULL, "
    "created_at TIMESTAMP NULL, "
    "updated_at TIMESTAMP NULL)"
)


# ============================================================================
# Models used across tests
# ============================================================================

class Member(Model):
    table = "users"
    fillable = ("id", "name", "email", "password", "age", "active", "created_at")
    hidden = ("password",)


class Tag(Model):
    """No fillable list: every attribute is mass assignable."""


# ============================================================================
# Request Helpers
# ============================================================================

def make_request(
    method: str = "GET",
    path: str = "/",
    *,
    query_string: str = "",
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
    session: Optional[Session] = None,
) -> Request:
    """Build a Request without going through ASGI."""
    request = Request(
        build_scope(method, path, query_string=query_string, headers=list((headers or {}).items())),
        body,
    )
    if session is not None:
        request.state["session"] = session
    return request


def form_request(method: str, path: str, data: Dict[str, str], **kwargs) -> Request:
    from urllib.parse import urlencode

    headers = {"content-type": "application/x-www-form-urlencoded", **kwargs.pop("headers", {})}
    return make_request(method, path, headers=headers, body=urlencode(data).encode(), **kwargs)


def write_views(root: Path, views: Dict[str, str]) -> Path:
    """Write ``{"dotted.name": source}`` as Blade files under ``root``."""
    for name, source in views.items():
        path = root / (name.replace(".", "/") + ".blade.html")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
    return root


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def db():
    database = Database("sqlite:///:memory:")
    database.connect()
    database.statement(USERS_TABLE)
    yield database
    database.disconnect()


@pytest.fixture
def models(db):
    """Bind the base Model (and every subclass) to the in-memory database."""
    previous = Model.database
    Model.use(db)
    yield db
    Model.database = previous


@pytest.fixture
def seeded(models):
    rows: List[Dict] = [
        {"name": "Alice", "email": "alice@test.com", "age": 30, "active": 1},
        {"name": "Bob", "email": "bob@test.com", "age": 25, "active": 0},
        {"name": "Carol", "email": "carol@test.com", "age": 35, "active": 1},
    ]
    for row in rows:
        Member.create(row)
    return models


@pytest.fixture
def views_dir(tmp_path):
    path = tmp_path / "views"
    path.mkdir()
    return path


@pytest.fixture
def view(views_dir):
    return View(str(views_dir), app_url="http://localhost:8000")


@pytest.fixture
def session():
    return Session(id=SessionID())


@pytest.fixture
def config():
    return ConfigLoader({
        "app": {"name": "Test App", "env": "testing", "debug": False},
        "database": {"url": "sqlite:///:memory:"},
        "mail": {"mailer": "memory"},
    })


@pytest.fixture
def app_factory(tmp_path, config):
    """Build Applications rooted at ``tmp_path`` with in-memory services."""
    created = []
    previous = Model.database

    def factory(routes=None, *, views=None, debug=False, **kwargs) -> Application:
        (tmp_path / "resources" / "views").mkdir(parents=True, exist_ok=True)
        if views:
            write_views(tmp_path / "resources" / "views", views)
        config.set("app.debug", debug)
        mailer = Mailer(config.get_mail_config(), transport=MemoryTransport())
        app = Application(config, base_path=tmp_path, routes=routes, mailer=mailer, **kwargs)
        app.mailer.view = app.view
        app.database.statement(USERS_TABLE)
        created.append(app)
        return app

    yield factory

    for app in created:
        app.database.disconnect()
    Model.database = previous
