"""
Kestrel Model - attribute-bag active record over a bound Database.

Models declare their table shape with plain class attributes:

    class User(Model):
        table = "users"
        fillable = ("id", "name", "email", "password")
        hidden = ("password",)

    User.use(db)
    user = User.create({"name": "Alice", "email": "alice@test.com"})
    user = User.find(1)
    users = User.where({"active": 1}).order_by("name").get()
    user.set("name", "Bob").save()
    user["name"]  # "Bob"
    user.delete()

Every row read from the database is hydrated through ``fill()``, so
``fillable`` filters database rows exactly like mass assignment. A model
that needs its primary key after a read lists it in ``fillable``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Type, TypeVar

from ..db.engine import Database
from ..faults import DatabaseConnectionFault, ModelNotFoundFault, PersistenceFault
from .query import QueryBuilder

logger = logging.getLogger("kestrel.models")

M = TypeVar("M", bound="Model")

__all__ = ["Model", "table_name_for"]


def table_name_for(class_name: str) -> str:
    """
    Default table name: snake_case plural of the class name.

        User -> users, BlogPost -> blog_posts, Category -> categories
    """
    snake = re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", class_name).lower()
    if re.search(r"[^aeiou]y$", snake):
        return snake[:-1] + "ies"
    if snake.endswith(("s", "x", "z", "ch", "sh")):
        return snake + "es"
    return snake + "s"


class Model:
    """
    Base class for application models.

    Class attributes:
        table        -- table name (defaults to the snake_case plural)
        primary_key  -- primary key column, ``"id"`` by default
        fillable     -- mass-assignable names; empty means everything
        hidden       -- names removed by ``to_array()`` / ``to_json()``
        database     -- bound Database (see ``use()``)
    """

    table: ClassVar[Optional[str]] = None
    primary_key: ClassVar[str] = "id"
    fillable: ClassVar[Sequence[str]] = ()
    hidden: ClassVar[Sequence[str]] = ()
    database: ClassVar[Optional[Database]] = None

    def __init__(self, attributes: Optional[Mapping[str, Any]] = None):
        self._attributes: Dict[str, Any] = {}
        if attributes:
            self.fill(attributes)

    # ── Class-level DB ───────────────────────────────────────────────

    @classmethod
    def use(cls, db: Database) -> None:
        """Bind ``db`` to this model class (and subclasses that don't override it)."""
        cls.database = db

    @classmethod
    def get_database(cls) -> Database:
        db = cls.database
        if db is None:
            raise DatabaseConnectionFault(
                url="<unbound>",
                reason=f"No database bound to model {cls.__name__}; call {cls.__name__}.use(db)",
            )
        return db

    @classmethod
    def get_table(cls) -> str:
        return cls.table or table_name_for(cls.__name__)

    @classmethod
    def from_row(cls: Type[M], row: Mapping[str, Any]) -> M:
        """Hydrate an instance from a database row (through ``fill``)."""
        return cls(row)

    # ── Finders ──────────────────────────────────────────────────────

    @classmethod
    def query(cls) -> QueryBuilder:
        return QueryBuilder(cls)

    @classmethod
    def all(cls: Type[M]) -> List[M]:
        return cls.query().get()

    @classmethod
    def find(cls: Type[M], id: Any) -> Optional[M]:
        return cls.query().where(cls.primary_key, "=", id).first()

    @classmethod
    def find_or_fail(cls: Type[M], id: Any) -> M:
        model = cls.find(id)
        if model is None:
            raise ModelNotFoundFault(model=cls.__name__, key=id)
        return model

    @classmethod
    def first(cls: Type[M]) -> Optional[M]:
        return cls.query().first()

    @classmethod
    def find_all_by(cls: Type[M], column: str, value: Any) -> List[M]:
        return cls.query().where(column, "=", value).get()

    @classmethod
    def where(cls, column: Any, value: Any = None):
        """
        Convenience wrapper.

        A mapping or list of conditions returns a QueryBuilder for further
        chaining; a column/value pair returns the matching models.
        """
        if isinstance(column, (Mapping, list, tuple)):
            return cls.query().where_array(column)
        return cls.query().where(column, "=", value).get()

    @classmethod
    def where_first(cls: Type[M], column: str, value: Any) -> Optional[M]:
        return cls.query().where(column, "=", value).first()

    @classmethod
    def create(cls: Type[M], attributes: Mapping[str, Any]) -> M:
        """
        Create and persist a new record.

        Raises:
            PersistenceFault: the insert did not produce a row.
        """
        instance = cls(attributes)
        if not instance.save():
            raise PersistenceFault(model=cls.__name__, operation="create")
        return instance

    # ── Persistence ──────────────────────────────────────────────────

    def save(self) -> bool:
        """
        Insert when the primary key attribute is absent, update otherwise.

        Presence of the key is the only test: a fresh instance with a
        hand-set primary key is routed through ``UPDATE`` and, if no row
        has that key yet, saves nothing and returns False.
        """
        if self.primary_key in self._attributes:
            return self._perform_update()
        return self._perform_insert()

    def _fillable_attributes(self) -> Dict[str, Any]:
        if not self.fillable:
            return dict(self._attributes)
        return {k: v for k, v in self._attributes.items() if k in self.fillable}

    def _perform_insert(self) -> bool:
        data = self._fillable_attributes()
        if not data:
            return False

        table = self.get_table()
        columns = ", ".join(data)
        placeholders = ", ".join("?" for _ in data)
        new_id = self.get_database().insert(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            list(data.values()),
        )
        if not new_id:
            return False

        # Bypass the fillable filter: the key is set even when not fillable
        self._attributes[self.primary_key] = new_id
        logger.debug(f"Inserted {type(self).__name__} {self.primary_key}={new_id}")
        return True

    def _perform_update(self) -> bool:
        data = self._fillable_attributes()
        data.pop(self.primary_key, None)
        if not data:
            return False

        table = self.get_table()
        set_clause = ", ".join(f"{column} = ?" for column in data)
        affected = self.get_database().update(
            f"UPDATE {table} SET {set_clause} WHERE {self.primary_key} = ?",
            [*data.values(), self._attributes[self.primary_key]],
        )
        return affected > 0

    def delete(self) -> bool:
        """Delete the row; in-memory attributes are left untouched."""
        if self.primary_key not in self._attributes:
            return False
        affected = self.get_database().delete(
            f"DELETE FROM {self.get_table()} WHERE {self.primary_key} = ?",
            [self._attributes[self.primary_key]],
        )
        return affected > 0

    def refresh(self: M) -> M:
        """Reload attributes from the database."""
        if self.primary_key not in self._attributes:
            raise ModelNotFoundFault(model=type(self).__name__, key=None)
        fresh = type(self).find_or_fail(self._attributes[self.primary_key])
        self._attributes.update(fresh._attributes)
        return self

    # ── Attributes ───────────────────────────────────────────────────

    def _is_fillable(self, key: str) -> bool:
        return not self.fillable or key in self.fillable

    def fill(self: M, attributes: Mapping[str, Any]) -> M:
        for key, value in dict(attributes).items():
            if self._is_fillable(key):
                self._attributes[key] = value
        return self

    def get(self, key: str, default: Any = None) -> Any:
        return self._attributes.get(key, default)

    def set(self: M, key: str, value: Any) -> M:
        if self._is_fillable(key):
            self._attributes[key] = value
        return self

    def has(self, key: str) -> bool:
        return key in self._attributes

    def unset(self, key: str) -> None:
        self._attributes.pop(key, None)

    @property
    def attributes(self) -> Dict[str, Any]:
        return dict(self._attributes)

    def get_key(self) -> Any:
        return self._attributes.get(self.primary_key)

    def to_array(self) -> Dict[str, Any]:
        return {k: v for k, v in self._attributes.items() if k not in self.hidden}

    def to_json(self) -> str:
        return json.dumps(self.to_array(), default=str)

    # ── Dunder ───────────────────────────────────────────────────────

    def __getitem__(self, key: str) -> Any:
        return self._attributes[key]

    def __contains__(self, key: object) -> bool:
        return key in self._attributes

    def __eq__(self, other: Any) -> bool:
        if other is self:
            return True
        if not isinstance(other, self.__class__):
            return False
        key = self.get_key()
        return key is not None and key == other.get_key()

    def __hash__(self) -> int:
        return hash((self.__class__.__name__, self.get_key()))

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.primary_key}={self.get_key()!r}>"
