"""
Kestrel Query Builder - chainable, immutable, synchronous.

Every chain method returns a NEW QueryBuilder (the receiver is never
mutated), so a builder can be reused, branched, or cloned for a count
query without one branch leaking into another. Terminal methods (get,
first, count, paginate) execute through the model's Database.

Usage:
    users = User.query().where("active", 1).order_by("name").limit(10).get()
    admins = User.query().where_array({"role": "admin", "deleted_at": None}).get()
    page = User.query().where("age", ">", 18).paginate(15, page=2)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Type, TYPE_CHECKING

from ..faults import QueryFault
from .pagination import Paginator

if TYPE_CHECKING:
    from ..request import Request
    from .base import Model

__all__ = ["QueryBuilder", "WhereCondition"]


_MISSING: Any = object()

OPERATORS = frozenset({
    "=", "!=", "<>", "<", ">", "<=", ">=",
    "LIKE", "NOT LIKE", "IN", "NOT IN", "BETWEEN",
    "IS NULL", "IS NOT NULL",
})

NULL_OPERATORS = frozenset({"IS NULL", "IS NOT NULL"})

_COLUMN_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


def _check_column(column: str, operation: str) -> str:
    if not isinstance(column, str) or not _COLUMN_RE.match(column):
        raise QueryFault(
            model="<builder>",
            operation=operation,
            reason=f"Invalid column name: {column!r}",
        )
    return column


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


# ── Where condition ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class WhereCondition:
    """
    One normalized WHERE condition.

    List values are stored as tuples, so a condition shared between two
    builders can never be changed through either of them.
    """

    column: str
    operator: str
    value: Any = None
    boolean: str = "AND"

    def compile(self) -> Tuple[str, List[Any]]:
        """Return the SQL fragment and the parameters it binds, in order."""
        column, operator, value = self.column, self.operator, self.value

        if operator in NULL_OPERATORS:
            return f"{column} {operator}", []

        if operator in ("IN", "NOT IN"):
            if isinstance(value, tuple):
                if not value:
                    # Empty lists: IN matches nothing, NOT IN matches everything
                    return ("1 = 0" if operator == "IN" else "1 = 1"), []
                placeholders = ", ".join("?" for _ in value)
                return f"{column} {operator} ({placeholders})", list(value)
            return f"{column} {operator} (?)", [value]

        if operator == "BETWEEN":
            low, high = value
            return f"{column} BETWEEN ? AND ?", [low, high]

        return f"{column} {operator} ?", [value]


# ── QueryBuilder ─────────────────────────────────────────────────────────────


class QueryBuilder:
    """
    Fluent SQL builder bound to one model class (and so one table).

    Chain methods (return a new builder):
        where(column, operator, value)  - normalized condition
        where_array(conditions)         - mapping / list of triples
        where_null / where_not_null / where_in / where_not_in
        where_between / where_not_empty
        order_by(column, direction)     - ORDER BY
        group_by(*columns)              - GROUP BY
        select(columns) / select_raw(raw)
        limit(n) / offset(n)

    Terminal methods:
        get()        - List[Model]
        first()      - Optional[Model]
        count()      - int
        exists()     - bool
        to_array()   - List[dict]
        paginate()   - Paginator
        to_sql()     - (sql, params) without executing
    """

    __slots__ = (
        "_model_cls",
        "_table",
        "_wheres",
        "_orders",
        "_group_by",
        "_columns",
        "_limit_val",
        "_offset_val",
    )

    def __init__(self, model_cls: Type[Model]):
        self._model_cls = model_cls
        self._table: str = model_cls.get_table()
        self._wheres: List[WhereCondition] = []
        self._orders: List[Tuple[str, str]] = []
        self._group_by: List[str] = []
        self._columns: List[str] = ["*"]
        self._limit_val: Optional[int] = None
        self._offset_val: Optional[int] = None

    # ── Internal ─────────────────────────────────────────────────────

    def _clone(self) -> QueryBuilder:
        """Create an independent copy of this builder."""
        c = QueryBuilder.__new__(QueryBuilder)
        c._model_cls = self._model_cls
        c._table = self._table
        c._wheres = self._wheres.copy()
        c._orders = self._orders.copy()
        c._group_by = self._group_by.copy()
        c._columns = self._columns.copy()
        c._limit_val = self._limit_val
        c._offset_val = self._offset_val
        return c

    def _add(self, condition: WhereCondition) -> QueryBuilder:
        c = self._clone()
        c._wheres.append(condition)
        return c

    @property
    def model(self) -> Type[Model]:
        return self._model_cls

    @property
    def table(self) -> str:
        return self._table

    @property
    def wheres(self) -> Tuple[WhereCondition, ...]:
        return tuple(self._wheres)

    # ── Chain methods (return new builder) ───────────────────────────

    def where(self, column: str, operator: Any = _MISSING, value: Any = _MISSING) -> QueryBuilder:
        """
        Add a WHERE condition joined with AND.

        Normalization:
            where(col, value)            -> col = ?
            where(col, "=", None)        -> col IS NULL
            where(col, "!=", None)       -> col IS NOT NULL
            where(col, "IS NULL")        -> col IS NULL
            where(col, "=", [a, b])      -> col IN (?, ?)
        """
        _check_column(column, "where")

        if operator is _MISSING:
            operator, value = "=", None
        elif value is _MISSING:
            if isinstance(operator, str) and operator.upper() in NULL_OPERATORS:
                operator, value = operator.upper(), None
            else:
                operator, value = "=", operator

        if not isinstance(operator, str) or operator.upper() not in OPERATORS:
            raise QueryFault(
                model=self._model_cls.__name__,
                operation="where",
                reason=f"Unsupported operator: {operator!r}",
            )
        operator = operator.upper()

        if value is None:
            if operator in ("=", "IS NULL"):
                operator = "IS NULL"
            elif operator in ("!=", "<>", "IS NOT NULL"):
                operator = "IS NOT NULL"

        if _is_list(value):
            value = tuple(value)
            if operator == "=":
                operator = "IN"

        if operator == "BETWEEN" and not (isinstance(value, tuple) and len(value) == 2):
            raise QueryFault(
                model=self._model_cls.__name__,
                operation="where_between",
                reason=f"BETWEEN needs exactly two values, got {value!r}",
            )

        return self._add(WhereCondition(column, operator, value))

    def where_array(self, conditions: Mapping[Any, Any] | Sequence[Any]) -> QueryBuilder:
        """
        Add several conditions at once.

        Accepts a mapping ``{"column": value}`` (equality, or IS NULL for
        None), a list of ``[column, operator, value]`` / ``[column, value]``
        entries, or a mapping mixing both (integer keys hold entries).
        """
        if isinstance(conditions, Mapping):
            items = list(conditions.items())
        else:
            items = list(enumerate(conditions))

        qb = self
        for key, value in items:
            if isinstance(key, int):
                if not _is_list(value) or len(value) < 2:
                    raise QueryFault(
                        model=self._model_cls.__name__,
                        operation="where_array",
                        reason=f"Entry {key} must be [column, operator, value], got {value!r}",
                    )
                entry = list(value)
                if len(entry) == 2:
                    qb = qb.where(entry[0], entry[1])
                else:
                    qb = qb.where(entry[0], entry[1], entry[2])
            elif value is None:
                qb = qb.where(key, "IS NULL")
            else:
                qb = qb.where(key, "=", value)
        return qb

    def where_null(self, column: str) -> QueryBuilder:
        return self.where(column, "IS NULL")

    def where_not_null(self, column: str) -> QueryBuilder:
        return self.where(column, "IS NOT NULL")

    def where_in(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self.where(column, "IN", list(values))

    def where_not_in(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self.where(column, "NOT IN", list(values))

    def where_between(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self.where(column, "BETWEEN", list(values))

    def where_not_empty(self, column: str) -> QueryBuilder:
        """Column is neither NULL nor the empty string."""
        return self.where(column, "IS NOT NULL").where(column, "!=", "")

    def order_by(self, column: str, direction: str = "ASC") -> QueryBuilder:
        _check_column(column, "order_by")
        direction = direction.upper()
        if direction not in ("ASC", "DESC"):
            raise QueryFault(
                model=self._model_cls.__name__,
                operation="order_by",
                reason=f"Direction must be ASC or DESC, got {direction!r}",
            )
        c = self._clone()
        c._orders.append((column, direction))
        return c

    def latest(self, column: str = "created_at") -> QueryBuilder:
        return self.order_by(column, "DESC")

    def group_by(self, *columns: str) -> QueryBuilder:
        c = self._clone()
        c._group_by.extend(_check_column(col, "group_by") for col in columns)
        return c

    def select(self, columns: Sequence[str] | str, *more: str) -> QueryBuilder:
        if isinstance(columns, str):
            columns = [columns, *more]
        c = self._clone()
        c._columns = [_check_column(col, "select") if col != "*" else col for col in columns]
        return c

    def select_raw(self, raw: str) -> QueryBuilder:
        """Replace the select list with a raw expression (not escaped)."""
        c = self._clone()
        c._columns = [raw]
        return c

    def limit(self, n: int) -> QueryBuilder:
        c = self._clone()
        c._limit_val = max(int(n), 0)
        return c

    def offset(self, n: int) -> QueryBuilder:
        c = self._clone()
        c._offset_val = max(int(n), 0)
        return c

    def take(self, n: int) -> QueryBuilder:
        return self.limit(n)

    def skip(self, n: int) -> QueryBuilder:
        return self.offset(n)

    # ── SQL assembly ─────────────────────────────────────────────────

    def _compile_wheres(self) -> Tuple[str, List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        for condition in self._wheres:
            fragment, bound = condition.compile()
            clauses.append(fragment)
            params.extend(bound)
        return " AND ".join(clauses), params

    def to_sql(self) -> Tuple[str, List[Any]]:
        """
        Build the SELECT statement and its parameters.

        Clause order is fixed: SELECT/FROM, WHERE, GROUP BY, ORDER BY,
        LIMIT, OFFSET (OFFSET only follows a LIMIT).
        """
        sql = f"SELECT {', '.join(self._columns)} FROM {self._table}"
        params: List[Any] = []

        if self._wheres:
            where_sql, params = self._compile_wheres()
            sql += f" WHERE {where_sql}"

        if self._group_by:
            sql += f" GROUP BY {', '.join(self._group_by)}"

        if self._orders:
            sql += " ORDER BY " + ", ".join(f"{col} {direction}" for col, direction in self._orders)

        if self._limit_val is not None:
            sql += f" LIMIT {self._limit_val}"
            if self._offset_val is not None:
                sql += f" OFFSET {self._offset_val}"

        return sql, params

    def to_count_sql(self) -> Tuple[str, List[Any]]:
        """
        Build the COUNT query used by ``count()`` and ``paginate()``.

        Keeps WHERE and GROUP BY, drops ordering, limit and offset. Grouped
        queries are counted through a subquery so the result is the number
        of groups rather than the size of the first group.
        """
        counter = self._clone()
        counter._orders = []
        counter._limit_val = None
        counter._offset_val = None

        if counter._group_by:
            counter._columns = list(counter._group_by)
            inner_sql, params = counter.to_sql()
            return f"SELECT COUNT(*) AS total FROM ({inner_sql}) AS grouped", params

        counter._columns = ["COUNT(*) AS total"]
        return counter.to_sql()

    # ── Terminal methods ─────────────────────────────────────────────

    def get(self) -> List[Model]:
        """Execute and hydrate every row through the model's fill path."""
        sql, params = self.to_sql()
        rows = self._model_cls.get_database().select(sql, params)
        return [self._model_cls.from_row(row) for row in rows]

    def all(self) -> List[Model]:
        return self.get()

    def first(self) -> Optional[Model]:
        """Return the first matching row or None."""
        results = self.limit(1).get()
        return results[0] if results else None

    def count(self) -> int:
        sql, params = self.to_count_sql()
        row = self._model_cls.get_database().first(sql, params)
        return int((row or {}).get("total") or 0)

    def exists(self) -> bool:
        return self.limit(1).select_raw("1").first_row() is not None

    def first_row(self) -> Optional[Dict[str, Any]]:
        """First raw row (a dict), without hydration."""
        sql, params = self.to_sql()
        return self._model_cls.get_database().first(sql, params)

    def to_array(self) -> List[Dict[str, Any]]:
        return [model.to_array() for model in self.get()]

    def paginate(
        self,
        per_page: int = 15,
        page: Optional[int] = None,
        request: Optional[Request] = None,
    ) -> Paginator:
        """
        Execute one page of results plus a total count.

        The page defaults to the request's ``page`` query parameter, else 1.
        Other query parameters of the request are carried into the
        paginator's navigation URLs.
        """
        per_page = max(int(per_page), 1)
        if page is None:
            page = _page_from_request(request)
        page = max(int(page), 1)

        total = self.count()
        items = self.limit(per_page).offset((page - 1) * per_page).get()

        paginator = Paginator(items, total, per_page, page)
        if request is not None:
            carried = {k: v for k, v in request.query().items() if k != "page"}
            if carried:
                paginator = paginator.appends(carried)
        return paginator

    # ── Dunder ───────────────────────────────────────────────────────

    def __iter__(self):
        return iter(self.get())

    def __repr__(self) -> str:
        sql, params = self.to_sql()
        return f"<QueryBuilder {self._model_cls.__name__}: {sql} {params!r}>"


def _page_from_request(request: Optional[Request]) -> int:
    if request is None:
        return 1
    raw = request.query("page", 1)
    try:
        return max(int(raw), 1)
    except (TypeError, ValueError):
        return 1
