"""
Kestrel Paginator - one page of query results plus navigation metadata.

A Paginator is an immutable snapshot: ``appends()`` returns a new
instance rather than changing the receiver.

Usage::

    page = User.query().order_by("name").paginate(per_page=10, page=2)
    page.last_page            # 3
    page.next_page_url()      # "?page=3"
    page.appends({"q": "ann"}).next_page_url()   # "?q=ann&page=3"
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urlencode


__all__ = ["Paginator"]


class Paginator:
    __slots__ = ("_items", "_total", "_per_page", "_current_page", "_query")

    def __init__(
        self,
        items: Sequence[Any],
        total: int,
        per_page: int,
        current_page: int = 1,
        query: Optional[Mapping[str, Any]] = None,
    ):
        self._items = tuple(items)
        self._total = max(int(total), 0)
        self._per_page = max(int(per_page), 1)
        self._current_page = max(int(current_page), 1)
        self._query: Dict[str, Any] = dict(query or {})

    # ── Snapshot values ──────────────────────────────────────────────

    @property
    def items(self) -> List[Any]:
        return list(self._items)

    @property
    def total(self) -> int:
        return self._total

    @property
    def per_page(self) -> int:
        return self._per_page

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def last_page(self) -> int:
        return max(math.ceil(self._total / self._per_page), 1)

    @property
    def from_(self) -> int:
        if self._total == 0:
            return 0
        return (self._current_page - 1) * self._per_page + 1

    @property
    def to(self) -> int:
        if self._total == 0:
            return 0
        return min(self._current_page * self._per_page, self._total)

    def has_more_pages(self) -> bool:
        return self._current_page < self.last_page

    def has_previous_pages(self) -> bool:
        return self._current_page > 1

    # ── URLs ─────────────────────────────────────────────────────────

    def url(self, page: int) -> str:
        """Query-string URL for ``page`` carrying every appended parameter."""
        params = {k: v for k, v in self._query.items() if k != "page"}
        params["page"] = page
        return "?" + urlencode(params, doseq=True)

    def next_page_url(self) -> Optional[str]:
        if not self.has_more_pages():
            return None
        return self.url(self._current_page + 1)

    def previous_page_url(self) -> Optional[str]:
        if not self.has_previous_pages():
            return None
        return self.url(self._current_page - 1)

    def appends(self, params: Mapping[str, Any]) -> Paginator:
        query = {**self._query, **dict(params)}
        return Paginator(self._items, self._total, self._per_page, self._current_page, query)

    def page_range(self) -> List[int]:
        return list(range(1, self.last_page + 1))

    # ── Serialization ────────────────────────────────────────────────

    def data(self) -> List[Any]:
        """Items converted with ``to_array()`` where they support it."""
        return [
            item.to_array() if hasattr(item, "to_array") else item
            for item in self._items
        ]

    def to_array(self) -> Dict[str, Any]:
        return {
            "data": self.data(),
            "current_page": self._current_page,
            "per_page": self._per_page,
            "total": self._total,
            "last_page": self.last_page,
            "from": self.from_,
            "to": self.to,
            "next_page_url": self.next_page_url(),
            "prev_page_url": self.previous_page_url(),
        }

    # ── Dunder ───────────────────────────────────────────────────────

    def __iter__(self):
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __repr__(self) -> str:
        return (
            f"<Paginator page={self._current_page}/{self.last_page} "
            f"total={self._total} per_page={self._per_page}>"
        )
