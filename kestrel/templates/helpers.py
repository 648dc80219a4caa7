"""
View helpers - globals and filters available to every compiled view.

The compiler emits calls to the underscore-prefixed helpers
(``_yield``, ``_extend``, ``_error``, ...); the others are part of the
public template vocabulary (``count``, ``empty``, ``old``, ``url``, ...).

Session-aware helpers read the session from the ``__session`` context
variable, which ``View.render`` sets when a session is passed in.
"""

import datetime
from collections.abc import Mapping, Sized
from typing import Any, Callable, Dict, Optional

from jinja2 import Undefined, pass_context
from jinja2.runtime import Context
from jinja2.utils import htmlsafe_json_dumps
from markupsafe import Markup, escape


SESSION_KEY = "__session"
SECTIONS_KEY = "__sections"


def _missing(value: Any) -> bool:
    return value is None or isinstance(value, Undefined)


def _session(context: Context) -> Any:
    session = context.get(SESSION_KEY)
    return None if _missing(session) else session


def finalize(value: Any) -> Any:
    """Render None as an empty string."""
    return "" if value is None else value


# ============================================================================
# Value helpers
# ============================================================================

def count(value: Any) -> int:
    if _missing(value):
        return 0
    if isinstance(value, Sized):
        return len(value)
    return len(list(value))


def empty(value: Any) -> bool:
    if _missing(value):
        return True
    if isinstance(value, str):
        return value == "" or value == "0"
    return not value


def isset(value: Any) -> bool:
    return not _missing(value)


def _coalesce(*values: Any) -> Any:
    for value in values:
        if not _missing(value):
            return value
    return values[-1] if values else None


def _raw(value: Any) -> Markup:
    if _missing(value):
        return Markup("")
    return Markup(str(value))


def _json_default(value: Any) -> Any:
    if hasattr(value, "to_array"):
        return value.to_array()
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return str(value)


def _json(value: Any) -> Markup:
    return htmlsafe_json_dumps(value, default=_json_default)


def _pairs(value: Any):
    """Key/value pairs for ``@foreach($xs as $k => $v)``."""
    if _missing(value):
        return []
    if hasattr(value, "to_array") and not isinstance(value, Mapping):
        value = value.to_array()
    if isinstance(value, Mapping):
        return list(value.items())
    return list(enumerate(value))


class BladeLoop:
    """Loop metadata with Blade's names on top of Jinja2's ``loop``."""

    __slots__ = ("_loop",)

    def __init__(self, loop: Any):
        self._loop = loop

    @property
    def index(self) -> int:
        return self._loop.index0

    @property
    def iteration(self) -> int:
        return self._loop.index

    @property
    def remaining(self) -> int:
        return self._loop.revindex0

    @property
    def count(self) -> int:
        return self._loop.length

    @property
    def first(self) -> bool:
        return self._loop.first

    @property
    def last(self) -> bool:
        return self._loop.last

    @property
    def even(self) -> bool:
        return self._loop.index % 2 == 0

    @property
    def odd(self) -> bool:
        return self._loop.index % 2 == 1


def _loop(loop: Any) -> BladeLoop:
    return BladeLoop(loop)


def method_field(method: str) -> Markup:
    return Markup('<input type="hidden" name="_method" value="%s">') % str(method).upper()


# ============================================================================
# Session helpers
# ============================================================================

@pass_context
def csrf_token(context: Context) -> str:
    session = _session(context)
    return session.csrf_token() if session is not None else ""


@pass_context
def csrf_field(context: Context) -> Markup:
    return Markup('<input type="hidden" name="_token" value="%s">') % csrf_token(context)


@pass_context
def old(context: Context, key: str, default: Any = None) -> Any:
    session = _session(context)
    if session is None:
        return default
    return session.get_old_input(key, default)


@pass_context
def _error(context: Context, field: str) -> Optional[str]:
    session = _session(context)
    return session.get_error(field) if session is not None else None


@pass_context
def has_flash(context: Context, key: str) -> bool:
    session = _session(context)
    return session is not None and session.has_flash(key)


@pass_context
def flash(context: Context, key: str, default: Any = None) -> Any:
    session = _session(context)
    return session.get_flash(key, default) if session is not None else default


# ============================================================================
# Layout helpers
# ============================================================================

def _sections(context: Context) -> Dict[str, Any]:
    sections = context.get(SECTIONS_KEY)
    return {} if _missing(sections) else sections


@pass_context
def _has_section(context: Context, name: str) -> bool:
    return name in _sections(context)


@pass_context
def _yield(context: Context, name: str, default: Any = "") -> Any:
    return _sections(context).get(name, default)


@pass_context
def _extend(context: Context, layout: str, sections: Dict[str, Any]) -> Markup:
    """
    Render ``layout`` with the current data and the collected sections.

    Sections inherited from a more derived template win over the ones
    defined here.
    """
    merged = {**sections, **_sections(context)}
    template = context.environment.get_template(layout)
    data = {**context.get_all(), SECTIONS_KEY: merged}
    return Markup(template.render(data))


# ============================================================================
# Registries
# ============================================================================

def create_view_globals(app_url: str = "") -> Dict[str, Any]:
    """Globals registered on every View environment."""

    def url(path: str = "") -> str:
        base = app_url.rstrip("/")
        if not path:
            return base or "/"
        return f"{base}/{str(path).lstrip('/')}"

    return {
        "count": count,
        "empty": empty,
        "isset": isset,
        "url": url,
        "old": old,
        "csrf_token": csrf_token,
        "csrf_field": csrf_field,
        "method_field": method_field,
        "has_flash": has_flash,
        "flash": flash,
        "_coalesce": _coalesce,
        "_raw": _raw,
        "_json": _json,
        "_pairs": _pairs,
        "_loop": _loop,
        "_error": _error,
        "_has_section": _has_section,
        "_yield": _yield,
        "_extend": _extend,
    }


def create_view_filters() -> Dict[str, Callable]:
    def format_date(value, format_string: str = "%Y-%m-%d") -> str:
        """Format date/datetime object."""
        if isinstance(value, (datetime.date, datetime.datetime)):
            return value.strftime(format_string)
        if isinstance(value, str) and value:
            try:
                return datetime.datetime.fromisoformat(value).strftime(format_string)
            except ValueError:
                return value
        return "" if value is None else str(value)

    def pluralize(value: int, singular: str = "", plural: str = "s") -> str:
        """Return plural suffix based on count."""
        if value == 1:
            return singular
        return plural

    return {
        "format_date": format_date,
        "pluralize": pluralize,
    }
