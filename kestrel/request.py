"""
Request - ASGI request wrapper.

The body is read once at the ASGI edge (``Request.from_asgi``); after
that every accessor is synchronous so controllers, middleware and views
never await anything.

Provides:
- Method override via the ``_method`` form field
- Query, form and JSON input merged into one ``input()`` view
- Header and cookie parsing
- Route parameters bound by the router
- Client IP detection with optional proxy trust
"""

from __future__ import annotations

import json as stdlib_json
import re
from http.cookies import SimpleCookie
from typing import (
    Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
)
from urllib.parse import parse_qsl

from .faults import Fault, FaultDomain, Severity


# ============================================================================
# Request Faults
# ============================================================================

class RequestFault(Fault):
    """Base class for request-related faults."""

    def __init__(self, code: str, message: str, **metadata):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.IO,
            severity=Severity.WARN,
            public=True,
            metadata=metadata,
        )


class PayloadTooLarge(RequestFault):
    """Request payload exceeds the configured limit (413)."""

    def __init__(self, max_allowed: int, actual: int):
        super().__init__(
            "PAYLOAD_TOO_LARGE",
            "Request body exceeds maximum size",
            max_allowed=max_allowed,
            actual=actual,
        )


OVERRIDABLE_METHODS = frozenset({"PUT", "PATCH", "DELETE"})
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def parse_form(body: str) -> Dict[str, Any]:
    """
    Parse an urlencoded body.

    Repeated keys keep the last value; ``name[]`` keys collect a list
    under ``name``.
    """
    data: Dict[str, Any] = {}
    for key, value in parse_qsl(body, keep_blank_values=True):
        if key.endswith("[]"):
            data.setdefault(key[:-2], []).append(value)
        else:
            data[key] = value
    return data


class Request:
    """
    HTTP request with a fully-buffered body.

    Args:
        scope: ASGI scope dict
        body: Complete request body
        trust_proxy: Honour X-Forwarded-For when resolving ``ip()``

    Example:
        request = await Request.from_asgi(scope, receive)
        request.input("email")
        request.only(["name", "email"])
    """

    def __init__(
        self,
        scope: Mapping[str, Any],
        body: bytes = b"",
        *,
        trust_proxy: bool = False,
    ):
        self.scope = scope
        self.body = body
        self.trust_proxy = trust_proxy

        # Request-scoped values set by the application (session, app, ...)
        self.state: Dict[str, Any] = {}
        self._parameters: Dict[str, str] = {}

        # Cached values
        self._headers: Optional[Dict[str, str]] = None
        self._query: Optional[Dict[str, Any]] = None
        self._form: Optional[Dict[str, Any]] = None
        self._json: Any = None
        self._json_parsed = False
        self._cookies: Optional[Dict[str, str]] = None

    @classmethod
    async def from_asgi(
        cls,
        scope: Mapping[str, Any],
        receive: Callable[[], Awaitable[dict]],
        *,
        max_body_size: int = 10_485_760,
        trust_proxy: bool = False,
    ) -> Request:
        """Read the whole body from ``receive`` and build the request."""
        chunks: List[bytes] = []
        total_size = 0
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                break
            chunk = message.get("body", b"")
            if chunk:
                total_size += len(chunk)
                if total_size > max_body_size:
                    raise PayloadTooLarge(max_body_size, total_size)
                chunks.append(chunk)
            if not message.get("more_body", False):
                break
        return cls(scope, b"".join(chunks), trust_proxy=trust_proxy)

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        """HTTP method, honouring a ``_method`` field on POST forms."""
        method = self.scope.get("method", "GET").upper()
        if method == "POST":
            override = str(self.form().get("_method", "")).upper()
            if override in OVERRIDABLE_METHODS:
                return override
        return method

    @property
    def path(self) -> str:
        return self.scope.get("path", "/") or "/"

    @property
    def query_string(self) -> str:
        return self.scope.get("query_string", b"").decode("latin-1")

    @property
    def url(self) -> str:
        """Full request URL."""
        scheme = self.scope.get("scheme", "http")
        host = self.header("host")
        if not host:
            server = self.scope.get("server")
            host = f"{server[0]}:{server[1]}" if server else "localhost"
        url = f"{scheme}://{host}{self.path}"
        if self.query_string:
            url += f"?{self.query_string}"
        return url

    def is_get(self) -> bool:
        return self.method == "GET"

    def is_post(self) -> bool:
        return self.method == "POST"

    def is_put(self) -> bool:
        return self.method == "PUT"

    def is_delete(self) -> bool:
        return self.method == "DELETE"

    # ========================================================================
    # Headers & Cookies
    # ========================================================================

    @property
    def headers(self) -> Dict[str, str]:
        """Lower-cased header names; repeated headers are comma-joined."""
        if self._headers is None:
            headers: Dict[str, str] = {}
            for raw_name, raw_value in self.scope.get("headers", []):
                name = raw_name.decode("latin-1").lower()
                value = raw_value.decode("latin-1")
                headers[name] = f"{headers[name]}, {value}" if name in headers else value
            self._headers = headers
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get single header (case-insensitive)."""
        return self.headers.get(name.lower(), default)

    @property
    def cookies(self) -> Dict[str, str]:
        if self._cookies is None:
            cookie_header = self.header("cookie", "")
            if cookie_header:
                cookie = SimpleCookie()
                cookie.load(cookie_header)
                self._cookies = {key: morsel.value for key, morsel in cookie.items()}
            else:
                self._cookies = {}
        return self._cookies

    def cookie(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.cookies.get(name, default)

    def user_agent(self) -> str:
        return self.header("user-agent", "")

    def ip(self) -> str:
        """Client IP address."""
        if self.trust_proxy:
            forwarded_for = self.header("x-forwarded-for")
            if forwarded_for:
                return forwarded_for.split(",")[0].strip()
            forwarded = self.header("forwarded")
            if forwarded:
                match = re.search(r'for="?\[?([^;,"\]]+)', forwarded)
                if match:
                    return match.group(1)
        client = self.scope.get("client")
        return client[0] if client else "0.0.0.0"

    def is_ajax(self) -> bool:
        return self.header("x-requested-with", "").lower() == "xmlhttprequest"

    def is_json(self) -> bool:
        content_type = self.header("content-type", "").lower()
        return "application/json" in content_type or "+json" in content_type

    def expects_json(self) -> bool:
        """True for AJAX requests and clients that accept JSON."""
        return self.is_ajax() or "application/json" in self.header("accept", "").lower()

    # ========================================================================
    # Input
    # ========================================================================

    def query(self, key: Optional[str] = None, default: Any = None) -> Any:
        """Query parameter ``key``, or every query parameter as a dict."""
        if self._query is None:
            self._query = parse_form(self.query_string)
        if key is None:
            return dict(self._query)
        return self._query.get(key, default)

    def form(self) -> Dict[str, Any]:
        """Urlencoded form body (empty for other content types)."""
        if self._form is None:
            content_type = self.header("content-type", "").lower()
            if content_type.startswith(FORM_CONTENT_TYPE):
                self._form = parse_form(self.body.decode("utf-8", errors="replace"))
            else:
                self._form = {}
        return self._form

    def json(self) -> Any:
        """Decoded JSON body, or None when absent or malformed."""
        if not self._json_parsed:
            self._json_parsed = True
            if self.body and self.is_json():
                try:
                    self._json = stdlib_json.loads(self.body)
                except (ValueError, UnicodeDecodeError):
                    self._json = None
        return self._json

    def all(self) -> Dict[str, Any]:
        """Query parameters merged with the body; body values win."""
        data = self.query()
        data.update(self.form())
        payload = self.json()
        if isinstance(payload, dict):
            data.update(payload)
        return data

    def input(self, key: Optional[str] = None, default: Any = None) -> Any:
        data = self.all()
        if key is None:
            return data
        return data.get(key, default)

    def only(self, keys: Iterable[str]) -> Dict[str, Any]:
        data = self.all()
        return {key: data[key] for key in keys if key in data}

    def except_(self, keys: Iterable[str]) -> Dict[str, Any]:
        excluded = set(keys)
        return {key: value for key, value in self.all().items() if key not in excluded}

    def has(self, key: str) -> bool:
        return key in self.all()

    def has_any(self, keys: Iterable[str]) -> bool:
        data = self.all()
        return any(key in data for key in keys)

    def has_all(self, keys: Iterable[str]) -> bool:
        data = self.all()
        return all(key in data for key in keys)

    # ========================================================================
    # Route parameters & request state
    # ========================================================================

    @property
    def parameters(self) -> Dict[str, str]:
        return dict(self._parameters)

    def parameter(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._parameters.get(key, default)

    def set_parameters(self, parameters: Mapping[str, str]) -> None:
        self._parameters = dict(parameters)

    @property
    def session(self) -> Optional[Any]:
        """Session attached by the application, if any."""
        return self.state.get("session")

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"


def build_scope(
    method: str = "GET",
    path: str = "/",
    *,
    query_string: str = "",
    headers: Optional[Iterable[Tuple[str, str]]] = None,
) -> Dict[str, Any]:
    """Minimal ASGI HTTP scope, for building requests outside a server."""
    return {
        "type": "http",
        "http_version": "1.1",
        "method": method.upper(),
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "query_string": query_string.encode(),
        "headers": [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or [])],
        "client": ("127.0.0.1", 0),
        "server": ("localhost", 80),
    }
