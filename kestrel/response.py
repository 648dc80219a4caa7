"""
Response - HTTP response builder.

Provides:
- HTML, JSON, text and redirect factories
- Multi-value headers (Set-Cookie) with injection checks
- Cookie helpers
- ASGI 3 sending
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from email.utils import formatdate
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .faults import Fault, FaultDomain


def _json_default_serializer(o):
    """Serialize values json does not know about."""
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    if isinstance(o, Decimal):
        return float(o)
    if hasattr(o, "to_array"):
        return o.to_array()
    if isinstance(o, (set, frozenset)):
        return list(o)
    return str(o)


class InvalidHeaderError(Fault):
    """Header name or value contains control characters."""

    def __init__(self, name: str):
        super().__init__(
            code="INVALID_HEADER",
            message=f"Invalid header: {name!r}",
            domain=FaultDomain.IO,
            metadata={"header": name},
        )


class Response:
    """
    HTTP response.

    Args:
        content: Body as bytes, str, or dict/list (JSON encoded)
        status: HTTP status code
        headers: Initial headers (list values become repeated headers)
        media_type: Content-Type override
    """

    def __init__(
        self,
        content: Union[bytes, str, Mapping, Sequence, None] = b"",
        status: int = 200,
        headers: Optional[Mapping[str, Union[str, Sequence[str]]]] = None,
        media_type: Optional[str] = None,
        *,
        encoding: str = "utf-8",
    ):
        self.status = status
        self.encoding = encoding
        self._headers: Dict[str, Union[str, List[str]]] = {}
        if headers:
            for key, value in headers.items():
                if isinstance(value, (list, tuple)):
                    self._headers[key.lower()] = list(value)
                else:
                    self._headers[key.lower()] = value

        if media_type:
            self._headers["content-type"] = media_type
        elif "content-type" not in self._headers:
            self._headers["content-type"] = self._detect_media_type(content)

        self.body = self._encode_body(content)

    @property
    def headers(self) -> Dict[str, Union[str, List[str]]]:
        return self._headers

    @property
    def content_type(self) -> str:
        return str(self._headers.get("content-type", ""))

    @property
    def content(self) -> str:
        """Decoded body."""
        return self.body.decode(self.encoding)

    def _detect_media_type(self, content: Any) -> str:
        if isinstance(content, (dict, list)):
            return "application/json; charset=utf-8"
        if isinstance(content, str):
            return "text/html; charset=utf-8"
        return "application/octet-stream"

    def _encode_body(self, content: Any) -> bytes:
        if content is None:
            return b""
        if isinstance(content, bytes):
            return content
        if isinstance(content, str):
            return content.encode(self.encoding)
        if isinstance(content, (dict, list)):
            return json.dumps(content, default=_json_default_serializer).encode(self.encoding)
        return str(content).encode(self.encoding)

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def json(
        cls,
        obj: Any,
        status: int = 200,
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Response:
        content = json.dumps(obj, default=_json_default_serializer)
        return cls(
            content=content,
            status=status,
            headers=headers,
            media_type="application/json; charset=utf-8",
        )

    @classmethod
    def html(cls, content: str, status: int = 200, **kwargs) -> Response:
        return cls(content=content, status=status, media_type="text/html; charset=utf-8", **kwargs)

    @classmethod
    def text(cls, content: str, status: int = 200, **kwargs) -> Response:
        return cls(content=content, status=status, media_type="text/plain; charset=utf-8", **kwargs)

    @classmethod
    def redirect(
        cls,
        url: str,
        status: int = 302,
        *,
        headers: Optional[Dict[str, str]] = None,
    ) -> Response:
        """Redirect to ``url`` (302 Found by default)."""
        redirect_headers = {"location": url}
        if headers:
            redirect_headers.update(headers)
        return cls(content=b"", status=status, headers=redirect_headers, media_type="text/html; charset=utf-8")

    # ========================================================================
    # Cookies
    # ========================================================================

    def set_cookie(
        self,
        name: str,
        value: str,
        *,
        max_age: Optional[int] = None,
        expires: Optional[datetime] = None,
        path: str = "/",
        domain: Optional[str] = None,
        secure: bool = False,
        httponly: bool = True,
        samesite: Optional[str] = "Lax",
    ) -> None:
        cookie_parts = [f"{name}={value}"]
        if max_age is not None:
            cookie_parts.append(f"Max-Age={max_age}")
        if expires:
            cookie_parts.append(f"Expires={formatdate(expires.timestamp(), usegmt=True)}")
        cookie_parts.append(f"Path={path}")
        if domain:
            cookie_parts.append(f"Domain={domain}")
        if secure:
            cookie_parts.append("Secure")
        if httponly:
            cookie_parts.append("HttpOnly")
        if samesite:
            cookie_parts.append(f"SameSite={samesite}")

        self.add_header("set-cookie", "; ".join(cookie_parts))

    def delete_cookie(self, name: str, path: str = "/", domain: Optional[str] = None) -> None:
        self.set_cookie(
            name,
            "",
            max_age=0,
            expires=datetime.fromtimestamp(0, tz=timezone.utc),
            path=path,
            domain=domain,
            httponly=False,
            samesite=None,
        )

    # ========================================================================
    # Header Helpers
    # ========================================================================

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self._headers.get(name.lower())
        if value is None:
            return default
        return value[-1] if isinstance(value, list) else value

    def set_header(self, name: str, value: str) -> None:
        self._validate_header(name, value)
        self._headers[name.lower()] = value

    def add_header(self, name: str, value: str) -> None:
        """Add a header, keeping existing values (e.g. several Set-Cookie)."""
        self._validate_header(name, value)
        name_lower = name.lower()
        existing = self._headers.get(name_lower)
        if existing is None:
            self._headers[name_lower] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            self._headers[name_lower] = [existing, value]

    def unset_header(self, name: str) -> None:
        self._headers.pop(name.lower(), None)

    def _validate_header(self, name: str, value: str) -> None:
        if any(ord(char) < 32 for char in name) or "\r" in value or "\n" in value:
            raise InvalidHeaderError(name)

    # ========================================================================
    # ASGI
    # ========================================================================

    def _prepare_headers(self) -> List[tuple]:
        headers_list = []
        for name, value in self._headers.items():
            name_bytes = name.encode("latin-1")
            if isinstance(value, list):
                for v in value:
                    headers_list.append((name_bytes, v.encode("latin-1")))
            else:
                headers_list.append((name_bytes, value.encode("latin-1")))
        return headers_list

    async def send_asgi(self, send: Callable[[dict], Awaitable[None]]) -> None:
        self._headers["content-length"] = str(len(self.body))
        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": self._prepare_headers(),
        })
        await send({
            "type": "http.response.body",
            "body": self.body,
            "more_body": False,
        })

    def __repr__(self) -> str:
        return f"<Response {self.status} {self.content_type}>"

