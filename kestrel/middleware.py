"""
Route middleware.

A middleware exposes ``handle(request)``: returning a Response stops the
request there, returning None lets it continue to the next middleware
and finally the action.
"""

from __future__ import annotations

import fnmatch
import logging
from typing import Iterable, Optional, Protocol

from .faults import CSRFTokenMismatchFault
from .request import Request
from .response import Response

logger = logging.getLogger("kestrel.middleware")


class Middleware(Protocol):
    def handle(self, request: Request) -> Optional[Response]:
        ...


class VerifyCsrfToken:
    """
    Reject state-changing form submissions without a valid CSRF token.

    The token is read from the ``_token`` field or the ``X-CSRF-TOKEN``
    header and compared with the session token. JSON requests and paths
    matching ``except_`` (fnmatch patterns) are not checked.
    """

    UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
    STATUS = 419

    def __init__(self, except_: Iterable[str] = ()):
        self.except_ = tuple(except_)

    def should_verify(self, request: Request) -> bool:
        if request.method not in self.UNSAFE_METHODS:
            return False
        if request.is_json():
            return False
        return not any(fnmatch.fnmatchcase(request.path, pattern) for pattern in self.except_)

    def tokens_match(self, request: Request) -> bool:
        session = request.session
        if session is None:
            return False
        token = request.input("_token") or request.header("x-csrf-token")
        return bool(token) and session.verify_csrf_token(str(token))

    def handle(self, request: Request) -> Optional[Response]:
        if not self.should_verify(request) or self.tokens_match(request):
            return None

        fault = CSRFTokenMismatchFault(request.path)
        logger.warning(f"Fault {fault.code}: {request.method} {request.path}")
        if request.expects_json():
            return Response.json({"success": False, "message": fault.message}, status=self.STATUS)
        return Response.html(
            "<h1>419 - Page Expired</h1><p>The page has expired. Please refresh and try again.</p>",
            status=self.STATUS,
        )
