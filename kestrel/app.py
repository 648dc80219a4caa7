"""
Kestrel Application - wires the services together and speaks ASGI.

One Application owns one instance of each service (Database,
SessionManager, View, Mailer, Router) and hands them to controllers and
models explicitly. The ASGI entry point reads the request body
asynchronously, then runs the synchronous request cycle:

1. load the session from its cookie
2. run the global middleware (CSRF verification)
3. dispatch through the router
4. map faults and unexpected exceptions to error responses
5. age flash data, persist the session, write the cookie
"""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Type

from . import __version__
from .config import ConfigLoader
from .db import Database, MigrationRunner
from .debug import debug_exception_payload, render_debug_exception_page, render_http_error_page
from .faults import (
    CSRFTokenMismatchFault,
    Fault,
    ModelNotFoundFault,
    TemplateNotFoundFault,
    ValidationFault,
)
from .mail import Mailer
from .middleware import VerifyCsrfToken
from .models import Model
from .request import PayloadTooLarge, Request
from .response import Response
from .routing import Router
from .sessions import SessionManager
from .templates import View

logger = logging.getLogger("kestrel.app")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_STATUS_TITLES = {
    400: "Bad Request",
    404: "Not Found",
    413: "Payload Too Large",
    419: "Page Expired",
    422: "Unprocessable Content",
    500: "Internal Server Error",
}


def configure_logging(config: ConfigLoader, stream: Any = None) -> None:
    """Install a timestamped stream handler on the ``kestrel`` logger."""
    level = config.get_logging_config()["level"]
    root = logging.getLogger("kestrel")
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    for handler in list(root.handlers):
        if getattr(handler, "_kestrel_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._kestrel_handler = True
    root.addHandler(handler)


def fault_status(fault: Fault) -> int:
    """HTTP status for a fault that escaped the action."""
    if isinstance(fault, CSRFTokenMismatchFault):
        return 419
    if isinstance(fault, ValidationFault):
        return 422
    if isinstance(fault, PayloadTooLarge):
        return 413
    if isinstance(fault, (ModelNotFoundFault, TemplateNotFoundFault)):
        return 404
    return 500


class Application:
    """
    Kestrel application.

    Args:
        config: Loaded configuration (``ConfigLoader.load()`` when omitted)
        base_path: Project root; relative views and migrations paths resolve against it
        routes: ``routes(router, app)`` callable registering the route table
        mailer: Prebuilt mailer (built from the mail config when omitted)
        csrf_except: Path patterns exempt from CSRF verification
        model: Model base class bound to this app's database. Binding is class-level,
            so apps sharing one base share one database; give each app its own base
            (``class BlogModel(Model): pass``) to keep them apart.

    Example:
        app = Application(ConfigLoader.load(), base_path=ROOT, routes=register_routes)
        app.register_controller("UserController", UserController)

        # uvicorn myproject.main:app
    """

    def __init__(
        self,
        config: Optional[ConfigLoader] = None,
        *,
        base_path: str | Path = ".",
        routes: Optional[Callable[[Router, Application], None]] = None,
        mailer: Optional[Mailer] = None,
        csrf_except: tuple = (),
        model: Type[Model] = Model,
    ):
        self.config = config or ConfigLoader.load()
        self.base_path = Path(base_path)
        self.debug = self.config.is_debug()

        self.database = Database(self._resolve_database_url(self.config.get("database.url")))
        if model.__dict__.get("database") is not None:
            logger.warning(f"Rebinding {model.__name__} to a new {self.database.driver} database")
        model.use(self.database)
        self.model = model

        self.sessions = SessionManager.from_config(self.config)
        self.view = View(
            str(self.path(self.config.get("views.path", "resources/views"))),
            app_url=self.config.app_url,
            auto_reload=self.debug or not self.config.is_production(),
        )
        self.view.share("app_name", self.config.app_name)
        self.view.share("app_version", __version__)
        self.mailer = mailer or Mailer(self.config.get_mail_config(), view=self.view)

        self.router = Router(not_found=self._not_found)
        self.middleware: List[Any] = [VerifyCsrfToken(except_=csrf_except)]

        if routes is not None:
            routes(self.router, self)

    # ========================================================================
    # Services
    # ========================================================================

    def path(self, relative: str | Path = "") -> Path:
        candidate = Path(relative)
        return candidate if candidate.is_absolute() else self.base_path / candidate

    def _resolve_database_url(self, url: str) -> str:
        prefix = "sqlite:///"
        if url.startswith(prefix):
            location = url[len(prefix):]
            if location and location != ":memory:" and not Path(location).is_absolute():
                return prefix + str(self.path(location))
        return url

    def get(self, service: str) -> Any:
        services = {
            "router": self.router,
            "database": self.database,
            "view": self.view,
            "mailer": self.mailer,
            "sessions": self.sessions,
            "config": self.config,
        }
        if service not in services:
            raise ValueError(f"Service '{service}' not found")
        return services[service]

    def register_controller(self, name: str, controller_cls: Type[Any]) -> None:
        """Register ``controller_cls(app, request)`` under ``name`` for ``"name@action"`` routes."""
        self.router.register_controller(name, lambda request: controller_cls(self, request))

    def migrator(self) -> MigrationRunner:
        return MigrationRunner(self.database, self.path("database/migrations"))

    def url(self, path: str = "") -> str:
        """Absolute URL for ``path`` under APP_URL."""
        base = self.config.app_url.rstrip("/")
        if path and not path.startswith("/"):
            path = f"/{path}"
        return f"{base}{path}"

    def version(self) -> str:
        return __version__

    def startup(self) -> None:
        self.database.connect()
        logger.info(f"{self.config.app_name} started ({self.config.app_env})")

    def shutdown(self) -> None:
        self.database.disconnect()
        self.sessions.store.shutdown()
        logger.info(f"{self.config.app_name} stopped")

    # ========================================================================
    # Request cycle
    # ========================================================================

    def handle(self, request: Request) -> Response:
        """Run one request through sessions, middleware and the router."""
        start = time.monotonic()
        session = self.sessions.load(request.cookie(self.sessions.cookie_name))
        request.state["session"] = session
        request.state["app"] = self

        try:
            response = self._dispatch(request)
        except Exception as exc:
            response = self.handle_exception(exc, request)

        session.age_flash_data()
        self.sessions.save(session)
        response.set_cookie(
            self.sessions.cookie_name,
            self.sessions.cookie_value(session),
            **self.sessions.cookie_options(),
        )

        elapsed_ms = (time.monotonic() - start) * 1000.0
        logger.info("%s %s - %d (%.1fms)", request.method, request.path, response.status, elapsed_ms)
        return response

    def _dispatch(self, request: Request) -> Response:
        for middleware in self.middleware:
            result = middleware.handle(request)
            if isinstance(result, Response):
                return result
        return self.router.dispatch(request)

    def handle_exception(self, exc: Exception, request: Request) -> Response:
        """Error response for an exception raised while handling ``request``."""
        if isinstance(exc, ValidationFault):
            logger.info(f"Validation failed on {request.path}: {sorted(exc.errors)}")
            if request.expects_json():
                return Response.json(
                    {"success": False, "message": exc.message, "errors": exc.errors},
                    status=422,
                )
            session = request.session
            if session is not None and not session.has_errors():
                session.set_errors(exc.errors)
                session.set_old_input(request.all())
            return Response.redirect(request.header("referer") or "/")

        status = fault_status(exc) if isinstance(exc, Fault) else 500
        if status >= 500:
            logger.error(f"Unhandled error on {request.method} {request.path}: {exc}", exc_info=exc)
        else:
            logger.warning(f"Fault {exc.code}: {exc.message}")

        if request.expects_json():
            if self.debug and status >= 500:
                return Response.json(debug_exception_payload(exc), status=status)
            public = isinstance(exc, Fault) and (exc.public or self.debug)
            message = exc.message if public else _STATUS_TITLES.get(status, "Error")
            return Response.json({"success": False, "message": message}, status=status)

        if self.debug and status >= 500:
            return Response.html(render_debug_exception_page(exc, request, version=__version__), status=status)
        return self.error_page(status)

    def error_page(self, status: int, detail: str = "") -> Response:
        """``errors.<status>`` view when the project has one, else the built-in page."""
        name = f"errors.{status}"
        if self.view.exists(name):
            try:
                return Response.html(self.view.render(name), status=status)
            except Fault as exc:
                logger.error(f"Error view {name} failed: {exc.message}")
        title = _STATUS_TITLES.get(status, "Error")
        return Response.html(render_http_error_page(status, title, detail), status=status)

    def _not_found(self, request: Request) -> Response:
        if request.expects_json():
            return Response.json({"success": False, "message": "Not Found"}, status=404)
        return self.error_page(404, "The requested page could not be found.")

    # ========================================================================
    # ASGI
    # ========================================================================

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)

    async def handle_http(self, scope: dict, receive: Callable, send: Callable) -> None:
        try:
            request = await Request.from_asgi(scope, receive)
        except PayloadTooLarge as exc:
            logger.warning(f"Fault {exc.code}: {scope.get('path')}")
            response = Response.html(render_http_error_page(413, _STATUS_TITLES[413]), status=413)
        else:
            response = self.handle(request)
        await response.send_asgi(send)

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable) -> None:
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                try:
                    self.startup()
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:
                    logger.error(f"Startup error: {e}", exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    raise

            elif message["type"] == "lifespan.shutdown":
                try:
                    self.shutdown()
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    logger.error(f"Shutdown error: {e}", exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                break

    def __repr__(self) -> str:
        return f"<Application {self.config.app_name!r} env={self.config.app_env}>"
