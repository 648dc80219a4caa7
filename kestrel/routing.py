"""
Router - method + path routing to callables and controller actions.

Routes are stored per HTTP method, keyed by their normalized path, in
registration order. Matching tries the exact path first, then every
``{param}`` route of that method in order; the first match wins.

Actions are either callables, invoked as ``action(request, *params)``,
or ``"Controller@method"`` keys resolved through controller factories
registered with ``register_controller``.
"""

from __future__ import annotations

import inspect
import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .faults import ActionNotFoundFault
from .request import Request
from .response import Response

logger = logging.getLogger("kestrel.routing")

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

_PARAM_RE = re.compile(r"\{([^}/]+)\}")

Action = Union[Callable[..., Any], str]
ControllerFactory = Callable[[Request], Any]


def normalize_path(path: str) -> str:
    """Leading slash, no trailing slash (except for the root)."""
    return "/" + path.strip("/")


def join_paths(prefix: str, path: str) -> str:
    return normalize_path(f"{prefix.strip('/')}/{path.strip('/')}")


def to_response(result: Any) -> Response:
    """Convert an action's return value into a Response."""
    if isinstance(result, Response):
        return result
    if result is None:
        return Response.html("")
    if isinstance(result, (dict, list)):
        return Response.json(result)
    if hasattr(result, "to_array") and callable(result.to_array):
        return Response.json(result.to_array())
    return Response.html(str(result))


@dataclass
class Route:
    """A registered route."""

    method: str
    path: str
    action: Action
    middleware: List[Any] = field(default_factory=list)
    param_names: Tuple[str, ...] = ()
    regex: Optional[re.Pattern] = None

    def __post_init__(self):
        self.param_names = tuple(_PARAM_RE.findall(self.path))
        if self.param_names:
            pattern = _PARAM_RE.sub("([^/]+)", re.escape(self.path).replace(r"\{", "{").replace(r"\}", "}"))
            self.regex = re.compile(f"^{pattern}$")

    @property
    def is_dynamic(self) -> bool:
        return self.regex is not None

    @property
    def action_name(self) -> str:
        if isinstance(self.action, str):
            return self.action
        return getattr(self.action, "__qualname__", repr(self.action))

    def match(self, path: str) -> Optional[Tuple[str, ...]]:
        if self.regex is None:
            return () if path == self.path else None
        found = self.regex.match(path)
        return found.groups() if found else None


class Router:
    """
    HTTP router.

    Example:
        router = Router()
        router.register_controller("UserController", lambda request: UserController(app, request))

        router.get("/", "HomeController@index")
        router.get("/users/{id}", "UserController@show")

        with router.group(prefix="/api", middleware=["auth"]):
            router.get("/users", "UserController@api_index")

        response = router.dispatch(request)
    """

    def __init__(self, not_found: Optional[Callable[[Request], Response]] = None):
        self.routes: Dict[str, Dict[str, Route]] = {method: {} for method in HTTP_METHODS}
        self.controllers: Dict[str, ControllerFactory] = {}
        self.middleware_aliases: Dict[str, Any] = {}
        self.not_found = not_found
        self._prefix = ""
        self._middleware: List[Any] = []

    # ========================================================================
    # Registration
    # ========================================================================

    def add_route(self, method: str, path: str, action: Action) -> Route:
        method = method.upper()
        if method not in self.routes:
            raise ValueError(f"Unsupported HTTP method: {method}")
        if not callable(action) and not (isinstance(action, str) and "@" in action):
            raise ActionNotFoundFault(str(action), "use a callable or 'Controller@method'")

        full_path = join_paths(self._prefix, path)
        route = Route(method, full_path, action, list(self._middleware))
        self.routes[method][full_path] = route
        logger.debug(f"Registered {method} {full_path} -> {route.action_name}")
        return route

    def get(self, path: str, action: Action) -> Router:
        self.add_route("GET", path, action)
        return self

    def post(self, path: str, action: Action) -> Router:
        self.add_route("POST", path, action)
        return self

    def put(self, path: str, action: Action) -> Router:
        self.add_route("PUT", path, action)
        return self

    def patch(self, path: str, action: Action) -> Router:
        self.add_route("PATCH", path, action)
        return self

    def delete(self, path: str, action: Action) -> Router:
        self.add_route("DELETE", path, action)
        return self

    def any(self, path: str, action: Action) -> Router:
        for method in HTTP_METHODS:
            self.add_route(method, path, action)
        return self

    def register_controller(self, name: str, factory: ControllerFactory) -> None:
        """Make ``"name@method"`` actions resolvable; ``factory(request)`` builds the controller."""
        self.controllers[name] = factory

    def register_middleware(self, alias: str, middleware: Any) -> None:
        self.middleware_aliases[alias] = middleware

    def group(
        self,
        prefix: str = "",
        middleware: Union[Any, Sequence[Any], None] = None,
        callback: Optional[Callable[[Router], None]] = None,
    ):
        """
        Scope routes under a prefix and extra middleware.

        Use as a context manager, or pass ``callback`` to have it called
        with the router inside the group.
        """
        scope = self._group_scope(prefix, middleware)
        if callback is None:
            return scope
        with scope:
            callback(self)
        return None

    @contextmanager
    def _group_scope(self, prefix: str, middleware: Any) -> Iterator[Router]:
        previous_prefix, previous_middleware = self._prefix, self._middleware
        if prefix:
            self._prefix = join_paths(self._prefix, prefix)
        if middleware:
            extra = list(middleware) if isinstance(middleware, (list, tuple)) else [middleware]
            self._middleware = [*self._middleware, *extra]
        try:
            yield self
        finally:
            self._prefix, self._middleware = previous_prefix, previous_middleware

    def get_routes(self) -> Dict[str, Dict[str, Route]]:
        return {method: dict(routes) for method, routes in self.routes.items()}

    def iter_routes(self) -> Iterator[Route]:
        for routes in self.routes.values():
            yield from routes.values()

    def clear_routes(self) -> None:
        self.routes = {method: {} for method in HTTP_METHODS}

    # ========================================================================
    # Matching & dispatch
    # ========================================================================

    def match(self, method: str, path: str) -> Optional[Tuple[Route, Tuple[str, ...]]]:
        """Route and positional parameters for ``method path``, or None."""
        routes = self.routes.get(method.upper())
        if not routes:
            return None
        path = normalize_path(path)

        route = routes.get(path)
        if route is not None and not route.is_dynamic:
            return route, ()

        for route in routes.values():
            if route.is_dynamic:
                params = route.match(path)
                if params is not None:
                    return route, params
        return None

    def dispatch(self, request: Request) -> Response:
        """Run the matching route, or return a 404 response."""
        matched = self.match(request.method, request.path)
        if matched is None:
            logger.info(f"No route for {request.method} {request.path}")
            return self.not_found(request) if self.not_found else self.default_not_found()

        route, params = matched
        request.set_parameters(dict(zip(route.param_names, params)))

        for middleware in route.middleware:
            result = self._resolve_middleware(middleware).handle(request)
            if isinstance(result, Response):
                return result

        return to_response(self._call_action(route.action, request, params))

    def _resolve_middleware(self, middleware: Any) -> Any:
        if isinstance(middleware, str):
            if middleware not in self.middleware_aliases:
                raise ActionNotFoundFault(middleware, "middleware alias is not registered")
            middleware = self.middleware_aliases[middleware]
        if inspect.isclass(middleware):
            middleware = middleware()
        return middleware

    def _call_action(self, action: Action, request: Request, params: Tuple[str, ...]) -> Any:
        if callable(action):
            return action(request, *params)
        return self.resolve_action(action, request)(*params)

    def resolve_action(self, action: str, request: Request) -> Callable[..., Any]:
        """Bound controller method for ``"Controller@method"``."""
        controller_name, _, method_name = action.partition("@")
        factory = self.controllers.get(controller_name)
        if factory is None:
            raise ActionNotFoundFault(action, f"controller '{controller_name}' is not registered")

        controller = factory(request)
        handler = getattr(controller, method_name, None)
        if method_name.startswith("_") or not callable(handler):
            raise ActionNotFoundFault(action, f"'{controller_name}' has no action '{method_name}'")
        return handler

    def default_not_found(self) -> Response:
        return Response.html(
            "<h1>404 - Page Not Found</h1><p>The requested page could not be found.</p>",
            status=404,
        )
