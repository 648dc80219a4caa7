"""
Tests for the Router: registration, matching, groups, middleware and
controller actions.
"""

import pytest

from kestrel.faults import ActionNotFoundFault
from kestrel.response import Response
from kestrel.routing import Router, join_paths, normalize_path, to_response

from tests.conftest import make_request


class Greeter:
    def __init__(self, request):
        self.request = request

    def hello(self, name="world"):
        return f"Hello {name}"

    def _secret(self):
        return "hidden"


class Blocker:
    def handle(self, request):
        return Response.text("blocked", status=403)


class Tagger:
    seen = []

    def handle(self, request):
        Tagger.seen.append(request.path)
        return None


@pytest.fixture
def router():
    r = Router()
    r.register_controller("Greeter", Greeter)
    return r


class TestPaths:
    @pytest.mark.parametrize("path,expected", [
        ("", "/"),
        ("/", "/"),
        ("users", "/users"),
        ("/users/", "/users"),
    ])
    def test_normalize(self, path, expected):
        assert normalize_path(path) == expected

    def test_join(self):
        assert join_paths("/api", "/users/") == "/api/users"
        assert join_paths("/api", "/") == "/api"


class TestMatching:
    """Exact and parameterized matching."""

    def test_parameter_route(self, router):
        router.get("/users/{id}", lambda request, id: id)
        route, params = router.match("GET", "/users/42")
        assert route.path == "/users/{id}"
        assert params == ("42",)

    def test_trailing_slash(self, router):
        router.get("/users/{id}", lambda request, id: id)
        assert router.match("GET", "/users/42/")[1] == ("42",)

    def test_parameter_does_not_span_segments(self, router):
        router.get("/users/{id}", lambda request, id: id)
        assert router.match("GET", "/users/42/edit") is None

    def test_multiple_parameters(self, router):
        router.get("/posts/{post}/comments/{comment}", lambda request, p, c: p + c)
        assert router.match("GET", "/posts/7/comments/9")[1] == ("7", "9")

    def test_exact_route_wins(self, router):
        router.get("/users/{id}", lambda request, id: "dynamic")
        router.get("/users/create", lambda request: "exact")
        response = router.dispatch(make_request("GET", "/users/create"))
        assert response.content == "exact"

    def test_first_dynamic_route_wins(self, router):
        router.get("/items/{a}", lambda request, a: "first")
        router.get("/items/{b}", lambda request, b: "second")
        assert router.dispatch(make_request("GET", "/items/1")).content == "first"

    def test_method_mismatch(self, router):
        router.post("/users", lambda request: "created")
        assert router.match("GET", "/users") is None

    def test_reregistration_overwrites(self, router):
        router.get("/", lambda request: "one")
        router.get("/", lambda request: "two")
        assert router.dispatch(make_request("GET", "/")).content == "two"

    def test_any(self, router):
        router.any("/ping", lambda request: request.method)
        for method in ("GET", "POST", "PUT", "PATCH", "DELETE"):
            assert router.match(method, "/ping") is not None

    def test_unsupported_method(self, router):
        with pytest.raises(ValueError):
            router.add_route("TRACE", "/", lambda request: "")

    def test_invalid_action(self, router):
        with pytest.raises(ActionNotFoundFault):
            router.get("/", "not-an-action")


class TestDispatch:
    """Running actions and converting results."""

    def test_unmatched_returns_404(self, router):
        response = router.dispatch(make_request("GET", "/missing"))
        assert response.status == 404
        assert "404" in response.content

    def test_custom_not_found(self):
        router = Router(not_found=lambda request: Response.text(f"no {request.path}", status=404))
        assert router.dispatch(make_request("GET", "/x")).content == "no /x"

    def test_callable_receives_request_and_params(self, router):
        router.get("/users/{id}", lambda request, id: {"id": id, "param": request.parameter("id")})
        response = router.dispatch(make_request("GET", "/users/5"))
        assert response.content_type.startswith("application/json")
        assert response.content == '{"id": "5", "param": "5"}'

    def test_controller_action(self, router):
        router.get("/hello/{name}", "Greeter@hello")
        assert router.dispatch(make_request("GET", "/hello/Ann")).content == "Hello Ann"

    def test_unknown_controller(self, router):
        router.get("/", "Missing@index")
        with pytest.raises(ActionNotFoundFault):
            router.dispatch(make_request("GET", "/"))

    def test_unknown_method(self, router):
        router.get("/", "Greeter@missing")
        with pytest.raises(ActionNotFoundFault):
            router.dispatch(make_request("GET", "/"))

    def test_private_method_is_not_an_action(self, router):
        router.get("/", "Greeter@_secret")
        with pytest.raises(ActionNotFoundFault):
            router.dispatch(make_request("GET", "/"))

    def test_method_override(self, router):
        router.put("/users/{id}", lambda request, id: f"updated {id}")
        request = make_request(
            "POST", "/users/3",
            headers={"content-type": "application/x-www-form-urlencoded"},
            body=b"_method=PUT",
        )
        assert router.dispatch(request).content == "updated 3"

    @pytest.mark.parametrize("result,status,content_type", [
        (None, 200, "text/html"),
        ("<p>x</p>", 200, "text/html"),
        ({"a": 1}, 200, "application/json"),
        ([1, 2], 200, "application/json"),
        (Response.text("t", status=201), 201, "text/plain"),
    ])
    def test_to_response(self, result, status, content_type):
        response = to_response(result)
        assert response.status == status
        assert response.content_type.startswith(content_type)


class TestGroups:
    """Prefixes and group middleware."""

    def test_prefix_context_manager(self, router):
        with router.group(prefix="/api"):
            router.get("/users", lambda request: "api users")
        router.get("/users", lambda request: "users")

        assert router.dispatch(make_request("GET", "/api/users")).content == "api users"
        assert router.dispatch(make_request("GET", "/users")).content == "users"

    def test_nested_groups(self, router):
        with router.group(prefix="/api"):
            with router.group(prefix="/v1"):
                router.get("/status", lambda request: "ok")
        assert router.match("GET", "/api/v1/status") is not None

    def test_callback_form(self, router):
        router.group(prefix="/admin", callback=lambda r: r.get("/", lambda request: "admin"))
        assert router.dispatch(make_request("GET", "/admin")).content == "admin"

    def test_group_middleware_short_circuits(self, router):
        with router.group(middleware=[Blocker]):
            router.get("/secret", lambda request: "secret")
        router.get("/open", lambda request: "open")

        assert router.dispatch(make_request("GET", "/secret")).status == 403
        assert router.dispatch(make_request("GET", "/open")).content == "open"

    def test_middleware_alias(self, router):
        Tagger.seen.clear()
        router.register_middleware("tag", Tagger())
        with router.group(middleware="tag"):
            router.get("/tagged", lambda request: "ok")
        assert router.dispatch(make_request("GET", "/tagged")).content == "ok"
        assert Tagger.seen == ["/tagged"]

    def test_unknown_middleware_alias(self, router):
        with router.group(middleware="auth"):
            router.get("/x", lambda request: "x")
        with pytest.raises(ActionNotFoundFault):
            router.dispatch(make_request("GET", "/x"))

    def test_introspection(self, router):
        router.get("/a", lambda request: "a")
        router.post("/b", "Greeter@hello")
        assert [route.path for route in router.iter_routes()] == ["/a", "/b"]
        assert list(router.get_routes()["POST"]) == ["/b"]
        router.clear_routes()
        assert list(router.iter_routes()) == []
