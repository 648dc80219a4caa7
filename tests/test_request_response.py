"""
Tests for Request parsing and Response building.
"""

import json

import pytest

from kestrel.request import PayloadTooLarge, Request, build_scope, parse_form
from kestrel.response import InvalidHeaderError, Response

from tests.conftest import form_request, make_request


def receiver(*chunks):
    messages = [
        {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
        for i, chunk in enumerate(chunks)
    ]

    async def receive():
        return messages.pop(0)

    return receive


class TestParseForm:
    def test_last_value_wins(self):
        assert parse_form("a=1&a=2&b=") == {"a": "2", "b": ""}

    def test_array_keys(self):
        assert parse_form("tags[]=x&tags[]=y") == {"tags": ["x", "y"]}


class TestRequest:
    """Input, headers and cookies."""

    def test_query(self):
        request = make_request(query_string="page=2&q=ann")
        assert request.query("page") == "2"
        assert request.query() == {"page": "2", "q": "ann"}
        assert request.query("missing", "d") == "d"

    def test_form_input_overrides_query(self):
        request = form_request("POST", "/users", {"name": "Form"}, query_string="name=Query&page=1")
        assert request.input("name") == "Form"
        assert request.all() == {"name": "Form", "page": "1"}

    def test_json_body(self):
        request = make_request(
            "POST", "/api/users",
            headers={"content-type": "application/json"},
            body=json.dumps({"name": "Ann"}).encode(),
        )
        assert request.is_json()
        assert request.json() == {"name": "Ann"}
        assert request.input("name") == "Ann"
        assert request.form() == {}

    def test_malformed_json(self):
        request = make_request("POST", "/", headers={"content-type": "application/json"}, body=b"{nope")
        assert request.json() is None
        assert request.all() == {}

    def test_only_except_has(self):
        request = form_request("POST", "/", {"a": "1", "b": "2", "c": "3"})
        assert request.only(["a", "c", "z"]) == {"a": "1", "c": "3"}
        assert request.except_(["a"]) == {"b": "2", "c": "3"}
        assert request.has("b")
        assert request.has_any(["z", "a"])
        assert not request.has_all(["a", "z"])

    @pytest.mark.parametrize("override,expected", [
        ("PUT", "PUT"),
        ("delete", "DELETE"),
        ("PATCH", "PATCH"),
        ("GET", "POST"),
    ])
    def test_method_override(self, override, expected):
        request = form_request("POST", "/users/1", {"_method": override})
        assert request.method == expected

    def test_override_only_applies_to_post(self):
        request = make_request(
            "GET", "/",
            headers={"content-type": "application/x-www-form-urlencoded"},
            body=b"_method=DELETE",
        )
        assert request.method == "GET"

    def test_headers_are_case_insensitive(self):
        request = make_request(headers={"X-Requested-With": "XMLHttpRequest", "Accept": "text/html"})
        assert request.header("x-requested-with") == "XMLHttpRequest"
        assert request.is_ajax()
        assert request.expects_json()

    def test_expects_json_from_accept(self):
        assert make_request(headers={"accept": "application/json"}).expects_json()
        assert not make_request(headers={"accept": "text/html"}).expects_json()

    def test_cookies(self):
        request = make_request(headers={"cookie": "kestrel_session=abc; theme=dark"})
        assert request.cookies == {"kestrel_session": "abc", "theme": "dark"}
        assert request.cookie("missing", "x") == "x"

    def test_url(self):
        request = make_request(path="/users", query_string="page=2", headers={"host": "example.test"})
        assert request.url == "http://example.test/users?page=2"

    def test_ip(self):
        scope = build_scope(headers=[("x-forwarded-for", "10.0.0.1, 10.0.0.2")])
        assert Request(scope).ip() == "127.0.0.1"
        assert Request(scope, trust_proxy=True).ip() == "10.0.0.1"

    def test_session_and_parameters(self, session):
        request = make_request(session=session)
        request.set_parameters({"id": "7"})
        assert request.session is session
        assert request.parameter("id") == "7"
        assert request.parameters == {"id": "7"}


class TestFromAsgi:
    """Body buffering at the ASGI edge."""

    @pytest.mark.asyncio
    async def test_reads_chunked_body(self):
        scope = build_scope("POST", "/", headers=[("content-type", "application/x-www-form-urlencoded")])
        request = await Request.from_asgi(scope, receiver(b"name=", b"Ann"))
        assert request.body == b"name=Ann"
        assert request.input("name") == "Ann"

    @pytest.mark.asyncio
    async def test_body_limit(self):
        with pytest.raises(PayloadTooLarge):
            await Request.from_asgi(build_scope("POST", "/"), receiver(b"x" * 20), max_body_size=10)


class TestResponse:
    """Response factories and headers."""

    def test_html(self):
        response = Response.html("<p>hi</p>", status=201)
        assert response.status == 201
        assert response.content_type == "text/html; charset=utf-8"
        assert response.content == "<p>hi</p>"

    def test_json(self):
        response = Response.json({"ok": True, "items": {1, 2}})
        assert response.content_type == "application/json; charset=utf-8"
        assert json.loads(response.content) == {"ok": True, "items": [1, 2]}

    def test_json_uses_to_array(self):
        class Thing:
            def to_array(self):
                return {"id": 1}

        assert json.loads(Response.json({"thing": Thing()}).content) == {"thing": {"id": 1}}

    def test_redirect(self):
        response = Response.redirect("/users")
        assert response.status == 302
        assert response.header("location") == "/users"
        assert response.body == b""

    def test_detected_media_type(self):
        assert Response({"a": 1}).content_type.startswith("application/json")
        assert Response(b"raw").content_type == "application/octet-stream"

    def test_cookies_accumulate(self):
        response = Response.html("")
        response.set_cookie("a", "1", max_age=60)
        response.set_cookie("b", "2", secure=True, samesite="Strict")
        cookies = response.headers["set-cookie"]
        assert cookies[0] == "a=1; Max-Age=60; Path=/; HttpOnly; SameSite=Lax"
        assert cookies[1] == "b=2; Path=/; Secure; HttpOnly; SameSite=Strict"

    def test_delete_cookie(self):
        response = Response.html("")
        response.delete_cookie("a")
        assert "Max-Age=0" in response.header("set-cookie")

    def test_header_injection(self):
        with pytest.raises(InvalidHeaderError):
            Response.html("").set_header("x-test", "a\r\nSet-Cookie: evil=1")

    def test_unset_header(self):
        response = Response.html("", headers={"x-a": "1"})
        response.unset_header("X-A")
        assert response.header("x-a") is None

    @pytest.mark.asyncio
    async def test_send_asgi(self):
        sent = []

        async def send(message):
            sent.append(message)

        response = Response.text("ok")
        response.set_cookie("a", "1")
        await response.send_asgi(send)

        start, body = sent
        assert start["status"] == 200
        assert (b"content-length", b"2") in start["headers"]
        assert (b"set-cookie", b"a=1; Path=/; HttpOnly; SameSite=Lax") in start["headers"]
        assert body["body"] == b"ok"
