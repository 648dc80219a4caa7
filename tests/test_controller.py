"""
Tests for the Validator and the Controller base class.
"""

import json

import pytest

from kestrel import Controller
from kestrel.controller import Validator, is_blank, is_numeric
from kestrel.faults import ValidationFault

from tests.conftest import form_request, make_request


class TestValidator:
    """Rule checks and messages."""

    @pytest.fixture
    def validator(self):
        return Validator()

    @pytest.mark.parametrize("value,rules,message", [
        ("", "required", "The name field is required."),
        ("   ", "required", "The name field is required."),
        ("nope", "email", "The name field must be a valid email address."),
        ("abc", "numeric", "The name field must be a number."),
        (5, "string", "The name field must be a string."),
        ("ab", "min:3", "The name field must be at least 3 characters."),
        ("abcdefg", "max:5", "The name field may not be greater than 5 characters."),
        ("17", "numeric|min:18", "The name field must be at least 18."),
        ("120", "numeric|max:99", "The name field may not be greater than 99."),
    ])
    def test_messages(self, validator, value, rules, message):
        assert validator.validate({"name": value}, {"name": rules}) == {"name": message}

    @pytest.mark.parametrize("value,rules", [
        ("Ann", "required|string|min:2"),
        ("ann@example.com", "required|email"),
        ("18", "numeric|min:18"),
        ("-2.5", "numeric"),
        (42, "numeric"),
    ])
    def test_passing(self, validator, value, rules):
        assert validator.validate({"name": value}, {"name": rules}) == {}

    def test_first_failing_rule_wins(self, validator):
        errors = validator.validate({"email": ""}, {"email": "required|email"})
        assert errors == {"email": "The email field is required."}

    def test_optional_blank_fields_are_skipped(self, validator):
        assert validator.validate({"nick": ""}, {"nick": "string|min:3", "bio": "max:10"}) == {}

    def test_confirmed(self, validator):
        rules = {"password": "required|confirmed"}
        assert validator.validate({"password": "a", "password_confirmation": "a"}, rules) == {}
        assert validator.validate({"password": "a", "password_confirmation": "b"}, rules) == {
            "password": "The password confirmation does not match."
        }

    def test_label_uses_spaces(self, validator):
        assert validator.validate({}, {"first_name": "required"}) == {
            "first_name": "The first name field is required."
        }

    def test_unknown_rules_are_ignored(self, validator):
        assert validator.validate({"a": "x"}, {"a": "uppercase"}) == {}

    def test_helpers(self):
        assert is_numeric("1e3")
        assert not is_numeric(True)
        assert is_blank([])
        assert not is_blank(0)


class TestController:
    """Responses, validation state and mail through the application services."""

    @pytest.fixture
    def app(self, app_factory):
        return app_factory(views={"greet": "Hi {{ $name }} @csrf"})

    def controller(self, app, request, session):
        request.state["session"] = session
        return Controller(app, request)

    def test_view(self, app, session):
        controller = self.controller(app, make_request(), session)
        response = controller.view("greet", {"name": "Ann"})
        assert response.status == 200
        assert response.content.startswith("Hi Ann ")
        assert session.csrf_token() in response.content

    def test_json_helpers(self, app, session):
        controller = self.controller(app, make_request(), session)
        assert json.loads(controller.success({"id": 1}, "Saved").content) == {
            "success": True, "message": "Saved", "data": {"id": 1},
        }
        assert json.loads(controller.success().content)["data"] == {}
        failed = controller.error("Nope", 409)
        assert failed.status == 409
        assert json.loads(failed.content) == {"success": False, "message": "Nope"}

    def test_redirect_and_back(self, app, session):
        request = make_request(headers={"referer": "/users/create"})
        controller = self.controller(app, request, session)
        assert controller.redirect("/users").header("location") == "/users"
        assert controller.back().header("location") == "/users/create"
        assert self.controller(app, make_request(), session).back().header("location") == "/"

    def test_validate_stores_errors_and_old_input(self, app, session):
        request = form_request("POST", "/users", {"name": "", "email": "a@b.co", "password": "secret"})
        controller = self.controller(app, request, session)

        errors = controller.validate(controller.input(), {"name": "required"})

        assert errors == {"name": "The name field is required."}
        assert controller.get_errors() == {"name": ["The name field is required."]}
        assert controller.has_errors()
        assert controller.old("email") == "a@b.co"
        assert controller.old("password") is None

    def test_valid_input_leaves_session_alone(self, app, session):
        controller = self.controller(app, form_request("POST", "/", {"name": "Ann"}), session)
        assert controller.validate(controller.input(), {"name": "required"}) == {}
        assert not session.has_errors()

    def test_validate_or_fail(self, app, session):
        controller = self.controller(app, form_request("POST", "/", {"name": "Ann", "extra": "x"}), session)
        assert controller.validate_or_fail(controller.input(), {"name": "required", "age": "numeric"}) == {
            "name": "Ann", "age": None,
        }
        with pytest.raises(ValidationFault) as exc_info:
            controller.validate_or_fail({}, {"name": "required"})
        assert exc_info.value.errors == {"name": "The name field is required."}

    def test_flash(self, app, session):
        controller = self.controller(app, make_request(), session)
        controller.flash("success", "Done")
        assert controller.has_flash("success")
        assert controller.get_flash("success") == "Done"

    def test_request_shortcuts(self, app, session):
        controller = self.controller(app, form_request("POST", "/", {"_method": "DELETE"}), session)
        assert controller.method() == "DELETE"
        assert controller.is_delete()
        assert not controller.is_post()
        assert controller.get_app() is app

    def test_send_email(self, app, session):
        controller = self.controller(app, make_request(), session)
        assert controller.send_email("a@test.com", "Hello", "<p>Hi</p>")
        assert controller.send_email_view("b@test.com", "View", "greet", {"name": "Bob"})
        outbox = app.mailer.transport.outbox
        assert [m.to for m in outbox] == [["a@test.com"], ["b@test.com"]]
        assert outbox[1].html_body.startswith("Hi Bob")
