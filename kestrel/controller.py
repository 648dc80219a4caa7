"""
Controller Base Class

Controllers are built per request by the factory registered on the
router, and get the application services handed to them explicitly.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING

from .faults import ValidationFault
from .response import Response

if TYPE_CHECKING:
    from .app import Application
    from .request import Request
    from .sessions import Session


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_NUMERIC_RE = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?\s*$")


def is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    return isinstance(value, str) and bool(_NUMERIC_RE.match(value))


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


class Validator:
    """
    Pipe-separated rule validation.

    Rules: ``required``, ``email``, ``numeric``, ``string``, ``min:N``,
    ``max:N`` and ``confirmed``. Optional fields that are empty skip
    every other rule. Each failing field gets the message of its first
    failing rule.

    Example:
        errors = Validator().validate(
            {"name": "", "age": "17"},
            {"name": "required|string|max:255", "age": "numeric|min:18"},
        )
        # {"name": "The name field is required.", "age": "The age field must be at least 18."}
    """

    def validate(self, data: Mapping[str, Any], rules: Mapping[str, str]) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        for field, rule_string in rules.items():
            message = self.validate_field(field, data.get(field), rule_string, data)
            if message:
                errors[field] = message
        return errors

    def validate_field(
        self,
        field: str,
        value: Any,
        rule_string: str,
        data: Mapping[str, Any],
    ) -> Optional[str]:
        rules = [rule.strip() for rule in rule_string.split("|") if rule.strip()]
        if "required" not in rules and is_blank(value):
            return None

        label = field.replace("_", " ")
        numeric = "numeric" in rules
        for rule in rules:
            name, _, argument = rule.partition(":")
            message = self._check(name, argument, label, field, value, numeric, data)
            if message:
                return message
        return None

    def _check(
        self,
        name: str,
        argument: str,
        label: str,
        field: str,
        value: Any,
        numeric: bool,
        data: Mapping[str, Any],
    ) -> Optional[str]:
        if name == "required":
            return None if not is_blank(value) else f"The {label} field is required."
        if name == "email":
            return None if isinstance(value, str) and _EMAIL_RE.match(value) else (
                f"The {label} field must be a valid email address."
            )
        if name == "numeric":
            return None if is_numeric(value) else f"The {label} field must be a number."
        if name == "string":
            return None if isinstance(value, str) else f"The {label} field must be a string."
        if name in ("min", "max"):
            limit = float(argument)
            shown = argument
            if numeric and is_numeric(value):
                size, unit = float(value), ""
            else:
                size, unit = len(str(value if value is not None else "")), " characters"
            if name == "min" and size < limit:
                return f"The {label} field must be at least {shown}{unit}."
            if name == "max" and size > limit:
                return f"The {label} field may not be greater than {shown}{unit}."
            return None
        if name == "confirmed":
            return None if data.get(f"{field}_confirmation") == value else (
                f"The {label} confirmation does not match."
            )
        return None


class Controller:
    """
    Base Controller class.

    Args:
        app: The running Application (view, mailer, database, config)
        request: The current request

    Example:
        class UserController(Controller):
            def show(self, id):
                user = User.find_or_fail(int(id))
                return self.view("users.show", {"user": user})

        router.register_controller("UserController", lambda request: UserController(app, request))
    """

    validator = Validator()

    def __init__(self, app: Application, request: Request):
        self.app = app
        self.request = request

    @property
    def session(self) -> Session:
        return self.request.session

    @property
    def mailer(self):
        return self.app.mailer

    def get_app(self) -> Application:
        return self.app

    # ========================================================================
    # Responses
    # ========================================================================

    def render(self, view: str, data: Optional[Mapping[str, Any]] = None) -> str:
        """Rendered view HTML."""
        return self.app.view.render(view, data, session=self.session)

    def view(self, view: str, data: Optional[Mapping[str, Any]] = None, status: int = 200) -> Response:
        return Response.html(self.render(view, data), status=status)

    def json(self, data: Any, status: int = 200) -> Response:
        return Response.json(data, status=status)

    def success(self, data: Any = None, message: str = "Success") -> Response:
        return self.json({"success": True, "message": message, "data": data if data is not None else {}})

    def error(self, message: str = "Error", status: int = 400) -> Response:
        return self.json({"success": False, "message": message}, status=status)

    def redirect(self, url: str, status: int = 302) -> Response:
        return Response.redirect(url, status=status)

    def back(self) -> Response:
        """Redirect to the Referer, or ``/``."""
        return self.redirect(self.request.header("referer") or "/")

    # ========================================================================
    # Input
    # ========================================================================

    def input(self, key: Optional[str] = None, default: Any = None) -> Any:
        return self.request.input(key, default)

    def method(self) -> str:
        return self.request.method

    def is_get(self) -> bool:
        return self.request.is_get()

    def is_post(self) -> bool:
        return self.request.is_post()

    def is_put(self) -> bool:
        return self.request.is_put()

    def is_delete(self) -> bool:
        return self.request.is_delete()

    # ========================================================================
    # Validation
    # ========================================================================

    def validate(self, data: Mapping[str, Any], rules: Mapping[str, str]) -> Dict[str, str]:
        """
        Validate ``data``; on failure the errors and the input are
        flashed to the session for the next request.

        Returns:
            Field -> message map (empty when valid)
        """
        errors = self.validator.validate(data, rules)
        if errors and self.session is not None:
            self.session.set_errors(errors)
            self.session.set_old_input(data)
        return errors

    def validate_or_fail(self, data: Mapping[str, Any], rules: Mapping[str, str]) -> Dict[str, Any]:
        """Like ``validate`` but raises ValidationFault; returns the validated fields."""
        errors = self.validate(data, rules)
        if errors:
            raise ValidationFault(errors)
        return {field: data.get(field) for field in rules}

    def get_errors(self) -> Dict[str, List[str]]:
        return self.session.get_errors()

    def has_errors(self) -> bool:
        return self.session.has_errors()

    def old(self, key: str, default: Any = None) -> Any:
        return self.session.get_old_input(key, default)

    # ========================================================================
    # Flash
    # ========================================================================

    def flash(self, key: str, message: Any) -> None:
        self.session.flash(key, message)

    def get_flash(self, key: str, default: Any = None) -> Any:
        return self.session.get_flash(key, default)

    def has_flash(self, key: str) -> bool:
        return self.session.has_flash(key)

    # ========================================================================
    # Mail
    # ========================================================================

    def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        return self.app.mailer.send(to, subject, body, options)

    def send_email_view(
        self,
        to: str,
        subject: str,
        view: str,
        data: Optional[Mapping[str, Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        return self.app.mailer.send_view(to, subject, view, data, options)
