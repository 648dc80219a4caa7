"""
Kestrel - a small MVC web framework.

Brings together:
- Models: active-record models over a fluent, parameterized query builder
- Views: Blade-style templates compiled to sandboxed Jinja2
- Routing: method + path routes to callables and controller actions
- Sessions: server-side sessions with flash data and CSRF tokens
- Mail: HTML email over SMTP, console or in-memory transports
- Faults: structured errors mapped to HTTP responses
"""

__version__ = "1.0.0"

# ============================================================================
# Core Framework
# ============================================================================

from .config import ConfigLoader
from .request import Request
from .response import Response
from .routing import Router, Route
from .controller import Controller, Validator
from .middleware import VerifyCsrfToken
from .hashing import PasswordHasher
from .app import Application, configure_logging

# ============================================================================
# Data, views, sessions, mail
# ============================================================================

from .db import Database, MigrationRunner
from .models import Model, QueryBuilder, Paginator
from .templates import View
from .sessions import Session, SessionManager, MemoryStore
from .mail import Mailer

# ============================================================================
# Faults
# ============================================================================

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    ModelNotFoundFault,
    PersistenceFault,
    QueryFault,
    ValidationFault,
)

__all__ = [
    "__version__",
    "ConfigLoader",
    "Request",
    "Response",
    "Router",
    "Route",
    "Controller",
    "Validator",
    "VerifyCsrfToken",
    "PasswordHasher",
    "Application",
    "configure_logging",
    "Database",
    "MigrationRunner",
    "Model",
    "QueryBuilder",
    "Paginator",
    "View",
    "Session",
    "SessionManager",
    "MemoryStore",
    "Mailer",
    "Fault",
    "FaultDomain",
    "Severity",
    "ModelNotFoundFault",
    "PersistenceFault",
    "QueryFault",
    "ValidationFault",
]
