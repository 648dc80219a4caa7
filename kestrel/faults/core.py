"""
Kestrel faults - Core types and fault taxonomy.

Defines:
- Fault base class (structured fault objects)
- FaultDomain (explicit fault domains)
- Severity levels
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """
    Fault severity levels.

    Determines logging level and how the top-level handler reacts.
    """
    INFO = "info"       # Informational, no action needed
    WARN = "warn"       # Warning, should be reviewed
    ERROR = "error"     # Error, request fails
    FATAL = "fatal"     # Unrecoverable, abort


class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the functional area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


# Standard Domains
FaultDomain.CONFIG = FaultDomain("config", "Configuration errors")
FaultDomain.ROUTING = FaultDomain("routing", "Route matching errors")
FaultDomain.FLOW = FaultDomain("flow", "Handler execution errors")
FaultDomain.MODEL = FaultDomain("model", "Model and database errors")
FaultDomain.TEMPLATE = FaultDomain("template", "Template compilation and rendering")
FaultDomain.IO = FaultDomain("io", "I/O operations")
FaultDomain.SECURITY = FaultDomain("security", "Security and CSRF")
FaultDomain.SYSTEM = FaultDomain("system", "System level faults")


DOMAIN_DEFAULTS = {
    FaultDomain.CONFIG: {"severity": Severity.FATAL, "retryable": False},
    FaultDomain.ROUTING: {"severity": Severity.ERROR, "retryable": False},
    FaultDomain.FLOW: {"severity": Severity.ERROR, "retryable": False},
    FaultDomain.MODEL: {"severity": Severity.ERROR, "retryable": False},
    FaultDomain.TEMPLATE: {"severity": Severity.ERROR, "retryable": False},
    FaultDomain.IO: {"severity": Severity.WARN, "retryable": True},
    FaultDomain.SECURITY: {"severity": Severity.ERROR, "retryable": False},
    FaultDomain.SYSTEM: {"severity": Severity.FATAL, "retryable": False},
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    A fault carries:
    - Stable machine-readable code
    - Human-readable message
    - Severity and domain classification
    - Public exposure control and metadata

    Example:
        ```python
        raise Fault(
            code="USER_NOT_FOUND",
            message="User with ID 123 not found",
            domain=FaultDomain.MODEL,
            public=True,
        )
        ```
    """

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        public: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.code = code if code is not None else getattr(self, "code", None)
        self.message = message if message is not None else getattr(self, "message", None)
        self.domain = domain if domain is not None else getattr(self, "domain", None)

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        defaults = DOMAIN_DEFAULTS.get(self.domain, {"severity": Severity.ERROR, "retryable": False})
        self.severity = severity or defaults["severity"]
        self.retryable = retryable if retryable is not None else defaults["retryable"]
        self.public = public
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"Fault(code={self.code!r}, domain={self.domain.value}, "
            f"severity={self.severity.value}, public={self.public})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize fault to a dictionary suitable for logging or JSON."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "public": self.public,
            "metadata": self.metadata,
        }
