"""
Kestrel faults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults
- ROUTING faults
- MODEL faults (queries, persistence, connections)
- TEMPLATE faults
- SECURITY faults
- FLOW faults (validation)
- IO faults (mail)
"""

from typing import Any, Optional
from .core import Fault, FaultDomain, Severity


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigFault(Fault):
    """Base class for configuration faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.FATAL,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CONFIG,
            severity=severity,
            retryable=False,
            public=False,
            metadata=metadata,
        )


class ConfigInvalidFault(ConfigFault):
    """Configuration value is invalid."""

    def __init__(self, key: str, reason: str, **kwargs):
        super().__init__(
            code="CONFIG_INVALID",
            message=f"Configuration key '{key}' is invalid: {reason}",
            metadata={"key": key, "reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# ROUTING Faults
# ============================================================================

class RoutingFault(Fault):
    """Base class for routing faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.ERROR,
        public: bool = True,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.ROUTING,
            severity=severity,
            retryable=False,
            public=public,
            metadata=metadata,
        )


class ActionNotFoundFault(RoutingFault):
    """A 'Controller@method' action has no registered controller or method."""

    def __init__(self, action: str, reason: str, **kwargs):
        super().__init__(
            code="ACTION_NOT_FOUND",
            message=f"Cannot resolve action '{action}': {reason}",
            public=False,
            metadata={"action": action, "reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# MODEL Faults
# ============================================================================

class ModelFault(Fault):
    """Base class for model and database faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.ERROR,
        retryable: bool = False,
        public: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.MODEL,
            severity=severity,
            retryable=retryable,
            public=public,
            metadata=metadata,
        )


class QueryFault(ModelFault):
    """Query construction or execution failed."""

    def __init__(self, model: str, operation: str, reason: str, **kwargs):
        super().__init__(
            code="QUERY_FAILED",
            message=f"Query on '{model}' ({operation}) failed: {reason}",
            metadata={"model": model, "operation": operation, "reason": reason, **kwargs.get("metadata", {})},
        )


class ModelNotFoundFault(ModelFault):
    """No row exists for the requested primary key."""

    def __init__(self, model: str, key: Any, **kwargs):
        super().__init__(
            code="MODEL_NOT_FOUND",
            message=f"No {model} found for key {key!r}",
            public=True,
            metadata={"model": model, "key": key, **kwargs.get("metadata", {})},
        )


class PersistenceFault(ModelFault):
    """Insert, update or delete did not affect any row."""

    def __init__(self, model: str, operation: str, **kwargs):
        super().__init__(
            code="PERSISTENCE_FAILED",
            message=f"Could not {operation} {model}",
            metadata={"model": model, "operation": operation, **kwargs.get("metadata", {})},
        )


class DatabaseConnectionFault(ModelFault):
    """Database connection failed."""

    def __init__(self, url: str, reason: str, **kwargs):
        super().__init__(
            code="DB_CONNECTION_FAILED",
            message=f"Database connection failed ({url}): {reason}",
            severity=Severity.FATAL,
            metadata={"url": url, "reason": reason, **kwargs.get("metadata", {})},
        )


class MigrationFault(ModelFault):
    """A migration could not be loaded or applied."""

    def __init__(self, migration: str, reason: str, **kwargs):
        super().__init__(
            code="MIGRATION_FAILED",
            message=f"Migration '{migration}' failed: {reason}",
            severity=Severity.FATAL,
            metadata={"migration": migration, "reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# TEMPLATE Faults
# ============================================================================

class TemplateFault(Fault):
    """Base class for template faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.TEMPLATE,
            public=False,
            metadata=metadata,
        )


class TemplateNotFoundFault(TemplateFault):
    """Template or layout file does not exist."""

    def __init__(self, name: str, **kwargs):
        super().__init__(
            code="TEMPLATE_NOT_FOUND",
            message=f"View [{name}] not found",
            metadata={"name": name, **kwargs.get("metadata", {})},
        )


class TemplateSyntaxFault(TemplateFault):
    """Template source could not be compiled."""

    def __init__(self, name: str, reason: str, **kwargs):
        super().__init__(
            code="TEMPLATE_SYNTAX",
            message=f"Cannot compile view [{name}]: {reason}",
            metadata={"name": name, "reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# SECURITY Faults
# ============================================================================

class CSRFTokenMismatchFault(Fault):
    """Submitted CSRF token is missing or does not match the session."""

    def __init__(self, path: str, **kwargs):
        super().__init__(
            code="CSRF_TOKEN_MISMATCH",
            message="CSRF token mismatch",
            domain=FaultDomain.SECURITY,
            public=True,
            metadata={"path": path, **kwargs.get("metadata", {})},
        )


# ============================================================================
# FLOW Faults
# ============================================================================

class ValidationFault(Fault):
    """Input failed validation rules."""

    def __init__(self, errors: dict[str, str], **kwargs):
        super().__init__(
            code="VALIDATION_FAILED",
            message="The given data was invalid",
            domain=FaultDomain.FLOW,
            severity=Severity.WARN,
            public=True,
            metadata={"errors": errors, **kwargs.get("metadata", {})},
        )
        self.errors = errors


# ============================================================================
# IO Faults
# ============================================================================

class MailSendFault(Fault):
    """Mail transport refused or failed to deliver a message."""

    def __init__(self, transport: str, reason: str, **kwargs):
        super().__init__(
            code="MAIL_SEND_FAILED",
            message=f"Mail transport '{transport}' failed: {reason}",
            domain=FaultDomain.IO,
            metadata={"transport": transport, "reason": reason, **kwargs.get("metadata", {})},
        )
