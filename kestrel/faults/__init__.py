"""
Kestrel faults - structured error taxonomy.

Faults are exceptions carrying a stable code, a domain and a severity.
The application maps them onto HTTP responses at the top level.
"""

from .core import Fault, FaultDomain, Severity, DOMAIN_DEFAULTS
from .domains import (
    ConfigFault,
    ConfigInvalidFault,
    RoutingFault,
    ActionNotFoundFault,
    ModelFault,
    QueryFault,
    ModelNotFoundFault,
    PersistenceFault,
    DatabaseConnectionFault,
    MigrationFault,
    TemplateFault,
    TemplateNotFoundFault,
    TemplateSyntaxFault,
    CSRFTokenMismatchFault,
    ValidationFault,
    MailSendFault,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
    "DOMAIN_DEFAULTS",
    "ConfigFault",
    "ConfigInvalidFault",
    "RoutingFault",
    "ActionNotFoundFault",
    "ModelFault",
    "QueryFault",
    "ModelNotFoundFault",
    "PersistenceFault",
    "DatabaseConnectionFault",
    "MigrationFault",
    "TemplateFault",
    "TemplateNotFoundFault",
    "TemplateSyntaxFault",
    "CSRFTokenMismatchFault",
    "ValidationFault",
    "MailSendFault",
]
