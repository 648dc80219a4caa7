"""
Kestrel Mail - HTML email with pluggable transports.

    from kestrel.mail import Mailer

    mailer = Mailer(config.get_mail_config(), view=view)
    mailer.send("ann@example.com", "Welcome", "<h1>Hi!</h1>")
"""

from .message import Attachment, MailMessage, strip_tags
from .transports import ConsoleTransport, MemoryTransport, SMTPTransport, Transport
from .mailer import Mailer, create_transport

__all__ = [
    "Mailer",
    "MailMessage",
    "Attachment",
    "Transport",
    "SMTPTransport",
    "ConsoleTransport",
    "MemoryTransport",
    "create_transport",
    "strip_tags",
]
