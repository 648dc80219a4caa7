"""
Kestrel Mail - Transports.

A transport delivers a MailMessage or raises MailSendFault:

- SMTPTransport: smtplib delivery with STARTTLS / direct SSL
- ConsoleTransport: logs and prints the message (development)
- MemoryTransport: keeps messages in an outbox (tests)
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from typing import List, Optional, Protocol

from ..faults import MailSendFault
from .message import MailMessage

logger = logging.getLogger("kestrel.mail")


class Transport(Protocol):
    name: str

    def send(self, message: MailMessage) -> None:
        """Deliver ``message``; raise MailSendFault on failure."""
        ...


class SMTPTransport:
    """
    SMTP delivery.

    Args:
        host: SMTP server host
        port: SMTP server port
        username: Login user (skipped when empty)
        password: Login password
        encryption: "tls" (STARTTLS), "ssl" (implicit TLS) or None
        timeout: Socket timeout in seconds
    """

    name = "smtp"

    def __init__(
        self,
        host: str = "localhost",
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        encryption: Optional[str] = "tls",
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.encryption = (encryption or "").lower() or None
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.encryption == "ssl":
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context)
        smtp = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        if self.encryption == "tls":
            smtp.starttls(context=context)
        return smtp

    def send(self, message: MailMessage) -> None:
        try:
            mime = message.build_mime()
            with self._connect() as smtp:
                if self.username:
                    smtp.login(str(self.username), str(self.password or ""))
                smtp.send_message(mime, from_addr=message.from_address, to_addrs=message.recipients())
        except (smtplib.SMTPException, OSError) as exc:
            raise MailSendFault(self.name, str(exc)) from exc

        logger.info(f"Mail sent via SMTP to {', '.join(message.to)}: {message.subject}")


class ConsoleTransport:
    """Prints mail instead of sending it."""

    name = "console"

    def send(self, message: MailMessage) -> None:
        separator = "=" * 72
        output = (
            f"\n{separator}\n"
            f"  CONSOLE MAIL (not actually sent)\n"
            f"{separator}\n"
            f"  From:    {message.sender}\n"
            f"  To:      {', '.join(message.to)}\n"
        )
        if message.cc:
            output += f"  CC:      {', '.join(message.cc)}\n"
        if message.bcc:
            output += f"  BCC:     {', '.join(message.bcc)}\n"
        if message.reply_to:
            output += f"  Reply:   {', '.join(address for address, _ in message.reply_to)}\n"
        output += f"  Subject: {message.subject}\n"
        if message.priority is not None:
            output += f"  Priority: {message.priority}\n"
        if message.attachments:
            output += f"  Attachments: {[a.filename for a in message.attachments]}\n"
        output += f"{'-' * 72}\n{message.alt_body}\n{separator}\n"

        print(output)
        logger.info(f"Console mail to {', '.join(message.to)}: {message.subject}")


class MemoryTransport:
    """Collects messages in ``outbox``."""

    name = "memory"

    def __init__(self):
        self.outbox: List[MailMessage] = []

    def send(self, message: MailMessage) -> None:
        self.outbox.append(message)
        logger.debug(f"Captured mail to {', '.join(message.to)}: {message.subject}")

    def clear(self) -> None:
        self.outbox.clear()
