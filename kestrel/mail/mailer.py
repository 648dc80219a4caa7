"""
Kestrel Mail - Mailer.

The Mailer turns ``send(to, subject, body, options)`` calls into
MailMessage objects and hands them to a transport. Delivery failures are
logged and reported as ``False``; they never escape ``send``.

``from_()`` sets the sender for every following message. ``reply_to()``,
``attach()`` and ``priority()`` apply to the next message only.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, TYPE_CHECKING

from ..faults import MailSendFault
from .message import Attachment, MailMessage
from .transports import ConsoleTransport, MemoryTransport, SMTPTransport, Transport

if TYPE_CHECKING:
    from ..templates import View

logger = logging.getLogger("kestrel.mail")


def create_transport(config: Mapping[str, Any]) -> Transport:
    """Transport named by ``config["mailer"]``."""
    mailer = config.get("mailer", "console")
    if mailer == "smtp":
        return SMTPTransport(
            host=config.get("host", "localhost"),
            port=int(config.get("port", 587)),
            username=config.get("username"),
            password=config.get("password"),
            encryption=config.get("encryption", "tls"),
            timeout=float(config.get("timeout", 10)),
        )
    if mailer == "memory":
        return MemoryTransport()
    return ConsoleTransport()


class Mailer:
    """
    Outgoing mail facade.

    Args:
        config: Mail config section (``mailer``, ``host``, ``from`` ...)
        transport: Delivery transport (derived from ``config`` when omitted)
        view: View used by ``send_view``

    Example:
        mailer = Mailer(config.get_mail_config(), view=view)
        mailer.send("ann@example.com", "Hello", "<p>Hi Ann</p>", {"cc": ["bob@example.com"]})
        mailer.attach("invoice.pdf").send_view("ann@example.com", "Invoice", "emails.invoice", data)
    """

    def __init__(
        self,
        config: Optional[Mapping[str, Any]] = None,
        transport: Optional[Transport] = None,
        view: Optional[View] = None,
    ):
        self.config: Dict[str, Any] = dict(config or {})
        self.transport = transport or create_transport(self.config)
        self.view = view

        sender = self.config.get("from") or {}
        self._from_address: str = sender.get("address") or ""
        self._from_name: str = sender.get("name") or ""
        self._reset_pending()

    def _reset_pending(self) -> None:
        self._reply_to: List[Tuple[str, str]] = []
        self._attachments: List[Attachment] = []
        self._priority: Optional[int] = None

    # ------------------------------------------------------------------
    # Fluent setters
    # ------------------------------------------------------------------

    def from_(self, address: str, name: str = "") -> Mailer:
        self._from_address = address
        self._from_name = name
        return self

    def reply_to(self, address: str, name: str = "") -> Mailer:
        self._reply_to.append((address, name))
        return self

    def attach(self, path: str, name: str = "") -> Mailer:
        self._attachments.append(Attachment(path, name))
        return self

    def priority(self, priority: int) -> Mailer:
        """X-Priority, 1 (highest) to 5 (lowest)."""
        if not 1 <= int(priority) <= 5:
            raise ValueError(f"Mail priority must be between 1 and 5, got {priority}")
        self._priority = int(priority)
        return self

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def build_message(
        self,
        to: str,
        subject: str,
        body: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> MailMessage:
        options = dict(options or {})
        attachments = list(self._attachments)
        for item in options.get("attachments", []):
            if isinstance(item, Mapping):
                attachments.append(Attachment(item["path"], item.get("name", "")))
            else:
                attachments.append(Attachment(str(item)))

        reply_to = list(self._reply_to)
        if options.get("reply_to"):
            reply_to.append((options["reply_to"], ""))

        return MailMessage(
            to=[to],
            subject=subject,
            html_body=body,
            alt_body=options.get("alt_body", ""),
            from_address=self._from_address,
            from_name=self._from_name,
            cc=_as_list(options.get("cc")),
            bcc=_as_list(options.get("bcc")),
            reply_to=reply_to,
            attachments=attachments,
            priority=options.get("priority", self._priority),
        )

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Send an HTML email.

        Options: ``cc``, ``bcc``, ``attachments`` (paths or
        ``{"path", "name"}`` mappings), ``alt_body``, ``reply_to``,
        ``priority``.

        Returns:
            True when the transport accepted the message
        """
        try:
            message = self.build_message(to, subject, body, options)
            self.transport.send(message)
            return True
        except MailSendFault as fault:
            logger.warning(f"Mail to {to} failed: {fault.message}")
            return False
        except OSError as exc:
            # Unreadable attachment
            fault = MailSendFault(self.transport.name, str(exc))
            logger.warning(f"Mail to {to} failed: {fault.message}")
            return False
        finally:
            self._reset_pending()

    def send_view(
        self,
        to: str,
        subject: str,
        view: str,
        data: Optional[Mapping[str, Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Render ``view`` and send it as the HTML body."""
        return self.send(to, subject, self._render(view, data), options)

    def raw(
        self,
        to: str,
        subject: str,
        body: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Send ``body`` as-is, using it as the plain-text part too."""
        return self.send(to, subject, body, {**dict(options or {}), "alt_body": body})

    def send_to_many(
        self,
        recipients: Iterable[str],
        subject: str,
        body: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, bool]:
        """Send one message per recipient; result maps recipient -> delivered."""
        # Pending attachments/reply-to apply to every recipient of the batch
        pending = (list(self._reply_to), list(self._attachments), self._priority)
        results: Dict[str, bool] = {}
        for recipient in recipients:
            self._reply_to, self._attachments, self._priority = list(pending[0]), list(pending[1]), pending[2]
            results[recipient] = self.send(recipient, subject, body, options)
        self._reset_pending()
        return results

    def send_view_to_many(
        self,
        recipients: Iterable[str],
        subject: str,
        view: str,
        data: Optional[Mapping[str, Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, bool]:
        return self.send_to_many(recipients, subject, self._render(view, data), options)

    def _render(self, view: str, data: Optional[Mapping[str, Any]]) -> str:
        if self.view is None:
            raise RuntimeError("Mailer has no View; pass view= to render mail templates")
        return self.view.render(view, data)

    def get_config(self) -> Dict[str, Any]:
        return dict(self.config)


def _as_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)
