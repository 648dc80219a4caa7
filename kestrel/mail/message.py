"""
Kestrel Mail - Message representation.

A MailMessage is the fully-resolved record of one outgoing email; the
transports only ever see MailMessage objects and turn them into MIME.
"""

from __future__ import annotations

import html
import mimetypes
import re
from dataclasses import dataclass, field
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from pathlib import Path
from typing import Dict, List, Optional, Tuple


_TAG_RE = re.compile(r"<[^>]+>")
_BLANK_LINES_RE = re.compile(r"\n\s*\n\s*\n+")


def strip_tags(body: str) -> str:
    """Plain-text rendition of an HTML body."""
    text = re.sub(r"(?is)<(script|style)\b.*?</\1>", "", body)
    text = re.sub(r"(?i)<br\s*/?>", "\n", text)
    text = _TAG_RE.sub("", text)
    text = html.unescape(text)
    return _BLANK_LINES_RE.sub("\n\n", text).strip()


@dataclass
class Attachment:
    """File attached from disk."""

    path: str
    name: str = ""

    @property
    def filename(self) -> str:
        return self.name or Path(self.path).name

    @property
    def content_type(self) -> str:
        guessed, _ = mimetypes.guess_type(self.filename)
        return guessed or "application/octet-stream"

    def read(self) -> bytes:
        return Path(self.path).read_bytes()


@dataclass
class MailMessage:
    """One outgoing email."""

    to: List[str]
    subject: str
    html_body: str
    alt_body: str = ""
    from_address: str = ""
    from_name: str = ""
    cc: List[str] = field(default_factory=list)
    bcc: List[str] = field(default_factory=list)
    reply_to: List[Tuple[str, str]] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)
    priority: Optional[int] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.alt_body:
            self.alt_body = strip_tags(self.html_body)

    @property
    def sender(self) -> str:
        return formataddr((self.from_name, self.from_address)) if self.from_name else self.from_address

    def recipients(self) -> List[str]:
        """Every envelope recipient, Bcc included."""
        return [*self.to, *self.cc, *self.bcc]

    def build_mime(self) -> MIMEMultipart:
        """
        Build the MIME tree.

        Structure:
            multipart/mixed
            ├── multipart/alternative
            │   ├── text/plain
            │   └── text/html
            └── attachments ...
        """
        msg = MIMEMultipart("mixed")
        msg["From"] = self.sender
        msg["To"] = ", ".join(self.to)
        if self.cc:
            msg["Cc"] = ", ".join(self.cc)
        msg["Subject"] = self.subject
        msg["Date"] = formatdate(localtime=True)
        domain = self.from_address.rsplit("@", 1)[-1] if "@" in self.from_address else None
        msg["Message-ID"] = make_msgid(domain=domain)

        if self.reply_to:
            msg["Reply-To"] = ", ".join(formataddr((name, address)) for address, name in self.reply_to)
        if self.priority is not None:
            msg["X-Priority"] = str(self.priority)
        for key, value in self.headers.items():
            msg[key] = value

        alt = MIMEMultipart("alternative")
        alt.attach(MIMEText(self.alt_body, "plain", "utf-8"))
        alt.attach(MIMEText(self.html_body, "html", "utf-8"))
        msg.attach(alt)

        for attachment in self.attachments:
            part = MIMEBase(*attachment.content_type.split("/", 1))
            part.set_payload(attachment.read())
            encoders.encode_base64(part)
            part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
            msg.attach(part)

        return msg
