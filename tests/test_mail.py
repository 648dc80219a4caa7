"""
Tests for the Mailer, mail messages and transports.
"""

import pytest

from kestrel.faults import MailSendFault
from kestrel.mail import (
    ConsoleTransport,
    MailMessage,
    Mailer,
    MemoryTransport,
    SMTPTransport,
    create_transport,
    strip_tags,
)
from kestrel.mail import transports

from tests.conftest import write_views


MAIL_CONFIG = {
    "mailer": "memory",
    "from": {"address": "noreply@kestrel.test", "name": "Kestrel"},
}


class FailingTransport:
    name = "failing"

    def send(self, message):
        raise MailSendFault(self.name, "connection refused")


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self, context=None):
        self.calls.append("starttls")

    def login(self, username, password):
        self.calls.append(("login", username, password))

    def send_message(self, msg, from_addr=None, to_addrs=None):
        self.calls.append(("send", from_addr, list(to_addrs)))


@pytest.fixture
def outbox():
    return MemoryTransport()


@pytest.fixture
def mailer(outbox):
    return Mailer(MAIL_CONFIG, transport=outbox)


class TestStripTags:
    def test_plain_text(self):
        html = "<style>p{}</style><h1>Hi &amp; welcome</h1><p>Line<br>two</p>"
        assert strip_tags(html) == "Hi & welcomeLine\ntwo"


class TestMailMessage:
    """MIME construction."""

    def test_alt_body_derived_from_html(self):
        message = MailMessage(to=["a@test.com"], subject="S", html_body="<p>Hello</p>")
        assert message.alt_body == "Hello"

    def test_mime_headers(self):
        message = MailMessage(
            to=["a@test.com"],
            subject="Report",
            html_body="<p>Hi</p>",
            from_address="me@test.com",
            from_name="Me",
            cc=["c@test.com"],
            bcc=["b@test.com"],
            reply_to=[("r@test.com", "")],
            priority=1,
        )
        mime = message.build_mime()
        assert mime["From"] == "Me <me@test.com>"
        assert mime["Cc"] == "c@test.com"
        assert mime["Bcc"] is None
        assert mime["Reply-To"] == "r@test.com"
        assert mime["X-Priority"] == "1"
        assert message.recipients() == ["a@test.com", "c@test.com", "b@test.com"]

    def test_attachment_part(self, tmp_path):
        path = tmp_path / "report.txt"
        path.write_text("data")
        message = Mailer(MAIL_CONFIG).build_message("a@test.com", "S", "<p>x</p>", {"attachments": [str(path)]})
        parts = message.build_mime().get_payload()
        assert parts[1].get_filename() == "report.txt"
        assert parts[1].get_content_type() == "text/plain"


class TestMailer:
    """Sending through a transport."""

    def test_send(self, mailer, outbox):
        assert mailer.send("ann@test.com", "Welcome", "<h1>Hi</h1>")
        message = outbox.outbox[0]
        assert message.to == ["ann@test.com"]
        assert message.subject == "Welcome"
        assert message.from_address == "noreply@kestrel.test"
        assert message.alt_body == "Hi"

    def test_options(self, mailer, outbox):
        mailer.send("ann@test.com", "S", "<p>x</p>", {
            "cc": "cc@test.com",
            "bcc": ["bcc@test.com"],
            "reply_to": "reply@test.com",
            "alt_body": "plain",
            "priority": 2,
        })
        message = outbox.outbox[0]
        assert message.cc == ["cc@test.com"]
        assert message.bcc == ["bcc@test.com"]
        assert message.reply_to == [("reply@test.com", "")]
        assert message.alt_body == "plain"
        assert message.priority == 2

    def test_from_persists(self, mailer, outbox):
        mailer.from_("boss@test.com", "Boss")
        mailer.send("a@test.com", "One", "x")
        mailer.send("b@test.com", "Two", "x")
        assert [m.sender for m in outbox.outbox] == ["Boss <boss@test.com>"] * 2

    def test_pending_options_apply_once(self, mailer, outbox):
        mailer.reply_to("r@test.com").priority(1).send("a@test.com", "One", "x")
        mailer.send("b@test.com", "Two", "x")
        first, second = outbox.outbox
        assert first.reply_to == [("r@test.com", "")]
        assert first.priority == 1
        assert second.reply_to == []
        assert second.priority is None

    def test_priority_range(self, mailer):
        with pytest.raises(ValueError):
            mailer.priority(9)

    def test_failure_returns_false(self, caplog):
        mailer = Mailer(MAIL_CONFIG, transport=FailingTransport())
        assert mailer.send("a@test.com", "S", "x") is False
        assert "connection refused" in caplog.text

    def test_missing_attachment_returns_false(self, mailer, outbox):
        assert mailer.attach("/nonexistent/file.pdf").send("a@test.com", "S", "x") is False
        assert outbox.outbox == []

    def test_raw(self, mailer, outbox):
        mailer.raw("a@test.com", "S", "plain body")
        assert outbox.outbox[0].alt_body == "plain body"

    def test_send_to_many(self, mailer, outbox):
        results = mailer.reply_to("r@test.com").send_to_many(["a@test.com", "b@test.com"], "S", "x")
        assert results == {"a@test.com": True, "b@test.com": True}
        assert all(m.reply_to == [("r@test.com", "")] for m in outbox.outbox)
        mailer.send("c@test.com", "S", "x")
        assert outbox.outbox[-1].reply_to == []

    def test_send_view(self, outbox, view, views_dir):
        write_views(views_dir, {"emails.welcome": "<p>Hello {{ $name }}</p>"})
        mailer = Mailer(MAIL_CONFIG, transport=outbox, view=view)
        assert mailer.send_view("a@test.com", "Hi", "emails.welcome", {"name": "Ann"})
        assert outbox.outbox[0].html_body == "<p>Hello Ann</p>"

    def test_send_view_without_view(self, mailer):
        with pytest.raises(RuntimeError):
            mailer.send_view("a@test.com", "Hi", "emails.welcome")


class TestTransports:
    """Transport selection and delivery."""

    def test_create_transport(self):
        assert isinstance(create_transport({"mailer": "memory"}), MemoryTransport)
        assert isinstance(create_transport({"mailer": "console"}), ConsoleTransport)
        smtp = create_transport({"mailer": "smtp", "host": "mail.test", "port": "2525"})
        assert isinstance(smtp, SMTPTransport)
        assert smtp.port == 2525

    def test_console_prints(self, capsys):
        Mailer({"mailer": "console"}).send("a@test.com", "Console test", "<p>body</p>")
        out = capsys.readouterr().out
        assert "CONSOLE MAIL" in out
        assert "Console test" in out

    def test_smtp_delivery(self, monkeypatch):
        FakeSMTP.instances.clear()
        monkeypatch.setattr(transports.smtplib, "SMTP", FakeSMTP)
        transport = SMTPTransport("mail.test", 587, username="user", password="secret")
        Mailer(MAIL_CONFIG, transport=transport).send("a@test.com", "S", "x", {"bcc": "b@test.com"})

        smtp = FakeSMTP.instances[0]
        assert smtp.calls == [
            "starttls",
            ("login", "user", "secret"),
            ("send", "noreply@kestrel.test", ["a@test.com", "b@test.com"]),
        ]

    def test_smtp_failure_is_a_fault(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise ConnectionRefusedError("refused")

        monkeypatch.setattr(transports.smtplib, "SMTP", refuse)
        message = MailMessage(to=["a@test.com"], subject="S", html_body="x")
        with pytest.raises(MailSendFault):
            SMTPTransport(encryption=None).send(message)
