import smtplib

import pytest

from service import emailer


class FakeSMTP:
    """Records the conversation; `failures` are raised by send_message in order."""

    instances: list["FakeSMTP"] = []
    failures: list[Exception] = []

    def __init__(self, host, port, timeout=None, context=None):
        self.host, self.port = host, port
        self.steps: list[str] = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.steps.append("quit")

    def ehlo(self):
        self.steps.append("ehlo")

    def starttls(self, context=None):
        self.steps.append("starttls")

    def login(self, user, password):
        self.steps.append(f"login:{user}")

    def send_message(self, msg, to_addrs=None):
        if FakeSMTP.failures:
            raise FakeSMTP.failures.pop(0)
        self.sent.append((msg, to_addrs))


@pytest.fixture
def smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.failures = []
    monkeypatch.setattr(emailer.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(emailer.smtplib, "SMTP_SSL", FakeSMTP)
    monkeypatch.setenv("EMAIL_USER", "hunter@example.com")
    monkeypatch.setenv("EMAIL_PASS", "app-password")
    for name in ("SMTP_HOST", "SMTP_PORT", "SMTP_FROM", "SMTP_USE_SSL", "SMTP_STARTTLS"):
        monkeypatch.delenv(name, raising=False)
    return FakeSMTP


def test_send_html_builds_multipart_message(smtp):
    message_id = emailer.send_html(subject="Jobs", html="<p>hi</p>", text="hi", to="a@example.com, b@example.com")

    (conn,) = smtp.instances
    assert (conn.host, conn.port) == ("smtp.gmail.com", 587)
    assert conn.steps == ["ehlo", "starttls", "ehlo", "login:hunter@example.com", "quit"]
    msg, rcpt = conn.sent[0]
    assert rcpt == ["a@example.com", "b@example.com"]
    assert msg["From"] == "hunter@example.com"
    assert msg["Message-ID"] == message_id
    assert msg.get_body(preferencelist=("html",)).get_content().strip() == "<p>hi</p>"
    assert msg.get_body(preferencelist=("plain",)).get_content().strip() == "hi"


def test_transient_failures_are_retried(smtp):
    smtp.failures = [smtplib.SMTPServerDisconnected("gone"), smtplib.SMTPResponseException(451, b"try later")]
    sleeps = []

    emailer.send_html(subject="Jobs", html="<p>x</p>", to=["a@example.com"], sleep=sleeps.append)

    assert len(smtp.instances) == 3
    assert sleeps == [1, 2]


def test_permanent_failure_is_not_retried(smtp):
    smtp.failures = [smtplib.SMTPResponseException(550, b"no such user")]

    with pytest.raises(emailer.EmailSendError):
        emailer.send_html(subject="Jobs", html="<p>x</p>", to=["a@example.com"], sleep=lambda s: None)
    assert len(smtp.instances) == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"subject": "", "html": "<p>x</p>", "to": ["a@example.com"]},
        {"subject": "Jobs", "html": " ", "to": ["a@example.com"]},
        {"subject": "Jobs", "html": "<p>x</p>", "to": []},
    ],
)
def test_invalid_messages_rejected(smtp, kwargs):
    with pytest.raises(emailer.EmailSendError):
        emailer.send_html(**kwargs)
    assert smtp.instances == []


def test_missing_credentials(smtp, monkeypatch):
    monkeypatch.delenv("EMAIL_PASS")
    with pytest.raises(emailer.EmailSendError):
        emailer.send_html(subject="Jobs", html="<p>x</p>", to=["a@example.com"])


def test_default_recipients(smtp, monkeypatch):
    assert emailer.default_recipients() == ["hunter@example.com"]
    monkeypatch.setenv("JOB_HUNTER_EMAIL_TO", "x@example.com,y@example.com")
    assert emailer.default_recipients() == ["x@example.com", "y@example.com"]
