# service/emailer.py
from __future__ import annotations

import os
import smtplib
import ssl
import time
from collections.abc import Callable, Iterable
from email.message import EmailMessage
from email.utils import formatdate, make_msgid

# ---- Errors -----------------------------------------------------------------


class EmailSendError(RuntimeError):
    """Raised when an email cannot be delivered."""


# ---- Env / Settings ----------------------------------------------------------


def _getenv_any(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v != "":
            return v
    return default


def _resolve_smtp_settings() -> dict:
    """
    SMTP settings from env.

      SMTP_HOST / SMTP_PORT       default smtp.gmail.com:587
      EMAIL_USER / EMAIL_PASS     login (an app password for Gmail)
      SMTP_FROM                   From address, defaults to EMAIL_USER
      SMTP_USE_SSL                "true" for implicit TLS (port 465)
      SMTP_STARTTLS               "true" | "false" | "auto" (default)
    """
    host = _getenv_any("SMTP_HOST", default="smtp.gmail.com")
    try:
        port = int(_getenv_any("SMTP_PORT", default="587") or 587)
    except ValueError as e:
        raise EmailSendError("SMTP_PORT must be an integer.") from e

    username = _getenv_any("EMAIL_USER", "SMTP_USERNAME")
    password = _getenv_any("EMAIL_PASS", "SMTP_PASSWORD")

    use_ssl = (_getenv_any("SMTP_USE_SSL", default="false") or "false").strip().lower() == "true"
    starttls = (_getenv_any("SMTP_STARTTLS", default="auto") or "auto").strip().lower()
    if use_ssl:
        starttls = "false"

    return {
        "host": host,
        "port": port,
        "username": username,
        "password": password,
        "use_ssl": use_ssl,
        "starttls": starttls,
        "default_from_addr": _getenv_any("SMTP_FROM", default=username or "") or "",
    }


# ---- Helpers ----------------------------------------------------------------


def _as_list(values: Iterable[str] | str | None) -> list[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = values.split(",")
    return [v for v in (str(s).strip() for s in values) if v]


def _should_starttls(port: int, starttls_setting: str) -> bool:
    if starttls_setting == "true":
        return True
    if starttls_setting == "false":
        return False
    return port not in (25, 2525)


def _build_message(
    *,
    subject: str,
    html: str,
    text: str | None,
    to: list[str],
    cc: list[str],
    from_addr: str,
) -> EmailMessage:
    if not subject or not subject.strip():
        raise EmailSendError("Missing subject.")
    if not html or not html.strip():
        raise EmailSendError("Missing HTML body.")

    msg = EmailMessage()
    msg["From"] = from_addr
    if to:
        msg["To"] = ", ".join(to)
    if cc:
        msg["Cc"] = ", ".join(cc)
    msg["Subject"] = subject
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid()

    msg.set_content(text or "This message requires an HTML-capable client.")
    msg.add_alternative(html, subtype="html", charset="utf-8")
    return msg


def _is_transient(e: Exception) -> bool:
    code = getattr(e, "smtp_code", None)
    if isinstance(code, int):
        return 400 <= code < 500
    return isinstance(e, (smtplib.SMTPServerDisconnected, smtplib.SMTPConnectError, OSError))


def _send_via_smtp(msg: EmailMessage, *, rcpt_to: list[str], settings: dict) -> None:
    host = settings["host"]
    port = settings["port"]
    username = settings["username"]
    password = settings["password"]
    use_ssl = settings["use_ssl"]

    if not (host and username and password):
        raise EmailSendError("Missing SMTP credentials or host. Expected EMAIL_USER/EMAIL_PASS and SMTP_HOST.")

    context = ssl.create_default_context()
    server = smtplib.SMTP_SSL(host, port, context=context, timeout=30) if use_ssl else smtplib.SMTP(host, port, timeout=30)
    with server:
        server.ehlo()
        if not use_ssl and _should_starttls(port, settings["starttls"]):
            server.starttls(context=context)
            server.ehlo()
        server.login(username, password)
        server.send_message(msg, to_addrs=rcpt_to)


# ---- Public API --------------------------------------------------------------


def send_html(
    *,
    subject: str,
    html: str,
    to: Iterable[str] | str | None,
    text: str | None = None,
    cc: Iterable[str] | None = None,
    attempts: int = 3,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """
    Send a multipart (plain text + HTML) email.

    Transient SMTP failures (4xx replies, dropped connections) are retried
    with exponential backoff; anything else fails immediately.

    Returns:
        message_id (str): the Message-ID header of the sent message.

    Raises:
        EmailSendError on any failure (validation, auth, SMTP).
    """
    settings = _resolve_smtp_settings()
    to_l = _as_list(to)
    cc_l = _as_list(cc)
    from_addr = settings["default_from_addr"].strip()
    if not from_addr:
        raise EmailSendError("No from address resolved. Set SMTP_FROM or EMAIL_USER.")
    if not to_l and not cc_l:
        raise EmailSendError("No recipients (to/cc).")

    msg = _build_message(subject=subject, html=html, text=text, to=to_l, cc=cc_l, from_addr=from_addr)

    last: Exception | None = None
    for attempt in range(max(1, attempts)):
        try:
            _send_via_smtp(msg, rcpt_to=[*to_l, *cc_l], settings=settings)
            return str(msg["Message-ID"])
        except EmailSendError:
            raise
        except Exception as e:
            if not _is_transient(e):
                raise EmailSendError(f"SMTP send failed: {e}") from e
            last = e
            if attempt < attempts - 1:
                sleep(2**attempt)
    raise EmailSendError(f"SMTP send failed after {attempts} attempts: {last}")


def default_recipients() -> list[str]:
    """JOB_HUNTER_EMAIL_TO (comma-separated), else the sending account itself."""
    explicit = _as_list(os.getenv("JOB_HUNTER_EMAIL_TO"))
    if explicit:
        return explicit
    addr = _resolve_smtp_settings()["default_from_addr"].strip()
    return [addr] if addr else []
