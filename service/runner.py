# service/runner.py
from __future__ import annotations

import json
import logging
import os
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime, timezone
from html import escape
from typing import Any

from service import logging_utils
from service.emailer import EmailSendError, default_recipients, send_html

HUNT_MODULE = "modules.job_hunter"

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def now_iso() -> str:
    return datetime.now(timezone.utc).astimezone().isoformat(timespec="seconds")


def _truthy_env(name: str, default: str = "") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "on"}


def _wrap_html(title: str, body_inner_html: str) -> str:
    return f"""<html>
  <body style="font-family:ui-sans-serif,system-ui;line-height:1.5;margin:0;padding:8px">
    <style>
      h2,h3 {{ margin:8px 0 4px; }}
      p {{ margin:4px 0; }}
      table {{ border-collapse:collapse; }}
      td,th {{ text-align:left; vertical-align:top; }}
    </style>
    <h2>{escape(title)}</h2>
    {body_inner_html}
  </body>
</html>"""


_TRUE_WORDS = {"true", "t", "yes", "y"}
_FALSE_WORDS = {"false", "f", "no", "n"}


def _coerce_scalar(s: str) -> Any:
    """'yes' -> True, '10' -> 10, '1.5' -> 1.5, '["a"]' -> ['a']; anything else unchanged."""
    low = s.lower()
    if low in _TRUE_WORDS:
        return True
    if low in _FALSE_WORDS:
        return False
    if s[:1] + s[-1:] in ("{}", "[]"):
        try:
            return json.loads(s)
        except json.JSONDecodeError:
            return s
    if not any(c.isdigit() for c in s):
        return s
    for cast in (int, float):
        try:
            return cast(s)
        except ValueError:
            continue
    return s


def normalize_kwargs(kwargs: dict[str, object] | None) -> dict[str, object]:
    """
    Hunt kwargs as they arrive from JSON/YAML config or `--kwargs k=v`, typed.

    `<name>_env: VAR` becomes `<name>: $VAR` (skipped when VAR is unset or an
    explicit `<name>` is given). String values are coerced by _coerce_scalar.
    """
    out: dict[str, object] = {}
    from_env: dict[str, str] = {}
    for k, v in (kwargs or {}).items():
        if isinstance(k, str) and k.endswith("_env") and isinstance(v, str):
            value = os.getenv(v.strip(), "")
            if value:
                from_env[k[: -len("_env")]] = value
            continue
        out[k] = _coerce_scalar(v.strip()) if isinstance(v, str) else v
    for k, v in from_env.items():
        out.setdefault(k, v)
    return out


def _resolve_run() -> Callable[..., Any]:
    # Imported lazily so `--help` and config validation never pay for bs4/requests.
    from modules.job_hunter.main import run

    return run


def _emit_activity_jsonl(record: dict[str, Any]) -> None:
    try:
        logging_utils.write_activity_log(record)
    except Exception as e:
        log.error("Failed to write activity JSONL: %s", e)


@dataclass
class RunResult:
    ok: bool
    message: str
    html: str | None = None
    meta: dict[str, Any] | None = None
    subject: str | None = None


def _coerce_result(value: Any) -> RunResult:
    """
    Normalize a hunt's return value.

      - None          -> no digest this run
      - (str, dict)   -> digest HTML + meta (may carry 'message', 'subject', 'text')
    """
    if value is None:
        return RunResult(ok=True, message="no digest", html=None, meta=None)
    if isinstance(value, tuple) and len(value) == 2 and isinstance(value[0], str) and isinstance(value[1], dict):
        meta = value[1]
        return RunResult(
            ok=True,
            message=meta.get("message", "OK"),
            html=value[0],
            meta=meta,
            subject=meta.get("subject"),
        )
    raise TypeError("Hunt must return None or (str, dict)")


# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------
def run_hunt_once(
    kwargs: dict[str, object] | None = None,
    *,
    email_to: list[str] | None = None,
    subject: str | None = None,
    send_email: bool | None = None,
    trigger_type: str = "scheduled",
    timeout_sec: int | None = None,
    hunt_id: str | None = None,
) -> tuple[str | None, str]:
    """
    Execute one hunt and deliver its digest.

    Email is sent only when the hunt produced a digest and sending is enabled:
    `send_email` (or SEND_EMAIL, default on) and not JOB_HUNTER_DRY_RUN.
    A failed send is logged and does not fail the run.

    Returns:
        (html_or_none, run_id)
    Raises:
        Propagates exceptions from the hunt (caller/CLI will catch and log).
    """
    run_id = uuid.uuid4().hex
    context: dict[str, Any] = {
        "run_id": run_id,
        "hunt_id": hunt_id,
        "trigger_type": trigger_type,
        "started_at": now_iso(),
    }

    kw = normalize_kwargs(kwargs)
    run_callable = _resolve_run()

    result: RunResult
    exc: BaseException | None = None

    t0 = datetime.now()
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hunt")
    try:
        fut = pool.submit(run_callable, **kw)
        value = fut.result(timeout=timeout_sec) if timeout_sec else fut.result()
        result = _coerce_result(value)
    except FutureTimeout:
        # The worker thread keeps running until the hunt's own budget ends it.
        exc = TimeoutError(f"Hunt timed out after {timeout_sec}s")
        result = RunResult(ok=False, message=str(exc), meta={"timeout_sec": timeout_sec})
    except Exception as e:
        exc = e
        result = RunResult(ok=False, message=str(e), meta={"exception_type": type(e).__name__})
    finally:
        pool.shutdown(wait=False)
    duration_ms = int((datetime.now() - t0).total_seconds() * 1000)

    # Dry-run wins over everything else.
    effective_send = send_email if send_email is not None else _truthy_env("SEND_EMAIL", "1")
    if _truthy_env("JOB_HUNTER_DRY_RUN"):
        effective_send = False

    emailed = False
    email_message_id: str | None = None
    recipients = email_to or default_recipients()

    if result.html and effective_send:
        subj = subject or result.subject or "Daily Job Hunt India"
        try:
            email_message_id = send_html(
                subject=subj,
                html=_wrap_html(subj, result.html),
                text=(result.meta or {}).get("text"),
                to=recipients,
            )
            emailed = True
        except EmailSendError as e:
            log.error("Email send failed: %s", e)

    meta = dict(result.meta or {})
    meta.pop("text", None)
    meta.pop("jobs", None)
    _emit_activity_jsonl({
        "ts": now_iso(),
        "run_id": run_id,
        "module": HUNT_MODULE,
        "trigger_type": trigger_type,
        "ok": result.ok,
        "message": result.message,
        "duration_ms": duration_ms,
        "emailed": emailed,
        "email_message_id": email_message_id,
        "email_to": recipients if emailed else [],
        "context": context,
        "kwargs": kw,
        "meta": meta,
    })

    if exc:
        raise exc

    return result.html, run_id
