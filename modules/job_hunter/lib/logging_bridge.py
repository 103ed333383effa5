from __future__ import annotations

import copy
import logging
from typing import Any

from service import logging_utils as _backend

# Top-level keys scrubbed before the record leaves the module. The backend
# redacts again (deeply); this keeps secrets out of the stdlib fallback too.
_REDACT_KEYS = {
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "email_pass",
    "authorization",
    "auth",
    "bearer",
}


def _redact_record(record: dict[str, Any]) -> dict[str, Any]:
    redacted = copy.copy(record)
    for k in list(redacted.keys()):
        lk = str(k).lower()
        if lk in _REDACT_KEYS or lk.startswith("smtp_") or lk.endswith("_secret"):
            redacted[k] = "***REDACTED***"
    return redacted


def activity(record: dict[str, Any]) -> None:
    """
    Write a structured activity record to the JSONL activity log.
    Falls back to stdlib logging (INFO) if the write fails.
    """
    payload = _redact_record(record)
    try:
        _backend.write_activity_log(payload)
    except Exception:
        logging.getLogger("job_hunter.activity").info(payload, exc_info=True)


def error(record: dict[str, Any]) -> None:
    """Error-log counterpart of activity(); falls back to stdlib logging (ERROR)."""
    payload = _redact_record(record)
    try:
        _backend.write_error_log(payload)
    except Exception:
        logging.getLogger("job_hunter.error").error(payload, exc_info=True)
