from __future__ import annotations

import html
import os
from datetime import datetime, timezone
from typing import Any


def esc(s: str | None) -> str:
    """
    Escape text for HTML contexts (titles, URLs). Quotes are escaped too so the
    result is safe inside attributes.
    """
    if s is None:
        return ""
    return html.escape(str(s), quote=True)


def truthy(v: Any) -> bool:
    """
    Normalize common truthy inputs from env/kwargs.
    Accepts bools, numbers, or strings like: '1', 'true', 'yes', 'on'.
    """
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    return str(v).strip().lower() in {"1", "true", "yes", "on", "y", "t"}


def now_iso() -> str:
    """UTC ISO-8601 timestamp with 'Z' suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def getenv_str(name: str, default: str | None = None) -> str | None:
    val = os.getenv(name)
    return val if val not in (None, "") else default


def getenv_int(name: str, default: int) -> int:
    """Integer env var; blank or non-numeric values fall back to `default`."""
    raw = (os.getenv(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def collapse_ws(s: str) -> str:
    return " ".join(s.split())
