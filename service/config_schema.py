# service/config_schema.py
from __future__ import annotations

import json
import logging
import os
import re
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the service config is invalid."""


_TRIGGER_FIELDS = ("cron", "interval", "daily_time")
_INTERVAL_KEYS = {"weeks", "days", "hours", "minutes", "seconds"}
_DAILY_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def load_config(path: str | None = None) -> dict[str, Any]:
    """
    Load the service configuration (JSON, or YAML by extension).

    Resolution order:
      1) explicit `path`
      2) os.environ['CONFIG_PATH']
      3) empty default ({"hunts": []})

    Shape:
      {
        "timezone": "Asia/Kolkata",            # optional, default $TZ or UTC
        "hunts": [
          {
            "id": "daily-india",
            "trigger": {"daily_time": "08:30"},  # or {"cron": ...} / {"interval": {...}}
            "kwargs": {"domains_path": "/app/local/domains.txt"},
            "email_to": ["me@example.com"],      # or "email_to_env": "JOB_HUNTER_EMAIL_TO"
            "subject": "...", "timeout_sec": 7800, "send_email": true
          }
        ]
      }

    Hunts are normalized (id derived, email lists resolved, bools/ints
    coerced); call validate() for the full check.
    """
    resolved_path = path or os.environ.get("CONFIG_PATH")
    if not resolved_path:
        logger.info("CONFIG_PATH not provided; using empty default config.")
        cfg: dict[str, Any] = {"hunts": []}
    else:
        cfg = _read_any(resolved_path)
    _apply_top_level_defaults(cfg)
    return cfg


def validate(cfg: dict[str, Any]) -> None:
    """Validate a loaded configuration. Raise ConfigError on any problem."""
    if not isinstance(cfg, dict):
        raise ConfigError("Config must be an object.")

    hunts = cfg.get("hunts")
    if hunts is None:
        raise ConfigError("Missing required top-level 'hunts' list.")
    if not isinstance(hunts, list):
        raise ConfigError("'hunts' must be a list.")

    tz = cfg.get("timezone")
    if tz is not None and not isinstance(tz, str):
        raise ConfigError("'timezone' must be a string if provided.")

    seen_ids: set[str] = set()
    for idx, hunt in enumerate(hunts):
        if not isinstance(hunt, dict):
            raise ConfigError(f"Hunt at index {idx} must be an object.")

        hunt_id = _derive_hunt_id(hunt, idx)
        if hunt_id in seen_ids:
            raise ConfigError(f"Duplicate hunt id '{hunt_id}'.")
        seen_ids.add(hunt_id)

        trigger = hunt.get("trigger")
        if not isinstance(trigger, dict):
            raise ConfigError(f"Hunt '{hunt_id}': 'trigger' object is required.")
        present = [k for k in _TRIGGER_FIELDS if k in trigger]
        if len(present) != 1:
            raise ConfigError(f"Hunt '{hunt_id}': exactly one trigger required among {', '.join(_TRIGGER_FIELDS)}.")

        kind = present[0]
        value = trigger[kind]
        if kind == "cron" and not isinstance(value, (str, dict)):
            raise ConfigError(f"Hunt '{hunt_id}': cron must be a crontab string or an object.")
        if kind == "interval":
            if not isinstance(value, dict) or not value:
                raise ConfigError(f"Hunt '{hunt_id}': interval must be an object like {{'hours': 24}}.")
            unknown = sorted(set(value) - _INTERVAL_KEYS)
            if unknown:
                raise ConfigError(f"Hunt '{hunt_id}': unknown interval field(s) {unknown}.")
            for k, v in value.items():
                _to_int(v, field=f"interval.{k}", hunt_id=hunt_id, allow_zero=True)
        if kind == "daily_time":
            times = value.get("time") if isinstance(value, dict) else value
            for t in times if isinstance(times, list) else [times]:
                _validate_daily_time(t, hunt_id)

        for b in ("send_email", "coalesce"):
            if b in hunt:
                _to_bool(hunt[b], field=b, hunt_id=hunt_id)
        for n, allow_zero in (("timeout_sec", True), ("misfire_grace_time", True)):
            if n in hunt:
                _to_int(hunt[n], field=n, hunt_id=hunt_id, allow_zero=allow_zero)

        if "kwargs" in hunt and not isinstance(hunt["kwargs"], dict):
            raise ConfigError(f"Hunt '{hunt_id}': 'kwargs' must be an object if provided.")
        if "email_to" in hunt:
            _as_str_list(hunt["email_to"], field="email_to", hunt_id=hunt_id)
        for opt_str in ("subject", "description"):
            if opt_str in hunt and not isinstance(hunt[opt_str], str):
                raise ConfigError(f"Hunt '{hunt_id}': '{opt_str}' must be a string if provided.")


# ---- Internal helpers --------------------------------------------------------


def _apply_top_level_defaults(cfg: dict[str, Any]) -> None:
    if not isinstance(cfg.get("hunts"), list):
        cfg["hunts"] = []

    tz = cfg.get("timezone")
    if not isinstance(tz, str) or not tz.strip():
        cfg["timezone"] = os.environ.get("TZ", "UTC")

    normalized: list[dict[str, Any]] = []
    for idx, hunt in enumerate(cfg["hunts"]):
        if not isinstance(hunt, dict):
            raise ConfigError(f"Hunt at index {idx} must be an object.")
        h = dict(hunt)
        h["id"] = _derive_hunt_id(h, idx)

        # email_to_env names an env var holding a comma-separated list; the
        # variable name itself is dropped so it never reaches the logs.
        env_key = h.pop("email_to_env", None)
        if isinstance(env_key, str):
            value = os.getenv(env_key.strip(), "")
            h["email_to"] = [e.strip() for e in value.split(",") if e.strip()]

        for b in ("send_email", "coalesce"):
            if b in h:
                h[b] = _to_bool(h[b], field=b, hunt_id=h["id"])
        for n in ("timeout_sec", "misfire_grace_time"):
            if n in h:
                h[n] = _to_int(h[n], field=n, hunt_id=h["id"], allow_zero=True)
        if "email_to" in h:
            h["email_to"] = _as_str_list(h["email_to"], field="email_to", hunt_id=h["id"])
        normalized.append(h)

    cfg["hunts"] = normalized


def _derive_hunt_id(hunt: dict[str, Any], idx: int) -> str:
    for key in ("id", "name"):
        v = hunt.get(key)
        if isinstance(v, str) and v.strip():
            return v.strip()
    return f"hunt_{idx}"


def _validate_daily_time(dt: Any, hunt_id: str) -> tuple[int, int]:
    if not isinstance(dt, str):
        raise ConfigError(f"Hunt '{hunt_id}': 'daily_time' must be a string like 'HH:MM'.")
    m = _DAILY_TIME_RE.match(dt.strip())
    if not m:
        raise ConfigError(f"Hunt '{hunt_id}': 'daily_time' must match HH:MM (24h).")
    hour, minute = int(m.group(1)), int(m.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ConfigError(f"Hunt '{hunt_id}': 'daily_time' hour/minute out of range (00:00..23:59).")
    return hour, minute


def _as_str_list(value: Any, *, field: str, hunt_id: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    if isinstance(value, list):
        out: list[str] = []
        for i, item in enumerate(value):
            if not isinstance(item, str) or not item.strip():
                raise ConfigError(f"Hunt '{hunt_id}': {field}[{i}] must be a non-empty string.")
            out.append(item.strip())
        return out
    raise ConfigError(f"Hunt '{hunt_id}': '{field}' must be a string or list of strings.")


def _to_bool(value: Any, *, field: str, hunt_id: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v in {"1", "true", "yes", "on"}:
            return True
        if v in {"0", "false", "no", "off"}:
            return False
    raise ConfigError(f"Hunt '{hunt_id}': '{field}' must be a boolean (or boolean-like string).")


def _to_int(value: Any, *, field: str, hunt_id: str, allow_zero: bool) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"Hunt '{hunt_id}': '{field}' must be an integer.")
    try:
        iv = int(value)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"Hunt '{hunt_id}': '{field}' must be an integer.") from err
    if iv < 0 or (iv == 0 and not allow_zero):
        raise ConfigError(f"Hunt '{hunt_id}': '{field}' must be >= {'0' if allow_zero else '1'} (got {iv}).")
    return iv


def _read_any(path: str) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {path}: {e}") from e

    if path.lower().endswith((".yml", ".yaml")):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Top-level config in {path} must be an object.")
    return data
