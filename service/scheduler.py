# service/scheduler.py
from __future__ import annotations

import logging
import os
import threading
import time as _time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Any

import pytz
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from . import config_schema, runner
from .logging_utils import write_activity_log

LOG = logging.getLogger(__name__)


# ---- Internal structures ----------------------------------------------------


@dataclass(frozen=True, slots=True)
class HuntSpec:
    id: str
    trigger: Any  # apscheduler.triggers.base.BaseTrigger
    kwargs: dict[str, Any]
    send_email: bool | None
    timeout_sec: int | None
    coalesce: bool
    misfire_grace_time: int | None
    description: str | None
    email_to: list[str] | None = None
    subject: str | None = None


# ---- Public controller ------------------------------------------------------


class SchedulerController:
    """Small façade around APScheduler so the CLI can manage lifecycle cleanly."""

    def __init__(self, scheduler: BackgroundScheduler) -> None:
        self._scheduler = scheduler
        self._stopped_evt = threading.Event()

    def stop(self) -> None:
        if self._scheduler.running:
            LOG.info("Shutting down scheduler...")
            # wait=False: return now; an in-flight hunt finishes on its own budget.
            self._scheduler.shutdown(wait=False)
        self._stopped_evt.set()
        LOG.info("Scheduler shut down complete.")

    def join(self, timeout: float | None = None) -> bool:
        """Block until stop() (or timeout). True if stopped."""
        return self._stopped_evt.wait(timeout=timeout)

    def get_job_ids(self) -> Iterable[str]:
        return (job.id for job in self._scheduler.get_jobs())


# ---- Module API -------------------------------------------------------------


def start(config_path: str | None = None) -> SchedulerController:
    """
    Load configuration, register one APScheduler job per hunt and start.

    Hunts run in a thread pool; each hunt is limited to one running instance
    and missed runs are coalesced, since a hunt can take up to its
    max_run_minutes budget.
    """
    cfg = config_schema.load_config(config_path)
    config_schema.validate(cfg)
    tz = resolve_timezone(cfg)

    job_defaults = {"coalesce": True, "max_instances": 1}
    scheduler = BackgroundScheduler(
        timezone=tz,
        job_defaults=job_defaults,
        executors={"default": ThreadPoolExecutor(_int_or(cfg.get("executor_workers"), 4))},
        jobstores={"default": MemoryJobStore()},
    )

    for raw in cfg["hunts"]:
        try:
            spec = make_hunt_spec(raw, tz=tz)
        except (ValueError, KeyError):
            LOG.exception("Skipping hunt due to config error: %r", raw.get("id"))
            continue
        _add_job(scheduler, spec)

    scheduler.start()
    LOG.info("Scheduler started with %d hunt(s).", len(scheduler.get_jobs()))
    return SchedulerController(scheduler)


def resolve_timezone(cfg: dict[str, Any]) -> Any:
    """APScheduler 3.x wants a pytz zone: config 'timezone', else $TZ, else UTC."""
    tz_name = cfg.get("timezone") or os.getenv("TZ") or "UTC"
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        LOG.warning("Falling back to UTC timezone (unknown tz '%s')", tz_name)
        return pytz.UTC


def make_hunt_spec(raw: dict[str, Any], *, tz: Any) -> HuntSpec:
    return HuntSpec(
        id=str(raw["id"]),
        trigger=_build_trigger(raw["trigger"], tz),
        kwargs=dict(raw.get("kwargs") or {}),
        send_email=raw.get("send_email"),
        timeout_sec=_int_or(raw.get("timeout_sec"), None),
        coalesce=bool(raw.get("coalesce", True)),
        misfire_grace_time=_int_or(raw.get("misfire_grace_time"), 3600),
        description=raw.get("description"),
        email_to=raw.get("email_to"),
        subject=raw.get("subject"),
    )


def preview_trigger(trigger: Any, tz: Any, count: int = 6, start: datetime | None = None) -> list[datetime]:
    """Next `count` fire times, for `list-hunts` and logs."""
    now = start or datetime.now(tz=tz)
    prev = None
    times: list[datetime] = []
    for _ in range(count):
        nxt = trigger.get_next_fire_time(prev, now)
        if nxt is None:
            break
        times.append(nxt)
        prev = nxt
        now = nxt + timedelta(microseconds=1)
    return times


# ---- Helpers ----------------------------------------------------------------


def _build_trigger(trig_def: dict[str, Any], tz: Any) -> Any:
    """
    Turn a hunt's trigger block into an APScheduler trigger.

      {"interval": {weeks|days|hours|minutes|seconds, jitter?, timezone?}}
      {"cron":     {second?, minute?, hour?, day?, day_of_week?, month?, jitter?, timezone?}}
      {"cron":     "30 8 * * *"}
      {"daily_time": "HH:MM"}
      {"daily_time": {"time": "HH:MM[:SS]" | [...], "day_of_week"?: "...", "timezone"?: "..."}}

    A block's own 'timezone' wins over the scheduler tz.
    """
    if not isinstance(trig_def, dict):
        raise ValueError("trigger must be a dict")

    kinds = [k for k in _BUILDERS if trig_def.get(k) is not None]
    if len(kinds) != 1:
        raise ValueError(f"trigger needs exactly one of {sorted(_BUILDERS)}, got {kinds or 'none'}")
    kind = kinds[0]
    return _BUILDERS[kind](trig_def[kind], _as_tz(tz))


def _as_tz(z: Any) -> Any:
    if not z:
        return None
    return pytz.timezone(z) if isinstance(z, str) else z


def _reject_unknown(block: str, given: dict[str, Any], allowed: set[str]) -> None:
    extra = sorted(set(given) - allowed)
    if extra:
        raise ValueError(f"{block}: unsupported key(s) {extra}")


def _interval_trigger(spec: Any, default_tz: Any) -> IntervalTrigger:
    if not isinstance(spec, dict):
        raise ValueError("interval: expected an object such as {'hours': 24}")
    _reject_unknown("interval", spec, {*_INTERVAL_UNITS, "jitter", "timezone"})

    def count(name: str) -> int:
        try:
            n = int(spec.get(name, 0))
        except (TypeError, ValueError) as err:
            raise ValueError(f"interval: {name} is not an integer") from err
        if n < 0:
            raise ValueError(f"interval: {name} is negative")
        return n

    units = {u: count(u) for u in _INTERVAL_UNITS}
    if not any(units.values()):
        raise ValueError("interval: period is zero")
    extra: dict[str, Any] = {u: n for u, n in units.items() if n}
    if count("jitter"):
        extra["jitter"] = count("jitter")
    return IntervalTrigger(timezone=_as_tz(spec.get("timezone")) or default_tz, **extra)


def _cron_trigger(spec: Any, default_tz: Any) -> CronTrigger:
    if isinstance(spec, str):
        if len(spec.split()) != 5:
            raise ValueError(f"cron: {spec!r} is not a 5-field crontab")
        return CronTrigger.from_crontab(spec, timezone=default_tz)
    if not isinstance(spec, dict):
        raise ValueError("cron: expected a crontab string or an object")
    _reject_unknown("cron", spec, {"second", "minute", "hour", "day", "day_of_week", "month", "jitter", "timezone"})
    # Unset clock fields mean zero so {"hour": 8} fires once a day, not every minute.
    fields = {f: spec.get(f, 0) for f in ("second", "minute", "hour")}
    fields.update({f: spec.get(f) for f in ("day", "day_of_week", "month", "jitter")})
    return CronTrigger(timezone=_as_tz(spec.get("timezone")) or default_tz, **fields)


def _daily_trigger(spec: Any, default_tz: Any) -> Any:
    if isinstance(spec, str):
        spec = {"time": spec}
    if not isinstance(spec, dict):
        raise ValueError("daily_time: expected 'HH:MM' or an object")
    _reject_unknown("daily_time", spec, {"time", "day_of_week", "timezone"})
    at = spec.get("time")
    if at is None:
        raise ValueError("daily_time: 'time' is missing")

    zone = _as_tz(spec.get("timezone")) or default_tz
    clock_times = sorted({_parse_time(str(t)) for t in ([at] if isinstance(at, str) else at)})
    parts = [
        CronTrigger(hour=h, minute=m, second=s, day_of_week=spec.get("day_of_week"), timezone=zone)
        for h, m, s in clock_times
    ]
    return parts[0] if len(parts) == 1 else OrTrigger(parts)


_INTERVAL_UNITS = ("weeks", "days", "hours", "minutes", "seconds")
_BUILDERS: dict[str, Callable[[Any, Any], Any]] = {
    "interval": _interval_trigger,
    "cron": _cron_trigger,
    "daily_time": _daily_trigger,
}


def _parse_time(s: str) -> tuple[int, int, int]:
    """'HH:MM' or 'HH:MM:SS' -> (h, m, s); ranges checked by datetime.time."""
    bits = s.strip().split(":")
    if len(bits) not in (2, 3):
        raise ValueError(f"daily_time: {s!r} is not HH:MM[:SS]")
    try:
        h, m, sec = (int(b) for b in (*bits, "0")[:3])
    except ValueError as err:
        raise ValueError(f"daily_time: {s!r} has non-numeric parts") from err
    time(h, m, sec)
    return h, m, sec


def _add_job(scheduler: BackgroundScheduler, spec: HuntSpec) -> None:
    """Register a hunt with a wrapper that runs it through the runner and logs the outcome."""

    def _job_wrapper() -> None:
        started = _time.monotonic()
        LOG.info("Hunt[%s] starting", spec.id)
        try:
            html, run_id = runner.run_hunt_once(
                spec.kwargs,
                email_to=spec.email_to,
                subject=spec.subject,
                send_email=spec.send_email if spec.send_email is not None else True,
                trigger_type="scheduled",
                timeout_sec=spec.timeout_sec,
                hunt_id=spec.id,
            )
        except Exception:
            LOG.exception("Hunt[%s] raised an exception.", spec.id)
            _write_activity(spec, status="error", duration_s=_time.monotonic() - started)
            return

        duration = _time.monotonic() - started
        LOG.info("Hunt[%s] finished in %.3fs (digest=%s)", spec.id, duration, html is not None)
        _write_activity(spec, status="ok", duration_s=duration, run_id=run_id, digest=html is not None)

    scheduler.add_job(
        func=_job_wrapper,
        trigger=spec.trigger,
        id=spec.id,
        max_instances=1,
        coalesce=spec.coalesce,
        misfire_grace_time=spec.misfire_grace_time,
        replace_existing=True,
    )

    job = scheduler.get_job(spec.id)
    nrt = getattr(job, "next_run_time", None) if job else None
    LOG.info("Registered hunt[%s] next_run_time=%s trigger=%s", spec.id, nrt, spec.trigger)


def _write_activity(spec: HuntSpec, status: str, duration_s: float, **fields: Any) -> None:
    """Best-effort; a logging failure never breaks the scheduler thread."""
    try:
        write_activity_log({
            "ts": datetime.now().isoformat(timespec="seconds"),
            "source": "scheduler",
            "event": "hunt_run",
            "fields": {
                "hunt_id": spec.id,
                "status": status,
                "duration_ms": int(duration_s * 1000),
                "description": spec.description,
                **fields,
            },
        })
    except Exception:
        LOG.debug("write_activity_log failed for hunt[%s]", spec.id, exc_info=True)


def _int_or(v: Any, default: int | None) -> int | None:
    try:
        return int(v) if v is not None else default
    except (TypeError, ValueError):
        return default
