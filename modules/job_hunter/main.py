from __future__ import annotations

from typing import Any

from .lib.config import HuntSettings
from .lib.engine import run_once as _run_engine
from .lib.keywords import KEYWORDS_VERSION
from .lib.logging_bridge import activity as log_activity


def run(**kwargs: Any) -> tuple[str, dict] | None:
    """
    Entry point for the 'job_hunter' module.

    Accepts kwargs (from scheduler/runner/CLI), including:
      domains: list[str] | str          # or domains_path (env JOB_HUNTER_DOMAINS_PATH)
      sqlite_path: str = "/app/local/state/jobhunter.db"
      target_jobs: int = 10
      max_run_minutes: float = 120
      max_passes: int | None
      keywords_path: str | None

      # Special-run flags:
      send_partial: bool = False
      include_seen: bool = False
      skip_network: bool = False

      # Crawl tunables: fetch_retries, fetch_delay_ms, max_visited, max_queue, min_score, ...

    Returns:
      - None (no digest this run), or
      - (html: str, meta: dict) - runner sends it if email is enabled.
    """
    settings = HuntSettings.from_env_and_kwargs(kwargs)

    log_activity({
        "component": "job_hunter.main",
        "op": "start",
        "domains_configured": len(settings.domains),
        "domains_path": settings.domains_path,
        "target_jobs": settings.target_jobs,
        "max_run_minutes": settings.max_run_minutes,
        "keywords_version": KEYWORDS_VERSION if settings.keywords_path is None else settings.keywords_path,
        "flags": {
            "send_partial": settings.send_partial,
            "include_seen": settings.include_seen,
            "skip_network": settings.skip_network,
        },
    })

    return _run_engine(settings)
