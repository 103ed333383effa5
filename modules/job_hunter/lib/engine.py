"""
Hunt engine: sweep the configured domains until enough aligned jobs are found.

Features:
  - Repeated passes under a wall-clock budget (max_run_minutes), optional max_passes
  - First-wins selection by job URL; jobs from earlier digests are skipped unless include_seen
  - Per-domain stats written to SQLite after each domain, through a write rate limiter
  - One digest per hunt, produced only when the target is met (or send_partial)
  - Dependency injection for tests (`scrape`, `clock`, `sleep`)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import replace

from . import db, logging_bridge, render
from .config import ConfigError, HuntSettings
from .models import DomainStats, EnrichedJob, ScrapeResult
from .scrape import DomainScrapeFailure, scrape_domain
from .utils import now_iso

ScrapeFn = Callable[..., ScrapeResult]


def run_once(
    settings: HuntSettings,
    *,
    scrape: ScrapeFn | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[str, dict] | None:
    """
    Run one hunt.

    Returns:
        (html, meta) when a digest was produced, else None.
    """
    scrape_fn = scrape or scrape_domain
    started = clock()
    budget_end = started + settings.max_run_minutes * 60.0
    target = settings.target_jobs

    domains = settings.load_domains()
    if not domains:
        raise ConfigError("Domain list is empty after normalization.")

    # -------------------------------------------------------------------------
    # SKIP-NETWORK MODE: validate config only
    # -------------------------------------------------------------------------
    if settings.skip_network:
        logging_bridge.activity({
            "component": "job_hunter.engine",
            "op": "skipped",
            "reason": "skip_network",
            "domains": len(domains),
        })
        return None

    db.init_db(settings.sqlite_path)
    seen = set() if settings.include_seen else db.seen_urls(settings.sqlite_path)
    limiter = db.WriteRateLimiter(settings.writes_per_minute, 60.0, clock=clock, sleep=sleep)

    selected: dict[str, EnrichedJob] = {}
    stats: dict[str, DomainStats] = {}
    failures: list[str] = []
    passes = 0

    def _more_passes_allowed() -> bool:
        return settings.max_passes is None or passes < settings.max_passes

    # -------------------------------------------------------------------------
    # PASS LOOP
    # -------------------------------------------------------------------------
    while len(selected) < target and clock() < budget_end and _more_passes_allowed():
        passes += 1
        progress = False

        for domain in domains:
            if len(selected) >= target or clock() >= budget_end:
                break
            scraped_at = now_iso()
            try:
                result = scrape_fn(
                    domain,
                    settings.crawl,
                    keywords=settings.keywords,
                    deadline=budget_end,
                    clock=clock,
                    sleep=sleep,
                )
            except DomainScrapeFailure as e:
                failures.append(domain)
                logging_bridge.error({
                    "component": "job_hunter.engine",
                    "op": "scrape_domain",
                    "domain": domain,
                    "error": repr(e.cause),
                })
                result = ScrapeResult.failed(domain)

            for job in result.aligned:
                if len(selected) >= target:
                    break
                if job.url in selected or job.url in seen:
                    continue
                selected[job.url] = replace(job, domain=domain)
                progress = True

            row = DomainStats(
                domain=domain,
                valid_domain=result.valid_domain,
                scraped_at=scraped_at,
                total_found=result.total_found,
                aligned_count=len(result.aligned),
            )
            stats[domain] = row
            db.record_domain_stats(settings.sqlite_path, row, limiter)

        if len(selected) >= target or not _more_passes_allowed():
            break
        if not progress and clock() + settings.idle_wait_s < budget_end:
            logging_bridge.activity({
                "component": "job_hunter.engine",
                "op": "idle_wait",
                "pass": passes,
                "selected": len(selected),
                "wait_s": settings.idle_wait_s,
            })
            sleep(settings.idle_wait_s)

    # -------------------------------------------------------------------------
    # DIGEST DECISION
    # -------------------------------------------------------------------------
    picked = list(selected.values())[:target]
    produce = len(picked) == target or (settings.send_partial and bool(picked))
    digest_status = f"yes ({now_iso()})" if produce else f"no ({len(picked)}/{target})"

    for row in stats.values():
        db.record_domain_stats(settings.sqlite_path, replace(row, digest_status=digest_status), limiter)

    duration_s = round(clock() - started, 3)
    summary = {
        "component": "job_hunter.engine",
        "op": "summary",
        "domains": len(domains),
        "scraped": len(stats),
        "failed": failures,
        "passes": passes,
        "selected": len(picked),
        "target": target,
        "digest": produce,
        "duration_s": duration_s,
    }
    logging_bridge.activity(summary)

    if not produce:
        return None

    # -------------------------------------------------------------------------
    # RENDER
    # -------------------------------------------------------------------------
    db.mark_seen(settings.sqlite_path, picked)

    subject = render.subject_for(len(picked))
    message = f"Found {len(picked)} unique India-eligible resume-aligned roles."
    html = render.wrap_document(render.build_digest(picked), intro=message)

    meta = {
        "message": message,
        "subject": subject,
        "text": render.build_text(picked),
        "count": len(picked),
        "target": target,
        "partial": len(picked) < target,
        "passes": passes,
        "domains": len(domains),
        "failed_domains": failures,
        "duration_s": duration_s,
        "jobs": [j.to_dict() for j in picked],
    }
    return html, meta
