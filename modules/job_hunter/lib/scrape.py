"""
scrape_domain(): crawl one company domain, enrich every candidate posting and
keep the ones aligned with the candidate profile.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable, Iterable

from .apply_link import find_final_apply_url
from .classify import (
    classify_role_type,
    get_location_eligibility,
    is_blocked_page_content,
    is_fresher_friendly,
    is_likely_job_page,
    is_tech_aligned,
    score_alignment,
)
from .config import CrawlConfig
from .frontier import DEFAULT_TITLE, Fetcher, Frontier
from .http_client import FetchError, HttpClient
from .keywords import DEFAULT_KEYWORDS, Keywords
from .links import looks_like_direct_apply_url
from .logging_bridge import activity as log_activity
from .markup import extract_links, extract_title, strip_html
from .models import ROLE_FTE, ROLE_INTERNSHIP, EnrichedJob, JobCandidate, ScrapeResult
from .urls import normalize_domain


class DomainScrapeFailure(Exception):
    """An unexpected error escaped one domain's scrape."""

    def __init__(self, domain: str, cause: BaseException):
        super().__init__(f"scrape of {domain!r} failed: {type(cause).__name__}: {cause}")
        self.domain = domain
        self.cause = cause


def enrich_candidate(
    candidate: JobCandidate,
    client: Fetcher,
    config: CrawlConfig | None = None,
    keywords: Keywords | None = None,
    *,
    domain: str = "",
) -> EnrichedJob | None:
    """
    Fetch the candidate's page and classify it. Returns None when the page
    turns out to be a bot wall. A failed fetch is not fatal: the job is
    classified from its discovery title alone.
    """
    cfg = config or CrawlConfig()
    kw = keywords or DEFAULT_KEYWORDS

    title = candidate.title
    snippet = ""
    html = ""
    base_url = candidate.url
    try:
        page = client.fetch(candidate.url, timeout=cfg.enrich_timeout_s)
    except FetchError:
        page = None

    if page is not None and page.ok and page.is_html:
        text = strip_html(page.text)
        if is_blocked_page_content(text, kw):
            return None
        html = page.text
        base_url = page.url or candidate.url
        title = extract_title(html) or title
        snippet = text[: cfg.snippet_chars]

    title = title or DEFAULT_TITLE
    body = f"{title} {snippet}"
    india_eligible, location_tag = get_location_eligibility(f"{body} {candidate.url}", kw)
    links = extract_links(html, base_url) if html else []

    return EnrichedJob(
        url=candidate.url,
        title=title,
        source_page=candidate.source_page,
        snippet=snippet,
        score=score_alignment(body, kw),
        role_type=classify_role_type(body),
        fresher_friendly=is_fresher_friendly(body, kw),
        tech_aligned=is_tech_aligned(body, kw),
        india_eligible=india_eligible,
        location_tag=location_tag,
        final_apply_url=find_final_apply_url(html, base_url, kw, links=links),
        domain=domain,
    )


def is_aligned(job: EnrichedJob, config: CrawlConfig | None = None, keywords: Keywords | None = None) -> bool:
    cfg = config or CrawlConfig()
    kw = keywords or DEFAULT_KEYWORDS
    return (
        job.score >= cfg.min_score
        and job.fresher_friendly
        and job.tech_aligned
        and job.india_eligible
        and job.role_type in (ROLE_INTERNSHIP, ROLE_FTE)
        and bool(job.final_apply_url)
        and looks_like_direct_apply_url(job.final_apply_url or "", kw)
        and is_likely_job_page(job.final_apply_url or "", job.title, job.snippet, kw)
    )


def select_aligned(
    jobs: Iterable[EnrichedJob],
    config: CrawlConfig | None = None,
    keywords: Keywords | None = None,
) -> tuple[EnrichedJob, ...]:
    """Aligned jobs, best score first; ties keep discovery order (sorted() is stable)."""
    kept = [j for j in jobs if is_aligned(j, config, keywords)]
    return tuple(sorted(kept, key=lambda j: j.score, reverse=True))


def scrape_domain(
    domain: str,
    config: CrawlConfig | None = None,
    *,
    client: Fetcher | None = None,
    keywords: Keywords | None = None,
    deadline: float | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
) -> ScrapeResult:
    """
    Crawl `domain` and return its ScrapeResult.

    `deadline` is a value of `clock()` (monotonic seconds). Once it passes the
    crawl stops and whatever was enriched so far is returned with partial=True.
    Fetch failures never escape; any other exception is raised as
    DomainScrapeFailure. A client passed in is left open for the caller.
    """
    cfg = config or CrawlConfig()
    kw = keywords or DEFAULT_KEYWORDS
    d = normalize_domain(domain)
    owned = client is None
    http = client if client is not None else HttpClient.from_config(cfg, sleep=sleep, rng=rng)
    started = clock()

    try:
        frontier = Frontier(d, http, cfg, kw, deadline=deadline, clock=clock, sleep=sleep, rng=rng)
        state = frontier.run()

        enriched: list[EnrichedJob] = []
        discarded = 0
        for cand in list(state.candidates.values()):
            if frontier.expired():
                break
            job = enrich_candidate(cand, http, cfg, kw, domain=d)
            frontier.pause()
            if job is None:
                discarded += 1
                continue
            enriched.append(job)

        result = ScrapeResult(
            domain=d,
            valid_domain=state.pages_ok > 0,
            total_found=len(state.candidates) - discarded,
            aligned=select_aligned(enriched, cfg, kw),
            partial=state.expired,
        )
    except Exception as e:
        raise DomainScrapeFailure(d, e) from e
    finally:
        if owned:
            http.close()

    log_activity({
        "component": "job_hunter.scrape",
        "op": "domain_done",
        "domain": d,
        "valid_domain": result.valid_domain,
        "visited": len(state.visited),
        "total_found": result.total_found,
        "aligned": len(result.aligned),
        "partial": result.partial,
        "duration_s": round(clock() - started, 3),
    })
    return result
