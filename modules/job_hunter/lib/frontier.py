"""
Breadth-first crawl of one company domain looking for job postings.

The frontier owns a CrawlState for the duration of one scrape. Every URL goes
through `enqueue()`, which is the only place the queue grows, so the caps and
the visited/enqueued bookkeeping hold no matter where a link came from
(seed, sitemap, ATS scan, anchor).
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from typing import Protocol

from .classify import is_blocked_page_content
from .config import CrawlConfig
from .http_client import FetchError
from .keywords import DEFAULT_KEYWORDS, Keywords
from .links import extract_ats_links_from_html, is_ats_url, is_blocked_non_job_url, looks_like_job_url
from .markup import extract_links, extract_title, parse_sitemap_urls, strip_html
from .models import CrawlState, FetchedPage, JobCandidate
from .urls import is_same_root, normalize_domain, normalize_url

LOG = logging.getLogger(__name__)

DEFAULT_TITLE = "Job Opening"


class Fetcher(Protocol):
    def fetch(self, url: str, timeout: float | None = None) -> FetchedPage: ...


def seed_urls(domain: str) -> list[str]:
    d = normalize_domain(domain)
    return [
        f"https://{d}/careers",
        f"https://{d}/career",
        f"https://{d}/jobs",
        f"https://careers.{d}",
        f"https://jobs.{d}",
        f"https://{d}/join-us",
        f"https://{d}/careers/jobs",
        f"https://{d}",
    ]


def sitemap_urls(domain: str) -> list[str]:
    d = normalize_domain(domain)
    return [f"https://{d}/sitemap.xml", f"https://{d}/sitemap_index.xml"]


class Frontier:
    def __init__(
        self,
        domain: str,
        client: Fetcher,
        config: CrawlConfig | None = None,
        keywords: Keywords | None = None,
        *,
        deadline: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ):
        self.domain = normalize_domain(domain)
        self.client = client
        self.config = config or CrawlConfig()
        self.keywords = keywords or DEFAULT_KEYWORDS
        self.deadline = deadline
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.state = CrawlState()

    # ---------- bookkeeping ----------
    def enqueue(self, url: str) -> bool:
        """Accept `url` into the queue if it is new and there is room."""
        st = self.state
        n = normalize_url(url)
        if not n or n in st.visited or n in st.enqueued:
            return False
        if len(st.queue) >= self.config.max_queue:
            return False
        st.queue.append(n)
        st.enqueued.add(n)
        return True

    def add_candidate(self, url: str, title: str, source_page: str) -> None:
        """First discovery wins: title and source page are never overwritten."""
        if url in self.state.candidates:
            return
        self.state.candidates[url] = JobCandidate(url=url, title=title or DEFAULT_TITLE, source_page=source_page)

    def expired(self) -> bool:
        if self.deadline is not None and self._clock() >= self.deadline:
            self.state.expired = True
        return self.state.expired

    def pause(self) -> None:
        cfg = self.config
        jitter = self._rng.randint(0, cfg.politeness_jitter_ms) if cfg.politeness_jitter_ms else 0
        delay = (cfg.fetch_delay_ms + jitter) / 1000.0
        if delay > 0:
            self._sleep(delay)

    def _get(self, url: str, timeout: float) -> FetchedPage | None:
        try:
            page = self.client.fetch(url, timeout=timeout)
        except FetchError as e:
            LOG.debug("skip %s: %s", url, e)
            return None
        if page.ok:
            self.state.pages_ok += 1
        return page

    # ---------- stages ----------
    def seed(self) -> None:
        for u in seed_urls(self.domain):
            self.enqueue(u)

    def bootstrap_sitemaps(self) -> None:
        """Queue job-like sitemap entries. A missing or broken sitemap is ignored."""
        kw = self.keywords
        for sm in sitemap_urls(self.domain):
            if self.expired():
                return
            page = self._get(sm, self.config.fetch_timeout_s)
            self.pause()
            if page is None or not page.ok:
                continue
            job_like = [u for u in parse_sitemap_urls(page.text) if looks_like_job_url(u, "", kw)]
            for u in job_like[: self.config.sitemap_cap]:
                if not is_blocked_non_job_url(u, "", kw):
                    self.enqueue(u)

    def expand(self, page: FetchedPage, source_page: str) -> None:
        """Harvest ATS links and job-like anchors from one fetched page."""
        kw = self.keywords
        page_title = extract_title(page.text)
        links = extract_links(page.text, page.url)

        for ats in extract_ats_links_from_html(page.text, page.url, links=links, keywords=kw):
            if not is_blocked_non_job_url(ats, "", kw):
                self.enqueue(ats)
            if looks_like_job_url(ats, "", kw):
                self.add_candidate(ats, page_title, source_page)

        for link in links:
            n = normalize_url(link.url)
            if not n:
                continue
            if not (is_same_root(n, self.domain) or is_ats_url(n, kw)):
                continue
            if is_blocked_non_job_url(n, link.text, kw):
                continue
            if not looks_like_job_url(n, link.text, kw):
                continue
            self.add_candidate(n, link.text or page_title, source_page)
            self.enqueue(n)

    def step(self) -> None:
        """Pop one URL, fetch it and expand it if it is a usable HTML page."""
        st = self.state
        url = st.queue.popleft()
        n = normalize_url(url)
        if not n or n in st.visited:
            return
        st.visited.add(n)

        page = self._get(n, self.config.fetch_timeout_s)
        try:
            if page is None or not page.ok or not page.is_html:
                return
            if is_blocked_page_content(strip_html(page.text), self.keywords):
                LOG.debug("block page at %s", n)
                return
            self.expand(page, n)
        finally:
            self.pause()

    def run(self) -> CrawlState:
        """Seed, bootstrap from sitemaps, then expand until a cap or the deadline."""
        self.seed()
        self.bootstrap_sitemaps()
        st = self.state
        while st.queue and len(st.visited) < self.config.max_visited:
            if self.expired():
                break
            self.step()
        return st
