# job_hunter/http_client.py
from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import CrawlConfig
from .models import FetchedPage

LOG = logging.getLogger(__name__)

RETRY_STATUSES = frozenset({403, 408, 425, 429, 500, 502, 503, 504})

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_5) AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/17.0 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/123.0.0.0 Safari/537.36",
)

BASE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-IN,en;q=0.9",
    "Connection": "keep-alive",
    "Referer": "https://www.google.com/",
}


class FetchError(Exception):
    """All attempts for a URL failed (network error or retryable status)."""

    def __init__(self, url: str, reason: str, attempts: int):
        super().__init__(f"{url}: {reason} after {attempts} attempt(s)")
        self.url = url
        self.reason = reason
        self.attempts = attempts


class HttpClient:
    """
    Browser-like GET client for crawling career sites.

    Attempts are counted here, not by urllib3: each attempt rotates the
    User-Agent, and the backoff between attempts grows linearly with jitter.
    A non-retryable status (404, 410, ...) is returned as a FetchedPage so the
    caller can decide what to do with it.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        *,
        retries: int = 3,
        delay_ms: int = 450,
        jitter_ms: int = 600,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
        session: requests.Session | None = None,
    ):
        self.timeout = float(timeout)
        self.retries = max(1, int(retries))
        self.delay_ms = max(0, int(delay_ms))
        self.jitter_ms = max(0, int(jitter_ms))
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._ua_index = 0

        self.session = session or requests.Session()
        self.session.headers.update(BASE_HEADERS)

        adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False), pool_maxsize=10)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    @classmethod
    def from_config(cls, cfg: CrawlConfig, **kwargs: Any) -> HttpClient:
        return cls(
            timeout=cfg.fetch_timeout_s,
            retries=cfg.fetch_retries,
            delay_ms=cfg.fetch_delay_ms,
            jitter_ms=cfg.retry_jitter_ms,
            **kwargs,
        )

    def _next_user_agent(self) -> str:
        ua = USER_AGENTS[self._ua_index % len(USER_AGENTS)]
        self._ua_index += 1
        return ua

    def _backoff(self, attempt: int) -> float:
        jitter = self._rng.randint(0, self.jitter_ms) if self.jitter_ms else 0
        return (self.delay_ms * attempt + jitter) / 1000.0

    def fetch(self, url: str, timeout: float | None = None) -> FetchedPage:
        """GET `url`, retrying network errors and RETRY_STATUSES. Raises FetchError."""
        reason = "no attempt made"
        for attempt in range(1, self.retries + 1):
            headers = {"User-Agent": self._next_user_agent()}
            try:
                resp = self.session.get(url, headers=headers, timeout=timeout or self.timeout, allow_redirects=True)
            except requests.RequestException as e:
                reason = f"{type(e).__name__}: {e}"
                LOG.debug("fetch %s attempt %d failed: %s", url, attempt, reason)
            else:
                if resp.status_code not in RETRY_STATUSES:
                    if not resp.encoding and resp.apparent_encoding:
                        resp.encoding = resp.apparent_encoding
                    return FetchedPage(
                        url=resp.url or url,
                        status=resp.status_code,
                        content_type=resp.headers.get("Content-Type", ""),
                        text=resp.text,
                    )
                reason = f"HTTP {resp.status_code}"
                LOG.debug("fetch %s attempt %d got retryable status %d", url, attempt, resp.status_code)
                resp.close()

            if attempt < self.retries:
                self._sleep(self._backoff(attempt))

        raise FetchError(url, reason, self.retries)

    def close(self) -> None:
        try:
            self.session.close()
        except Exception:
            LOG.debug("HttpClient.close() swallow", exc_info=True)

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
