"""
URL-level heuristics: is this link a job, an ATS page, a dead end, an apply link?
Only the URL (and optional anchor text) is inspected; nothing is fetched.
"""

from __future__ import annotations

import re

from .keywords import DEFAULT_KEYWORDS, Keywords, contains_any
from .markup import extract_links
from .models import Link
from .urls import normalize_url

_ATS_URL_RE = re.compile(
    r"https?://[^\s\"'<>]*?(?:myworkdayjobs\.com|workdayjobs|greenhouse\.io|lever\.co|smartrecruiters\.com|ashbyhq\.com)[^\s\"'<>]*",
    re.IGNORECASE,
)
_NUMERIC_JOB_PATH_RE = re.compile(r"/job/\d+|/jobs/\d+|/positions/\d+", re.IGNORECASE)


def _hay(url: str, text: str) -> str:
    return f"{url} {text}".lower()


def looks_like_job_url(url: str, text: str = "", keywords: Keywords | None = None) -> bool:
    kw = keywords or DEFAULT_KEYWORDS
    return contains_any(_hay(url, text), kw.job_url_include)


def is_blocked_non_job_url(url: str, text: str = "", keywords: Keywords | None = None) -> bool:
    kw = keywords or DEFAULT_KEYWORDS
    return contains_any(_hay(url, text), kw.blocked_url)


def is_ats_url(url: str, keywords: Keywords | None = None) -> bool:
    kw = keywords or DEFAULT_KEYWORDS
    return contains_any((url or "").lower(), kw.ats_hosts)


def looks_like_direct_apply_url(url: str, keywords: Keywords | None = None) -> bool:
    kw = keywords or DEFAULT_KEYWORDS
    if contains_any((url or "").lower(), kw.direct_apply):
        return True
    return bool(_NUMERIC_JOB_PATH_RE.search(url or ""))


def extract_ats_links_from_html(
    html: str,
    base_url: str,
    links: list[Link] | None = None,
    keywords: Keywords | None = None,
) -> list[str]:
    """
    Normalized ATS URLs found on a page, first-seen order, no duplicates.

    Absolute URLs are picked out of the raw markup first (they often live in
    scripts or data attributes), then anchors are checked because ATS pages are
    sometimes linked through relative wrappers. `links` lets a caller reuse an
    anchor list it already extracted.
    """
    found: dict[str, None] = {}
    for m in _ATS_URL_RE.finditer(html or ""):
        n = normalize_url(m.group(0))
        if n:
            found.setdefault(n, None)

    for link in links if links is not None else extract_links(html, base_url):
        n = normalize_url(link.url)
        if n and is_ats_url(n, keywords):
            found.setdefault(n, None)
    return list(found)
