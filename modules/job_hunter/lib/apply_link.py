from __future__ import annotations

from .keywords import DEFAULT_KEYWORDS, Keywords, contains_any
from .links import is_blocked_non_job_url, looks_like_direct_apply_url, looks_like_job_url
from .markup import extract_links
from .models import Link
from .urls import normalize_url


def find_final_apply_url(
    html: str,
    base_url: str,
    keywords: Keywords | None = None,
    links: list[Link] | None = None,
) -> str | None:
    """
    Best direct application URL for a job page.

    First anchor (document order) whose URL or text carries apply intent and
    whose normalized URL looks like a direct-apply target. Falls back to the
    page's own URL when that already looks like a specific posting.
    """
    kw = keywords or DEFAULT_KEYWORDS
    for link in links if links is not None else extract_links(html, base_url):
        if is_blocked_non_job_url(link.url, link.text, kw):
            continue
        if not contains_any(f"{link.url} {link.text}".lower(), kw.apply_signals):
            continue
        n = normalize_url(link.url)
        if n and looks_like_direct_apply_url(n, kw):
            return n

    fallback = normalize_url(base_url)
    if (
        fallback
        and looks_like_job_url(fallback, "", kw)
        and not is_blocked_non_job_url(fallback, "", kw)
        and looks_like_direct_apply_url(fallback, kw)
    ):
        return fallback
    return None
