"""
Content classifiers for a fetched job page.

Every function takes already-combined text (typically `title + snippet`) and
lower-cases it itself; matching is substring based unless a word boundary
matters (role type, years of experience, remote).
"""

from __future__ import annotations

import re

from .keywords import DEFAULT_KEYWORDS, Keywords, contains_any
from .links import is_blocked_non_job_url
from .models import ROLE_FTE, ROLE_INTERNSHIP, ROLE_UNKNOWN, RoleType

_INTERN_RE = re.compile(r"\bintern(ship)?\b")
_FTE_RES = (
    re.compile(r"\bfull[-\s]?time\b"),
    re.compile(r"\bsoftware engineer\b"),
    re.compile(r"\bdeveloper\b"),
    re.compile(r"\bsde\b"),
)
_YEARS_RE = re.compile(r"(\d+)\s*\+?\s*(?:years|year|yrs|yr)")
_REMOTE_RE = re.compile(r"\bremote\b")

MAX_FRESHER_YEARS = 2

TAG_REMOTE_INDIA = "remote-india"
TAG_INDIA_ONSITE = "india-onsite/hybrid"
TAG_NON_INDIA = "non-india"
TAG_UNKNOWN = "non-india/unknown"


def score_alignment(text: str, keywords: Keywords | None = None) -> int:
    """One point per resume keyword present; no weighting."""
    kw = keywords or DEFAULT_KEYWORDS
    lc = (text or "").lower()
    return sum(1 for k in kw.resume if k in lc)


def classify_role_type(text: str) -> RoleType:
    lc = (text or "").lower()
    if _INTERN_RE.search(lc):
        return ROLE_INTERNSHIP
    if any(r.search(lc) for r in _FTE_RES):
        return ROLE_FTE
    return ROLE_UNKNOWN


def is_fresher_friendly(text: str, keywords: Keywords | None = None) -> bool:
    """
    Seniority markers win over everything. Otherwise an explicit fresher
    marker, otherwise the first 'N years' mention decides (N <= 2).
    """
    kw = keywords or DEFAULT_KEYWORDS
    lc = (text or "").lower()
    if contains_any(lc, kw.senior_negative):
        return False
    if contains_any(lc, kw.fresher_positive):
        return True
    m = _YEARS_RE.search(lc)
    if m:
        return int(m.group(1)) <= MAX_FRESHER_YEARS
    return False


def is_tech_aligned(text: str, keywords: Keywords | None = None) -> bool:
    kw = keywords or DEFAULT_KEYWORDS
    lc = (text or "").lower()
    if contains_any(lc, kw.stack_excluded):
        return False
    return contains_any(lc, kw.stack_required)


def get_location_eligibility(text: str, keywords: Keywords | None = None) -> tuple[bool, str]:
    """
    (india_eligible, location_tag). A remote role only counts when India is
    mentioned as well; an explicit non-India region without any India marker
    disqualifies.
    """
    kw = keywords or DEFAULT_KEYWORDS
    lc = (text or "").lower()
    has_india = contains_any(lc, kw.india_positive)
    has_non_india = contains_any(lc, kw.non_india_negative)
    has_remote = bool(_REMOTE_RE.search(lc))

    eligible = has_india or (has_remote and "india" in lc)
    if not eligible:
        return False, TAG_UNKNOWN
    if has_non_india and not has_india:
        return False, TAG_NON_INDIA
    if has_remote:
        return True, TAG_REMOTE_INDIA
    return True, TAG_INDIA_ONSITE


def is_blocked_page_content(text: str, keywords: Keywords | None = None) -> bool:
    """Bot-wall / WAF interstitial. Pass visible text, not raw markup."""
    kw = keywords or DEFAULT_KEYWORDS
    return contains_any((text or "").lower(), kw.block_page_signals)


def is_likely_job_page(url: str, title: str, snippet: str, keywords: Keywords | None = None) -> bool:
    kw = keywords or DEFAULT_KEYWORDS
    if is_blocked_page_content(f"{title} {snippet}", kw):
        return False
    if is_blocked_non_job_url(url, f"{title} {snippet}", kw):
        return False
    return contains_any(f"{url} {title} {snippet}".lower(), kw.job_page_signals)
