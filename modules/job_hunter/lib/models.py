from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

RoleType = Literal["internship", "fte", "unknown"]

ROLE_INTERNSHIP: RoleType = "internship"
ROLE_FTE: RoleType = "fte"
ROLE_UNKNOWN: RoleType = "unknown"


@dataclass(frozen=True)
class FetchedPage:
    """A fully-read HTTP response. `url` is the final URL after redirects."""

    url: str
    status: int
    content_type: str
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_html(self) -> bool:
        return "html" in (self.content_type or "").lower()


@dataclass(frozen=True)
class Link:
    url: str  # absolute, not normalized
    text: str  # stripped anchor text, <= 200 chars


@dataclass(frozen=True)
class JobCandidate:
    """
    A job-shaped URL discovered during the crawl, not yet fetched.
    The first page that links to a URL decides its title and source_page.
    """

    url: str
    title: str
    source_page: str


@dataclass(frozen=True)
class EnrichedJob:
    url: str
    title: str
    source_page: str
    snippet: str
    score: int
    role_type: RoleType
    fresher_friendly: bool
    tech_aligned: bool
    india_eligible: bool
    location_tag: str
    final_apply_url: str | None
    domain: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ScrapeResult:
    """
    Sole output of a domain scrape.
    - valid_domain: at least one page answered with a 2xx status
    - total_found: candidates discovered (minus those that turned out to be block pages)
    - aligned: jobs passing every filter, best score first
    - partial: the caller's deadline cut the scrape short
    """

    domain: str
    valid_domain: bool
    total_found: int
    aligned: tuple[EnrichedJob, ...] = ()
    partial: bool = False

    @classmethod
    def failed(cls, domain: str) -> ScrapeResult:
        return cls(domain=domain, valid_domain=False, total_found=0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "valid_domain": self.valid_domain,
            "total_found": self.total_found,
            "partial": self.partial,
            "aligned": [j.to_dict() for j in self.aligned],
        }


@dataclass
class CrawlState:
    """
    Mutable frontier state owned by exactly one domain scrape.

    Invariants: a URL enters `visited` at most once, and a URL in `visited` or
    `enqueued` is never queued again.
    """

    queue: deque[str] = field(default_factory=deque)
    visited: set[str] = field(default_factory=set)
    enqueued: set[str] = field(default_factory=set)
    candidates: dict[str, JobCandidate] = field(default_factory=dict)
    pages_ok: int = 0
    expired: bool = False


@dataclass(frozen=True)
class DomainStats:
    """One row of the per-domain store."""

    domain: str
    valid_domain: bool
    scraped_at: str
    total_found: int
    aligned_count: int
    digest_status: str = "no"
