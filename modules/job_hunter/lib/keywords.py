"""
Keyword sets driving every heuristic in the crawl-and-classify engine.

All matching is case-insensitive substring matching against lower-cased text,
so entries here must be lower-case. The sets are data, not logic: tune them by
shipping a JSON override (see `config.load_keywords`) rather than editing the engine.
Bump KEYWORDS_VERSION whenever the defaults change so stored results can be
traced back to the lists that produced them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

KEYWORDS_VERSION = "2025.02.1"


@dataclass(frozen=True)
class Keywords:
    # ---- content classification ----
    resume: tuple[str, ...] = (
        "software engineer",
        "software developer",
        "sde",
        "backend",
        "full stack",
        "node",
        "react",
        "javascript",
        "typescript",
        "python",
        "java",
        "ai",
        "ml",
        "machine learning",
        "deep learning",
        "llm",
        "rag",
        "langchain",
        "langgraph",
        "api",
        "intern",
    )
    stack_required: tuple[str, ...] = (
        "software engineer",
        "software developer",
        "sde",
        "backend",
        "full stack",
        "node",
        "node.js",
        "react",
        "javascript",
        "typescript",
        "python",
        "java",
        "api",
        "ai",
        "ml",
        "llm",
    )
    stack_excluded: tuple[str, ...] = (
        ".net",
        "dotnet",
        "asp.net",
        "c#",
        "azure devops engineer",
        "sharepoint",
        "dynamics 365",
    )
    fresher_positive: tuple[str, ...] = (
        "fresher",
        "freshers",
        "entry level",
        "entry-level",
        "graduate",
        "new grad",
        "intern",
        "internship",
        "trainee",
        "associate",
        "junior",
        "0-1 years",
        "0-2 years",
        "0 to 1 years",
        "0 to 2 years",
        "1 year",
        "2 years",
    )
    senior_negative: tuple[str, ...] = (
        "senior",
        "staff",
        "lead",
        "principal",
        "architect",
        "manager",
        "director",
        "vp",
        "head of",
        "8+ years",
        "7+ years",
        "6+ years",
        "5+ years",
        "4+ years",
        "3+ years",
    )
    india_positive: tuple[str, ...] = (
        "india",
        "bengaluru",
        "bangalore",
        "hyderabad",
        "pune",
        "chennai",
        "gurgaon",
        "gurugram",
        "noida",
        "mumbai",
        "delhi",
        "kolkata",
        "ahmedabad",
        "coimbatore",
        "kochi",
        "remote india",
        "work from india",
        "wfh india",
    )
    non_india_negative: tuple[str, ...] = (
        "united states",
        "usa",
        "canada",
        "europe",
        "uk",
        "australia",
        "singapore",
        "germany",
        "only us",
        "us only",
        "eu only",
    )
    job_page_signals: tuple[str, ...] = (
        "job description",
        "responsibilities",
        "qualifications",
        "apply",
        "requisition",
        "job id",
        "job title",
        "opening",
        "position",
    )
    block_page_signals: tuple[str, ...] = (
        "access denied",
        "are you a robot",
        "captcha",
        "forbidden",
        "temporarily unavailable",
        "request blocked",
        "security check",
        "cloudflare",
        "akamai",
    )

    # ---- link classification ----
    job_url_include: tuple[str, ...] = (
        "job",
        "career",
        "opening",
        "vacanc",
        "position",
        "workdayjobs",
        "greenhouse",
        "lever.co",
        "smartrecruiters",
        "ashby",
        "job-",
        "intern",
        "software-engineer",
        "developer",
    )
    blocked_url: tuple[str, ...] = (
        "login",
        "signin",
        "sign-in",
        "auth",
        "sso",
        "oauth",
        "account",
        "register",
        "signup",
        "sign-up",
        "faq",
        "help",
        "support",
        "contact",
        "about",
        "privacy",
        "terms",
        "home",
        "/#",
        "javascript:void",
    )
    ats_hosts: tuple[str, ...] = (
        "workdayjobs",
        "greenhouse",
        "lever.co",
        "smartrecruiters",
        "ashby",
    )
    direct_apply: tuple[str, ...] = (
        "apply",
        "requisition",
        "jobid=",
        "job_id=",
        "/jobs/",
        "/job/",
        "/careers/job",
        "workdayjobs",
        "greenhouse.io",
        "lever.co",
        "smartrecruiters",
        "ashby",
    )
    apply_signals: tuple[str, ...] = (
        "apply",
        "apply now",
        "submit application",
        "job details",
        "view job",
        "start application",
    )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base: Keywords | None = None) -> Keywords:
        """
        Overlay a (partial) mapping of list-valued fields onto `base`
        (defaults if omitted). Values are lower-cased and stripped.
        """
        if not isinstance(data, Mapping):
            raise ValueError("Keyword overrides must be a JSON object.")
        known = {f.name for f in fields(cls)}
        unknown = sorted(k for k in data if k not in known and k != "version")
        if unknown:
            raise ValueError(f"Unknown keyword set(s): {unknown}")

        changes: dict[str, tuple[str, ...]] = {}
        for name, value in data.items():
            if name == "version":
                continue
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ValueError(f"Keyword set {name!r} must be a list of strings.")
            cleaned = tuple(v.strip().lower() for v in value if v.strip())
            if not cleaned:
                raise ValueError(f"Keyword set {name!r} cannot be empty.")
            changes[name] = cleaned
        return replace(base or DEFAULT_KEYWORDS, **changes)


DEFAULT_KEYWORDS = Keywords()


def contains_any(haystack: str, needles: tuple[str, ...]) -> bool:
    return any(n in haystack for n in needles)
