# modules/job_hunter/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .config import ConfigError, CrawlConfig, HuntSettings
from .engine import run_once
from .http_client import FetchError, HttpClient
from .keywords import DEFAULT_KEYWORDS, KEYWORDS_VERSION, Keywords
from .models import DomainStats, EnrichedJob, JobCandidate, ScrapeResult
from .scrape import DomainScrapeFailure, scrape_domain

__all__ = [
    "DEFAULT_KEYWORDS",
    "KEYWORDS_VERSION",
    "ConfigError",
    "CrawlConfig",
    "DomainScrapeFailure",
    "DomainStats",
    "EnrichedJob",
    "FetchError",
    "HttpClient",
    "HuntSettings",
    "JobCandidate",
    "Keywords",
    "ScrapeResult",
    "run_once",
    "scrape_domain",
]
