from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any

from .keywords import DEFAULT_KEYWORDS, Keywords
from .urls import normalize_domain
from .utils import getenv_int, getenv_str, truthy


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env/files cannot form valid settings."""


# -----------------------------
# Models
# -----------------------------
@dataclass(frozen=True)
class CrawlConfig:
    """
    Tunables for one domain scrape.

    fetch_retries     attempts per URL before FetchError (>= 1)
    fetch_delay_ms    base delay for retry backoff and the politeness pause
    fetch_timeout_s   per-attempt timeout while crawling
    enrich_timeout_s  per-attempt timeout when fetching candidate job pages
    max_visited       distinct URLs fetched per domain
    max_queue         pending frontier entries
    sitemap_cap       job-like URLs taken from each sitemap
    min_score         alignment score a job needs to be surfaced
    snippet_chars     characters of page text kept for classification
    """

    fetch_retries: int = 3
    fetch_delay_ms: int = 450
    fetch_timeout_s: float = 10.0
    enrich_timeout_s: float = 9.0
    max_visited: int = 40
    max_queue: int = 120
    sitemap_cap: int = 120
    min_score: int = 2
    snippet_chars: int = 900
    retry_jitter_ms: int = 600
    politeness_jitter_ms: int = 400

    @classmethod
    def from_mapping(cls, kwargs: Mapping[str, Any] | None) -> CrawlConfig:
        """
        Build from kwargs, falling back to JOB_FETCH_RETRIES / JOB_FETCH_DELAY_MS
        for the two fetch knobs. Unknown keys are ignored so the same kwargs dict
        can carry hunt-level settings.
        """
        kw = dict(kwargs or {})
        values: dict[str, Any] = {
            "fetch_retries": getenv_int("JOB_FETCH_RETRIES", cls.fetch_retries),
            "fetch_delay_ms": getenv_int("JOB_FETCH_DELAY_MS", cls.fetch_delay_ms),
        }
        for f in fields(cls):
            if kw.get(f.name) is None:
                continue
            caster = float if f.name.endswith("_s") else int
            try:
                values[f.name] = caster(kw[f.name])
            except (TypeError, ValueError) as e:
                raise ConfigError(f"'{f.name}' must be a number (got {kw[f.name]!r}).") from e

        cfg = cls(**values)
        _validate_crawl(cfg)
        return cfg


@dataclass
class HuntSettings:
    """
    Canonical configuration for one hunt (a pass loop over many domains).

    Domains come from `domains` (list or comma-separated string) or from
    `domains_path`: a text file with one domain per line ('#' starts a comment)
    or a JSON list of strings.
    """

    domains: list[str] = field(default_factory=list)
    domains_path: str | None = None
    sqlite_path: str = "/app/local/state/jobhunter.db"

    target_jobs: int = 10
    max_run_minutes: float = 120.0
    max_passes: int | None = None
    idle_wait_s: float = 60.0
    writes_per_minute: int = 60

    # Special-run flags
    send_partial: bool = False
    include_seen: bool = False
    skip_network: bool = False

    keywords_path: str | None = None
    keywords: Keywords = field(default=DEFAULT_KEYWORDS, repr=False)
    crawl: CrawlConfig = field(default_factory=CrawlConfig)

    # ------------- convenience -------------
    def load_domains(self) -> list[str]:
        """Resolve the domain list: normalized, de-duplicated, order kept."""
        raw: list[str] = list(self.domains)
        if self.domains_path:
            raw.extend(_read_domains_file(self.domains_path))

        out: list[str] = []
        seen: set[str] = set()
        for item in raw:
            d = normalize_domain(item)
            if d and d not in seen:
                seen.add(d)
                out.append(d)
        return out

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> HuntSettings:
        """
        Build HuntSettings from kwargs with env fallbacks and validation.

        Recognized kwargs (all optional unless stated otherwise):

            domains: list[str] | str          # at least one of domains / domains_path
            domains_path: str                 # env JOB_HUNTER_DOMAINS_PATH
            sqlite_path: str                  # env JOB_HUNTER_SQLITE_PATH
            target_jobs: int = 10             # env TARGET_JOBS
            max_run_minutes: float = 120      # env MAX_RUN_MINUTES
            max_passes: int | None
            idle_wait_s: float = 60
            writes_per_minute: int = 60
            send_partial / include_seen / skip_network: bool
            keywords_path: str                # JSON keyword overrides

            # plus any CrawlConfig field (fetch_retries, max_visited, min_score, ...)
        """
        kw = dict(kwargs or {})

        domains = kw.get("domains") or []
        if isinstance(domains, str):
            domains = [d.strip() for d in domains.split(",") if d.strip()]
        if not isinstance(domains, list):
            raise ConfigError("'domains' must be a list of strings or a comma-separated string.")

        domains_path = str(kw.get("domains_path") or getenv_str("JOB_HUNTER_DOMAINS_PATH") or "").strip() or None
        sqlite_path = str(
            kw.get("sqlite_path") or getenv_str("JOB_HUNTER_SQLITE_PATH") or "/app/local/state/jobhunter.db"
        )

        try:
            target_jobs = int(_first_set(kw.get("target_jobs"), getenv_int("TARGET_JOBS", 10)))
            max_run_minutes = float(_first_set(kw.get("max_run_minutes"), getenv_str("MAX_RUN_MINUTES", "120")))
            max_passes = int(kw["max_passes"]) if kw.get("max_passes") is not None else None
            idle_wait_s = float(kw["idle_wait_s"]) if kw.get("idle_wait_s") is not None else 60.0
            writes_per_minute = int(_first_set(kw.get("writes_per_minute"), 60))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

        keywords_path = str(kw.get("keywords_path") or "").strip() or None

        settings = cls(
            domains=[str(d) for d in domains],
            domains_path=domains_path,
            sqlite_path=sqlite_path,
            target_jobs=target_jobs,
            max_run_minutes=max_run_minutes,
            max_passes=max_passes,
            idle_wait_s=idle_wait_s,
            writes_per_minute=writes_per_minute,
            send_partial=truthy(kw.get("send_partial")),
            include_seen=truthy(kw.get("include_seen")),
            skip_network=truthy(kw.get("skip_network")),
            keywords_path=keywords_path,
            keywords=load_keywords(keywords_path),
            crawl=CrawlConfig.from_mapping(kw),
        )
        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def load_keywords(path: str | None) -> Keywords:
    """Read keyword overrides from a JSON file; None means the defaults."""
    if not path:
        return DEFAULT_KEYWORDS
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Keywords file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Keywords file is invalid JSON: {path}") from e
    try:
        return Keywords.from_mapping(data)
    except ValueError as e:
        raise ConfigError(f"{path}: {e}") from e


def _first_set(value: Any, default: Any) -> Any:
    return default if value is None or value == "" else value


def _read_domains_file(path: str) -> list[str]:
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except FileNotFoundError as e:
        raise ConfigError(f"Domains file not found: {path}") from e

    if path.lower().endswith(".json"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Domains file is invalid JSON: {path}") from e
        if not isinstance(data, list) or not all(isinstance(d, str) for d in data):
            raise ConfigError(f"Domains file must hold a JSON list of strings: {path}")
        return data

    out: list[str] = []
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            out.append(line)
    return out


def _validate_crawl(c: CrawlConfig) -> None:
    if c.fetch_retries < 1:
        raise ConfigError("'fetch_retries' must be >= 1.")
    if c.fetch_delay_ms < 0:
        raise ConfigError("'fetch_delay_ms' must be >= 0.")
    if c.fetch_timeout_s <= 0 or c.enrich_timeout_s <= 0:
        raise ConfigError("Fetch timeouts must be > 0.")
    if c.max_visited < 1:
        raise ConfigError("'max_visited' must be >= 1.")
    if c.max_queue < 1:
        raise ConfigError("'max_queue' must be >= 1.")
    if c.sitemap_cap < 0:
        raise ConfigError("'sitemap_cap' must be >= 0.")
    if c.snippet_chars < 1:
        raise ConfigError("'snippet_chars' must be >= 1.")


def _validate_settings(s: HuntSettings) -> None:
    if not s.domains and not s.domains_path:
        raise ConfigError("No domains configured. Provide 'domains' or 'domains_path'.")
    if s.target_jobs < 1:
        raise ConfigError("'target_jobs' must be >= 1.")
    if s.max_run_minutes <= 0:
        raise ConfigError("'max_run_minutes' must be > 0.")
    if s.max_passes is not None and s.max_passes < 1:
        raise ConfigError("'max_passes' must be >= 1 when given.")
    if s.idle_wait_s < 0:
        raise ConfigError("'idle_wait_s' must be >= 0.")
    if s.writes_per_minute < 1:
        raise ConfigError("'writes_per_minute' must be >= 1.")
    if not s.sqlite_path.strip():
        raise ConfigError("'sqlite_path' cannot be empty.")
