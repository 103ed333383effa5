# tests/conftest.py
import json
import os
import pathlib
import tempfile
import types

import pytest
from freezegun import freeze_time

from modules.job_hunter.lib import config as jh_config
from modules.job_hunter.lib.http_client import FetchError
from modules.job_hunter.lib.models import FetchedPage


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (real network calls).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="jh-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")
    for name in ("JOB_FETCH_RETRIES", "JOB_FETCH_DELAY_MS", "TARGET_JOBS", "MAX_RUN_MINUTES",
                 "JOB_HUNTER_DOMAINS_PATH", "JOB_HUNTER_SQLITE_PATH", "JOB_HUNTER_EMAIL_TO"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def no_email_env(monkeypatch):
    monkeypatch.setenv("SEND_EMAIL", "0")
    monkeypatch.setenv("JOB_HUNTER_DRY_RUN", "1")
    monkeypatch.setenv("CONFIG_PATH", "/app/local/config.json")
    yield


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


@pytest.fixture
def write_min_config(tmp_path, monkeypatch):
    cfg = {
        "timezone": "Asia/Kolkata",
        "hunts": [
            {
                "id": "daily-india",
                "trigger": {"daily_time": "08:30"},
                "kwargs": {"domains": ["acme.com"], "skip_network": True},
                "send_email": False,
                "description": "pytest config",
            }
        ],
    }
    p = tmp_path / "config.json"
    p.write_text(json.dumps(cfg), encoding="utf-8")
    monkeypatch.setenv("CONFIG_PATH", str(p))
    return p


@pytest.fixture
def stub_emailer(monkeypatch):
    class StubErr(Exception):
        pass

    sent = {"messages": []}

    def send_html(**kwargs):
        sent["messages"].append(kwargs)
        return "<fake-message-id@example>"

    ns = types.SimpleNamespace(send_html=send_html, sent=sent, StubErr=StubErr)
    monkeypatch.setattr("service.emailer.send_html", ns.send_html, raising=True)
    monkeypatch.setattr("service.runner.send_html", ns.send_html, raising=False)
    return ns


# ---------------------------------------------------------------------
# Offline crawl helpers
# ---------------------------------------------------------------------
class FakeSite:
    """
    Stands in for HttpClient. Serves canned pages by exact URL; unknown URLs
    answer 404, URLs in `failing` raise FetchError as if retries ran out.
    """

    def __init__(self, pages=None, *, failing=(), redirects=None):
        self.pages = {}
        for url, page in (pages or {}).items():
            self.add(url, page)
        self.failing = set(failing)
        self.redirects = dict(redirects or {})
        self.calls: list[str] = []

    def add(self, url, page, *, status=200, content_type="text/html; charset=utf-8"):
        if isinstance(page, tuple):
            status, content_type, page = page
        self.pages[url] = (status, content_type, page)

    def fetch(self, url, timeout=None):
        self.calls.append(url)
        if url in self.failing:
            raise FetchError(url, "HTTP 503", 3)
        final = self.redirects.get(url, url)
        if final not in self.pages:
            return FetchedPage(url=final, status=404, content_type="text/html", text="")
        status, content_type, text = self.pages[final]
        return FetchedPage(url=final, status=status, content_type=content_type, text=text)


class FakeClock:
    """Monotonic clock whose sleep() only advances time."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_site():
    return FakeSite


@pytest.fixture
def fake_clock():
    return FakeClock()


CAREERS_HTML = """
<html><head><title>Careers at Acme</title>
<script>var tracking = "https://www.google-analytics.com/collect";</script>
</head><body>
  <h1>Join us</h1>
  <a href="/careers/job/101">Software Engineer Intern</a>
  <a href="/careers/job/303">Data Engineer</a>
  <a href="/privacy">Privacy</a>
  <a href="https://boards.greenhouse.io/acme/jobs/555">Backend Developer</a>
  <a href="https://other.com/jobs/1">Partner opening</a>
  <a href="mailto:jobs@acme.com">Mail us</a>
</body></html>
"""

INTERN_HTML = """
<html><head><title>Software Engineer Intern - Bengaluru</title></head><body>
  <h1>Software Engineer Intern</h1>
  <p>Remote (India). React, Node.js, Python. 0-1 years experience.</p>
  <p>Responsibilities: build APIs.</p>
  <a href="/careers/apply/101">Apply Now</a>
</body></html>
"""

GREENHOUSE_HTML = """
<html><head><title>Backend Developer - Pune</title></head><body>
  <p>Location: Pune, India. Full-time. Node, entry level.</p>
  <p>Job description: write services.</p>
  <a href="https://boards.greenhouse.io/acme/jobs/555/apply">Apply</a>
</body></html>
"""

BLOCK_HTML = "<html><head><title>Attention required</title></head><body>Access denied. Are you a robot?</body></html>"

SITEMAP_XML = """<?xml version="1.0" encoding="UTF-8"?>
<urlset>
  <url><loc>https://acme.com/jobs/202</loc></url>
  <url><loc>https://acme.com/blog/post</loc></url>
</urlset>
"""


@pytest.fixture
def acme_site():
    """
    A small career site:
      /careers links an internship, a block-page posting, a Greenhouse
      posting and some noise; the sitemap lists one extra job URL.
    """
    return FakeSite({
        "https://acme.com/careers": CAREERS_HTML,
        "https://acme.com/careers/job/101": INTERN_HTML,
        "https://acme.com/careers/job/303": BLOCK_HTML,
        "https://boards.greenhouse.io/acme/jobs/555": GREENHOUSE_HTML,
        "https://acme.com/jobs/202": "<html><head><title>Old posting</title></head><body>Closed.</body></html>",
        "https://acme.com/sitemap.xml": (200, "application/xml", SITEMAP_XML),
    })


@pytest.fixture
def fresh_settings(tmp_path, monkeypatch):
    """
    A brand-new HuntSettings per test: two domains, a per-test SQLite file,
    short budget, no idle wait.
    """
    db_path = tmp_path / "jobhunter.db"
    return jh_config.HuntSettings.from_env_and_kwargs({
        "domains": ["acme.com", "globex.com"],
        "sqlite_path": str(db_path),
        "target_jobs": 2,
        "max_run_minutes": 5,
        "idle_wait_s": 0,
    })


@pytest.fixture
def domains_file(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "domains.txt"
    path.write_text("# companies\nacme.com\nhttps://Globex.com/careers\n\nacme.com  # dup\n", encoding="utf-8")
    return path


@pytest.fixture
def read_log():
    """read_log('activity' | 'error') -> list of JSONL records written so far."""
    from service import logging_utils

    def _read(kind: str = "activity") -> list[dict]:
        path = logging_utils.get_activity_log_path() if kind == "activity" else logging_utils.get_error_log_path()
        if not os.path.exists(path):
            return []
        with open(path, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    return _read
