import sqlite3

import pytest

from modules.job_hunter.lib import db
from modules.job_hunter.lib.models import DomainStats, EnrichedJob


def _stats(domain="acme.com", **kw):
    base = dict(domain=domain, valid_domain=True, scraped_at="2025-01-01T00:00:00Z", total_found=3, aligned_count=1)
    base.update(kw)
    return DomainStats(**base)


def _job(url, domain="acme.com"):
    return EnrichedJob(
        url=url,
        title="SDE Intern",
        source_page="https://acme.com/careers",
        snippet="",
        score=3,
        role_type="internship",
        fresher_friendly=True,
        tech_aligned=True,
        india_eligible=True,
        location_tag="india-onsite/hybrid",
        final_apply_url=url + "/apply",
        domain=domain,
    )


def test_init_db_creates_schema(tmp_path):
    path = tmp_path / "nested" / "jobs.db"
    db.init_db(str(path))
    db.init_db(str(path))  # idempotent

    with sqlite3.connect(path) as conn:
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    assert {"domain_stats", "seen_jobs"} <= tables


def test_record_domain_stats_upserts_by_domain(tmp_path):
    path = str(tmp_path / "jobs.db")
    db.record_domain_stats(path, _stats())
    db.record_domain_stats(path, _stats("globex.com", valid_domain=False, total_found=0, aligned_count=0))
    db.record_domain_stats(path, _stats(total_found=9, digest_status="yes (2025-01-01T00:00:00Z)"))

    rows = db.get_domain_stats(path)
    assert [r.domain for r in rows] == ["acme.com", "globex.com"]
    assert rows[0].total_found == 9
    assert rows[0].digest_status.startswith("yes")
    assert rows[1].valid_domain is False
    assert db.get_domain_stats(path, "globex.com") == [rows[1]]


def test_get_domain_stats_on_missing_db(tmp_path):
    path = str(tmp_path / "none.db")
    assert db.get_domain_stats(path) == []
    assert db.seen_urls(path) == set()


def test_mark_seen_counts_only_new_urls(tmp_path):
    path = str(tmp_path / "jobs.db")
    assert db.mark_seen(path, [_job("https://acme.com/jobs/1"), _job("https://acme.com/jobs/2")]) == 2
    assert db.mark_seen(path, [_job("https://acme.com/jobs/2"), _job("https://acme.com/jobs/3")]) == 1
    assert db.seen_urls(path) == {
        "https://acme.com/jobs/1",
        "https://acme.com/jobs/2",
        "https://acme.com/jobs/3",
    }


def test_reset_db_removes_files(tmp_path):
    path = str(tmp_path / "jobs.db")
    db.record_domain_stats(path, _stats())
    db.reset_db(path)
    db.reset_db(path)  # safe when missing
    assert db.get_domain_stats(path) == []


def test_write_errors_are_logged_and_raised(tmp_path, read_log):
    path = str(tmp_path / "jobs.db")
    db.init_db(path)
    with sqlite3.connect(path) as conn:
        conn.execute("DROP TABLE domain_stats")
        conn.execute("CREATE TABLE domain_stats (domain TEXT)")

    with pytest.raises(sqlite3.Error):
        db.record_domain_stats(path, _stats())

    errors = read_log("error")
    assert errors and errors[-1]["op"] == "record_domain_stats"


# ----------------------------------------------------------------------
# Write rate limiter
# ----------------------------------------------------------------------
def test_rate_limiter_allows_burst_then_waits(fake_clock):
    limiter = db.WriteRateLimiter(3, 60.0, clock=fake_clock, sleep=fake_clock.sleep)

    assert [limiter.acquire() for _ in range(3)] == [0.0, 0.0, 0.0]
    waited = limiter.acquire()

    assert waited == pytest.approx(20.0)
    assert fake_clock.sleeps == [pytest.approx(20.0)]


def test_rate_limiter_refills_over_time(fake_clock):
    limiter = db.WriteRateLimiter(2, 10.0, clock=fake_clock, sleep=fake_clock.sleep)
    limiter.acquire()
    limiter.acquire()

    fake_clock.now += 10.0
    assert limiter.acquire() == 0.0
    assert limiter.acquire() == 0.0
    assert fake_clock.sleeps == []


def test_rate_limiter_throughput_is_bounded(fake_clock):
    limiter = db.WriteRateLimiter(60, 60.0, clock=fake_clock, sleep=fake_clock.sleep)
    start = fake_clock()
    for _ in range(120):
        limiter.acquire()
    # 60 from the initial bucket, 60 more at one per second
    assert fake_clock() - start == pytest.approx(60.0)


@pytest.mark.parametrize("capacity, period", [(0, 60.0), (5, 0)])
def test_rate_limiter_rejects_bad_arguments(capacity, period):
    with pytest.raises(ValueError):
        db.WriteRateLimiter(capacity, period)
