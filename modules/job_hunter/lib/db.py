from __future__ import annotations

import contextlib
import os
import sqlite3
import time
from collections.abc import Callable, Iterable

from .logging_bridge import error as log_error
from .models import DomainStats, EnrichedJob
from .utils import now_iso


# ---- Rate limiting ----------------------------------------------------------


class WriteRateLimiter:
    """
    Token bucket guarding store writes: at most `capacity` writes per
    `period_s`, refilled continuously. `acquire()` blocks (via the injected
    sleep) until a token is available.
    """

    def __init__(
        self,
        capacity: int = 60,
        period_s: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if capacity < 1 or period_s <= 0:
            raise ValueError("capacity must be >= 1 and period_s > 0")
        self.capacity = int(capacity)
        self.rate = self.capacity / float(period_s)
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(self.capacity)
        self._last = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last)
        self._last = now
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.rate)

    def acquire(self) -> float:
        """Take one token; returns the seconds spent waiting."""
        waited = 0.0
        self._refill()
        while self._tokens < 1.0:
            delay = (1.0 - self._tokens) / self.rate
            self._sleep(delay)
            waited += delay
            self._refill()
        self._tokens -= 1.0
        return waited


# ---- Public API -------------------------------------------------------------


def init_db(sqlite_path: str) -> None:
    """Create the database file and schema if needed. Idempotent."""
    _ensure_dir(sqlite_path)
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _apply_pragmas(conn)
        _ensure_schema(conn)


def record_domain_stats(
    sqlite_path: str,
    stats: DomainStats,
    limiter: WriteRateLimiter | None = None,
) -> None:
    """Upsert one domain's row (keyed by domain)."""
    if limiter is not None:
        limiter.acquire()
    init_db(sqlite_path)
    try:
        with contextlib.closing(_connect(sqlite_path)) as conn:
            _apply_pragmas(conn)
            cur = conn.cursor()
            cur.execute("BEGIN IMMEDIATE")
            cur.execute(
                """
                INSERT INTO domain_stats (domain, valid_domain, scraped_at, total_found, aligned_count, digest_status)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(domain) DO UPDATE SET
                  valid_domain = excluded.valid_domain,
                  scraped_at = excluded.scraped_at,
                  total_found = excluded.total_found,
                  aligned_count = excluded.aligned_count,
                  digest_status = excluded.digest_status
                """,
                (
                    stats.domain,
                    1 if stats.valid_domain else 0,
                    stats.scraped_at,
                    int(stats.total_found),
                    int(stats.aligned_count),
                    stats.digest_status,
                ),
            )
            conn.commit()
    except Exception as e:
        log_error({
            "component": "job_hunter.db",
            "op": "record_domain_stats",
            "sqlite_path": sqlite_path,
            "domain": stats.domain,
            "error": repr(e),
        })
        raise


def get_domain_stats(sqlite_path: str, domain: str | None = None) -> list[DomainStats]:
    """All rows (ordered by domain), or the single row for `domain`."""
    if not os.path.exists(sqlite_path):
        return []
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _apply_pragmas(conn)
        _ensure_schema(conn)
        sql = "SELECT domain, valid_domain, scraped_at, total_found, aligned_count, digest_status FROM domain_stats"
        if domain is None:
            rows = conn.execute(sql + " ORDER BY domain").fetchall()
        else:
            rows = conn.execute(sql + " WHERE domain = ?", (domain,)).fetchall()
    return [
        DomainStats(
            domain=r[0],
            valid_domain=bool(r[1]),
            scraped_at=r[2],
            total_found=int(r[3]),
            aligned_count=int(r[4]),
            digest_status=r[5],
        )
        for r in rows
    ]


def seen_urls(sqlite_path: str) -> set[str]:
    """URLs already delivered in an earlier digest."""
    if not os.path.exists(sqlite_path):
        return set()
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _apply_pragmas(conn)
        _ensure_schema(conn)
        return {row[0] for row in conn.execute("SELECT url FROM seen_jobs")}


def mark_seen(sqlite_path: str, jobs: Iterable[EnrichedJob]) -> int:
    """Record delivered jobs; returns how many were new to the ledger."""
    init_db(sqlite_path)
    ts = now_iso()
    inserted = 0
    try:
        with contextlib.closing(_connect(sqlite_path)) as conn:
            _apply_pragmas(conn)
            cur = conn.cursor()
            cur.execute("BEGIN IMMEDIATE")
            for j in jobs:
                cur.execute(
                    "INSERT OR IGNORE INTO seen_jobs (url, domain, title, first_sent_utc) VALUES (?, ?, ?, ?)",
                    (j.url, j.domain, j.title, ts),
                )
                inserted += cur.rowcount
            conn.commit()
    except Exception as e:
        log_error({
            "component": "job_hunter.db",
            "op": "mark_seen",
            "sqlite_path": sqlite_path,
            "error": repr(e),
        })
        raise
    return inserted


def reset_db(sqlite_path: str) -> None:
    """Remove the DB file (and WAL side files). Safe if missing."""
    for suffix in ("", "-wal", "-shm"):
        with contextlib.suppress(FileNotFoundError):
            os.remove(sqlite_path + suffix)


# ---- Internal utilities -----------------------------------------------------


def _ensure_dir(sqlite_path: str) -> None:
    d = os.path.dirname(os.path.abspath(sqlite_path)) or "."
    os.makedirs(d, exist_ok=True)


def _connect(sqlite_path: str) -> sqlite3.Connection:
    # Autocommit mode; writers open their own BEGIN IMMEDIATE transaction.
    return sqlite3.connect(sqlite_path, timeout=30.0, isolation_level=None)


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS domain_stats (
          domain        TEXT PRIMARY KEY,
          valid_domain  INTEGER NOT NULL,
          scraped_at    TEXT NOT NULL,
          total_found   INTEGER NOT NULL,
          aligned_count INTEGER NOT NULL,
          digest_status TEXT NOT NULL DEFAULT 'no'
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS seen_jobs (
          url            TEXT PRIMARY KEY,
          domain         TEXT NOT NULL,
          title          TEXT NOT NULL,
          first_sent_utc TEXT NOT NULL
        );
        """
    )
