# service/cli.py
"""
User-facing command-line entrypoints for the container.

Subcommands
-----------
serve
    - Starts the APScheduler loop via service.scheduler.start()
    - Registers signal handlers for graceful shutdown

hunt [--kwargs k=v ...] [--no-email] [--print-html]
    - Runs one hunt ad-hoc via runner.run_hunt_once(...)
    - Optionally prints the digest HTML

scrape DOMAIN [--kwargs k=v ...]
    - Scrapes a single domain and prints its ScrapeResult as JSON (no store, no email)

stats [--sqlite-path PATH]
    - Prints the per-domain stats table from the SQLite store

list-hunts
    - Prints configured hunts and their next fire times

validate-config
    - Loads/validates config and returns nonzero on error
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading
import time
from collections.abc import Iterable
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from service import config_schema as _config_schema
from service import logging_utils as L
from service import runner as _runner
from service import scheduler as _scheduler

LOG = logging.getLogger("service.cli")


# ----------------------------- Logging setup ---------------------------------
def _ensure_logging() -> None:
    root = logging.getLogger()
    if not root.handlers:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


# -------------------------- Utility / glue code ------------------------------
def _parse_kv_pairs(pairs: Iterable[str]) -> dict[str, Any]:
    """
    Parse key=value strings into a dict. Values that decode as JSON
    (numbers, booleans, arrays, objects) are decoded; the rest stay strings.
    """
    out: dict[str, Any] = {}
    for raw in pairs:
        if "=" not in raw:
            raise argparse.ArgumentTypeError(f"--kwargs item must be key=value (got {raw!r})")
        k, v = raw.split("=", 1)
        k, v = k.strip(), v.strip()
        if not k:
            raise argparse.ArgumentTypeError(f"Invalid key in --kwargs item {raw!r}")
        try:
            out[k] = json.loads(v)
        except json.JSONDecodeError:
            out[k] = v
    return out


@contextmanager
def _env_overrides(env: dict[str, str]):
    """Temporarily set environment variables."""
    old: dict[str, str | None] = {}
    try:
        for k, v in env.items():
            old[k] = os.environ.get(k)
            os.environ[k] = v
        yield
    finally:
        for k, v in old.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


def _print_table(rows: list[tuple[str, ...]], headers: tuple[str, ...]) -> None:
    widths = [max(len(h), *(len(r[i]) for r in rows)) if rows else len(h) for i, h in enumerate(headers)]
    sep = "+-" + "-+-".join("-" * w for w in widths) + "-+"
    print(sep)
    print("| " + " | ".join(h.ljust(w) for h, w in zip(headers, widths)) + " |")
    print(sep)
    for r in rows:
        print("| " + " | ".join(c.ljust(w) for c, w in zip(r, widths)) + " |")
    print(sep)


def _now_iso() -> str:
    return datetime.now().astimezone().isoformat()


# ------------------------------ Subcommands ----------------------------------
def cmd_validate_config(args: argparse.Namespace) -> int:
    try:
        cfg = _config_schema.load_config(args.config)
        _config_schema.validate(cfg)
        for raw in cfg["hunts"]:
            _scheduler.make_hunt_spec(raw, tz=_scheduler.resolve_timezone(cfg))
        print(f"OK: configuration is valid ({len(cfg['hunts'])} hunt(s)).")
        return 0
    except (_config_schema.ConfigError, ValueError, KeyError) as e:
        print(f"ERROR: configuration invalid: {e}", file=sys.stderr)
        return 1


def cmd_list_hunts(args: argparse.Namespace) -> int:
    try:
        cfg = _config_schema.load_config(args.config)
        _config_schema.validate(cfg)
    except (_config_schema.ConfigError, ValueError, KeyError) as e:
        print(f"ERROR: failed to load config: {e}", file=sys.stderr)
        return 1

    tz = _scheduler.resolve_timezone(cfg)
    rows: list[tuple[str, str, str]] = []
    for raw in cfg["hunts"]:
        spec = _scheduler.make_hunt_spec(raw, tz=tz)
        nxt = _scheduler.preview_trigger(spec.trigger, tz, count=1)
        rows.append((spec.id, nxt[0].isoformat() if nxt else "-", spec.description or json.dumps(raw["trigger"])))
    if not rows:
        print("No hunts found in config.")
        return 0
    _print_table(rows, headers=("HUNT", "NEXT RUN", "DETAILS"))
    return 0


def cmd_hunt(args: argparse.Namespace) -> int:
    start_time = time.monotonic()
    kwargs = _parse_kv_pairs(args.kwargs or [])
    LOG.debug("Hunt with kwargs=%s", kwargs)

    env = {"JOB_HUNTER_DRY_RUN": "1", "SEND_EMAIL": "0"} if args.no_email else {}
    try:
        with _env_overrides(env):
            html, run_id = _runner.run_hunt_once(kwargs, send_email=not args.no_email, trigger_type="adhoc")
        L.write_activity_log({
            "ts": _now_iso(),
            "event": "cli_hunt",
            "run_id": run_id,
            "trigger_type": "adhoc",
            "digest": html is not None,
            "kwargs": kwargs,
            "duration_ms": int((time.monotonic() - start_time) * 1000),
        })
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        print(f"FAILURE: {e}", file=sys.stderr)
        L.write_error_log({
            "ts": _now_iso(),
            "where": "cli.hunt",
            "kwargs": kwargs,
            "error": repr(e),
            "duration_ms": int((time.monotonic() - start_time) * 1000),
        })
        return 1

    if html:
        if args.print_html:
            print("\n----- HTML OUTPUT -----\n")
            print(html)
        print("SUCCESS: digest produced.")
    else:
        print("DONE: no digest this run (target not reached).")
    return 0


def cmd_scrape(args: argparse.Namespace) -> int:
    # Heavy imports (requests, bs4) only when actually scraping.
    from modules.job_hunter.lib.config import ConfigError, CrawlConfig, load_keywords
    from modules.job_hunter.lib.scrape import DomainScrapeFailure, scrape_domain

    kwargs = _runner.normalize_kwargs(_parse_kv_pairs(args.kwargs or []))
    try:
        cfg = CrawlConfig.from_mapping(kwargs)
        keywords = load_keywords(kwargs.get("keywords_path"))
        result = scrape_domain(args.domain, cfg, keywords=keywords)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except DomainScrapeFailure as e:
        print(f"FAILURE: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130

    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    from modules.job_hunter.lib import db

    path = args.sqlite_path or os.getenv("JOB_HUNTER_SQLITE_PATH") or "/app/local/state/jobhunter.db"
    rows = db.get_domain_stats(path)
    if not rows:
        print(f"No domain stats in {path}.")
        return 0
    _print_table(
        [
            (r.domain, "yes" if r.valid_domain else "no", r.scraped_at, str(r.total_found), str(r.aligned_count), r.digest_status)
            for r in rows
        ],
        headers=("DOMAIN", "VALID", "SCRAPED AT", "FOUND", "ALIGNED", "DIGEST"),
    )
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the scheduler until SIGINT/SIGTERM, then stop it cleanly."""
    L.write_activity_log({"ts": _now_iso(), "event": "serve_start"})
    stop_event = threading.Event()

    def _graceful_shutdown(signum=None, frame=None):
        LOG.info("Signal %s received; initiating shutdown...", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _graceful_shutdown)

    controller = None
    try:
        controller = _scheduler.start(config_path=args.config)
        while not stop_event.is_set():
            time.sleep(0.3)
        return 0
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        LOG.exception("Fatal error in serve: %s", e)
        return 1
    finally:
        if controller is not None:
            controller.stop()
            controller.join(timeout=10.0)
        L.write_activity_log({"ts": _now_iso(), "event": "serve_stop"})


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m service.cli",
        description="Job hunter service tools",
    )
    p.add_argument("--config", help="Path to config file (fallbacks to CONFIG_PATH env).")
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("serve", help="Run the scheduler loop.")
    sp.set_defaults(func=cmd_serve)

    sp = sub.add_parser("hunt", help="Run one hunt now via runner.run_hunt_once().")
    sp.add_argument("--kwargs", metavar="k=v", nargs="*", help="Hunt settings (JSON values supported).")
    sp.add_argument("--no-email", action="store_true", help="Do everything except send the digest.")
    sp.add_argument("--print-html", action="store_true", help="Print the digest HTML to stdout.")
    sp.set_defaults(func=cmd_hunt)

    sp = sub.add_parser("scrape", help="Scrape one domain and print the result as JSON.")
    sp.add_argument("domain", help="Bare domain, e.g. acme.com")
    sp.add_argument("--kwargs", metavar="k=v", nargs="*", help="Crawl settings (max_visited=10, ...).")
    sp.set_defaults(func=cmd_scrape)

    sp = sub.add_parser("stats", help="Print per-domain stats from the store.")
    sp.add_argument("--sqlite-path", help="Store path (default $JOB_HUNTER_SQLITE_PATH).")
    sp.set_defaults(func=cmd_stats)

    sp = sub.add_parser("list-hunts", help="Print configured hunts.")
    sp.set_defaults(func=cmd_list_hunts)

    sp = sub.add_parser("validate-config", help="Verify configuration correctness.")
    sp.set_defaults(func=cmd_validate_config)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    _ensure_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
