import json
import os

from modules.job_hunter.lib import logging_bridge
from service import logging_utils


def _lines(path):
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f]


def test_activity_records_are_jsonl_with_metadata(frozen_utc):
    logging_utils.write_activity_log({"event": "one"})
    logging_utils.write_activity_log({"event": "two", "when": object()})

    path = logging_utils.get_activity_log_path()
    assert os.path.basename(path) == "activity-test-2025-01-01.jsonl"
    records = _lines(path)
    assert [r["event"] for r in records] == ["one", "two"]
    assert records[0]["_meta"]["pid"] == os.getpid()


def test_secrets_are_redacted_deeply():
    logging_utils.write_error_log({
        "smtp_password": "x",
        "nested": {"api_key": "y", "ok": "fine", "headers": ["Bearer abc"]},
        "Authorization": "Bearer abc",
    })
    (record,) = _lines(logging_utils.get_error_log_path())
    assert record["smtp_password"] == "***REDACTED***"
    assert record["nested"]["api_key"] == "***REDACTED***"
    assert record["nested"]["ok"] == "fine"
    assert record["nested"]["headers"] == ["Bearer ***REDACTED***"]
    assert record["Authorization"] == "***REDACTED***"


def test_record_is_not_mutated():
    record = {"token": "t", "n": 1}
    logging_utils.write_activity_log(record)
    assert record == {"token": "t", "n": 1}


def test_size_rotation(monkeypatch):
    monkeypatch.setenv("ACTIVITY_LOG_MAX_BYTES", "10")
    logging_utils.write_activity_log({"event": "first-record-that-is-long"})
    logging_utils.write_activity_log({"event": "second"})

    path = logging_utils.get_activity_log_path()
    rotated = [n for n in os.listdir(os.path.dirname(path)) if n.startswith(os.path.basename(path) + ".")]
    assert len(rotated) == 1
    assert [r["event"] for r in _lines(path)] == ["second"]


def test_bridge_falls_back_to_stdlib_logging(monkeypatch, caplog):
    def broken(record):
        raise OSError("disk full")

    monkeypatch.setattr(logging_utils, "write_activity_log", broken)
    with caplog.at_level("INFO", logger="job_hunter.activity"):
        logging_bridge.activity({"component": "test", "password": "hunter2"})

    assert "hunter2" not in caplog.text
    assert "component" in caplog.text
