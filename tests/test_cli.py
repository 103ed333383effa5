import json

from modules.job_hunter.lib import db
from modules.job_hunter.lib.config import ConfigError
from modules.job_hunter.lib.models import DomainStats, ScrapeResult
from modules.job_hunter.lib.scrape import DomainScrapeFailure


def test_cli_hunt_respects_no_email(stub_emailer, capsys, monkeypatch):
    from service import cli, runner

    monkeypatch.setenv("SEND_EMAIL", "1")
    monkeypatch.delenv("JOB_HUNTER_DRY_RUN", raising=False)
    monkeypatch.setattr(runner, "_resolve_run", lambda: (lambda **kw: ("<table>jobs</table>", {"subject": "s"})))

    rc = cli.main(["hunt", "--kwargs", "domains=acme.com", "--no-email", "--print-html"])

    assert rc == 0
    assert stub_emailer.sent["messages"] == []
    out, _ = capsys.readouterr()
    assert "SUCCESS" in out
    assert "<table>jobs</table>" in out


def test_cli_hunt_skip_network(stub_emailer, capsys, tmp_path):
    from service import cli

    rc = cli.main([
        "hunt",
        "--kwargs",
        "domains=acme.com",
        "skip_network=true",
        f"sqlite_path={tmp_path / 'x.db'}",
    ])

    assert rc == 0
    out, _ = capsys.readouterr()
    assert "DONE" in out


def test_cli_hunt_failure_returns_1(capsys):
    from service import cli

    rc = cli.main(["hunt", "--kwargs", "target_jobs=0"])

    assert rc == 1
    _, err = capsys.readouterr()
    assert "FAILURE" in err


def test_cli_scrape_prints_json(monkeypatch, capsys):
    from service import cli

    seen = {}

    def fake_scrape(domain, cfg, *, keywords):
        seen["domain"], seen["max_visited"] = domain, cfg.max_visited
        return ScrapeResult(domain="acme.com", valid_domain=True, total_found=3)

    monkeypatch.setattr("modules.job_hunter.lib.scrape.scrape_domain", fake_scrape)

    rc = cli.main(["scrape", "acme.com", "--kwargs", "max_visited=5"])

    assert rc == 0
    assert seen == {"domain": "acme.com", "max_visited": 5}
    data = json.loads(capsys.readouterr().out)
    assert data == {"domain": "acme.com", "valid_domain": True, "total_found": 3, "partial": False, "aligned": []}


def test_cli_scrape_error_codes(monkeypatch, capsys):
    from service import cli

    assert cli.main(["scrape", "acme.com", "--kwargs", "max_visited=0"]) == 2

    def failing(domain, cfg, *, keywords):
        raise DomainScrapeFailure(domain, RuntimeError("boom"))

    monkeypatch.setattr("modules.job_hunter.lib.scrape.scrape_domain", failing)
    assert cli.main(["scrape", "acme.com"]) == 1
    _, err = capsys.readouterr()
    assert "boom" in err


def test_cli_stats_prints_table(tmp_path, capsys):
    from service import cli

    path = str(tmp_path / "x.db")
    db.record_domain_stats(path, DomainStats("acme.com", True, "2025-01-01T00:00:00Z", 4, 2, "no (2/10)"))

    assert cli.main(["stats", "--sqlite-path", path]) == 0
    out = capsys.readouterr().out
    assert "acme.com" in out
    assert "no (2/10)" in out

    assert cli.main(["stats", "--sqlite-path", str(tmp_path / "empty.db")]) == 0
    assert "No domain stats" in capsys.readouterr().out


def test_cli_validate_and_list(write_min_config, capsys):
    from service import cli

    assert cli.main(["validate-config"]) == 0
    assert "OK" in capsys.readouterr().out

    assert cli.main(["--config", str(write_min_config), "list-hunts"]) == 0
    out = capsys.readouterr().out
    assert "daily-india" in out
    assert "pytest config" in out


def test_cli_validate_rejects_bad_config(tmp_path, capsys):
    from service import cli

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"hunts": [{"id": "x", "trigger": {"daily_time": "08:30", "cron": "0 8 * * *"}}]}))

    assert cli.main(["--config", str(bad), "validate-config"]) == 1
    assert "invalid" in capsys.readouterr().err


def test_config_error_is_a_value_error():
    assert issubclass(ConfigError, ValueError)
