"""
Tests for the typer CLI (cde_advisor/cli.py).

What we test
------------
  - init-db creates the database; load-fixture loads the demo project.
  - Engine commands print JSON on stdout.
  - Input errors (unknown domain, half a date range, bad fixture) exit 1.
  - report --output writes the report file.

Every test runs against its own temp database and a temp config that keeps
logs at WARNING without a log file, so stdout carries only JSON.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from cde_advisor.cli import app

_DEMO = Path(__file__).resolve().parents[2] / "fixtures" / "demo_project.json"

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_root_logger(monkeypatch):
    for name in ("CDE_ADVISOR_DB_PATH", "CDE_ADVISOR_LOG_LEVEL", "CDE_ADVISOR_MAX_WORKERS"):
        monkeypatch.delenv(name, raising=False)
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


@pytest.fixture
def cli_env(tmp_path) -> list[str]:
    """``--db-path``/``--config`` args for a fresh database with the demo loaded."""
    config = tmp_path / "app.toml"
    config.write_text('[logging]\nlevel = "WARNING"\nlog_file = ""\n', encoding="utf-8")
    args = ["--db-path", str(tmp_path / "cde.db"), "--config", str(config)]

    result = runner.invoke(app, ["load-fixture", str(_DEMO), *args])
    assert result.exit_code == 0, result.output
    return args


def _json(result) -> object:
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


class TestAdminCommands:
    def test_init_db(self, tmp_path):
        config = tmp_path / "app.toml"
        config.write_text('[logging]\nlevel = "WARNING"\nlog_file = ""\n', encoding="utf-8")
        db_path = tmp_path / "fresh" / "cde.db"

        result = runner.invoke(app, ["init-db", "--db-path", str(db_path), "--config", str(config)])

        assert result.exit_code == 0, result.output
        assert "[OK] Database ready." in result.output
        assert db_path.exists()

    def test_load_fixture_summary(self, tmp_path):
        config = tmp_path / "app.toml"
        config.write_text('[logging]\nlevel = "WARNING"\nlog_file = ""\n', encoding="utf-8")
        args = ["--db-path", str(tmp_path / "cde.db"), "--config", str(config)]

        result = runner.invoke(app, ["load-fixture", str(_DEMO), *args])

        assert result.exit_code == 0, result.output
        assert "Activities: 3" in result.output

    def test_load_fixture_twice_is_rejected(self, cli_env):
        result = runner.invoke(app, ["load-fixture", str(_DEMO), *cli_env])
        assert result.exit_code == 1
        assert "[ERROR]" in result.output

    def test_load_missing_fixture(self, cli_env, tmp_path):
        result = runner.invoke(app, ["load-fixture", str(tmp_path / "none.json"), *cli_env])
        assert result.exit_code == 1

    def test_validate_config(self, tmp_path):
        config = tmp_path / "app.toml"
        config.write_text("[engine]\nmax_workers = 2\n", encoding="utf-8")
        result = runner.invoke(app, ["validate-config", "--config", str(config)])
        assert result.exit_code == 0, result.output
        assert "Engine workers:   2" in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["validate-config", "--config", str(tmp_path / "x.toml")])
        assert result.exit_code == 1


class TestEngineCommands:
    def test_channels(self, cli_env):
        payload = _json(runner.invoke(app, ["channels", "--project", "demo", *cli_env]))

        ids = [row["channel_id"] for row in payload["items"]]
        assert ids == ["ch-news", "ch-conf", "ch-web"]
        news = payload["items"][0]
        assert news["cost_proxy_total"] == 360.0
        assert news["meaningful_engagement_total"] == 2
        assert news["reach_total"] == 1300.0

    def test_channels_domain_filter(self, cli_env):
        payload = _json(runner.invoke(
            app, ["channels", "-p", "demo", "--domain", "dissemination", *cli_env]
        ))
        assert [row["channel_id"] for row in payload["items"]] == ["ch-conf"]

    def test_unknown_domain(self, cli_env):
        result = runner.invoke(app, ["channels", "-p", "demo", "--domain", "sales", *cli_env])
        assert result.exit_code == 1
        assert "Unknown domain" in result.output

    def test_half_date_range(self, cli_env):
        result = runner.invoke(app, ["objectives", "-p", "demo", "--start-date", "2025-01-01", *cli_env])
        assert result.exit_code == 1

    def test_date_range_narrows(self, cli_env):
        payload = _json(runner.invoke(
            app,
            ["channels", "-p", "demo", "--start-date", "2025-04-01", "--end-date", "2025-04-30", *cli_env],
        ))
        assert [row["channel_id"] for row in payload["items"]] == ["ch-news"]

    def test_stakeholders(self, cli_env):
        payload = _json(runner.invoke(app, ["stakeholders", "-p", "demo", *cli_env]))
        ratios = {row["stakeholder_group_id"]: row["responsiveness_ratio"] for row in payload["items"]}
        assert ratios == {"sg-farmers": 2.0, "sg-policy": 0.0}

    def test_objectives(self, cli_env):
        payload = _json(runner.invoke(app, ["objectives", "-p", "demo", *cli_env]))
        statuses = {row["objective_id"]: row["status"] for row in payload["items"]}
        assert statuses == {"obj-awareness": "On track", "obj-uptake": "Blocked"}

    def test_flags_carry_override(self, cli_env):
        payload = _json(runner.invoke(app, ["flags", "-p", "demo", "--period", "2025-H1", *cli_env]))

        by_id = {flag["id"]: flag for flag in payload["items"]}
        assert payload["items"][0]["id"] == "obj-obj-uptake"
        assert by_id["channel-ch-web"]["override"]["status"] == "acknowledged"
        assert by_id["channel-ch-conf"]["override"] is None
        assert "activity-act-talk-1" in by_id

    def test_evidence_score(self, cli_env):
        payload = _json(runner.invoke(
            app, ["evidence-score", "-p", "demo", "--activity", "act-newsletter-1", *cli_env]
        ))
        assert payload == {"activity_id": "act-newsletter-1", "score": 100}

    def test_derived_metrics(self, cli_env):
        payload = _json(runner.invoke(app, ["derived-metrics", "-p", "demo", *cli_env]))
        [metrics] = payload["items"]
        assert metrics["cost_per_meaningful_engagement_by_channel"]["Project newsletter"] == 180.0

    def test_report_to_file(self, cli_env, tmp_path):
        out = tmp_path / "reports" / "demo.json"
        result = runner.invoke(app, ["report", "-p", "demo", "--output", str(out), *cli_env])

        assert result.exit_code == 0, result.output
        report = json.loads(out.read_text(encoding="utf-8"))
        assert report["project_id"] == "demo"
        assert report["settings"]["hourly_rate_default"] == 60
