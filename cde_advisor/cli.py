"""
cde-advisor — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging (stderr / log file).
  3. Validate inputs.
  4. Execute action (DB init, fixture load, engine operation).
  5. Report result: status lines for admin commands, JSON on stdout for
     engine commands.

Install and run::

    pip install -e .
    cde-advisor --help
    cde-advisor init-db
    cde-advisor load-fixture fixtures/demo_project.json
    cde-advisor channels --project demo --domain dissemination
    cde-advisor flags --project demo --period 2025-H1
    cde-advisor report --project demo --output data/reports/demo.json
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Iterator, Optional

import typer

app = typer.Typer(
    name="cde-advisor",
    help="Decision support for communication, dissemination and exploitation work.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from cde_advisor.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from cde_advisor.utils.logging import configure_logging
    configure_logging(config.logging)


def _parse_date_range_or_exit(start_date: Optional[str], end_date: Optional[str]):
    """Both bounds or neither; returns ``None`` for all time."""
    from cde_advisor.engine.filters import DateRange

    if start_date is None and end_date is None:
        return None
    if start_date is None or end_date is None:
        typer.echo("[ERROR] --start-date and --end-date must be given together.", err=True)
        raise typer.Exit(code=1)
    try:
        return DateRange(date.fromisoformat(start_date), date.fromisoformat(end_date))
    except ValueError as exc:
        typer.echo(f"[ERROR] Invalid date range: {exc}", err=True)
        raise typer.Exit(code=1)


def _parse_filters_or_exit(domain: Optional[str], stakeholder_group: Optional[str] = None):
    from cde_advisor.engine.filters import ActivityFilters
    from cde_advisor.taxonomy.cde_taxonomy import ActivityDomain

    parsed_domain = None
    if domain is not None:
        try:
            parsed_domain = ActivityDomain(domain.lower())
        except ValueError:
            valid = ", ".join(d.value for d in ActivityDomain)
            typer.echo(f"[ERROR] Unknown domain '{domain}'. Expected one of: {valid}", err=True)
            raise typer.Exit(code=1)
    return ActivityFilters(domain=parsed_domain, stakeholder_group_id=stakeholder_group)


@contextmanager
def _engine_session(
    project_id: str,
    period_id: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
    db_path: Optional[str],
    config_path: Optional[str],
) -> Iterator[Any]:
    """Yield an initialized engine over the configured database.

    Engine errors (store failures) are reported as ``[ERROR]`` and exit 1.
    """
    from cde_advisor.db.connection import get_connection
    from cde_advisor.engine.errors import DecisionSupportError
    from cde_advisor.engine.service import DecisionSupportEngine
    from cde_advisor.engine.store import SqliteProjectStore

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    date_range = _parse_date_range_or_exit(start_date, end_date)

    with get_connection(
        db_path or config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        engine = DecisionSupportEngine(
            SqliteProjectStore(conn),
            project_id,
            period_id=period_id,
            date_range=date_range,
            engine_config=config.engine,
        )
        try:
            engine.initialize()
            yield engine
        except DecisionSupportError as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)


def _emit(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _emit_result(result) -> None:
    """Print an ``EngineResult`` as JSON; warn on stderr when it is partial."""
    if result.is_partial:
        typer.echo(
            f"[WARN] {len(result.failures)} entity computation(s) failed; results are partial.",
            err=True,
        )
    _emit(result.model_dump(mode="json"))


_PROJECT_OPT = typer.Option(..., "--project", "-p", help="Project id to analyse.")
_PERIOD_OPT = typer.Option(None, "--period", help="Reporting period id (narrows overrides).")
_START_OPT = typer.Option(None, "--start-date", help="Range start on activity end date (YYYY-MM-DD).")
_END_OPT = typer.Option(None, "--end-date", help="Range end on activity end date (YYYY-MM-DD).")
_DB_OPT = typer.Option(None, "--db-path", help="Override DB path from config.")
_CONFIG_OPT = typer.Option(None, "--config", help="Path to TOML config file.")


# ── Admin commands ────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = _DB_OPT,
    config_path: Optional[str] = _CONFIG_OPT,
) -> None:
    """Initialize the SQLite database and apply the full schema.

    Safe to run multiple times; all DDL uses IF NOT EXISTS.
    """
    from cde_advisor.db.connection import get_connection
    from cde_advisor.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with get_connection(
        target_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values."""
    config = _load_config_or_exit(config_path)

    timeout = config.engine.timeout_seconds
    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:    {config.database.db_path}")
    typer.echo(f"  Engine workers:   {config.engine.max_workers}")
    typer.echo(f"  Engine timeout:   {'none' if timeout is None else f'{timeout:g}s'}")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("load-fixture")
def load_fixture_cmd(
    fixture_file: str = typer.Argument(..., help="JSON fixture document to load."),
    db_path: Optional[str] = _DB_OPT,
    config_path: Optional[str] = _CONFIG_OPT,
) -> None:
    """Load one project's facts from a JSON fixture (schema applied first)."""
    import sqlite3

    from cde_advisor.db.connection import get_connection
    from cde_advisor.db.schema import apply_schema
    from cde_advisor.ingestion.fixture_loader import load_fixture_document, parse_fixture

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    path = Path(fixture_file)
    try:
        doc = parse_fixture(path)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Loading fixture: {path}")
    try:
        with get_connection(
            db_path or config.database.db_path,
            wal_mode=config.database.wal_mode,
            busy_timeout_ms=config.database.busy_timeout_ms,
        ) as conn:
            apply_schema(conn)
            summary = load_fixture_document(conn, doc)
    except sqlite3.IntegrityError as exc:
        typer.echo(f"[ERROR] Fixture rejected by database: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"  Project:    {summary.project_id}")
    typer.echo(f"  Activities: {summary.activities}")
    typer.echo(f"  Indicators: {summary.indicators}")
    typer.echo(f"  Overrides:  {summary.flag_overrides}")
    typer.echo("[OK] Fixture loaded.")


# ── Engine commands ───────────────────────────────────────────────────────────

@app.command("channels")
def channels(
    project_id: str = _PROJECT_OPT,
    domain: Optional[str] = typer.Option(None, "--domain", help="communication | dissemination | exploitation"),
    stakeholder_group: Optional[str] = typer.Option(None, "--stakeholder-group", help="Only activities targeting this group."),
    period_id: Optional[str] = _PERIOD_OPT,
    start_date: Optional[str] = _START_OPT,
    end_date: Optional[str] = _END_OPT,
    db_path: Optional[str] = _DB_OPT,
    config_path: Optional[str] = _CONFIG_OPT,
) -> None:
    """Channel effectiveness, most effective first."""
    filters = _parse_filters_or_exit(domain, stakeholder_group)
    with _engine_session(project_id, period_id, start_date, end_date, db_path, config_path) as engine:
        _emit_result(engine.channel_effectiveness(filters))


@app.command("stakeholders")
def stakeholders(
    project_id: str = _PROJECT_OPT,
    domain: Optional[str] = typer.Option(None, "--domain", help="communication | dissemination | exploitation"),
    period_id: Optional[str] = _PERIOD_OPT,
    start_date: Optional[str] = _START_OPT,
    end_date: Optional[str] = _END_OPT,
    db_path: Optional[str] = _DB_OPT,
    config_path: Optional[str] = _CONFIG_OPT,
) -> None:
    """Stakeholder group responsiveness, most responsive first."""
    filters = _parse_filters_or_exit(domain)
    with _engine_session(project_id, period_id, start_date, end_date, db_path, config_path) as engine:
        _emit_result(engine.stakeholder_responsiveness(filters))


@app.command("objectives")
def objectives(
    project_id: str = _PROJECT_OPT,
    period_id: Optional[str] = _PERIOD_OPT,
    start_date: Optional[str] = _START_OPT,
    end_date: Optional[str] = _END_OPT,
    db_path: Optional[str] = _DB_OPT,
    config_path: Optional[str] = _CONFIG_OPT,
) -> None:
    """Objective health diagnostics."""
    with _engine_session(project_id, period_id, start_date, end_date, db_path, config_path) as engine:
        _emit_result(engine.objective_diagnostics())


@app.command("derived-metrics")
def derived_metrics(
    project_id: str = _PROJECT_OPT,
    period_id: Optional[str] = _PERIOD_OPT,
    start_date: Optional[str] = _START_OPT,
    end_date: Optional[str] = _END_OPT,
    db_path: Optional[str] = _DB_OPT,
    config_path: Optional[str] = _CONFIG_OPT,
) -> None:
    """Cost per engagement, evidence-adjusted reach, and uptake lag."""
    with _engine_session(project_id, period_id, start_date, end_date, db_path, config_path) as engine:
        _emit_result(engine.derived_metrics())


@app.command("flags")
def flags(
    project_id: str = _PROJECT_OPT,
    period_id: Optional[str] = _PERIOD_OPT,
    start_date: Optional[str] = _START_OPT,
    end_date: Optional[str] = _END_OPT,
    db_path: Optional[str] = _DB_OPT,
    config_path: Optional[str] = _CONFIG_OPT,
) -> None:
    """Recommendation flags with overrides attached, most severe first."""
    with _engine_session(project_id, period_id, start_date, end_date, db_path, config_path) as engine:
        _emit_result(engine.recommendation_flags())


@app.command("evidence-score")
def evidence_score(
    project_id: str = _PROJECT_OPT,
    activity_id: str = typer.Option(..., "--activity", help="Activity id to score."),
    db_path: Optional[str] = _DB_OPT,
    config_path: Optional[str] = _CONFIG_OPT,
) -> None:
    """Evidence completeness score (0-100) for one activity."""
    with _engine_session(project_id, None, None, None, db_path, config_path) as engine:
        _emit({"activity_id": activity_id, "score": engine.evidence_completeness(activity_id)})


@app.command("report")
def report(
    project_id: str = _PROJECT_OPT,
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the report JSON to this file."),
    period_id: Optional[str] = _PERIOD_OPT,
    start_date: Optional[str] = _START_OPT,
    end_date: Optional[str] = _END_OPT,
    db_path: Optional[str] = _DB_OPT,
    config_path: Optional[str] = _CONFIG_OPT,
) -> None:
    """Every engine operation in one JSON report."""
    from cde_advisor.reporting.export import build_report, export_to_json

    with _engine_session(project_id, period_id, start_date, end_date, db_path, config_path) as engine:
        payload = build_report(engine)

    if output:
        written = export_to_json(payload, Path(output))
        typer.echo(f"[OK] Report written to {written}", err=True)
    else:
        _emit(payload)


if __name__ == "__main__":
    app()
