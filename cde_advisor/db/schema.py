"""
SQLite schema DDL — all CREATE TABLE and CREATE INDEX statements.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is **idempotent**:
safe to call on an already-initialized database (e.g. after restart or in tests).

Primary keys are caller-assigned TEXT ids (UUIDs in the surrounding
application). Many-to-many activity references live in four link tables.

Table creation order respects foreign key dependencies:
  1. projects                 (no FKs)
  2. channels, stakeholder_groups, objectives, result_assets  (→ projects)
  3. activities               (→ projects)
  4. activity_channels, activity_stakeholder_groups,
     activity_objectives, activity_assets  (→ activities + target)
  5. indicators               (→ projects)
  6. indicator_values         (→ indicators)
  7. engagement_signals       (→ activities)
  8. uptake_opportunities     (→ projects, result_assets)
  9. sustainability_plans     (→ result_assets)
  10. evidence_items          (→ activities)
  11. decision_flag_overrides (→ projects)
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_PROJECTS = """
CREATE TABLE IF NOT EXISTS projects (
    project_id      TEXT    PRIMARY KEY,
    name            TEXT    NOT NULL,
    settings_json   TEXT,
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_CHANNELS = """
CREATE TABLE IF NOT EXISTS channels (
    channel_id      TEXT    PRIMARY KEY,
    project_id      TEXT    NOT NULL REFERENCES projects(project_id),
    name            TEXT    NOT NULL,
    channel_type    TEXT    NOT NULL DEFAULT 'other'
);
"""

_DDL_STAKEHOLDER_GROUPS = """
CREATE TABLE IF NOT EXISTS stakeholder_groups (
    group_id        TEXT    PRIMARY KEY,
    project_id      TEXT    NOT NULL REFERENCES projects(project_id),
    name            TEXT    NOT NULL
);
"""

_DDL_OBJECTIVES = """
CREATE TABLE IF NOT EXISTS objectives (
    objective_id    TEXT    PRIMARY KEY,
    project_id      TEXT    NOT NULL REFERENCES projects(project_id),
    title           TEXT    NOT NULL,
    domain          TEXT    NOT NULL
);
"""

_DDL_RESULT_ASSETS = """
CREATE TABLE IF NOT EXISTS result_assets (
    asset_id        TEXT    PRIMARY KEY,
    project_id      TEXT    NOT NULL REFERENCES projects(project_id),
    title           TEXT    NOT NULL,
    asset_type      TEXT    NOT NULL DEFAULT 'other'
);
"""

_DDL_ACTIVITIES = """
CREATE TABLE IF NOT EXISTS activities (
    activity_id         TEXT    PRIMARY KEY,
    project_id          TEXT    NOT NULL REFERENCES projects(project_id),
    title               TEXT    NOT NULL,
    domain              TEXT    NOT NULL,
    status              TEXT    NOT NULL DEFAULT 'planned',
    effort_hours        REAL    NOT NULL DEFAULT 0,
    budget_estimate     REAL,
    completeness_score  REAL    NOT NULL DEFAULT 0,
    end_date            TEXT,
    deleted_at          TEXT
);
"""

_DDL_ACTIVITIES_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_activities_end_date_project
    ON activities(project_id, end_date) WHERE deleted_at IS NULL;
CREATE INDEX IF NOT EXISTS idx_activities_domain_project
    ON activities(project_id, domain) WHERE deleted_at IS NULL;
"""

_DDL_ACTIVITY_LINKS = """
CREATE TABLE IF NOT EXISTS activity_channels (
    activity_id     TEXT    NOT NULL REFERENCES activities(activity_id),
    channel_id      TEXT    NOT NULL REFERENCES channels(channel_id),
    PRIMARY KEY (activity_id, channel_id)
);
CREATE TABLE IF NOT EXISTS activity_stakeholder_groups (
    activity_id     TEXT    NOT NULL REFERENCES activities(activity_id),
    group_id        TEXT    NOT NULL REFERENCES stakeholder_groups(group_id),
    PRIMARY KEY (activity_id, group_id)
);
CREATE TABLE IF NOT EXISTS activity_objectives (
    activity_id     TEXT    NOT NULL REFERENCES activities(activity_id),
    objective_id    TEXT    NOT NULL REFERENCES objectives(objective_id),
    PRIMARY KEY (activity_id, objective_id)
);
CREATE TABLE IF NOT EXISTS activity_assets (
    activity_id     TEXT    NOT NULL REFERENCES activities(activity_id),
    asset_id        TEXT    NOT NULL REFERENCES result_assets(asset_id),
    PRIMARY KEY (activity_id, asset_id)
);
"""

_DDL_INDICATORS = """
CREATE TABLE IF NOT EXISTS indicators (
    indicator_id    TEXT    PRIMARY KEY,
    project_id      TEXT    NOT NULL REFERENCES projects(project_id),
    name            TEXT    NOT NULL,
    category        TEXT    NOT NULL DEFAULT 'output',
    target          REAL,
    deleted_at      TEXT
);
"""

_DDL_INDICATOR_VALUES = """
CREATE TABLE IF NOT EXISTS indicator_values (
    value_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    indicator_id    TEXT    NOT NULL REFERENCES indicators(indicator_id),
    value           REAL    NOT NULL,
    recorded_at     TEXT
);
CREATE INDEX IF NOT EXISTS idx_indicator_values_indicator
    ON indicator_values(indicator_id, value_id);
"""

_DDL_ENGAGEMENT_SIGNALS = """
CREATE TABLE IF NOT EXISTS engagement_signals (
    signal_id       TEXT    PRIMARY KEY,
    activity_id     TEXT    NOT NULL REFERENCES activities(activity_id),
    kind            TEXT    NOT NULL,
    recorded_at     TEXT
);
CREATE INDEX IF NOT EXISTS idx_engagement_signals_activity
    ON engagement_signals(activity_id);
"""

_DDL_UPTAKE_OPPORTUNITIES = """
CREATE TABLE IF NOT EXISTS uptake_opportunities (
    opportunity_id  TEXT    PRIMARY KEY,
    project_id      TEXT    NOT NULL REFERENCES projects(project_id),
    asset_id        TEXT    REFERENCES result_assets(asset_id),
    title           TEXT    NOT NULL DEFAULT '',
    created_at      TEXT    NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_uptake_created_project
    ON uptake_opportunities(project_id, created_at);
"""

_DDL_SUSTAINABILITY_PLANS = """
CREATE TABLE IF NOT EXISTS sustainability_plans (
    plan_id         TEXT    PRIMARY KEY,
    asset_id        TEXT    NOT NULL REFERENCES result_assets(asset_id),
    summary         TEXT    NOT NULL DEFAULT ''
);
"""

_DDL_EVIDENCE_ITEMS = """
CREATE TABLE IF NOT EXISTS evidence_items (
    evidence_id     TEXT    PRIMARY KEY,
    activity_id     TEXT    NOT NULL REFERENCES activities(activity_id),
    evidence_type   TEXT    NOT NULL,
    evidence_date   TEXT,
    context         TEXT,
    source_url      TEXT
);
"""

_DDL_FLAG_OVERRIDES = """
CREATE TABLE IF NOT EXISTS decision_flag_overrides (
    override_id     TEXT    PRIMARY KEY,
    project_id      TEXT    NOT NULL REFERENCES projects(project_id),
    period_id       TEXT,
    entity_type     TEXT    NOT NULL,
    entity_id       TEXT    NOT NULL,
    flag_code       TEXT    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'open',
    rationale       TEXT    NOT NULL DEFAULT '',
    created_by      TEXT,
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    updated_by      TEXT,
    updated_at      TEXT
);
CREATE INDEX IF NOT EXISTS idx_flag_overrides_project_period
    ON decision_flag_overrides(project_id, period_id);
"""

# ── Ordered list of all DDL to apply ──────────────────────────────────────────

_ALL_DDL: list[str] = [
    _DDL_PROJECTS,
    _DDL_CHANNELS,
    _DDL_STAKEHOLDER_GROUPS,
    _DDL_OBJECTIVES,
    _DDL_RESULT_ASSETS,
    _DDL_ACTIVITIES,
    _DDL_ACTIVITIES_INDEXES,
    _DDL_ACTIVITY_LINKS,
    _DDL_INDICATORS,
    _DDL_INDICATOR_VALUES,
    _DDL_ENGAGEMENT_SIGNALS,
    _DDL_UPTAKE_OPPORTUNITIES,
    _DDL_SUSTAINABILITY_PLANS,
    _DDL_EVIDENCE_ITEMS,
    _DDL_FLAG_OVERRIDES,
]

# Table names for introspection / tests
ALL_TABLE_NAMES = [
    "projects",
    "channels",
    "stakeholder_groups",
    "objectives",
    "result_assets",
    "activities",
    "activity_channels",
    "activity_stakeholder_groups",
    "activity_objectives",
    "activity_assets",
    "indicators",
    "indicator_values",
    "engagement_signals",
    "uptake_opportunities",
    "sustainability_plans",
    "evidence_items",
    "decision_flag_overrides",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``.

    Idempotent: safe to call on an already-initialized database.
    Each statement uses ``IF NOT EXISTS`` guards.

    Args:
        conn: An open ``sqlite3.Connection`` (FK enforcement should be ON).
    """
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        # Each block may contain multiple semicolon-separated statements
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables, indexes created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return list of table names present in the database (sorted)."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
