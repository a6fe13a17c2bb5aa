"""
JSON fixture loader: seeds one project's facts into the SQLite store.

A fixture document is a JSON object shaped like ``ProjectFacts`` plus an
optional ``flag_overrides`` list::

    {
      "project":      {"project_id": "p1", "name": "...", "settings_json": {...}},
      "channels":     [{"channel_id": "c1", "project_id": "p1", "name": "Newsletter"}],
      "activities":   [{"activity_id": "a1", "project_id": "p1", "title": "...",
                        "domain": "dissemination", "channel_ids": ["c1"], ...}],
      "indicators":   [{"indicator_id": "i1", ..., "values": [{"indicator_id": "i1", "value": 3}]}],
      "flag_overrides": [{"override_id": "o1", "entity_type": "channel", ...}]
    }

The whole document is validated before anything is written; a document that
fails validation raises ``ValueError`` and leaves the database untouched.
Rows are inserted parents-first so foreign keys hold. Indicator values are
inserted in document order, which fixes their recording order.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path

from pydantic import Field, ValidationError

from cde_advisor.db.repositories.activity_repo import ActivityRepository
from cde_advisor.db.repositories.engagement_repo import (
    EngagementSignalRepository,
    EvidenceRepository,
    SustainabilityPlanRepository,
    UptakeOpportunityRepository,
)
from cde_advisor.db.repositories.indicator_repo import IndicatorRepository
from cde_advisor.db.repositories.override_repo import FlagOverrideRepository
from cde_advisor.db.repositories.project_repo import (
    AssetRepository,
    ChannelRepository,
    ObjectiveRepository,
    ProjectRepository,
    StakeholderGroupRepository,
)
from cde_advisor.models.project import ProjectFacts
from cde_advisor.models.results import FlagOverride

logger = logging.getLogger(__name__)


class FixtureDocument(ProjectFacts):
    """``ProjectFacts`` plus the overrides users have recorded on flags."""

    flag_overrides: list[FlagOverride] = Field(default_factory=list)


@dataclass(frozen=True)
class LoadSummary:
    """Row counts written by one fixture load."""

    project_id:           str
    channels:             int
    stakeholder_groups:   int
    objectives:           int
    assets:               int
    activities:           int
    indicators:           int
    engagement_signals:   int
    uptake_opportunities: int
    sustainability_plans: int
    evidence_items:       int
    flag_overrides:       int


def parse_fixture(path: Path) -> FixtureDocument:
    """Read and validate a fixture document.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the file is not JSON or fails model validation.
    """
    if not path.exists():
        raise FileNotFoundError(f"Fixture file not found: {path}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Fixture {path.name} is not valid JSON: {exc}") from exc
    try:
        return FixtureDocument.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Fixture {path.name} failed validation:\n{exc}") from exc


def load_fixture_document(conn: sqlite3.Connection, doc: FixtureDocument) -> LoadSummary:
    """Insert every row of ``doc``. The caller owns the transaction.

    Raises:
        sqlite3.IntegrityError: On duplicate keys or dangling references.
    """
    ProjectRepository(conn).insert(doc.project)

    for channel in doc.channels:
        ChannelRepository(conn).insert(channel)
    for group in doc.stakeholder_groups:
        StakeholderGroupRepository(conn).insert(group)
    for objective in doc.objectives:
        ObjectiveRepository(conn).insert(objective)
    for asset in doc.assets:
        AssetRepository(conn).insert(asset)

    activity_repo = ActivityRepository(conn)
    for activity in doc.activities:
        activity_repo.insert(activity)

    indicator_repo = IndicatorRepository(conn)
    for indicator in doc.indicators:
        indicator_repo.insert(indicator)

    for signal in doc.engagement_signals:
        EngagementSignalRepository(conn).insert(signal)
    for opportunity in doc.uptake_opportunities:
        UptakeOpportunityRepository(conn).insert(opportunity)
    for plan in doc.sustainability_plans:
        SustainabilityPlanRepository(conn).insert(plan)
    for item in doc.evidence_items:
        EvidenceRepository(conn).insert(item)
    for override in doc.flag_overrides:
        FlagOverrideRepository(conn).insert(override)

    summary = LoadSummary(
        project_id=doc.project.project_id,
        channels=len(doc.channels),
        stakeholder_groups=len(doc.stakeholder_groups),
        objectives=len(doc.objectives),
        assets=len(doc.assets),
        activities=len(doc.activities),
        indicators=len(doc.indicators),
        engagement_signals=len(doc.engagement_signals),
        uptake_opportunities=len(doc.uptake_opportunities),
        sustainability_plans=len(doc.sustainability_plans),
        evidence_items=len(doc.evidence_items),
        flag_overrides=len(doc.flag_overrides),
    )
    logger.info(
        "Fixture loaded | project=%s | activities=%d | indicators=%d | overrides=%d",
        summary.project_id, summary.activities, summary.indicators, summary.flag_overrides,
    )
    return summary


def load_fixture(conn: sqlite3.Connection, path: Path) -> LoadSummary:
    """Parse ``path`` and load it into ``conn``."""
    return load_fixture_document(conn, parse_fixture(path))
