"""
Shared pytest fixtures for the cde-advisor test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema applied, usable from engine worker threads.
  - ``seed``: A ``Seeder`` bound to ``in_memory_db`` that inserts project
    facts through the real repositories (project ``p1`` is created up front).
  - ``make_engine``: Factory for an initialized ``DecisionSupportEngine``
    over ``in_memory_db``.
  - A fixed ``NOW`` clock so time-dependent rules are deterministic.
"""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timezone
from typing import Any, Callable, Generator, Optional

import pytest

from cde_advisor.config import EngineConfig
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
from cde_advisor.db.connection import MEMORY_DB, open_connection
from cde_advisor.db.schema import apply_schema
from cde_advisor.engine.service import DecisionSupportEngine
from cde_advisor.engine.store import SqliteProjectStore
from cde_advisor.models.project import (
    Activity,
    Asset,
    Channel,
    EngagementSignal,
    EvidenceItem,
    Indicator,
    IndicatorValue,
    Objective,
    Project,
    StakeholderGroup,
    SustainabilityPlan,
    UptakeOpportunity,
)
from cde_advisor.models.results import FlagOverride
from cde_advisor.taxonomy.cde_taxonomy import ActivityDomain, EngagementKind, OverrideStatus

PROJECT_ID = "p1"
NOW = datetime(2026, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied.

    Foreign key enforcement is ON. ``check_same_thread=False`` lets the
    engine's worker threads share it (the store serialises access).
    """
    conn = open_connection(MEMORY_DB)
    apply_schema(conn)
    yield conn
    conn.close()


# ── Seeding ───────────────────────────────────────────────────────────────────

class Seeder:
    """Insert facts for one project with sensible defaults."""

    def __init__(self, conn: sqlite3.Connection, project_id: str = PROJECT_ID) -> None:
        self.conn = conn
        self.project_id = project_id
        self._seq = 0

    def _next(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}{self._seq}"

    def project(self, settings_json: Any = None, project_id: Optional[str] = None) -> str:
        return ProjectRepository(self.conn).insert(
            Project(
                project_id=project_id or self.project_id,
                name="Test project",
                settings_json=settings_json,
            )
        )

    def channel(self, channel_id: str, name: Optional[str] = None, channel_type: str = "newsletter") -> str:
        return ChannelRepository(self.conn).insert(
            Channel(
                channel_id=channel_id,
                project_id=self.project_id,
                name=name or channel_id.title(),
                channel_type=channel_type,
            )
        )

    def group(self, group_id: str, name: Optional[str] = None) -> str:
        return StakeholderGroupRepository(self.conn).insert(
            StakeholderGroup(group_id=group_id, project_id=self.project_id, name=name or group_id)
        )

    def objective(
        self,
        objective_id: str,
        title: Optional[str] = None,
        domain: ActivityDomain = ActivityDomain.DISSEMINATION,
    ) -> str:
        return ObjectiveRepository(self.conn).insert(
            Objective(
                objective_id=objective_id,
                project_id=self.project_id,
                title=title or objective_id,
                domain=domain,
            )
        )

    def asset(self, asset_id: str, title: Optional[str] = None, asset_type: str = "dataset") -> str:
        return AssetRepository(self.conn).insert(
            Asset(
                asset_id=asset_id,
                project_id=self.project_id,
                title=title or asset_id,
                asset_type=asset_type,
            )
        )

    def activity(self, activity_id: Optional[str] = None, **fields: Any) -> Activity:
        params: dict[str, Any] = {
            "activity_id": activity_id or self._next("a"),
            "project_id": self.project_id,
            "title": fields.pop("title", None) or "Activity",
            "domain": ActivityDomain.DISSEMINATION,
            "status": "completed",
            "end_date": date(2026, 3, 1),
        }
        for key in ("channel_ids", "stakeholder_group_ids", "objective_ids", "asset_ids"):
            if key in fields:
                fields[key] = tuple(fields[key])
        params.update(fields)
        activity = Activity(**params)
        ActivityRepository(self.conn).insert(activity)
        return activity

    def indicator(
        self,
        indicator_id: str,
        values: tuple[float, ...] = (),
        target: Optional[float] = None,
        category: str = "output",
        deleted: bool = False,
    ) -> str:
        return IndicatorRepository(self.conn).insert(
            Indicator(
                indicator_id=indicator_id,
                project_id=self.project_id,
                name=indicator_id,
                category=category,
                target=target,
                values=tuple(IndicatorValue(indicator_id=indicator_id, value=v) for v in values),
                deleted_at=NOW if deleted else None,
            )
        )

    def signals(
        self,
        activity_id: str,
        count: int = 1,
        kind: EngagementKind = EngagementKind.SURVEY_RESPONSE,
    ) -> None:
        repo = EngagementSignalRepository(self.conn)
        for _ in range(count):
            repo.insert(
                EngagementSignal(signal_id=self._next("s"), activity_id=activity_id, kind=kind)
            )

    def opportunity(
        self,
        asset_id: Optional[str] = None,
        created_at: datetime = NOW,
    ) -> str:
        return UptakeOpportunityRepository(self.conn).insert(
            UptakeOpportunity(
                opportunity_id=self._next("u"),
                project_id=self.project_id,
                asset_id=asset_id,
                created_at=created_at,
            )
        )

    def plan(self, asset_id: str) -> str:
        return SustainabilityPlanRepository(self.conn).insert(
            SustainabilityPlan(plan_id=self._next("sp"), asset_id=asset_id, summary="Keep it alive")
        )

    def evidence(self, activity_id: str, evidence_type: str = "photo", **fields: Any) -> str:
        return EvidenceRepository(self.conn).insert(
            EvidenceItem(
                evidence_id=self._next("e"),
                activity_id=activity_id,
                evidence_type=evidence_type,
                **fields,
            )
        )

    def override(
        self,
        entity_type: str,
        entity_id: str,
        flag_code: str,
        status: OverrideStatus = OverrideStatus.ACKNOWLEDGED,
        period_id: Optional[str] = None,
        rationale: str = "",
        created_at: Optional[datetime] = None,
    ) -> FlagOverride:
        override = FlagOverride(
            override_id=self._next("o"),
            project_id=self.project_id,
            period_id=period_id,
            entity_type=entity_type,
            entity_id=entity_id,
            flag_code=flag_code,
            status=status,
            rationale=rationale,
            created_at=created_at,
        )
        FlagOverrideRepository(self.conn).insert(override)
        return override


@pytest.fixture
def seed(in_memory_db: sqlite3.Connection) -> Seeder:
    """A ``Seeder`` with project ``p1`` already inserted (default settings)."""
    seeder = Seeder(in_memory_db)
    seeder.project()
    return seeder


# ── Engine fixture ────────────────────────────────────────────────────────────

@pytest.fixture
def make_engine(in_memory_db: sqlite3.Connection) -> Callable[..., DecisionSupportEngine]:
    """Factory: ``make_engine(**kwargs)`` → initialized engine over ``in_memory_db``."""

    def _make(**kwargs: Any) -> DecisionSupportEngine:
        kwargs.setdefault("project_id", PROJECT_ID)
        kwargs.setdefault("engine_config", EngineConfig(max_workers=4, timeout_seconds=10.0))
        kwargs.setdefault("clock", lambda: NOW)
        engine = DecisionSupportEngine(SqliteProjectStore(in_memory_db), **kwargs)
        return engine.initialize()

    return _make
