"""
Storage query capability consumed by the decision support engine.

``ProjectStore`` is the read-only protocol the engine depends on; any backend
that implements it (SQL, REST, in-memory) can drive the engine.
``SqliteProjectStore`` is the bundled implementation on top of the SQLite
repositories.

SqliteProjectStore concurrency
------------------------------
The engine fans per-entity work out over worker threads. The store wraps a
single connection (opened with ``check_same_thread=False``) and serialises
every query behind a lock, so repository cursors never interleave.

Error policy
------------
Every ``sqlite3.Error`` is re-raised as ``StoreQueryError`` naming the store
method and the entity the query was scoped to. The store never converts a
failure into an empty result.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Protocol, Sequence

from cde_advisor.db.repositories.activity_repo import ActivityQuery, ActivityRepository
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
from cde_advisor.engine.errors import StoreQueryError
from cde_advisor.models.project import (
    Activity,
    Asset,
    Channel,
    EvidenceItem,
    Indicator,
    Objective,
    StakeholderGroup,
    UptakeOpportunity,
)
from cde_advisor.models.results import FlagOverride

logger = logging.getLogger(__name__)

__all__ = ["ActivityQuery", "ProjectStore", "SqliteProjectStore"]


class ProjectStore(Protocol):
    """Read-only queries the engine issues against the storage collaborator."""

    def get_project_settings_blob(self, project_id: str) -> Optional[Any]: ...

    def list_flag_overrides(
        self, project_id: str, period_id: Optional[str] = None
    ) -> list[FlagOverride]: ...

    def list_channels(self, project_id: str) -> list[Channel]: ...

    def list_stakeholder_groups(self, project_id: str) -> list[StakeholderGroup]: ...

    def list_objectives(self, project_id: str) -> list[Objective]: ...

    def list_assets(self, project_id: str) -> list[Asset]: ...

    def list_activities(self, project_id: str, query: ActivityQuery) -> list[Activity]: ...

    def get_activity(self, activity_id: str) -> Optional[Activity]: ...

    def list_indicators(self, project_id: str) -> list[Indicator]: ...

    def list_indicator_values_by_category(
        self, project_id: str, category: str
    ) -> list[float]: ...

    def count_engagement_signals(self, activity_ids: Sequence[str]) -> int: ...

    def list_uptake_opportunities(
        self, project_id: Optional[str] = None, asset_id: Optional[str] = None
    ) -> list[UptakeOpportunity]: ...

    def has_sustainability_plan(self, asset_id: str) -> bool: ...

    def list_evidence_items(self, activity_id: str) -> list[EvidenceItem]: ...


class SqliteProjectStore:
    """``ProjectStore`` backed by one shared SQLite connection.

    Args:
        conn: Open connection with ``row_factory = sqlite3.Row`` and
            ``check_same_thread=False`` (see ``get_connection()``).
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._lock = threading.Lock()

    @contextmanager
    def _query(
        self,
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
    ) -> Iterator[None]:
        with self._lock:
            try:
                yield
            except sqlite3.Error as exc:
                logger.warning(
                    "Store query %s failed | %s=%s | %s",
                    operation, entity_type, entity_id, exc,
                )
                raise StoreQueryError(operation, entity_type, entity_id, exc) from exc

    # ── Project-level reads ───────────────────────────────────────────────────

    def get_project_settings_blob(self, project_id: str) -> Optional[Any]:
        with self._query("get_project_settings_blob", "project", project_id):
            return ProjectRepository(self.conn).get_settings_blob(project_id)

    def list_flag_overrides(
        self, project_id: str, period_id: Optional[str] = None
    ) -> list[FlagOverride]:
        with self._query("list_flag_overrides", "project", project_id):
            return FlagOverrideRepository(self.conn).list_for_project(project_id, period_id)

    def list_channels(self, project_id: str) -> list[Channel]:
        with self._query("list_channels", "project", project_id):
            return ChannelRepository(self.conn).list_for_project(project_id)

    def list_stakeholder_groups(self, project_id: str) -> list[StakeholderGroup]:
        with self._query("list_stakeholder_groups", "project", project_id):
            return StakeholderGroupRepository(self.conn).list_for_project(project_id)

    def list_objectives(self, project_id: str) -> list[Objective]:
        with self._query("list_objectives", "project", project_id):
            return ObjectiveRepository(self.conn).list_for_project(project_id)

    def list_assets(self, project_id: str) -> list[Asset]:
        with self._query("list_assets", "project", project_id):
            return AssetRepository(self.conn).list_for_project(project_id)

    def list_indicators(self, project_id: str) -> list[Indicator]:
        with self._query("list_indicators", "project", project_id):
            return IndicatorRepository(self.conn).list_for_project(project_id)

    def list_indicator_values_by_category(self, project_id: str, category: str) -> list[float]:
        with self._query("list_indicator_values_by_category", "project", project_id):
            return IndicatorRepository(self.conn).list_values_by_category(project_id, category)

    # ── Activity-level reads ──────────────────────────────────────────────────

    def list_activities(self, project_id: str, query: ActivityQuery) -> list[Activity]:
        entity_type, entity_id = _query_scope(project_id, query)
        with self._query("list_activities", entity_type, entity_id):
            return ActivityRepository(self.conn).list_activities(project_id, query)

    def get_activity(self, activity_id: str) -> Optional[Activity]:
        with self._query("get_activity", "activity", activity_id):
            return ActivityRepository(self.conn).get_by_id(activity_id)

    def count_engagement_signals(self, activity_ids: Sequence[str]) -> int:
        if not activity_ids:
            return 0
        with self._query("count_engagement_signals", "activity", ",".join(activity_ids)):
            return EngagementSignalRepository(self.conn).count_for_activities(activity_ids)

    def list_evidence_items(self, activity_id: str) -> list[EvidenceItem]:
        with self._query("list_evidence_items", "activity", activity_id):
            return EvidenceRepository(self.conn).list_for_activity(activity_id)

    # ── Asset-level reads ─────────────────────────────────────────────────────

    def list_uptake_opportunities(
        self, project_id: Optional[str] = None, asset_id: Optional[str] = None
    ) -> list[UptakeOpportunity]:
        scope = ("asset", asset_id) if asset_id is not None else ("project", project_id)
        with self._query("list_uptake_opportunities", *scope):
            return UptakeOpportunityRepository(self.conn).list_opportunities(
                project_id=project_id, asset_id=asset_id
            )

    def has_sustainability_plan(self, asset_id: str) -> bool:
        with self._query("has_sustainability_plan", "asset", asset_id):
            return SustainabilityPlanRepository(self.conn).exists_for_asset(asset_id)


def _query_scope(project_id: str, query: ActivityQuery) -> tuple[str, str]:
    """Name the entity an activity query is scoped to, for error reporting."""
    for entity_type, entity_id in (
        ("channel", query.channel_id),
        ("stakeholder_group", query.stakeholder_group_id),
        ("objective", query.objective_id),
        ("asset", query.asset_id),
    ):
        if entity_id is not None:
            return entity_type, entity_id
    return "project", project_id
