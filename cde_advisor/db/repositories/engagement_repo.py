"""
Repositories for engagement and exploitation facts: engagement signals,
uptake opportunities, sustainability plans, and activity evidence.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional, Sequence

from cde_advisor.db.repositories.base import BaseRepository, chunked, placeholders
from cde_advisor.models.project import (
    EngagementSignal,
    EvidenceItem,
    SustainabilityPlan,
    UptakeOpportunity,
)
from cde_advisor.utils.time_utils import to_db_timestamp

logger = logging.getLogger(__name__)


class EngagementSignalRepository(BaseRepository):
    """Read/write access to ``engagement_signals``."""

    def insert(self, signal: EngagementSignal) -> str:
        self.execute(
            """
            INSERT INTO engagement_signals (signal_id, activity_id, kind, recorded_at)
            VALUES (?, ?, ?, ?);
            """,
            (
                signal.signal_id,
                signal.activity_id,
                signal.kind.value,
                to_db_timestamp(signal.recorded_at),
            ),
        )
        return signal.signal_id

    def count_for_activities(self, activity_ids: Sequence[str]) -> int:
        """Count survey responses and qualitative outcomes on ``activity_ids``.

        Returns 0 for an empty id set without querying.
        """
        total = 0
        for chunk in chunked(list(activity_ids)):
            row = self.fetchone(
                f"SELECT COUNT(*) AS n FROM engagement_signals "
                f"WHERE activity_id IN ({placeholders(len(chunk))});",
                tuple(chunk),
            )
            total += int(row["n"]) if row else 0
        return total


class UptakeOpportunityRepository(BaseRepository):
    """Read/write access to ``uptake_opportunities``."""

    def insert(self, opportunity: UptakeOpportunity) -> str:
        self.execute(
            """
            INSERT INTO uptake_opportunities (opportunity_id, project_id, asset_id, title, created_at)
            VALUES (?, ?, ?, ?, ?);
            """,
            (
                opportunity.opportunity_id,
                opportunity.project_id,
                opportunity.asset_id,
                opportunity.title,
                to_db_timestamp(opportunity.created_at),
            ),
        )
        return opportunity.opportunity_id

    def list_opportunities(
        self,
        project_id: Optional[str] = None,
        asset_id: Optional[str] = None,
    ) -> list[UptakeOpportunity]:
        """Opportunities for a project and/or asset, earliest first.

        Raises:
            ValueError: If neither scope is given.
        """
        if project_id is None and asset_id is None:
            raise ValueError("list_opportunities() needs a project_id or an asset_id scope.")
        clauses: list[str] = []
        params: list[str] = []
        if project_id is not None:
            clauses.append("project_id = ?")
            params.append(project_id)
        if asset_id is not None:
            clauses.append("asset_id = ?")
            params.append(asset_id)
        rows = self.fetchall(
            f"SELECT * FROM uptake_opportunities WHERE {' AND '.join(clauses)} "
            "ORDER BY created_at, rowid;",
            tuple(params),
        )
        return [
            UptakeOpportunity(
                opportunity_id=r["opportunity_id"],
                project_id=r["project_id"],
                asset_id=r["asset_id"],
                title=r["title"],
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]


class SustainabilityPlanRepository(BaseRepository):
    """Read/write access to ``sustainability_plans``."""

    def insert(self, plan: SustainabilityPlan) -> str:
        self.execute(
            "INSERT INTO sustainability_plans (plan_id, asset_id, summary) VALUES (?, ?, ?);",
            (plan.plan_id, plan.asset_id, plan.summary),
        )
        return plan.plan_id

    def exists_for_asset(self, asset_id: str) -> bool:
        row = self.fetchone(
            "SELECT 1 AS present FROM sustainability_plans WHERE asset_id = ? LIMIT 1;",
            (asset_id,),
        )
        return row is not None


class EvidenceRepository(BaseRepository):
    """Read/write access to ``evidence_items``."""

    def insert(self, item: EvidenceItem) -> str:
        self.execute(
            """
            INSERT INTO evidence_items (
                evidence_id, activity_id, evidence_type, evidence_date, context, source_url
            ) VALUES (?, ?, ?, ?, ?, ?);
            """,
            (
                item.evidence_id,
                item.activity_id,
                item.evidence_type,
                item.evidence_date.isoformat() if item.evidence_date else None,
                item.context,
                item.source_url,
            ),
        )
        return item.evidence_id

    def list_for_activity(self, activity_id: str) -> list[EvidenceItem]:
        rows = self.fetchall(
            "SELECT * FROM evidence_items WHERE activity_id = ? ORDER BY rowid;",
            (activity_id,),
        )
        return [
            EvidenceItem(
                evidence_id=r["evidence_id"],
                activity_id=r["activity_id"],
                evidence_type=r["evidence_type"],
                evidence_date=date.fromisoformat(r["evidence_date"]) if r["evidence_date"] else None,
                context=r["context"],
                source_url=r["source_url"],
            )
            for r in rows
        ]
