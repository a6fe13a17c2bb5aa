"""
Repository for activities and their many-to-many references.

``list_activities()`` is the single filtered read used by every engine
calculator. Filters compose with AND; reference filters (channel,
stakeholder group, objective, asset) are ``EXISTS`` probes into the link
tables. Soft-deleted activities are excluded unless explicitly requested.

Date-range semantics: an activity is in range when its ``end_date`` falls
within ``[start_date, end_date]`` inclusive. Undated activities are excluded
whenever a range bound is set.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from cde_advisor.db.repositories.base import BaseRepository, chunked, placeholders
from cde_advisor.models.project import Activity
from cde_advisor.taxonomy.cde_taxonomy import ActivityDomain
from cde_advisor.utils.time_utils import to_db_timestamp

logger = logging.getLogger(__name__)

# (link table, FK column, Activity field)
_LINKS: tuple[tuple[str, str, str], ...] = (
    ("activity_channels",           "channel_id",   "channel_ids"),
    ("activity_stakeholder_groups", "group_id",     "stakeholder_group_ids"),
    ("activity_objectives",         "objective_id", "objective_ids"),
    ("activity_assets",             "asset_id",     "asset_ids"),
)


@dataclass(frozen=True)
class ActivityQuery:
    """Filters for ``ActivityRepository.list_activities()``.

    Attributes:
        start_date: Inclusive lower bound on ``end_date``.
        end_date: Inclusive upper bound on ``end_date``.
        domains: Restrict to these domains (``None`` = all).
        status: Restrict to one workflow status.
        channel_id: Only activities referencing this channel.
        stakeholder_group_id: Only activities targeting this group.
        objective_id: Only activities linked to this objective.
        asset_id: Only activities referencing this asset.
        include_deleted: Include soft-deleted rows (default ``False``).
        order_by_end_date: Sort ascending by ``end_date`` (undated last)
            instead of insertion order.
    """

    start_date:           Optional[date] = None
    end_date:             Optional[date] = None
    domains:              Optional[tuple[ActivityDomain, ...]] = None
    status:               Optional[str] = None
    channel_id:           Optional[str] = None
    stakeholder_group_id: Optional[str] = None
    objective_id:         Optional[str] = None
    asset_id:             Optional[str] = None
    include_deleted:      bool = False
    order_by_end_date:    bool = False


class ActivityRepository(BaseRepository):
    """Read/write access to ``activities`` and the four activity link tables."""

    def insert(self, activity: Activity) -> str:
        """Insert an activity together with all of its references."""
        self.execute(
            """
            INSERT INTO activities (
                activity_id, project_id, title, domain, status, effort_hours,
                budget_estimate, completeness_score, end_date, deleted_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                activity.activity_id,
                activity.project_id,
                activity.title,
                activity.domain.value,
                activity.status,
                activity.effort_hours,
                activity.budget_estimate,
                activity.completeness_score,
                activity.end_date.isoformat() if activity.end_date else None,
                to_db_timestamp(activity.deleted_at),
            ),
        )
        for table, column, field_name in _LINKS:
            ids = getattr(activity, field_name)
            if ids:
                self.executemany(
                    f"INSERT INTO {table} (activity_id, {column}) VALUES (?, ?);",
                    [(activity.activity_id, target_id) for target_id in ids],
                )
        return activity.activity_id

    def get_by_id(self, activity_id: str) -> Optional[Activity]:
        row = self.fetchone("SELECT * FROM activities WHERE activity_id = ?;", (activity_id,))
        if row is None:
            return None
        return self._hydrate([row])[0]

    def list_activities(self, project_id: str, query: ActivityQuery) -> list[Activity]:
        """Fetch the project's activities matching ``query``.

        Args:
            project_id: Owning project.
            query: Filter set; an empty ``ActivityQuery()`` returns every
                non-deleted activity.

        Returns:
            Activities with all reference tuples populated.
        """
        clauses = ["a.project_id = ?"]
        params: list[Any] = [project_id]

        if not query.include_deleted:
            clauses.append("a.deleted_at IS NULL")
        if query.start_date is not None:
            clauses.append("a.end_date >= ?")
            params.append(query.start_date.isoformat())
        if query.end_date is not None:
            clauses.append("a.end_date <= ?")
            params.append(query.end_date.isoformat())
        if query.domains:
            clauses.append(f"a.domain IN ({placeholders(len(query.domains))})")
            params.extend(d.value for d in query.domains)
        if query.status is not None:
            clauses.append("a.status = ?")
            params.append(query.status)

        for (table, column, _), target_id in zip(
            _LINKS,
            (query.channel_id, query.stakeholder_group_id, query.objective_id, query.asset_id),
        ):
            if target_id is not None:
                clauses.append(
                    f"EXISTS (SELECT 1 FROM {table} l "
                    f"WHERE l.activity_id = a.activity_id AND l.{column} = ?)"
                )
                params.append(target_id)

        order = (
            "a.end_date IS NULL, a.end_date, a.rowid"
            if query.order_by_end_date
            else "a.rowid"
        )
        rows = self.fetchall(
            f"SELECT a.* FROM activities a WHERE {' AND '.join(clauses)} ORDER BY {order};",
            tuple(params),
        )
        return self._hydrate(rows)

    def _hydrate(self, rows: list[sqlite3.Row]) -> list[Activity]:
        """Attach link-table references to activity rows (one query per link table)."""
        activity_ids = [r["activity_id"] for r in rows]
        refs: dict[str, dict[str, list[str]]] = {
            field_name: defaultdict(list) for _, _, field_name in _LINKS
        }
        for table, column, field_name in _LINKS:
            for chunk in chunked(activity_ids):
                link_rows = self.fetchall(
                    f"SELECT activity_id, {column} AS target_id FROM {table} "
                    f"WHERE activity_id IN ({placeholders(len(chunk))}) ORDER BY rowid;",
                    tuple(chunk),
                )
                for lr in link_rows:
                    refs[field_name][lr["activity_id"]].append(lr["target_id"])

        return [
            _row_to_activity(
                r,
                {field_name: tuple(refs[field_name].get(r["activity_id"], ()))
                 for _, _, field_name in _LINKS},
            )
            for r in rows
        ]


# ── Private helper ────────────────────────────────────────────────────────────

def _row_to_activity(row: sqlite3.Row, links: dict[str, tuple[str, ...]]) -> Activity:
    return Activity(
        activity_id=row["activity_id"],
        project_id=row["project_id"],
        title=row["title"],
        domain=ActivityDomain(row["domain"]),
        status=row["status"],
        effort_hours=row["effort_hours"] or 0.0,
        budget_estimate=row["budget_estimate"],
        completeness_score=row["completeness_score"] or 0.0,
        end_date=date.fromisoformat(row["end_date"]) if row["end_date"] else None,
        deleted_at=datetime.fromisoformat(row["deleted_at"]) if row["deleted_at"] else None,
        **links,
    )
