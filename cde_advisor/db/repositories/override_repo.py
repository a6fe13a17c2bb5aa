"""
Repository for user-authored decision flag overrides.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Optional

from cde_advisor.db.repositories.base import BaseRepository
from cde_advisor.models.results import FlagOverride
from cde_advisor.taxonomy.cde_taxonomy import OverrideStatus
from cde_advisor.utils.time_utils import to_db_timestamp

logger = logging.getLogger(__name__)


class FlagOverrideRepository(BaseRepository):
    """Read/write access to ``decision_flag_overrides``."""

    def insert(self, override: FlagOverride) -> str:
        self.execute(
            """
            INSERT INTO decision_flag_overrides (
                override_id, project_id, period_id, entity_type, entity_id,
                flag_code, status, rationale, created_by, created_at,
                updated_by, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?,
                      COALESCE(?, strftime('%Y-%m-%dT%H:%M:%SZ', 'now')), ?, ?);
            """,
            (
                override.override_id,
                override.project_id,
                override.period_id,
                override.entity_type,
                override.entity_id,
                override.flag_code,
                override.status.value,
                override.rationale,
                override.created_by,
                to_db_timestamp(override.created_at),
                override.updated_by,
                to_db_timestamp(override.updated_at),
            ),
        )
        return override.override_id

    def list_for_project(
        self,
        project_id: str,
        period_id: Optional[str] = None,
    ) -> list[FlagOverride]:
        """Overrides for a project, narrowed to one period when given.

        Rows come back in creation order so later rows win when keys collide.
        """
        if period_id is None:
            rows = self.fetchall(
                """
                SELECT * FROM decision_flag_overrides
                WHERE project_id = ?
                ORDER BY created_at, rowid;
                """,
                (project_id,),
            )
        else:
            rows = self.fetchall(
                """
                SELECT * FROM decision_flag_overrides
                WHERE project_id = ? AND period_id = ?
                ORDER BY created_at, rowid;
                """,
                (project_id, period_id),
            )
        return [_row_to_override(r) for r in rows]


# ── Private helper ────────────────────────────────────────────────────────────

def _row_to_override(row: sqlite3.Row) -> FlagOverride:
    return FlagOverride(
        override_id=row["override_id"],
        project_id=row["project_id"],
        period_id=row["period_id"],
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        flag_code=row["flag_code"],
        status=OverrideStatus(row["status"]),
        rationale=row["rationale"],
        created_by=row["created_by"],
        created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
        updated_by=row["updated_by"],
        updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
    )
