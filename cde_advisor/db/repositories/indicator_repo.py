"""
Repository for indicators and their recorded values.

Recording-order contract
------------------------
``indicator_values.value_id`` is an AUTOINCREMENT key, so ascending
``value_id`` is insertion order. Values are always returned in that order
and the engine treats the **last** value as the indicator's latest. Callers
that backfill historical values out of chronological order must be aware
that "latest" means "most recently recorded", not "latest ``recorded_at``".
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional

from cde_advisor.db.repositories.base import BaseRepository
from cde_advisor.models.project import Indicator, IndicatorValue
from cde_advisor.utils.time_utils import to_db_timestamp

logger = logging.getLogger(__name__)


class IndicatorRepository(BaseRepository):
    """Read/write access to ``indicators`` and ``indicator_values``."""

    def insert(self, indicator: Indicator) -> str:
        """Insert an indicator and any values it carries (in tuple order)."""
        self.execute(
            """
            INSERT INTO indicators (indicator_id, project_id, name, category, target, deleted_at)
            VALUES (?, ?, ?, ?, ?, ?);
            """,
            (
                indicator.indicator_id,
                indicator.project_id,
                indicator.name,
                indicator.category,
                indicator.target,
                to_db_timestamp(indicator.deleted_at),
            ),
        )
        for value in indicator.values:
            self.insert_value(value)
        return indicator.indicator_id

    def insert_value(self, value: IndicatorValue) -> int:
        """Append a value to an indicator and return its ``value_id``."""
        self.execute(
            "INSERT INTO indicator_values (indicator_id, value, recorded_at) VALUES (?, ?, ?);",
            (
                value.indicator_id,
                value.value,
                to_db_timestamp(value.recorded_at),
            ),
        )
        return self.last_insert_rowid()

    def list_for_project(self, project_id: str) -> list[Indicator]:
        """Non-deleted project indicators with values in recording order."""
        rows = self.fetchall(
            """
            SELECT * FROM indicators
            WHERE project_id = ? AND deleted_at IS NULL
            ORDER BY rowid;
            """,
            (project_id,),
        )
        value_rows = self.fetchall(
            """
            SELECT v.* FROM indicator_values v
            JOIN indicators i ON i.indicator_id = v.indicator_id
            WHERE i.project_id = ? AND i.deleted_at IS NULL
            ORDER BY v.value_id;
            """,
            (project_id,),
        )
        values: dict[str, list[IndicatorValue]] = defaultdict(list)
        for vr in value_rows:
            values[vr["indicator_id"]].append(
                IndicatorValue(
                    value_id=vr["value_id"],
                    indicator_id=vr["indicator_id"],
                    value=vr["value"],
                    recorded_at=_parse_ts(vr["recorded_at"]),
                )
            )
        return [
            Indicator(
                indicator_id=r["indicator_id"],
                project_id=r["project_id"],
                name=r["name"],
                category=r["category"],
                target=r["target"],
                values=tuple(values.get(r["indicator_id"], ())),
            )
            for r in rows
        ]

    def list_values_by_category(self, project_id: str, category: str) -> list[float]:
        """Every recorded value of the project's indicators in ``category``."""
        rows = self.fetchall(
            """
            SELECT v.value FROM indicator_values v
            JOIN indicators i ON i.indicator_id = v.indicator_id
            WHERE i.project_id = ? AND i.category = ?
            ORDER BY v.value_id;
            """,
            (project_id, category),
        )
        return [float(r["value"] or 0.0) for r in rows]


def _parse_ts(raw: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(raw) if raw else None
