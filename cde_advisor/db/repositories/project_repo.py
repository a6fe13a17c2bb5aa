"""
Repositories for projects and the simple project-scoped entities:
channels, stakeholder groups, objectives, and result assets.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Optional

from cde_advisor.db.repositories.base import BaseRepository
from cde_advisor.models.project import (
    Asset,
    Channel,
    Objective,
    Project,
    StakeholderGroup,
)
from cde_advisor.taxonomy.cde_taxonomy import ActivityDomain

logger = logging.getLogger(__name__)


class ProjectRepository(BaseRepository):
    """Read/write access to the ``projects`` table."""

    def insert(self, project: Project) -> str:
        """Insert a project; a non-string settings blob is stored as JSON text."""
        blob = project.settings_json
        if blob is not None and not isinstance(blob, str):
            blob = json.dumps(blob)
        self.execute(
            "INSERT INTO projects (project_id, name, settings_json) VALUES (?, ?, ?);",
            (project.project_id, project.name, blob),
        )
        return project.project_id

    def get_by_id(self, project_id: str) -> Optional[Project]:
        row = self.fetchone("SELECT * FROM projects WHERE project_id = ?;", (project_id,))
        if row is None:
            return None
        return Project(
            project_id=row["project_id"],
            name=row["name"],
            settings_json=row["settings_json"],
        )

    def get_settings_blob(self, project_id: str) -> Optional[Any]:
        """Return the raw settings text for a project, or ``None``.

        The blob is returned undecoded; interpreting (and defaulting) it is
        the settings resolver's job.
        """
        row = self.fetchone(
            "SELECT settings_json FROM projects WHERE project_id = ?;", (project_id,)
        )
        return row["settings_json"] if row else None


class ChannelRepository(BaseRepository):
    """Read/write access to the ``channels`` table."""

    def insert(self, channel: Channel) -> str:
        self.execute(
            """
            INSERT INTO channels (channel_id, project_id, name, channel_type)
            VALUES (?, ?, ?, ?);
            """,
            (channel.channel_id, channel.project_id, channel.name, channel.channel_type),
        )
        return channel.channel_id

    def list_for_project(self, project_id: str) -> list[Channel]:
        rows = self.fetchall(
            "SELECT * FROM channels WHERE project_id = ? ORDER BY rowid;", (project_id,)
        )
        return [
            Channel(
                channel_id=r["channel_id"],
                project_id=r["project_id"],
                name=r["name"],
                channel_type=r["channel_type"],
            )
            for r in rows
        ]


class StakeholderGroupRepository(BaseRepository):
    """Read/write access to the ``stakeholder_groups`` table."""

    def insert(self, group: StakeholderGroup) -> str:
        self.execute(
            "INSERT INTO stakeholder_groups (group_id, project_id, name) VALUES (?, ?, ?);",
            (group.group_id, group.project_id, group.name),
        )
        return group.group_id

    def list_for_project(self, project_id: str) -> list[StakeholderGroup]:
        rows = self.fetchall(
            "SELECT * FROM stakeholder_groups WHERE project_id = ? ORDER BY rowid;",
            (project_id,),
        )
        return [
            StakeholderGroup(group_id=r["group_id"], project_id=r["project_id"], name=r["name"])
            for r in rows
        ]


class ObjectiveRepository(BaseRepository):
    """Read/write access to the ``objectives`` table."""

    def insert(self, objective: Objective) -> str:
        self.execute(
            "INSERT INTO objectives (objective_id, project_id, title, domain) VALUES (?, ?, ?, ?);",
            (
                objective.objective_id,
                objective.project_id,
                objective.title,
                objective.domain.value,
            ),
        )
        return objective.objective_id

    def list_for_project(self, project_id: str) -> list[Objective]:
        rows = self.fetchall(
            "SELECT * FROM objectives WHERE project_id = ? ORDER BY rowid;", (project_id,)
        )
        return [_row_to_objective(r) for r in rows]


class AssetRepository(BaseRepository):
    """Read/write access to the ``result_assets`` table."""

    def insert(self, asset: Asset) -> str:
        self.execute(
            """
            INSERT INTO result_assets (asset_id, project_id, title, asset_type)
            VALUES (?, ?, ?, ?);
            """,
            (asset.asset_id, asset.project_id, asset.title, asset.asset_type),
        )
        return asset.asset_id

    def list_for_project(self, project_id: str) -> list[Asset]:
        rows = self.fetchall(
            "SELECT * FROM result_assets WHERE project_id = ? ORDER BY rowid;", (project_id,)
        )
        return [
            Asset(
                asset_id=r["asset_id"],
                project_id=r["project_id"],
                title=r["title"],
                asset_type=r["asset_type"],
            )
            for r in rows
        ]


# ── Private helper ────────────────────────────────────────────────────────────

def _row_to_objective(row: sqlite3.Row) -> Objective:
    return Objective(
        objective_id=row["objective_id"],
        project_id=row["project_id"],
        title=row["title"],
        domain=ActivityDomain(row["domain"]),
    )
