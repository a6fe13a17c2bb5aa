"""
Project facts consumed read-only by the decision support engine.

These models mirror the rows owned by the storage collaborator. They are
frozen: the engine never mutates the facts it analyses.

``Activity`` carries its many-to-many references (channels, stakeholder
groups, objectives, assets) as tuples of ids so one row answers every
"which activities reference X" question without further queries.

``Indicator.values`` is ordered by recording order; "latest" is the last
element (see ``Indicator.latest_value``).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cde_advisor.taxonomy.cde_taxonomy import (
    PUBLIC_DOMAINS,
    ActivityDomain,
    EngagementKind,
)


class Project(BaseModel):
    """Scoping key for every query; carries the raw settings blob."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    name: str
    settings_json: Optional[Any] = None


class Channel(BaseModel):
    """A communication/dissemination channel (newsletter, event, website...)."""

    model_config = ConfigDict(frozen=True)

    channel_id: str
    project_id: str
    name: str
    channel_type: str = "other"


class StakeholderGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    group_id: str
    project_id: str
    name: str


class Objective(BaseModel):
    model_config = ConfigDict(frozen=True)

    objective_id: str
    project_id: str
    title: str
    domain: ActivityDomain


class Asset(BaseModel):
    """A result asset (dataset, tool, publication...) produced by the project."""

    model_config = ConfigDict(frozen=True)

    asset_id: str
    project_id: str
    title: str
    asset_type: str = "other"


class Activity(BaseModel):
    """A C/D/E activity and everything it references.

    Attributes:
        activity_id: Primary key.
        project_id: Owning project.
        title: Display title.
        domain: C/D/E domain.
        status: Workflow status, e.g. ``"planned"`` or ``"completed"``.
        effort_hours: Hours spent (0 when unknown).
        budget_estimate: Explicit cost; ``None`` means "cost from effort".
        completeness_score: Evidence completeness, 0–100.
        end_date: Completion date; ``None`` while undated.
        channel_ids: Channels the activity ran through.
        stakeholder_group_ids: Stakeholder groups it targeted.
        objective_ids: Objectives it contributes to.
        asset_ids: Result assets it disseminates or exploits.
        deleted_at: Soft-delete marker; deleted activities never participate.
    """

    model_config = ConfigDict(frozen=True)

    activity_id: str
    project_id: str
    title: str
    domain: ActivityDomain
    status: str = "planned"
    effort_hours: float = 0.0
    budget_estimate: Optional[float] = None
    completeness_score: float = 0.0
    end_date: Optional[date] = None
    channel_ids: tuple[str, ...] = ()
    stakeholder_group_ids: tuple[str, ...] = ()
    objective_ids: tuple[str, ...] = ()
    asset_ids: tuple[str, ...] = ()
    deleted_at: Optional[datetime] = None

    @field_validator("completeness_score")
    @classmethod
    def validate_completeness(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError(f"completeness_score must be in [0, 100], got {v}.")
        return v

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_public(self) -> bool:
        """True for communication and dissemination activities."""
        return self.domain in PUBLIC_DOMAINS

    def cost_proxy(self, hourly_rate: float) -> float:
        """Explicit budget when set and non-zero, else effort × hourly rate."""
        if self.budget_estimate:
            return float(self.budget_estimate)
        return float(self.effort_hours or 0.0) * hourly_rate


class IndicatorValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    value_id: Optional[int] = None
    indicator_id: str
    value: float
    recorded_at: Optional[datetime] = None


class Indicator(BaseModel):
    """A project indicator and its recorded values in recording order."""

    model_config = ConfigDict(frozen=True)

    indicator_id: str
    project_id: str
    name: str
    category: str = "output"
    target: Optional[float] = None
    values: tuple[IndicatorValue, ...] = ()
    deleted_at: Optional[datetime] = None

    @property
    def latest_value(self) -> Optional[IndicatorValue]:
        """Last value in recording order, or ``None`` when nothing was recorded."""
        return self.values[-1] if self.values else None

    def progress_ratio(self) -> Optional[float]:
        """Latest value / target, or ``None`` without a positive target and a value."""
        latest = self.latest_value
        if not self.target or self.target <= 0 or latest is None:
            return None
        return latest.value / self.target


class EngagementSignal(BaseModel):
    """A survey response or qualitative outcome attributable to an activity."""

    model_config = ConfigDict(frozen=True)

    signal_id: str
    activity_id: str
    kind: EngagementKind
    recorded_at: Optional[datetime] = None


class UptakeOpportunity(BaseModel):
    model_config = ConfigDict(frozen=True)

    opportunity_id: str
    project_id: str
    asset_id: Optional[str] = None
    title: str = ""
    created_at: datetime


class SustainabilityPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan_id: str
    asset_id: str
    summary: str = ""


class EvidenceItem(BaseModel):
    """A piece of evidence attached to an activity."""

    model_config = ConfigDict(frozen=True)

    evidence_id: str
    activity_id: str
    evidence_type: str
    evidence_date: Optional[date] = None
    context: Optional[str] = None
    source_url: Optional[str] = None

    @property
    def has_complete_metadata(self) -> bool:
        return self.evidence_date is not None and bool(self.context or self.source_url)


class ProjectFacts(BaseModel):
    """A whole project's facts, as loaded from a fixture document."""

    model_config = ConfigDict(frozen=True)

    project: Project
    channels: list[Channel] = Field(default_factory=list)
    stakeholder_groups: list[StakeholderGroup] = Field(default_factory=list)
    objectives: list[Objective] = Field(default_factory=list)
    assets: list[Asset] = Field(default_factory=list)
    activities: list[Activity] = Field(default_factory=list)
    indicators: list[Indicator] = Field(default_factory=list)
    engagement_signals: list[EngagementSignal] = Field(default_factory=list)
    uptake_opportunities: list[UptakeOpportunity] = Field(default_factory=list)
    sustainability_plans: list[SustainabilityPlan] = Field(default_factory=list)
    evidence_items: list[EvidenceItem] = Field(default_factory=list)
