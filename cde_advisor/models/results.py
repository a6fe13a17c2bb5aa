"""
Engine-owned values: flag overrides and computation results.

Every result model is frozen and derived fresh on each call; nothing here
has identity or is persisted by the engine. All models serialise cleanly via
``model_dump(mode="json")`` for API or report exposure.

``EngineResult`` wraps a list of per-entity results together with the
per-entity computations that failed, so callers get partial results plus an
explicit account of what is missing instead of a silently shortened list.
"""

from __future__ import annotations

from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from cde_advisor.taxonomy.cde_taxonomy import (
    FlagCode,
    FlagSeverity,
    ObjectiveStatus,
    OverrideStatus,
)

T = TypeVar("T")


class FlagOverride(BaseModel):
    """A user-authored adjustment to one generated flag.

    Keyed by ``(entity_type, entity_id, flag_code)``. The engine attaches it
    to the matching flag and never interprets or writes it back.
    """

    model_config = ConfigDict(frozen=True)

    override_id: str
    project_id: str
    period_id: Optional[str] = None
    entity_type: str
    entity_id: str
    flag_code: str
    status: OverrideStatus = OverrideStatus.OPEN
    rationale: str = ""
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None


class ChannelEffectiveness(BaseModel):
    """Cost, reach, and engagement aggregated over one channel's activities.

    ``reach_total`` and the uptake-opportunity share of
    ``meaningful_engagement_total`` are project-wide figures: every channel
    reports the same project reach and the same uptake count.
    """

    model_config = ConfigDict(frozen=True)

    channel_id:   str
    channel_name: str
    channel_type: str
    domain:       Optional[str] = None
    effort_hours_total:          float
    cost_proxy_total:            float
    reach_total:                 float
    evidence_completeness_avg:   float
    meaningful_engagement_total: int
    effectiveness_score:         float
    activity_count:              int


class StakeholderResponsiveness(BaseModel):
    model_config = ConfigDict(frozen=True)

    stakeholder_group_id:   str
    stakeholder_group_name: str
    targeted_activities_count: int
    response_events_count:     int
    responsiveness_ratio:      float
    flag_high_targeting_low_response: bool


class RecommendedAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    title:       str
    description: str
    link:        Optional[str] = None


class ObjectiveDiagnostic(BaseModel):
    """Health classification of one objective with its evidence.

    Attributes:
        status: ``On track``, ``At risk`` or ``Blocked``.
        reasons: Human-readable diagnoses (empty when on track).
        recommended_actions: One remediation per diagnosis, with deep links.
    """

    model_config = ConfigDict(frozen=True)

    objective_id:     str
    objective_title:  str
    objective_domain: str
    linked_activities_count:     int
    linked_activities_by_domain: dict[str, int] = Field(default_factory=dict)
    linked_assets_count:         int
    linked_indicators_count:     int
    indicator_progress_ratio:    Optional[float]
    evidence_coverage_ratio:     float
    meaningful_engagement_exists: bool
    status:              ObjectiveStatus
    reasons:             list[str] = Field(default_factory=list)
    recommended_actions: list[RecommendedAction] = Field(default_factory=list)


class DerivedMetrics(BaseModel):
    """Portfolio-wide ratios and uptake-lag statistics.

    Per-channel maps are keyed by channel name.
    """

    model_config = ConfigDict(frozen=True)

    cost_per_meaningful_engagement_overall:    Optional[float]
    cost_per_meaningful_engagement_by_channel: dict[str, float] = Field(default_factory=dict)
    evidence_adjusted_reach_overall:           float
    evidence_adjusted_reach_by_channel:        dict[str, float] = Field(default_factory=dict)
    uptake_lag_median_days:                    Optional[float]
    uptake_lag_by_asset_type:                  dict[str, float] = Field(default_factory=dict)
    uptake_lag_sample_count:                   int = 0


class RecommendationFlag(BaseModel):
    """One actionable recommendation, optionally carrying a user override."""

    model_config = ConfigDict(frozen=True)

    id:               str
    flag_code:        FlagCode
    title:            str
    severity:         FlagSeverity
    entity_type:      str
    entity_id:        str
    entity_name:      str
    explanation:      str
    suggested_action: str
    deep_link_url:    str
    override:         Optional[FlagOverride] = None


class ComputationFailure(BaseModel):
    """A per-entity sub-computation that did not produce a result."""

    model_config = ConfigDict(frozen=True)

    operation:   str
    entity_type: str
    entity_id:   str
    error:       str


class EngineResult(BaseModel, Generic[T]):
    """Ordered results of one engine operation plus any failed entities."""

    model_config = ConfigDict(frozen=True)

    items:    list[T] = Field(default_factory=list)
    failures: list[ComputationFailure] = Field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.failures)
