"""
Recommendation flag generation.

Flag sources and severities:

  objective_blocked       high  Blocked objective
  objective_at_risk       warn  At-risk objective
  asset_no_exploitation   warn  asset first disseminated more than
                                uptake_no_exploitation_days ago with neither an
                                uptake opportunity nor a sustainability plan
  channel_inefficient     warn  effort > inefficient threshold, zero engagement
  activity_evidence_gap   info  completed public activity below the evidence
                                completeness threshold

Every builder looks its flag up in the ``OverrideIndex`` and attaches the
override when present. Overridden flags are still emitted; callers decide
what a disposition means. ``sort_flags()`` orders by severity rank and is
stable, so flags of equal severity keep generation order.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Optional

from cde_advisor.engine.derived import earliest_dissemination
from cde_advisor.engine.overrides import OverrideIndex
from cde_advisor.models.project import Activity, Asset
from cde_advisor.models.results import (
    ChannelEffectiveness,
    ObjectiveDiagnostic,
    RecommendationFlag,
)
from cde_advisor.models.settings import DecisionSupportSettings
from cde_advisor.taxonomy.cde_taxonomy import (
    COMPLETED_STATUS,
    EntityType,
    FlagCode,
    FlagSeverity,
    ObjectiveStatus,
)
from cde_advisor.utils.time_utils import utcnow, whole_days_between

if TYPE_CHECKING:
    from cde_advisor.engine.store import ProjectStore

logger = logging.getLogger(__name__)


def _flag(overrides: OverrideIndex, **fields: object) -> RecommendationFlag:
    override = overrides.lookup(
        str(fields["entity_type"]), str(fields["entity_id"]), str(fields["flag_code"])
    )
    return RecommendationFlag(override=override, **fields)  # type: ignore[arg-type]


# ── Builders ──────────────────────────────────────────────────────────────────

def objective_flag(
    diagnostic: ObjectiveDiagnostic,
    overrides: OverrideIndex,
) -> Optional[RecommendationFlag]:
    """Flag a Blocked or At-risk objective; ``None`` when on track."""
    if diagnostic.status is ObjectiveStatus.BLOCKED:
        flag_code, severity = FlagCode.OBJECTIVE_BLOCKED, FlagSeverity.HIGH
    elif diagnostic.status is ObjectiveStatus.AT_RISK:
        flag_code, severity = FlagCode.OBJECTIVE_AT_RISK, FlagSeverity.WARN
    else:
        return None

    return _flag(
        overrides,
        id=f"obj-{diagnostic.objective_id}",
        flag_code=flag_code,
        title=f'Objective "{diagnostic.objective_title}" is {diagnostic.status.value}',
        severity=severity,
        entity_type=EntityType.OBJECTIVE.value,
        entity_id=diagnostic.objective_id,
        entity_name=diagnostic.objective_title,
        explanation="; ".join(diagnostic.reasons),
        suggested_action=", ".join(a.title for a in diagnostic.recommended_actions),
        deep_link_url=f"/objectives/{diagnostic.objective_id}",
    )


def asset_flag(
    asset: Asset,
    days_since_dissemination: int,
    overrides: OverrideIndex,
) -> RecommendationFlag:
    return _flag(
        overrides,
        id=f"asset-{asset.asset_id}",
        flag_code=FlagCode.ASSET_NO_EXPLOITATION,
        title=f'Asset "{asset.title}" has no exploitation pathway',
        severity=FlagSeverity.WARN,
        entity_type=EntityType.ASSET.value,
        entity_id=asset.asset_id,
        entity_name=asset.title,
        explanation=(
            f"Asset was disseminated {days_since_dissemination} days ago but has no "
            "uptake opportunities or sustainability plan"
        ),
        suggested_action="Create uptake opportunity or sustainability plan",
        deep_link_url=f"/assets/{asset.asset_id}",
    )


def channel_flag(
    row: ChannelEffectiveness,
    settings: DecisionSupportSettings,
    overrides: OverrideIndex,
) -> Optional[RecommendationFlag]:
    """Flag a high-effort channel with no meaningful engagement."""
    if not (
        row.effort_hours_total > settings.inefficient_channel_effort_hours_threshold
        and row.meaningful_engagement_total == 0
    ):
        return None
    return _flag(
        overrides,
        id=f"channel-{row.channel_id}",
        flag_code=FlagCode.CHANNEL_INEFFICIENT,
        title=f'Channel "{row.channel_name}" is inefficient',
        severity=FlagSeverity.WARN,
        entity_type=EntityType.CHANNEL.value,
        entity_id=row.channel_id,
        entity_name=row.channel_name,
        explanation=f"High effort ({row.effort_hours_total:g}h) but no meaningful engagement",
        suggested_action="Review channel strategy or add engagement tracking",
        deep_link_url=f"/channels/{row.channel_id}",
    )


def activity_flag(
    activity: Activity,
    settings: DecisionSupportSettings,
    overrides: OverrideIndex,
) -> Optional[RecommendationFlag]:
    """Flag a completed public activity whose evidence is below threshold."""
    threshold = settings.evidence_completeness_threshold
    if not (
        activity.is_public
        and activity.status == COMPLETED_STATUS
        and activity.completeness_score < threshold
    ):
        return None
    return _flag(
        overrides,
        id=f"activity-{activity.activity_id}",
        flag_code=FlagCode.ACTIVITY_EVIDENCE_GAP,
        title=f'Activity "{activity.title}" has evidence gap',
        severity=FlagSeverity.INFO,
        entity_type=EntityType.ACTIVITY.value,
        entity_id=activity.activity_id,
        entity_name=activity.title,
        explanation=(
            f"Public {activity.domain.value} activity with evidence completeness "
            f"< {threshold:g}%"
        ),
        suggested_action="Upload evidence (photos, documents, etc.)",
        deep_link_url=f"/activities/{activity.activity_id}",
    )


# ── Store-backed evaluation ───────────────────────────────────────────────────

def evaluate_asset(
    store: "ProjectStore",
    project_id: str,
    asset: Asset,
    settings: DecisionSupportSettings,
    overrides: OverrideIndex,
    now: Optional[datetime] = None,
) -> Optional[RecommendationFlag]:
    """Flag an asset disseminated long ago that has no exploitation pathway."""
    first = earliest_dissemination(store, project_id, asset.asset_id)
    if first is None or first.end_date is None:
        return None

    days_since = whole_days_between(first.end_date, now or utcnow())
    if days_since <= settings.uptake_no_exploitation_days:
        return None

    if store.list_uptake_opportunities(asset_id=asset.asset_id):
        return None
    if store.has_sustainability_plan(asset.asset_id):
        return None
    return asset_flag(asset, days_since, overrides)


def sort_flags(flags: Iterable[RecommendationFlag]) -> list[RecommendationFlag]:
    """Order by severity (high, warn, info); equal severities keep their order."""
    return sorted(flags, key=lambda f: f.severity.rank)
