"""
Objective diagnostics: classify each objective's health and explain why.

Classification (first match wins, see ``classify_objective()``):

  1. no linked activities                               → Blocked
  2. indicator progress ≥ on-track progress threshold   → On track
  3. evidence coverage ≥ coverage threshold AND
     meaningful engagement exists                       → On track
  4. otherwise                                          → At risk

An at-risk objective collects every applicable diagnosis
(``diagnose_gaps()``), each with one recommended action:

  dissemination coverage gap  assets linked but no dissemination activities
  execution gap               evidence coverage < 0.5
  effectiveness gap           coverage ≥ 0.5 but no engagement recorded
  exploitation gap            dissemination activity ended within the last
                              3 calendar months and the project has no uptake
                              opportunities at all

Indicator progress is project-wide: every non-deleted indicator of the
project is considered for every objective.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Optional, Sequence

from cde_advisor.db.repositories.activity_repo import ActivityQuery
from cde_advisor.engine.filters import DateRange, activity_query
from cde_advisor.models.project import Activity, Indicator, Objective
from cde_advisor.models.results import ObjectiveDiagnostic, RecommendedAction
from cde_advisor.models.settings import DecisionSupportSettings
from cde_advisor.taxonomy.cde_taxonomy import ActivityDomain, ObjectiveStatus
from cde_advisor.utils.time_utils import months_before, today_utc

if TYPE_CHECKING:
    from cde_advisor.engine.store import ProjectStore

logger = logging.getLogger(__name__)

EXECUTION_GAP_COVERAGE     = 0.5
EXPLOITATION_WINDOW_MONTHS = 3

# ── Diagnoses ─────────────────────────────────────────────────────────────────

NO_ACTIVITIES_REASON = "No activities linked to this objective"
DISSEMINATION_GAP_REASON = (
    "Dissemination coverage gap: objective has assets but no dissemination activities"
)
EXECUTION_GAP_REASON = "Execution gap: activities exist but evidence coverage is low"
EFFECTIVENESS_GAP_REASON = (
    "Effectiveness gap: evidence exists but no meaningful engagement or outcomes recorded"
)
EXPLOITATION_GAP_REASON = (
    "Exploitation gap: dissemination exists but no uptake signals within 3 months"
)

PLAN_DISSEMINATION = RecommendedAction(
    title="Plan dissemination",
    description="Create dissemination activities for the linked assets",
    link="/activities?domain=dissemination",
)
ADD_EVIDENCE = RecommendedAction(
    title="Add evidence",
    description="Upload evidence for completed activities",
    link="/monitoring",
)
RECORD_OUTCOMES = RecommendedAction(
    title="Record outcomes",
    description="Log qualitative outcomes or survey responses",
    link="/monitoring",
)
TRACK_UPTAKE = RecommendedAction(
    title="Track uptake",
    description="Record uptake opportunities or exploitation plans",
    link="/uptake",
)


def create_activities_action(objective_id: str) -> RecommendedAction:
    return RecommendedAction(
        title="Create activities",
        description="Add activities to progress this objective",
        link=f"/activities?objective={objective_id}",
    )


# ── Pure helpers ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class IndicatorSummary:
    """Project-wide indicator count and mean progress toward target."""

    count:          int
    progress_ratio: Optional[float]


def summarize_indicators(indicators: Sequence[Indicator]) -> IndicatorSummary:
    """Mean of latest/target over indicators with a positive target and a value.

    ``progress_ratio`` is ``None`` when no indicator qualifies.
    """
    ratios = [r for r in (ind.progress_ratio() for ind in indicators) if r is not None]
    return IndicatorSummary(
        count=len(indicators),
        progress_ratio=sum(ratios) / len(ratios) if ratios else None,
    )


def evidence_coverage(activities: Sequence[Activity], threshold: float) -> float:
    """Fraction of activities whose completeness meets ``threshold`` (0 when none)."""
    if not activities:
        return 0.0
    covered = sum(1 for a in activities if a.completeness_score >= threshold)
    return covered / len(activities)


def classify_objective(
    linked_activities_count: int,
    indicator_progress_ratio: Optional[float],
    evidence_coverage_ratio: float,
    engagement_exists: bool,
    settings: DecisionSupportSettings,
) -> ObjectiveStatus:
    """Map an objective's measurements to its health status."""
    if linked_activities_count == 0:
        return ObjectiveStatus.BLOCKED
    if (
        indicator_progress_ratio is not None
        and indicator_progress_ratio >= settings.objective_on_track_progress_threshold
    ):
        return ObjectiveStatus.ON_TRACK
    if (
        evidence_coverage_ratio >= settings.objective_evidence_coverage_threshold
        and engagement_exists
    ):
        return ObjectiveStatus.ON_TRACK
    return ObjectiveStatus.AT_RISK


def diagnose_gaps(
    linked_assets_count: int,
    dissemination_count: int,
    evidence_coverage_ratio: float,
    engagement_exists: bool,
    exploitation_gap: bool,
) -> tuple[list[str], list[RecommendedAction]]:
    """Every applicable at-risk diagnosis with its recommended action."""
    reasons: list[str] = []
    actions: list[RecommendedAction] = []

    if linked_assets_count > 0 and dissemination_count == 0:
        reasons.append(DISSEMINATION_GAP_REASON)
        actions.append(PLAN_DISSEMINATION)

    if evidence_coverage_ratio < EXECUTION_GAP_COVERAGE:
        reasons.append(EXECUTION_GAP_REASON)
        actions.append(ADD_EVIDENCE)
    elif not engagement_exists:
        reasons.append(EFFECTIVENESS_GAP_REASON)
        actions.append(RECORD_OUTCOMES)

    if exploitation_gap:
        reasons.append(EXPLOITATION_GAP_REASON)
        actions.append(TRACK_UPTAKE)

    return reasons, actions


def build_diagnostic(
    objective: Objective,
    activities: Sequence[Activity],
    engagement_exists: bool,
    indicators: IndicatorSummary,
    settings: DecisionSupportSettings,
    exploitation_gap: bool = False,
) -> ObjectiveDiagnostic:
    """Assemble one objective's diagnostic from already-fetched facts."""
    by_domain = Counter(a.domain.value for a in activities)
    linked_assets = {asset_id for a in activities for asset_id in a.asset_ids}
    coverage = evidence_coverage(activities, settings.evidence_completeness_threshold)

    status = classify_objective(
        len(activities), indicators.progress_ratio, coverage, engagement_exists, settings
    )

    reasons: list[str] = []
    actions: list[RecommendedAction] = []
    if status is ObjectiveStatus.BLOCKED:
        reasons.append(NO_ACTIVITIES_REASON)
        actions.append(create_activities_action(objective.objective_id))
    elif status is ObjectiveStatus.AT_RISK:
        reasons, actions = diagnose_gaps(
            linked_assets_count=len(linked_assets),
            dissemination_count=by_domain.get(ActivityDomain.DISSEMINATION.value, 0),
            evidence_coverage_ratio=coverage,
            engagement_exists=engagement_exists,
            exploitation_gap=exploitation_gap,
        )

    return ObjectiveDiagnostic(
        objective_id=objective.objective_id,
        objective_title=objective.title,
        objective_domain=objective.domain.value,
        linked_activities_count=len(activities),
        linked_activities_by_domain=dict(by_domain),
        linked_assets_count=len(linked_assets),
        linked_indicators_count=indicators.count,
        indicator_progress_ratio=indicators.progress_ratio,
        evidence_coverage_ratio=coverage,
        meaningful_engagement_exists=engagement_exists,
        status=status,
        reasons=reasons,
        recommended_actions=actions,
    )


# ── Store-backed evaluation ───────────────────────────────────────────────────

def has_recent_dissemination(
    store: "ProjectStore",
    project_id: str,
    objective_id: str,
    today: Optional[date] = None,
) -> bool:
    """True when one of the objective's dissemination activities ended in the window.

    The window is the last ``EXPLOITATION_WINDOW_MONTHS`` calendar months and
    ignores the engine's date range.
    """
    cutoff = months_before(today or today_utc(), EXPLOITATION_WINDOW_MONTHS)
    recent = store.list_activities(
        project_id,
        ActivityQuery(
            start_date=cutoff,
            domains=(ActivityDomain.DISSEMINATION,),
            objective_id=objective_id,
        ),
    )
    return bool(recent)


def evaluate_objective(
    store: "ProjectStore",
    project_id: str,
    objective: Objective,
    indicators: IndicatorSummary,
    uptake_opportunity_count: int,
    settings: DecisionSupportSettings,
    date_range: Optional[DateRange] = None,
    today: Optional[date] = None,
) -> ObjectiveDiagnostic:
    """Fetch one objective's activities and signals, then diagnose it."""
    activities = store.list_activities(
        project_id, activity_query(date_range, objective_id=objective.objective_id)
    )
    engagement_exists = (
        store.count_engagement_signals([a.activity_id for a in activities]) > 0
    )

    exploitation_gap = False
    coverage = evidence_coverage(activities, settings.evidence_completeness_threshold)
    status = classify_objective(
        len(activities), indicators.progress_ratio, coverage, engagement_exists, settings
    )
    has_dissemination = any(a.domain is ActivityDomain.DISSEMINATION for a in activities)
    if status is ObjectiveStatus.AT_RISK and has_dissemination and uptake_opportunity_count == 0:
        exploitation_gap = has_recent_dissemination(
            store, project_id, objective.objective_id, today
        )

    return build_diagnostic(
        objective, activities, engagement_exists, indicators, settings, exploitation_gap
    )
