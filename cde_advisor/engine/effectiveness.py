"""
Channel effectiveness: cost, reach, and engagement per channel.

For each channel the calculator aggregates the non-deleted activities that
ran through it (narrowed by the engine date range and the caller's domain /
stakeholder filters):

  effort_hours_total          Σ effort_hours
  cost_proxy_total            Σ cost proxy (budget, else effort × hourly rate)
  evidence_completeness_avg   mean completeness_score (0 when no activities)
  meaningful_engagement_total engagement signals on those activities
                              + the project's uptake-opportunity count
  effectiveness_score         engagement / cost (0 when cost is 0)

``reach_total`` and the uptake-opportunity count are PROJECT-WIDE: they are
loaded once per call (``load_project_totals()``) and reported identically on
every channel. Channels without matching activities are omitted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence

from cde_advisor.engine.filters import ActivityFilters, DateRange, activity_query
from cde_advisor.models.project import Activity, Channel
from cde_advisor.models.results import ChannelEffectiveness
from cde_advisor.models.settings import DecisionSupportSettings

if TYPE_CHECKING:
    from cde_advisor.engine.store import ProjectStore

logger = logging.getLogger(__name__)

REACH_CATEGORY = "reach"


@dataclass(frozen=True)
class ProjectTotals:
    """Project-wide figures shared by every channel row."""

    reach_total:              float
    uptake_opportunity_count: int


def load_project_totals(store: "ProjectStore", project_id: str) -> ProjectTotals:
    """Sum every recorded reach value and count the project's uptake opportunities.

    Raises:
        StoreQueryError: If either query fails.
    """
    reach_values = store.list_indicator_values_by_category(project_id, REACH_CATEGORY)
    opportunities = store.list_uptake_opportunities(project_id=project_id)
    return ProjectTotals(
        reach_total=float(sum(reach_values)),
        uptake_opportunity_count=len(opportunities),
    )


def summarize_channel(
    channel: Channel,
    activities: Sequence[Activity],
    engagement_signal_count: int,
    totals: ProjectTotals,
    settings: DecisionSupportSettings,
    domain: Optional[str] = None,
) -> Optional[ChannelEffectiveness]:
    """Aggregate one channel's activities. Pure; ``None`` when there are none."""
    if not activities:
        return None

    effort = sum(a.effort_hours for a in activities)
    cost = sum(a.cost_proxy(settings.hourly_rate_default) for a in activities)
    completeness_avg = sum(a.completeness_score for a in activities) / len(activities)
    engagement = engagement_signal_count + totals.uptake_opportunity_count

    return ChannelEffectiveness(
        channel_id=channel.channel_id,
        channel_name=channel.name,
        channel_type=channel.channel_type,
        domain=domain,
        effort_hours_total=effort,
        cost_proxy_total=cost,
        reach_total=totals.reach_total,
        evidence_completeness_avg=completeness_avg,
        meaningful_engagement_total=engagement,
        effectiveness_score=engagement / cost if cost > 0 else 0.0,
        activity_count=len(activities),
    )


def evaluate_channel(
    store: "ProjectStore",
    project_id: str,
    channel: Channel,
    totals: ProjectTotals,
    settings: DecisionSupportSettings,
    date_range: Optional[DateRange] = None,
    filters: Optional[ActivityFilters] = None,
) -> Optional[ChannelEffectiveness]:
    """Fetch one channel's activities and signals, then summarise them."""
    filters = filters or ActivityFilters()
    activities = store.list_activities(
        project_id,
        activity_query(
            date_range,
            filters.domain,
            channel_id=channel.channel_id,
            stakeholder_group_id=filters.stakeholder_group_id,
        ),
    )
    if not activities:
        return None
    signals = store.count_engagement_signals([a.activity_id for a in activities])
    return summarize_channel(
        channel,
        activities,
        signals,
        totals,
        settings,
        domain=filters.domain.value if filters.domain else None,
    )


def rank_channels(rows: Sequence[ChannelEffectiveness]) -> list[ChannelEffectiveness]:
    """Most effective first; ties keep their incoming order."""
    return sorted(rows, key=lambda r: -r.effectiveness_score)
