"""
Stakeholder responsiveness: response events per targeted activity.

  responsiveness_ratio = response_events_count / targeted_activities_count

A group is flagged when it is targeted often but answers rarely:

  targeted ≥ stakeholder_high_targeting_threshold      (inclusive)
  AND ratio < stakeholder_low_response_ratio_threshold (exclusive)

Groups with no targeted activities are omitted, so the ratio never divides
by zero.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Sequence

from cde_advisor.engine.filters import ActivityFilters, DateRange, activity_query
from cde_advisor.models.project import StakeholderGroup
from cde_advisor.models.results import StakeholderResponsiveness
from cde_advisor.models.settings import DecisionSupportSettings

if TYPE_CHECKING:
    from cde_advisor.engine.store import ProjectStore

logger = logging.getLogger(__name__)


def is_high_targeting_low_response(
    targeted: int,
    ratio: float,
    settings: DecisionSupportSettings,
) -> bool:
    return (
        targeted >= settings.stakeholder_high_targeting_threshold
        and ratio < settings.stakeholder_low_response_ratio_threshold
    )


def summarize_group(
    group: StakeholderGroup,
    targeted: int,
    responses: int,
    settings: DecisionSupportSettings,
) -> Optional[StakeholderResponsiveness]:
    """Build one group's row. Pure; ``None`` when nothing targeted the group."""
    if targeted <= 0:
        return None
    ratio = responses / targeted
    return StakeholderResponsiveness(
        stakeholder_group_id=group.group_id,
        stakeholder_group_name=group.name,
        targeted_activities_count=targeted,
        response_events_count=responses,
        responsiveness_ratio=ratio,
        flag_high_targeting_low_response=is_high_targeting_low_response(targeted, ratio, settings),
    )


def evaluate_group(
    store: "ProjectStore",
    project_id: str,
    group: StakeholderGroup,
    settings: DecisionSupportSettings,
    date_range: Optional[DateRange] = None,
    filters: Optional[ActivityFilters] = None,
) -> Optional[StakeholderResponsiveness]:
    filters = filters or ActivityFilters()
    activities = store.list_activities(
        project_id,
        activity_query(date_range, filters.domain, stakeholder_group_id=group.group_id),
    )
    if not activities:
        return None
    responses = store.count_engagement_signals([a.activity_id for a in activities])
    return summarize_group(group, len(activities), responses, settings)


def rank_groups(rows: Sequence[StakeholderResponsiveness]) -> list[StakeholderResponsiveness]:
    """Most responsive first; ties keep their incoming order."""
    return sorted(rows, key=lambda r: -r.responsiveness_ratio)
