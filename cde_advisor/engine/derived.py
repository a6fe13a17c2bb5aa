"""
Portfolio-level derived metrics.

Cost and reach ratios are folded from the unfiltered channel effectiveness
rows (per-channel maps are keyed by channel name). Uptake lag is measured per
asset:

  lag = floor(days from the asset's earliest dissemination end date
              to its earliest uptake opportunity)

Only non-negative lags are kept. An asset with no dated dissemination
activity or no uptake opportunity contributes no sample. The dissemination
lookup ignores the engine date range.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Optional, Sequence

from cde_advisor.db.repositories.activity_repo import ActivityQuery
from cde_advisor.models.project import Activity, Asset
from cde_advisor.models.results import ChannelEffectiveness, DerivedMetrics
from cde_advisor.taxonomy.cde_taxonomy import ActivityDomain
from cde_advisor.utils.time_utils import whole_days_between

if TYPE_CHECKING:
    from cde_advisor.engine.store import ProjectStore

logger = logging.getLogger(__name__)


def median(values: Sequence[float]) -> Optional[float]:
    """Median of ``values``; mean of the middle pair for even lengths, ``None`` if empty."""
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def earliest_dissemination(
    store: "ProjectStore",
    project_id: str,
    asset_id: str,
) -> Optional[Activity]:
    """The asset's dissemination activity with the earliest end date, if dated."""
    activities = store.list_activities(
        project_id,
        ActivityQuery(
            domains=(ActivityDomain.DISSEMINATION,),
            asset_id=asset_id,
            order_by_end_date=True,
        ),
    )
    # Undated activities sort last, so an undated head means none are dated.
    if not activities or activities[0].end_date is None:
        return None
    return activities[0]


def measure_uptake_lag(store: "ProjectStore", project_id: str, asset: Asset) -> Optional[int]:
    """Whole days from first dissemination to first uptake, or ``None``."""
    first_dissemination = earliest_dissemination(store, project_id, asset.asset_id)
    if first_dissemination is None or first_dissemination.end_date is None:
        return None
    opportunities = store.list_uptake_opportunities(asset_id=asset.asset_id)
    if not opportunities:
        return None
    lag = whole_days_between(first_dissemination.end_date, opportunities[0].created_at)
    return lag if lag >= 0 else None


def build_derived_metrics(
    channel_rows: Sequence[ChannelEffectiveness],
    asset_lags: Sequence[tuple[Asset, int]],
) -> DerivedMetrics:
    """Fold channel rows and per-asset lags into ``DerivedMetrics``. Pure."""
    total_cost = sum(r.cost_proxy_total for r in channel_rows)
    total_engagement = sum(r.meaningful_engagement_total for r in channel_rows)

    cost_by_channel: dict[str, float] = {}
    reach_by_channel: dict[str, float] = {}
    for row in channel_rows:
        cost_by_channel[row.channel_name] = (
            row.cost_proxy_total / row.meaningful_engagement_total
            if row.meaningful_engagement_total > 0
            else 0.0
        )
        reach_by_channel[row.channel_name] = row.reach_total * (row.evidence_completeness_avg / 100)

    lags = [lag for _, lag in asset_lags]
    lags_by_type: dict[str, list[float]] = defaultdict(list)
    for asset, lag in asset_lags:
        lags_by_type[asset.asset_type].append(lag)

    lag_by_type: dict[str, float] = {}
    for asset_type, type_lags in lags_by_type.items():
        type_median = median(type_lags)
        if type_median is not None:
            lag_by_type[asset_type] = type_median

    return DerivedMetrics(
        cost_per_meaningful_engagement_overall=(
            total_cost / total_engagement if total_engagement > 0 else None
        ),
        cost_per_meaningful_engagement_by_channel=cost_by_channel,
        evidence_adjusted_reach_overall=sum(
            r.reach_total * (r.evidence_completeness_avg / 100) for r in channel_rows
        ),
        evidence_adjusted_reach_by_channel=reach_by_channel,
        uptake_lag_median_days=median(lags),
        uptake_lag_by_asset_type=lag_by_type,
        uptake_lag_sample_count=len(lags),
    )
