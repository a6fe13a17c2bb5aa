"""
DecisionSupportEngine: the façade every caller uses.

Lifecycle
---------
  engine = DecisionSupportEngine(store, project_id, period_id, date_range)
  engine.initialize()               # resolve settings, build override index
  engine.channel_effectiveness()    # any subset of read operations, any order

``initialize()`` is the only step that reads overrides; a failure there
raises ``StoreQueryError`` because flags cannot be generated without the
index. Settings never fail (they resolve to defaults). Every read operation
before ``initialize()`` raises ``EngineNotInitializedError``.

Each read operation:
  1. starts one ``Deadline`` (``engine.timeout_seconds``) shared by all of
     its fan-outs
  2. runs its shared prerequisite queries (channel list, project totals...);
     in a single-stage operation a failure here raises ``StoreQueryError``
  3. fans per-entity work out over a bounded thread pool (``fan_out()``);
     per-entity failures come back in ``EngineResult.failures``
  4. re-assembles results in store order, then applies its deterministic sort

``derived_metrics()`` and ``recommendation_flags()`` combine independent
stages. A stage whose list query fails, or that is reached after the
deadline, becomes one project-level ``ComputationFailure`` and the other
stages still return.

The engine is read-only; calling an operation twice yields the same output
for the same stored facts.
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime
from typing import Callable, Optional, TypeVar

from cde_advisor.config import EngineConfig
from cde_advisor.engine.derived import build_derived_metrics, measure_uptake_lag
from cde_advisor.engine.effectiveness import (
    evaluate_channel,
    load_project_totals,
    rank_channels,
)
from cde_advisor.engine.errors import (
    ComputationTimeoutError,
    DecisionSupportError,
    EngineNotInitializedError,
)
from cde_advisor.engine.evidence import score_evidence_completeness
from cde_advisor.engine.fanout import Deadline, fan_out
from cde_advisor.engine.filters import ActivityFilters, DateRange
from cde_advisor.engine.flags import (
    activity_flag,
    channel_flag,
    evaluate_asset,
    objective_flag,
    sort_flags,
)
from cde_advisor.engine.objectives import evaluate_objective, summarize_indicators
from cde_advisor.engine.overrides import OverrideIndex, load_override_index
from cde_advisor.engine.responsiveness import evaluate_group, rank_groups
from cde_advisor.engine.settings import load_settings
from cde_advisor.engine.store import ActivityQuery, ProjectStore
from cde_advisor.models.project import Asset
from cde_advisor.models.results import (
    ChannelEffectiveness,
    ComputationFailure,
    DerivedMetrics,
    EngineResult,
    ObjectiveDiagnostic,
    RecommendationFlag,
    StakeholderResponsiveness,
)
from cde_advisor.models.settings import DecisionSupportSettings
from cde_advisor.taxonomy.cde_taxonomy import COMPLETED_STATUS, PUBLIC_DOMAINS
from cde_advisor.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

__all__ = ["ActivityFilters", "DateRange", "DecisionSupportEngine"]

T = TypeVar("T")


class DecisionSupportEngine:
    """Derives C/D/E metrics, objective health, and flags for one project.

    Args:
        store: Storage query capability (see ``ProjectStore``).
        project_id: Project every query is scoped to.
        period_id: Reporting period; narrows which overrides are loaded.
        date_range: Inclusive window on activity ``end_date``.
        engine_config: Worker-pool size and per-operation timeout.
        clock: Returns "now"; injectable for deterministic tests.
    """

    def __init__(
        self,
        store: ProjectStore,
        project_id: str,
        period_id: Optional[str] = None,
        date_range: Optional[DateRange] = None,
        engine_config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.project_id = project_id
        self.period_id = period_id
        self.date_range = date_range
        self.engine_config = engine_config or EngineConfig()
        self._clock = clock
        self._settings: Optional[DecisionSupportSettings] = None
        self._overrides: Optional[OverrideIndex] = None

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def initialize(self) -> "DecisionSupportEngine":
        """Resolve settings and build the override index.

        Returns:
            ``self``, so construction and initialization can be chained.

        Raises:
            StoreQueryError: If the overrides cannot be loaded.
        """
        settings = load_settings(self.store, self.project_id)
        overrides = load_override_index(self.store, self.project_id, self.period_id)
        self._settings = settings
        self._overrides = overrides
        logger.info(
            "Engine initialized | project=%s | period=%s | range=%s",
            self.project_id, self.period_id or "-", self._range_label(),
        )
        return self

    @property
    def is_initialized(self) -> bool:
        return self._settings is not None and self._overrides is not None

    @property
    def settings(self) -> DecisionSupportSettings:
        """The resolved, immutable settings for this project."""
        return self._require("settings")[0]

    def _require(self, operation: str) -> tuple[DecisionSupportSettings, OverrideIndex]:
        if self._settings is None or self._overrides is None:
            raise EngineNotInitializedError(operation)
        return self._settings, self._overrides

    def _range_label(self) -> str:
        if self.date_range is None:
            return "all"
        return f"{self.date_range.start.isoformat()}..{self.date_range.end.isoformat()}"

    def _deadline(self) -> Deadline:
        return Deadline(self.engine_config.timeout_seconds)

    # ── Metrics ───────────────────────────────────────────────────────────────

    def channel_effectiveness(
        self, filters: Optional[ActivityFilters] = None
    ) -> EngineResult[ChannelEffectiveness]:
        """Per-channel cost, reach, and engagement, most effective first.

        Raises:
            EngineNotInitializedError: Before ``initialize()``.
            StoreQueryError: If the channel list or project totals fail.
        """
        settings, _ = self._require("channel_effectiveness")
        return self._channel_effectiveness(settings, filters, self._deadline())

    def _channel_effectiveness(
        self,
        settings: DecisionSupportSettings,
        filters: Optional[ActivityFilters],
        deadline: Deadline,
    ) -> EngineResult[ChannelEffectiveness]:
        started = time.monotonic()

        channels = self.store.list_channels(self.project_id)
        totals = load_project_totals(self.store, self.project_id)

        outcome = fan_out(
            "channel_effectiveness",
            "channel",
            channels,
            key_fn=lambda c: c.channel_id,
            fn=lambda c: evaluate_channel(
                self.store, self.project_id, c, totals, settings, self.date_range, filters
            ),
            max_workers=self.engine_config.max_workers,
            deadline=deadline,
        )
        rows = rank_channels([row for _, row in outcome.results if row is not None])

        logger.info(
            "channel_effectiveness | channels=%d | rows=%d | failures=%d | %.2fs",
            len(channels), len(rows), len(outcome.failures), time.monotonic() - started,
        )
        return EngineResult[ChannelEffectiveness](items=rows, failures=outcome.failures)

    def stakeholder_responsiveness(
        self, filters: Optional[ActivityFilters] = None
    ) -> EngineResult[StakeholderResponsiveness]:
        """Per-group response ratio, most responsive first.

        Only ``filters.domain`` applies here.
        """
        settings, _ = self._require("stakeholder_responsiveness")
        started = time.monotonic()

        groups = self.store.list_stakeholder_groups(self.project_id)
        outcome = fan_out(
            "stakeholder_responsiveness",
            "stakeholder_group",
            groups,
            key_fn=lambda g: g.group_id,
            fn=lambda g: evaluate_group(
                self.store, self.project_id, g, settings, self.date_range, filters
            ),
            max_workers=self.engine_config.max_workers,
            deadline=self._deadline(),
        )
        rows = rank_groups([row for _, row in outcome.results if row is not None])

        logger.info(
            "stakeholder_responsiveness | groups=%d | rows=%d | failures=%d | %.2fs",
            len(groups), len(rows), len(outcome.failures), time.monotonic() - started,
        )
        return EngineResult[StakeholderResponsiveness](items=rows, failures=outcome.failures)

    def objective_diagnostics(self) -> EngineResult[ObjectiveDiagnostic]:
        """Health classification for every objective, in store order."""
        settings, _ = self._require("objective_diagnostics")
        return self._objective_diagnostics(settings, self._deadline())

    def _objective_diagnostics(
        self, settings: DecisionSupportSettings, deadline: Deadline
    ) -> EngineResult[ObjectiveDiagnostic]:
        started = time.monotonic()

        objectives = self.store.list_objectives(self.project_id)
        indicators = summarize_indicators(self.store.list_indicators(self.project_id))
        uptake_count = len(self.store.list_uptake_opportunities(project_id=self.project_id))
        today = self._today()

        outcome = fan_out(
            "objective_diagnostics",
            "objective",
            objectives,
            key_fn=lambda o: o.objective_id,
            fn=lambda o: evaluate_objective(
                self.store, self.project_id, o, indicators, uptake_count,
                settings, self.date_range, today,
            ),
            max_workers=self.engine_config.max_workers,
            deadline=deadline,
        )
        rows = [row for _, row in outcome.results]

        logger.info(
            "objective_diagnostics | objectives=%d | failures=%d | %.2fs",
            len(objectives), len(outcome.failures), time.monotonic() - started,
        )
        return EngineResult[ObjectiveDiagnostic](items=rows, failures=outcome.failures)

    def derived_metrics(self) -> EngineResult[DerivedMetrics]:
        """Portfolio ratios and uptake lag.

        ``items`` holds exactly one ``DerivedMetrics``. The channel part and
        the uptake-lag part are separate stages; failures from either are
        reported and the metrics are computed from what succeeded.
        """
        settings, _ = self._require("derived_metrics")
        started = time.monotonic()
        deadline = self._deadline()
        failures: list[ComputationFailure] = []

        channel_rows = self._stage(
            "derived_metrics", "channel_metrics", deadline, failures,
            lambda: self._channel_effectiveness(settings, None, deadline),
        ) or []
        asset_lags = self._stage(
            "derived_metrics", "uptake_lag", deadline, failures,
            lambda: self._uptake_lags(deadline),
        ) or []
        metrics = build_derived_metrics(channel_rows, asset_lags)

        logger.info(
            "derived_metrics | channels=%d | lag_samples=%d | failures=%d | %.2fs",
            len(channel_rows), metrics.uptake_lag_sample_count, len(failures),
            time.monotonic() - started,
        )
        return EngineResult[DerivedMetrics](items=[metrics], failures=failures)

    def _uptake_lags(self, deadline: Deadline) -> EngineResult[tuple[Asset, int]]:
        assets = self.store.list_assets(self.project_id)
        outcome = fan_out(
            "derived_metrics",
            "asset",
            assets,
            key_fn=lambda a: a.asset_id,
            fn=lambda a: measure_uptake_lag(self.store, self.project_id, a),
            max_workers=self.engine_config.max_workers,
            deadline=deadline,
        )
        lags = [(asset, lag) for asset, lag in outcome.results if lag is not None]
        return EngineResult[tuple[Asset, int]](items=lags, failures=outcome.failures)

    # ── Flags ─────────────────────────────────────────────────────────────────

    def recommendation_flags(self) -> EngineResult[RecommendationFlag]:
        """Every flag with overrides attached, ordered high → warn → info.

        Generation order (kept within a severity): objectives, assets,
        channels, activities. Each source is its own stage, so one that fails
        or runs out of time does not drop the flags of the others.
        """
        settings, overrides = self._require("recommendation_flags")
        started = time.monotonic()
        deadline = self._deadline()
        failures: list[ComputationFailure] = []
        now = self._clock()

        def objective_flags() -> EngineResult[RecommendationFlag]:
            diagnostics = self._objective_diagnostics(settings, deadline)
            flags = [objective_flag(d, overrides) for d in diagnostics.items]
            return _flag_result(flags, diagnostics.failures)

        def asset_flags() -> EngineResult[RecommendationFlag]:
            outcome = fan_out(
                "recommendation_flags",
                "asset",
                self.store.list_assets(self.project_id),
                key_fn=lambda a: a.asset_id,
                fn=lambda a: evaluate_asset(
                    self.store, self.project_id, a, settings, overrides, now
                ),
                max_workers=self.engine_config.max_workers,
                deadline=deadline,
            )
            return _flag_result([flag for _, flag in outcome.results], outcome.failures)

        def channel_flags() -> EngineResult[RecommendationFlag]:
            channels = self._channel_effectiveness(settings, None, deadline)
            flags = [channel_flag(row, settings, overrides) for row in channels.items]
            return _flag_result(flags, channels.failures)

        def activity_flags() -> EngineResult[RecommendationFlag]:
            public_completed = self.store.list_activities(
                self.project_id,
                ActivityQuery(domains=tuple(sorted(PUBLIC_DOMAINS)), status=COMPLETED_STATUS),
            )
            return _flag_result([activity_flag(a, settings, overrides) for a in public_completed], [])

        flags: list[RecommendationFlag] = []
        for stage, build in (
            ("objective_flags", objective_flags),
            ("asset_flags", asset_flags),
            ("channel_flags", channel_flags),
            ("activity_flags", activity_flags),
        ):
            flags.extend(self._stage("recommendation_flags", stage, deadline, failures, build) or [])

        ordered = sort_flags(flags)
        logger.info(
            "recommendation_flags | flags=%d | overridden=%d | failures=%d | %.2fs",
            len(ordered),
            sum(1 for f in ordered if f.override is not None),
            len(failures),
            time.monotonic() - started,
        )
        return EngineResult[RecommendationFlag](items=ordered, failures=failures)

    # ── Evidence ──────────────────────────────────────────────────────────────

    def evidence_completeness(self, activity_id: str) -> int:
        """Score one activity's evidence (0–100).

        An unknown activity, a deleted one, or one from another project scores 0.
        """
        self._require("evidence_completeness")
        activity = self.store.get_activity(activity_id)
        if activity is None or activity.is_deleted or activity.project_id != self.project_id:
            return 0
        items = self.store.list_evidence_items(activity_id)
        return score_evidence_completeness(activity.domain, items)

    def _today(self) -> date:
        return self._clock().date()

    # ── Stages ────────────────────────────────────────────────────────────────

    def _stage(
        self,
        operation: str,
        stage: str,
        deadline: Deadline,
        failures: list[ComputationFailure],
        build: Callable[[], EngineResult[T]],
    ) -> Optional[list[T]]:
        """Run one independent part of a multi-stage operation.

        The stage's per-entity failures are appended to ``failures``. A
        ``DecisionSupportError`` raised by the stage itself, or a stage
        skipped because the deadline has passed, is recorded as a single
        project-level failure and ``None`` is returned.
        """
        error: DecisionSupportError
        if deadline.expired:
            error = ComputationTimeoutError(
                operation, self.project_id, deadline.timeout_seconds or 0.0
            )
            logger.warning("%s skipped %s: %s", operation, stage, error)
        else:
            try:
                result = build()
            except DecisionSupportError as exc:
                error = exc
                logger.warning("%s failed in %s: %s", operation, stage, exc)
            else:
                failures.extend(result.failures)
                return list(result.items)

        failures.append(
            ComputationFailure(
                operation=operation,
                entity_type="project",
                entity_id=self.project_id,
                error=f"{stage}: {error}",
            )
        )
        return None


def _flag_result(
    flags: list[Optional[RecommendationFlag]], failures: list[ComputationFailure]
) -> EngineResult[RecommendationFlag]:
    return EngineResult[RecommendationFlag](
        items=[f for f in flags if f is not None], failures=failures
    )
