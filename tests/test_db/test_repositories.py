"""Tests for repository round-trip operations using in-memory SQLite."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from cde_advisor.db.repositories.activity_repo import ActivityQuery, ActivityRepository
from cde_advisor.db.repositories.base import chunked, placeholders
from cde_advisor.db.repositories.engagement_repo import (
    EngagementSignalRepository,
    EvidenceRepository,
    SustainabilityPlanRepository,
    UptakeOpportunityRepository,
)
from cde_advisor.db.repositories.indicator_repo import IndicatorRepository
from cde_advisor.db.repositories.override_repo import FlagOverrideRepository
from cde_advisor.db.repositories.project_repo import ProjectRepository
from cde_advisor.models.project import IndicatorValue
from cde_advisor.taxonomy.cde_taxonomy import ActivityDomain, OverrideStatus


class TestHelpers:
    def test_placeholders(self):
        assert placeholders(3) == "?, ?, ?"

    def test_chunked(self):
        assert [list(c) for c in chunked(["a", "b", "c"], size=2)] == [["a", "b"], ["c"]]


class TestProjectRepository:
    def test_settings_blob_stored_as_json_text(self, seed, in_memory_db):
        seed.project(settings_json={"hourly_rate_default": 70}, project_id="p2")
        blob = ProjectRepository(in_memory_db).get_settings_blob("p2")
        assert blob == '{"hourly_rate_default": 70}'

    def test_missing_project(self, in_memory_db):
        repo = ProjectRepository(in_memory_db)
        assert repo.get_settings_blob("nope") is None
        assert repo.get_by_id("nope") is None


class TestActivityRepository:
    def test_round_trip_with_links(self, seed, in_memory_db):
        seed.channel("c1")
        seed.channel("c2")
        seed.group("g1")
        seed.objective("o1")
        seed.asset("x1")
        seed.activity(
            "a1",
            channel_ids=["c1", "c2"],
            stakeholder_group_ids=["g1"],
            objective_ids=["o1"],
            asset_ids=["x1"],
            budget_estimate=250.0,
        )

        fetched = ActivityRepository(in_memory_db).get_by_id("a1")

        assert fetched.channel_ids == ("c1", "c2")
        assert fetched.stakeholder_group_ids == ("g1",)
        assert fetched.objective_ids == ("o1",)
        assert fetched.asset_ids == ("x1",)
        assert fetched.budget_estimate == 250.0
        assert fetched.end_date == date(2026, 3, 1)

    def test_deleted_excluded_unless_requested(self, seed, in_memory_db):
        seed.activity("live")
        seed.activity("gone", deleted_at=datetime(2026, 4, 1, tzinfo=timezone.utc))
        repo = ActivityRepository(in_memory_db)

        assert [a.activity_id for a in repo.list_activities("p1", ActivityQuery())] == ["live"]
        everything = repo.list_activities("p1", ActivityQuery(include_deleted=True))
        assert {a.activity_id for a in everything} == {"live", "gone"}

    def test_filters_compose(self, seed, in_memory_db):
        seed.channel("c1")
        seed.activity("match", channel_ids=["c1"], status="completed")
        seed.activity("other_channel", status="completed")
        seed.activity("planned", channel_ids=["c1"], status="planned")
        seed.activity("comms", channel_ids=["c1"], domain=ActivityDomain.COMMUNICATION)

        rows = ActivityRepository(in_memory_db).list_activities(
            "p1",
            ActivityQuery(
                channel_id="c1",
                status="completed",
                domains=(ActivityDomain.DISSEMINATION,),
            ),
        )

        assert [a.activity_id for a in rows] == ["match"]

    def test_order_by_end_date_puts_undated_last(self, seed, in_memory_db):
        seed.activity("undated", end_date=None)
        seed.activity("late", end_date=date(2026, 5, 1))
        seed.activity("early", end_date=date(2026, 1, 1))

        rows = ActivityRepository(in_memory_db).list_activities(
            "p1", ActivityQuery(order_by_end_date=True)
        )

        assert [a.activity_id for a in rows] == ["early", "late", "undated"]

    def test_other_project_not_visible(self, seed, in_memory_db):
        seed.project(project_id="p2")
        seed.activity("mine")
        seed.activity("theirs", project_id="p2")

        rows = ActivityRepository(in_memory_db).list_activities("p1", ActivityQuery())

        assert [a.activity_id for a in rows] == ["mine"]


class TestIndicatorRepository:
    def test_values_in_recording_order(self, seed, in_memory_db):
        seed.indicator("i1", values=(5, 3), target=10)
        repo = IndicatorRepository(in_memory_db)
        repo.insert_value(IndicatorValue(indicator_id="i1", value=8))

        [indicator] = repo.list_for_project("p1")

        assert [v.value for v in indicator.values] == [5, 3, 8]
        assert indicator.latest_value.value == 8
        assert indicator.progress_ratio() == pytest.approx(0.8)

    def test_deleted_indicator_hidden(self, seed, in_memory_db):
        seed.indicator("live", values=(1,))
        seed.indicator("gone", values=(1,), deleted=True)

        indicators = IndicatorRepository(in_memory_db).list_for_project("p1")

        assert [i.indicator_id for i in indicators] == ["live"]

    def test_values_by_category(self, seed, in_memory_db):
        seed.indicator("r1", values=(10, 20), category="reach")
        seed.indicator("o1", values=(99,), category="output")

        values = IndicatorRepository(in_memory_db).list_values_by_category("p1", "reach")

        assert values == [10.0, 20.0]


class TestEngagementRepositories:
    def test_signal_count(self, seed, in_memory_db):
        a1 = seed.activity()
        a2 = seed.activity()
        seed.signals(a1.activity_id, 2)
        seed.signals(a2.activity_id, 1)
        repo = EngagementSignalRepository(in_memory_db)

        assert repo.count_for_activities([a1.activity_id, a2.activity_id]) == 3
        assert repo.count_for_activities([]) == 0

    def test_opportunities_earliest_first(self, seed, in_memory_db):
        seed.asset("x1")
        seed.opportunity(asset_id="x1", created_at=datetime(2026, 5, 1, tzinfo=timezone.utc))
        seed.opportunity(asset_id="x1", created_at=datetime(2026, 2, 1, tzinfo=timezone.utc))
        seed.opportunity()
        repo = UptakeOpportunityRepository(in_memory_db)

        by_asset = repo.list_opportunities(asset_id="x1")
        assert [o.created_at.month for o in by_asset] == [2, 5]
        assert len(repo.list_opportunities(project_id="p1")) == 3

    def test_opportunities_ordered_by_instant_across_offsets(self, seed, in_memory_db):
        seed.asset("x1")
        eastern = timezone(timedelta(hours=-5))
        seed.opportunity(asset_id="x1", created_at=datetime(2026, 3, 10, 20, 0, tzinfo=eastern))
        seed.opportunity(asset_id="x1", created_at=datetime(2026, 3, 11, 0, 30, tzinfo=timezone.utc))

        rows = UptakeOpportunityRepository(in_memory_db).list_opportunities(asset_id="x1")

        assert [o.created_at for o in rows] == [
            datetime(2026, 3, 11, 0, 30, tzinfo=timezone.utc),
            datetime(2026, 3, 11, 1, 0, tzinfo=timezone.utc),
        ]
        assert all(o.created_at.utcoffset() == timedelta(0) for o in rows)

    def test_opportunities_need_a_scope(self, in_memory_db):
        with pytest.raises(ValueError):
            UptakeOpportunityRepository(in_memory_db).list_opportunities()

    def test_plan_exists(self, seed, in_memory_db):
        seed.asset("x1")
        seed.asset("x2")
        seed.plan("x1")
        repo = SustainabilityPlanRepository(in_memory_db)

        assert repo.exists_for_asset("x1") is True
        assert repo.exists_for_asset("x2") is False

    def test_evidence_round_trip(self, seed, in_memory_db):
        act = seed.activity()
        seed.evidence(act.activity_id, "video", evidence_date=date(2026, 2, 2), context="Talk")

        [item] = EvidenceRepository(in_memory_db).list_for_activity(act.activity_id)

        assert item.evidence_type == "video"
        assert item.evidence_date == date(2026, 2, 2)
        assert item.has_complete_metadata


class TestFlagOverrideRepository:
    def test_round_trip(self, seed, in_memory_db):
        seed.override(
            "objective", "o1", "objective_at_risk",
            status=OverrideStatus.NOT_APPLICABLE, period_id="2026-Q1", rationale="Out of scope",
        )

        [row] = FlagOverrideRepository(in_memory_db).list_for_project("p1")

        assert row.status is OverrideStatus.NOT_APPLICABLE
        assert row.period_id == "2026-Q1"
        assert row.rationale == "Out of scope"
        assert row.created_at is not None

    def test_period_filter(self, seed, in_memory_db):
        seed.override("objective", "o1", "objective_at_risk", period_id="2026-Q1")
        seed.override("objective", "o1", "objective_at_risk")
        repo = FlagOverrideRepository(in_memory_db)

        assert len(repo.list_for_project("p1")) == 2
        assert len(repo.list_for_project("p1", "2026-Q1")) == 1
        assert repo.list_for_project("p1", "2026-Q4") == []

    def test_overrides_ordered_by_instant_across_offsets(self, seed, in_memory_db):
        cet = timezone(timedelta(hours=1))
        seed.override(
            "channel", "c1", "channel_inefficient", rationale="later",
            created_at=datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc),
        )
        seed.override(
            "channel", "c1", "channel_inefficient", rationale="earlier",
            created_at=datetime(2026, 3, 1, 10, 0, tzinfo=cet),
        )

        rows = FlagOverrideRepository(in_memory_db).list_for_project("p1")

        assert [r.rationale for r in rows] == ["earlier", "later"]
