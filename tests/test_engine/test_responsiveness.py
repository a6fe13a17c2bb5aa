"""
Tests for stakeholder responsiveness (engine/responsiveness.py + engine operation).

What we test
------------
summarize_group():
  - ratio == responses / targeted.
  - targeted == 0 → None (group omitted).

is_high_targeting_low_response():
  - targeted threshold is inclusive, ratio threshold is exclusive.

DecisionSupportEngine.stakeholder_responsiveness():
  - Groups with no targeted activities are omitted.
  - Ratio counts signals on the group's targeted activities only.
  - Domain filter narrows targeted activities.
  - Sorted by ratio descending, ties keep store order.
"""

from __future__ import annotations

import pytest

from cde_advisor.engine.filters import ActivityFilters
from cde_advisor.engine.responsiveness import is_high_targeting_low_response, summarize_group
from cde_advisor.models.project import StakeholderGroup
from cde_advisor.models.settings import DEFAULT_SETTINGS
from cde_advisor.taxonomy.cde_taxonomy import ActivityDomain, EngagementKind

_GROUP = StakeholderGroup(group_id="g1", project_id="p1", name="Policy makers")


class TestSummarizeGroup:
    @pytest.mark.parametrize("targeted,responses", [(1, 0), (4, 2), (3, 7), (10, 1)])
    def test_ratio_identity(self, targeted, responses):
        row = summarize_group(_GROUP, targeted, responses, DEFAULT_SETTINGS)
        assert row.responsiveness_ratio == pytest.approx(responses / targeted)
        assert row.targeted_activities_count == targeted
        assert row.response_events_count == responses

    def test_zero_targeted_is_omitted(self):
        assert summarize_group(_GROUP, 0, 0, DEFAULT_SETTINGS) is None


class TestHighTargetingLowResponse:
    # Defaults: high targeting >= 3, low response < 0.5
    @pytest.mark.parametrize(
        "targeted,ratio,expected",
        [
            (3, 0.49, True),    # both thresholds met
            (3, 0.5, False),    # ratio at threshold is not low
            (2, 0.0, False),    # below targeting threshold
            (10, 0.1, True),
            (3, 0.0, True),
        ],
    )
    def test_boundaries(self, targeted, ratio, expected):
        assert is_high_targeting_low_response(targeted, ratio, DEFAULT_SETTINGS) is expected

    def test_flag_set_on_row(self):
        row = summarize_group(_GROUP, 4, 1, DEFAULT_SETTINGS)
        assert row.flag_high_targeting_low_response is True


class TestStakeholderResponsivenessEngine:
    def test_groups_without_targeting_omitted(self, seed, make_engine):
        seed.group("g1")
        seed.group("idle")
        seed.activity(stakeholder_group_ids=["g1"])

        rows = make_engine().stakeholder_responsiveness().items

        assert [r.stakeholder_group_id for r in rows] == ["g1"]

    def test_ratio_from_signals(self, seed, make_engine):
        seed.group("g1")
        a1 = seed.activity(stakeholder_group_ids=["g1"])
        seed.activity(stakeholder_group_ids=["g1"])
        other = seed.activity()
        seed.signals(a1.activity_id, 2)
        seed.signals(a1.activity_id, 1, kind=EngagementKind.QUALITATIVE_OUTCOME)
        seed.signals(other.activity_id, 5)

        [row] = make_engine().stakeholder_responsiveness().items

        assert row.targeted_activities_count == 2
        assert row.response_events_count == 3
        assert row.responsiveness_ratio == pytest.approx(1.5)
        assert row.flag_high_targeting_low_response is False

    def test_flagged_group(self, seed, make_engine):
        seed.group("g1")
        for _ in range(3):
            seed.activity(stakeholder_group_ids=["g1"])

        [row] = make_engine().stakeholder_responsiveness().items

        assert row.responsiveness_ratio == 0.0
        assert row.flag_high_targeting_low_response is True

    def test_domain_filter(self, seed, make_engine):
        seed.group("g1")
        seed.activity(stakeholder_group_ids=["g1"], domain=ActivityDomain.COMMUNICATION)
        seed.activity(stakeholder_group_ids=["g1"], domain=ActivityDomain.EXPLOITATION)

        result = make_engine().stakeholder_responsiveness(
            ActivityFilters(domain=ActivityDomain.EXPLOITATION)
        )

        [row] = result.items
        assert row.targeted_activities_count == 1

    def test_sorted_by_ratio(self, seed, make_engine):
        for gid in ("quiet", "loud", "quiet2"):
            seed.group(gid)
        seed.activity(stakeholder_group_ids=["quiet"])
        loud = seed.activity(stakeholder_group_ids=["loud"])
        seed.activity(stakeholder_group_ids=["quiet2"])
        seed.signals(loud.activity_id, 2)

        rows = make_engine().stakeholder_responsiveness().items

        assert [r.stakeholder_group_id for r in rows] == ["loud", "quiet", "quiet2"]
