"""
Tests for cde_advisor/models/settings.py.

What we test
------------
validate_settings():
  - Empty dict → DEFAULT_SETTINGS.
  - Each numeric field falls back to its default when out of range,
    non-numeric, boolean, or non-finite.
  - Boundary values of inclusive ranges are accepted.
  - Unknown keys are ignored.
  - Weights and definitions merge key-by-key over their defaults.
  - Result is frozen.

DecisionSupportSettings:
  - Out-of-range, boolean, and string values are rejected by the model itself.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from cde_advisor.models.settings import (
    DEFAULT_SETTINGS,
    DecisionSupportSettings,
    validate_settings,
)


class TestValidateSettings:
    def test_empty_is_default(self):
        assert validate_settings({}) == DEFAULT_SETTINGS

    def test_defaults(self):
        s = DEFAULT_SETTINGS
        assert s.hourly_rate_default == 50.0
        assert s.evidence_completeness_threshold == 60.0
        assert s.stakeholder_high_targeting_threshold == 3
        assert s.stakeholder_low_response_ratio_threshold == 0.5
        assert s.uptake_no_exploitation_days == 90
        assert s.inefficient_channel_effort_hours_threshold == 20.0
        assert s.objective_on_track_progress_threshold == 0.8
        assert s.objective_evidence_coverage_threshold == 0.7

    @pytest.mark.parametrize(
        "field,bad",
        [
            ("hourly_rate_default", 0),
            ("hourly_rate_default", -10),
            ("hourly_rate_default", "50"),
            ("hourly_rate_default", True),
            ("hourly_rate_default", float("nan")),
            ("evidence_completeness_threshold", 101),
            ("evidence_completeness_threshold", -1),
            ("stakeholder_high_targeting_threshold", 0),
            ("stakeholder_low_response_ratio_threshold", 1.5),
            ("uptake_no_exploitation_days", 0),
            ("uptake_no_exploitation_days", None),
            ("uptake_no_exploitation_days", 0.5),
            ("uptake_no_exploitation_days", "90"),
            ("inefficient_channel_effort_hours_threshold", float("inf")),
            ("objective_on_track_progress_threshold", -0.1),
            ("objective_evidence_coverage_threshold", 2),
        ],
    )
    def test_invalid_value_keeps_default(self, field, bad):
        settings = validate_settings({field: bad})
        assert getattr(settings, field) == getattr(DEFAULT_SETTINGS, field)

    @pytest.mark.parametrize(
        "field,value",
        [
            ("evidence_completeness_threshold", 0),
            ("evidence_completeness_threshold", 100),
            ("stakeholder_low_response_ratio_threshold", 0),
            ("objective_on_track_progress_threshold", 1),
        ],
    )
    def test_inclusive_bounds_accepted(self, field, value):
        assert getattr(validate_settings({field: value}), field) == value

    def test_days_coerced_to_int(self):
        settings = validate_settings({"uptake_no_exploitation_days": 45.0})
        assert settings.uptake_no_exploitation_days == 45
        assert isinstance(settings.uptake_no_exploitation_days, int)

    def test_unknown_keys_ignored(self):
        assert validate_settings({"colour": "blue"}) == DEFAULT_SETTINGS

    def test_weights_merge(self):
        settings = validate_settings(
            {"meaningful_engagement_weights": {"agreement_weight": 5, "bogus": 1, "qual_outcome_weight": "x"}}
        )
        weights = settings.meaningful_engagement_weights
        assert weights.agreement_weight == 5
        assert weights.qual_outcome_weight == 1.0
        assert weights.uptake_opportunity_weight == 2.0

    def test_definitions_merge(self):
        settings = validate_settings({"definitions": {"uptake_lag_definition": "Days to first uptake"}})
        assert settings.definitions.uptake_lag_definition == "Days to first uptake"
        assert settings.definitions.meaningful_engagement_definition.startswith("Actions by stakeholders")

    def test_frozen(self):
        with pytest.raises(ValidationError):
            DEFAULT_SETTINGS.hourly_rate_default = 1  # type: ignore[misc]


class TestSettingsModel:
    @pytest.mark.parametrize(
        "field,bad",
        [
            ("hourly_rate_default", -5),
            ("objective_on_track_progress_threshold", 7),
            ("evidence_completeness_threshold", 100.5),
            ("stakeholder_low_response_ratio_threshold", True),
            ("inefficient_channel_effort_hours_threshold", "20"),
            ("uptake_no_exploitation_days", False),
        ],
    )
    def test_model_rejects_invalid(self, field, bad):
        with pytest.raises(ValidationError):
            DecisionSupportSettings(**{field: bad})

    def test_int_accepted_for_float_field(self):
        settings = DecisionSupportSettings(hourly_rate_default=75)
        assert settings.hourly_rate_default == 75.0

    def test_valid_sibling_survives_invalid_field(self):
        settings = validate_settings({"hourly_rate_default": -5, "evidence_completeness_threshold": 80})
        assert settings.hourly_rate_default == DEFAULT_SETTINGS.hourly_rate_default
        assert settings.evidence_completeness_threshold == 80
