"""
Per-project decision support settings: thresholds and definitions.

``DecisionSupportSettings`` is the immutable bundle of numeric thresholds the
engine applies mechanically. Every field carries its default and its accepted
range, so constructing the model with an out-of-range value raises
``ValidationError``. ``validate_settings()`` merges a raw settings blob over
the defaults **field by field**: each value is validated against the model on
its own, so one invalid value never discards its valid siblings.

Accepted ranges (a stored value outside its range falls back to the default):

  ========================================== =================
  field                                      accepted range
  ========================================== =================
  hourly_rate_default                        > 0
  evidence_completeness_threshold            0 – 100
  stakeholder_high_targeting_threshold       > 0
  stakeholder_low_response_ratio_threshold   0 – 1
  uptake_no_exploitation_days                > 0 (whole days)
  inefficient_channel_effort_hours_threshold > 0
  objective_on_track_progress_threshold      0 – 1
  objective_evidence_coverage_threshold      0 – 1
  ========================================== =================

Numbers are strict: strings and booleans are rejected, as are NaN and
infinities.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class EngagementWeights(BaseModel):
    """Relative weights of meaningful-engagement signal kinds.

    Carried for reporting; the engine counts every signal as one unit.
    """

    model_config = ConfigDict(frozen=True)

    survey_response_weight:    float = Field(1.0, strict=True, allow_inf_nan=False)
    qual_outcome_weight:       float = Field(1.0, strict=True, allow_inf_nan=False)
    uptake_opportunity_weight: float = Field(2.0, strict=True, allow_inf_nan=False)
    agreement_weight:          float = Field(3.0, strict=True, allow_inf_nan=False)


class SettingsDefinitions(BaseModel):
    """Free-text definitions shown alongside the metrics."""

    model_config = ConfigDict(frozen=True, strict=True)

    meaningful_engagement_definition: str = (
        "Actions by stakeholders that demonstrate active consideration or adoption "
        "of project outputs, including survey responses, documented outcomes, "
        "uptake opportunities, and formal agreements."
    )
    evidence_completeness_definition: str = (
        "A score (0-100) measuring the quality and appropriateness of evidence "
        "attached to activities. Score components: +40 for any evidence, +30 for "
        "evidence type matching activity domain, +30 for complete metadata "
        "(date, context/source)."
    )
    uptake_lag_definition: str = (
        "The time elapsed (in days) between the first dissemination of an asset "
        "and the first recorded uptake signal (opportunity or agreement)."
    )


class DecisionSupportSettings(BaseModel):
    """Fully populated thresholds for one project.

    Attributes:
        hourly_rate_default: Currency per hour used to cost effort when an
            activity has no budget estimate.
        evidence_completeness_threshold: Completeness score (0–100) at or
            above which an activity counts as well evidenced.
        stakeholder_high_targeting_threshold: Targeted-activity count at or
            above which a stakeholder group counts as heavily targeted.
        stakeholder_low_response_ratio_threshold: Response ratio below which
            a heavily targeted group is flagged.
        uptake_no_exploitation_days: Days after first dissemination before an
            asset with no exploitation pathway is flagged.
        inefficient_channel_effort_hours_threshold: Effort hours above which
            a channel with zero engagement is flagged.
        objective_on_track_progress_threshold: Indicator progress ratio at or
            above which an objective is on track.
        objective_evidence_coverage_threshold: Evidence coverage ratio at or
            above which (with engagement) an objective is on track.
        meaningful_engagement_weights: Signal weights (informational).
        definitions: Free-text metric definitions.
    """

    model_config = ConfigDict(frozen=True)

    hourly_rate_default: float = Field(
        50.0, gt=0, strict=True, allow_inf_nan=False
    )
    evidence_completeness_threshold: float = Field(
        60.0, ge=0, le=100, strict=True, allow_inf_nan=False
    )
    stakeholder_high_targeting_threshold: float = Field(
        3.0, gt=0, strict=True, allow_inf_nan=False
    )
    stakeholder_low_response_ratio_threshold: float = Field(
        0.5, ge=0, le=1, strict=True, allow_inf_nan=False
    )
    uptake_no_exploitation_days: int = Field(90, gt=0)
    inefficient_channel_effort_hours_threshold: float = Field(
        20.0, gt=0, strict=True, allow_inf_nan=False
    )
    objective_on_track_progress_threshold: float = Field(
        0.8, ge=0, le=1, strict=True, allow_inf_nan=False
    )
    objective_evidence_coverage_threshold: float = Field(
        0.7, ge=0, le=1, strict=True, allow_inf_nan=False
    )
    meaningful_engagement_weights: EngagementWeights   = EngagementWeights()
    definitions:                   SettingsDefinitions = SettingsDefinitions()

    @field_validator("uptake_no_exploitation_days", mode="before")
    @classmethod
    def validate_whole_days(cls, v: Any) -> int:
        """Accept a finite number and truncate it to whole days."""
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError(f"uptake_no_exploitation_days must be a number, got {v!r}.")
        if not math.isfinite(v):
            raise ValueError(f"uptake_no_exploitation_days must be finite, got {v}.")
        return int(v)


DEFAULT_SETTINGS = DecisionSupportSettings()


# ── Field-by-field merge ──────────────────────────────────────────────────────

def _valid_fields(model: type[BaseModel], raw: dict[str, Any]) -> dict[str, Any]:
    """Keep the known keys of ``raw`` whose value validates on its own."""
    accepted: dict[str, Any] = {}
    for name, value in raw.items():
        if name not in model.model_fields:
            continue
        try:
            model.model_validate({name: value})
        except ValidationError:
            continue
        accepted[name] = value
    return accepted


def validate_settings(raw: dict[str, Any]) -> DecisionSupportSettings:
    """Merge a raw settings dict over ``DEFAULT_SETTINGS``, field by field.

    Unknown keys are ignored. Numeric fields that are missing, non-numeric,
    or out of range keep their default. ``meaningful_engagement_weights`` and
    ``definitions`` are merged key-by-key over their defaults; entries of the
    wrong type are dropped.

    Args:
        raw: Decoded settings blob.

    Returns:
        A fully populated ``DecisionSupportSettings``.
    """
    nested = {
        "meaningful_engagement_weights": EngagementWeights,
        "definitions": SettingsDefinitions,
    }
    flat = {k: v for k, v in raw.items() if k not in nested}
    accepted = _valid_fields(DecisionSupportSettings, flat)

    for name, model in nested.items():
        section = raw.get(name)
        if isinstance(section, dict):
            accepted[name] = _valid_fields(model, section)

    return DecisionSupportSettings.model_validate(accepted)
