"""
Taxonomy for communication, dissemination and exploitation (C/D/E) work.

Dimensions used throughout the decision support engine:
  - ``ActivityDomain``  — which C/D/E bucket an activity or objective belongs to.
  - ``ObjectiveStatus`` — health classification of an objective.
  - ``FlagSeverity``    — urgency of a recommendation flag (ranked).
  - ``FlagCode``        — the kind of recommendation flag.
  - ``EntityType``      — the entity a flag (and its override) is attached to.
  - ``OverrideStatus``  — user disposition recorded on a flag override.
  - ``EngagementKind``  — the two signal kinds that count as meaningful engagement.

This module has NO imports from any other ``cde_advisor`` package.
"""

from enum import StrEnum


class ActivityDomain(StrEnum):
    """C/D/E domain of an activity or objective."""

    COMMUNICATION = "communication"
    """Raising awareness and sharing progress with stakeholder groups."""

    DISSEMINATION = "dissemination"
    """Making results reach and be accessible to the audiences that can use them."""

    EXPLOITATION = "exploitation"
    """Uptake, commercialisation, or integration of results into practice."""


# Domains whose activities are public-facing and must carry evidence.
PUBLIC_DOMAINS: frozenset[ActivityDomain] = frozenset({
    ActivityDomain.COMMUNICATION,
    ActivityDomain.DISSEMINATION,
})

COMPLETED_STATUS = "completed"


class ObjectiveStatus(StrEnum):
    """Per-objective health classification (recomputed on every call)."""

    ON_TRACK = "On track"
    AT_RISK  = "At risk"
    BLOCKED  = "Blocked"


class FlagSeverity(StrEnum):
    """Recommendation flag severity, most urgent first."""

    HIGH = "high"
    WARN = "warn"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Sort rank: high=0, warn=1, info=2."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: dict[str, int] = {
    "high": 0,
    "warn": 1,
    "info": 2,
}


class FlagCode(StrEnum):
    """Kinds of recommendation flags the engine can raise."""

    OBJECTIVE_BLOCKED     = "objective_blocked"
    OBJECTIVE_AT_RISK     = "objective_at_risk"
    ASSET_NO_EXPLOITATION = "asset_no_exploitation"
    CHANNEL_INEFFICIENT   = "channel_inefficient"
    ACTIVITY_EVIDENCE_GAP = "activity_evidence_gap"


class EntityType(StrEnum):
    """Entity kinds a flag can refer to."""

    OBJECTIVE = "objective"
    ASSET     = "asset"
    CHANNEL   = "channel"
    ACTIVITY  = "activity"


class OverrideStatus(StrEnum):
    """User disposition stored on a flag override."""

    OPEN           = "open"
    ACKNOWLEDGED   = "acknowledged"
    NOT_APPLICABLE = "not_applicable"
    FALSE_POSITIVE = "false_positive"
    RESOLVED       = "resolved"


class EngagementKind(StrEnum):
    """Engagement signals linked to an activity; both count identically."""

    SURVEY_RESPONSE     = "survey_response"
    QUALITATIVE_OUTCOME = "qualitative_outcome"
