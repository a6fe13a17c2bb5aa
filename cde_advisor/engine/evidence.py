"""
Evidence completeness scoring for a single activity.

Score components (capped at 100):
  +40  at least one evidence item is attached
  +30  an item's type suits the activity's domain
       (dissemination: photo/video; communication: document/screenshot)
  +30  an item has an evidence date plus context or a source URL

Exploitation activities have no domain-specific evidence type, so they top
out at 70.
"""

from __future__ import annotations

from typing import Sequence

from cde_advisor.models.project import EvidenceItem
from cde_advisor.taxonomy.cde_taxonomy import ActivityDomain

ANY_EVIDENCE_POINTS   = 40
DOMAIN_TYPE_POINTS    = 30
METADATA_POINTS       = 30
MAX_SCORE             = 100

DOMAIN_EVIDENCE_TYPES: dict[ActivityDomain, frozenset[str]] = {
    ActivityDomain.DISSEMINATION: frozenset({"photo", "video"}),
    ActivityDomain.COMMUNICATION: frozenset({"document", "screenshot"}),
}


def score_evidence_completeness(
    domain: ActivityDomain,
    evidence_items: Sequence[EvidenceItem],
) -> int:
    """Score how well ``evidence_items`` document an activity of ``domain``.

    Args:
        domain: The activity's C/D/E domain.
        evidence_items: Evidence attached to the activity.

    Returns:
        Integer score in [0, 100]; 0 when nothing is attached.
    """
    if not evidence_items:
        return 0

    score = ANY_EVIDENCE_POINTS

    expected_types = DOMAIN_EVIDENCE_TYPES.get(domain, frozenset())
    if any(item.evidence_type in expected_types for item in evidence_items):
        score += DOMAIN_TYPE_POINTS

    if any(item.has_complete_metadata for item in evidence_items):
        score += METADATA_POINTS

    return min(score, MAX_SCORE)
