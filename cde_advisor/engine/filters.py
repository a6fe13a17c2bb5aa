"""
Caller-facing filters and their translation into store queries.

``DateRange`` is fixed per engine instance; ``ActivityFilters`` are passed
per call. Both only ever narrow the activity set.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from cde_advisor.db.repositories.activity_repo import ActivityQuery
from cde_advisor.taxonomy.cde_taxonomy import ActivityDomain


@dataclass(frozen=True)
class DateRange:
    """Inclusive window applied to activity ``end_date``.

    Raises:
        ValueError: If ``end`` precedes ``start``.
    """

    start: date
    end:   date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"DateRange end ({self.end}) must be >= start ({self.start}).")


@dataclass(frozen=True)
class ActivityFilters:
    """Optional per-call narrowing for channel and stakeholder metrics."""

    domain:               Optional[ActivityDomain] = None
    stakeholder_group_id: Optional[str] = None


def activity_query(
    date_range: Optional[DateRange] = None,
    domain: Optional[ActivityDomain] = None,
    **scope: object,
) -> ActivityQuery:
    """Build an ``ActivityQuery`` with the engine's date window applied.

    Args:
        date_range: Engine date window, or ``None`` for all time.
        domain: Single-domain restriction.
        **scope: Remaining ``ActivityQuery`` fields (``channel_id=...`` etc.).
    """
    return ActivityQuery(
        start_date=date_range.start if date_range else None,
        end_date=date_range.end if date_range else None,
        domains=(domain,) if domain is not None else None,
        **scope,  # type: ignore[arg-type]
    )
