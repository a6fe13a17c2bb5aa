"""
Report assembly and JSON export.

``build_report()`` runs every engine operation once and gathers the results
into one JSON-ready dict. ``export_to_json()`` writes any dict or list to
disk and returns the written ``Path``.

Per-entity failures are carried into the report under each section's
``failures`` key rather than dropped, so a partial report says what is
missing.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cde_advisor.utils.time_utils import utcnow

if TYPE_CHECKING:
    from cde_advisor.engine.service import DecisionSupportEngine
    from cde_advisor.models.results import EngineResult


def result_to_json(result: "EngineResult[Any]") -> dict[str, Any]:
    """``{"items": [...], "failures": [...]}`` with JSON-safe values."""
    return result.model_dump(mode="json")


def build_report(engine: "DecisionSupportEngine") -> dict[str, Any]:
    """Run every engine operation and collect the results.

    Args:
        engine: An initialized engine.

    Returns:
        Dict with report metadata, the resolved settings, and one section per
        operation.
    """
    derived = engine.derived_metrics()
    return {
        "project_id":   engine.project_id,
        "period_id":    engine.period_id,
        "date_range":   (
            {
                "start": engine.date_range.start.isoformat(),
                "end": engine.date_range.end.isoformat(),
            }
            if engine.date_range
            else None
        ),
        "generated_at": utcnow().isoformat(),
        "settings":     engine.settings.model_dump(mode="json"),
        "channel_effectiveness":      result_to_json(engine.channel_effectiveness()),
        "stakeholder_responsiveness": result_to_json(engine.stakeholder_responsiveness()),
        "objective_diagnostics":      result_to_json(engine.objective_diagnostics()),
        "derived_metrics": {
            "metrics":  derived.items[0].model_dump(mode="json") if derived.items else None,
            "failures": [f.model_dump(mode="json") for f in derived.failures],
        },
        "recommendation_flags": result_to_json(engine.recommendation_flags()),
    }


def export_to_json(
    data: dict | list,
    path: Path,
) -> Path:
    """Write ``data`` to a pretty-printed JSON file.

    Args:
        data: Dict or list to serialise.
        path: Destination file path (parent dirs created if missing).

    Returns:
        ``path`` as written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
    return path
