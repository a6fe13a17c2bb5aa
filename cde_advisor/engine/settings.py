"""
Settings resolver: turns whatever the store holds into usable thresholds.

Downstream math must always have thresholds, so resolution never fails:

  - project missing / blob missing or empty   → ``DEFAULT_SETTINGS``
  - blob is JSON text that does not decode    → ``DEFAULT_SETTINGS`` (warning)
  - blob decodes to something other than dict → ``DEFAULT_SETTINGS`` (warning)
  - store query fails                         → ``DEFAULT_SETTINGS`` (warning)
  - otherwise                                 → field-by-field ``validate_settings()``
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from cde_advisor.engine.errors import StoreQueryError
from cde_advisor.models.settings import (
    DEFAULT_SETTINGS,
    DecisionSupportSettings,
    validate_settings,
)

if TYPE_CHECKING:
    from cde_advisor.engine.store import ProjectStore

logger = logging.getLogger(__name__)


def resolve_settings(blob: Any) -> DecisionSupportSettings:
    """Resolve a raw settings blob (dict, JSON text, or ``None``) to settings."""
    if blob is None or blob == "":
        return DEFAULT_SETTINGS

    raw = blob
    if isinstance(blob, (str, bytes)):
        try:
            raw = json.loads(blob)
        except (TypeError, ValueError) as exc:
            logger.warning("Settings blob is not valid JSON, using defaults: %s", exc)
            return DEFAULT_SETTINGS

    if not isinstance(raw, dict):
        logger.warning(
            "Settings blob is a %s, not an object; using defaults.", type(raw).__name__
        )
        return DEFAULT_SETTINGS

    return validate_settings(raw)


def load_settings(store: "ProjectStore", project_id: str) -> DecisionSupportSettings:
    """Load and resolve a project's settings. Never raises.

    Args:
        store: Storage query capability.
        project_id: Project whose settings blob to read.

    Returns:
        A fully populated ``DecisionSupportSettings``.
    """
    try:
        blob = store.get_project_settings_blob(project_id)
    except StoreQueryError as exc:
        logger.warning("Could not load settings for project %s, using defaults: %s", project_id, exc)
        return DEFAULT_SETTINGS

    settings = resolve_settings(blob)
    logger.debug("Settings resolved | project=%s | %s", project_id, settings.model_dump())
    return settings
