"""
Exception hierarchy for the decision support engine.

  DecisionSupportError
  ├── EngineNotInitializedError   read operation called before ``initialize()``
  ├── StoreQueryError             a storage query failed (names operation + entity)
  └── ComputationTimeoutError     an entity or stage missed the operation deadline

Missing settings are never an error (they resolve to defaults) and missing
rows are never an error (they resolve to empty collections). Only genuine
failures reach these types.
"""

from __future__ import annotations

from typing import Optional


class DecisionSupportError(Exception):
    """Base class for all engine errors."""


class EngineNotInitializedError(DecisionSupportError):
    """Raised when a read operation runs before settings/overrides are loaded."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            f"DecisionSupportEngine.{operation}() called before initialize(); "
            "settings and overrides have not been loaded."
        )


class StoreQueryError(DecisionSupportError):
    """A storage query failed.

    Attributes:
        operation: Store method that failed, e.g. ``"list_activities"``.
        entity_type: Kind of entity the query was scoped to.
        entity_id: Id of that entity (project id for project-wide queries).
    """

    def __init__(
        self,
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        cause: Optional[BaseException] = None,
    ) -> None:
        self.operation = operation
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(
            f"Store query '{operation}' failed for {entity_type} '{entity_id}'{detail}"
        )


class ComputationTimeoutError(DecisionSupportError):
    """An entity (or a whole stage) did not finish before the operation deadline."""

    def __init__(self, operation: str, entity_id: str, timeout_seconds: float) -> None:
        self.operation = operation
        self.entity_id = entity_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"{operation} for '{entity_id}' did not finish within {timeout_seconds:g}s"
        )
