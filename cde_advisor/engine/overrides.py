"""
Override index: constant-time lookup of user overrides by flag identity.

The index is built once at engine initialization and handed to the flag
generator as an explicit, read-only dependency. It is never mutated after
construction, so worker threads may read it without locking.

Key format: ``"{entity_type}-{entity_id}-{flag_code}"``. When two rows share
a key, the later row (in store order) wins.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterable, Iterator, Mapping, Optional

from cde_advisor.models.results import FlagOverride

if TYPE_CHECKING:
    from cde_advisor.engine.store import ProjectStore

logger = logging.getLogger(__name__)


def override_key(entity_type: str, entity_id: str, flag_code: str) -> str:
    """Deterministic string key for an (entity_type, entity_id, flag_code) triple."""
    return f"{entity_type}-{entity_id}-{flag_code}"


class OverrideIndex(Mapping[str, FlagOverride]):
    """Immutable mapping of override key → ``FlagOverride``."""

    def __init__(self, entries: Optional[Mapping[str, FlagOverride]] = None) -> None:
        self._entries: Mapping[str, FlagOverride] = MappingProxyType(dict(entries or {}))

    def __getitem__(self, key: str) -> FlagOverride:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, entity_type: str, entity_id: str, flag_code: str) -> Optional[FlagOverride]:
        """Return the override for a flag, or ``None`` (the common case)."""
        return self._entries.get(override_key(entity_type, entity_id, flag_code))


def build_override_index(rows: Iterable[FlagOverride]) -> OverrideIndex:
    """Index override rows by key; later rows replace earlier ones."""
    entries: dict[str, FlagOverride] = {}
    for row in rows:
        entries[override_key(row.entity_type, row.entity_id, row.flag_code)] = row
    return OverrideIndex(entries)


def load_override_index(
    store: "ProjectStore",
    project_id: str,
    period_id: Optional[str] = None,
) -> OverrideIndex:
    """Fetch a project's overrides (optionally one period's) and index them.

    Raises:
        StoreQueryError: If the override query fails.
    """
    rows = store.list_flag_overrides(project_id, period_id)
    index = build_override_index(rows)
    logger.info(
        "Override index loaded | project=%s | period=%s | overrides=%d",
        project_id, period_id or "-", len(index),
    )
    return index
