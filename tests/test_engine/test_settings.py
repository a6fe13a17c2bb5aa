"""
Tests for cde_advisor/engine/settings.py.

What we test
------------
resolve_settings():
  - None / empty string → DEFAULT_SETTINGS.
  - Dict blob → validated field by field; valid siblings survive an invalid field.
  - JSON text blob is decoded; malformed JSON → defaults.
  - Non-dict JSON (list, number) → defaults.

load_settings():
  - Missing project or missing blob → defaults.
  - Stored blob round-trips through the store.
  - Store failure (missing tables) → defaults, never raises.
"""

from __future__ import annotations

import sqlite3

from cde_advisor.engine.errors import StoreQueryError
from cde_advisor.engine.settings import load_settings, resolve_settings
from cde_advisor.engine.store import SqliteProjectStore
from cde_advisor.models.settings import DEFAULT_SETTINGS


# ── Helpers ───────────────────────────────────────────────────────────────────

class _FailingStore:
    def get_project_settings_blob(self, project_id: str):
        raise StoreQueryError("get_project_settings_blob", "project", project_id)


class TestResolveSettings:
    def test_none_is_default(self):
        assert resolve_settings(None) == DEFAULT_SETTINGS

    def test_empty_string_is_default(self):
        assert resolve_settings("") == DEFAULT_SETTINGS

    def test_dict_blob_overrides_fields(self):
        settings = resolve_settings({"hourly_rate_default": 80, "evidence_completeness_threshold": 75})
        assert settings.hourly_rate_default == 80
        assert settings.evidence_completeness_threshold == 75
        assert settings.uptake_no_exploitation_days == 90

    def test_invalid_field_keeps_valid_sibling(self):
        settings = resolve_settings(
            {"hourly_rate_default": -5, "objective_on_track_progress_threshold": 0.9}
        )
        assert settings.hourly_rate_default == 50
        assert settings.objective_on_track_progress_threshold == 0.9

    def test_json_text_is_decoded(self):
        settings = resolve_settings('{"stakeholder_high_targeting_threshold": 5}')
        assert settings.stakeholder_high_targeting_threshold == 5

    def test_malformed_json_is_default(self):
        assert resolve_settings("{not json") == DEFAULT_SETTINGS

    def test_json_list_is_default(self):
        assert resolve_settings("[1, 2, 3]") == DEFAULT_SETTINGS

    def test_non_dict_object_is_default(self):
        assert resolve_settings(42) == DEFAULT_SETTINGS


class TestLoadSettings:
    def test_missing_project_is_default(self, in_memory_db):
        store = SqliteProjectStore(in_memory_db)
        assert load_settings(store, "nope") == DEFAULT_SETTINGS

    def test_project_without_blob_is_default(self, seed, in_memory_db):
        store = SqliteProjectStore(in_memory_db)
        assert load_settings(store, seed.project_id) == DEFAULT_SETTINGS

    def test_stored_blob_is_resolved(self, seed, in_memory_db):
        seed.project(settings_json={"hourly_rate_default": 120}, project_id="p2")
        settings = load_settings(SqliteProjectStore(in_memory_db), "p2")
        assert settings.hourly_rate_default == 120
        assert settings.evidence_completeness_threshold == 60

    def test_store_failure_is_default(self):
        assert load_settings(_FailingStore(), "p1") == DEFAULT_SETTINGS

    def test_missing_tables_resolve_to_default(self):
        conn = sqlite3.connect(":memory:")
        conn.row_factory = sqlite3.Row
        try:
            assert load_settings(SqliteProjectStore(conn), "p1") == DEFAULT_SETTINGS
        finally:
            conn.close()
