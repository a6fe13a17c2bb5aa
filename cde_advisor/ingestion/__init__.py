"""
Ingestion layer — seeding project facts into the local SQLite store.

Submodules:
  fixture_loader    — validated JSON fixture documents → repository inserts
"""
