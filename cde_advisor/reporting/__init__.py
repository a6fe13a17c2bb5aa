"""
cde_advisor.reporting — Report assembly and JSON export.

Runs the engine operations for one project and writes the combined results
to a JSON file for downstream tools.
"""
