"""
Decision support engine: metrics, objective health, and recommendation flags.

Modules
-------
service         — DecisionSupportEngine façade (initialize + read operations)
store           — ProjectStore protocol and the SQLite-backed implementation
settings        — per-project settings resolution (never fails, defaults)
overrides       — immutable override index keyed by flag identity
fanout          — bounded per-entity thread-pool fan-out with timeouts
effectiveness   — channel cost / reach / engagement
responsiveness  — stakeholder group response ratios
objectives      — objective classification and gap diagnoses
derived         — portfolio ratios and uptake lag
flags           — recommendation flag builders and severity sort
evidence        — evidence completeness scoring
filters         — DateRange / ActivityFilters and query construction
errors          — exception hierarchy
"""
