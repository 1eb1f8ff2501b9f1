"""Core (UI-agnostic) dashboard tile engine.

This package contains:
- value normalization and the filter model (JSON config -> Leaf/And/Or nodes)
- the filter compiler with its identity-keyed matcher cache
- record evaluation (filters, drill-down pairs, reporting windows)
- tile aggregation and assembly (JSON-serializable tile payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
