"""Core (UI-agnostic) dashboard logic.

This package contains:
- data loading (database tables -> pandas) and the cross-entity filter cascade
- filter state, include/exclude matching and live option counts
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict), exports, map clusters
- saved filter persistence
"""
