"""Core (UI-agnostic) operations dashboard logic.

This package contains:
- role resolution and capabilities
- view selection per (role, page)
- calendar-day window classification
- filter normalization and the filter pipeline
- aggregations over entity frames
- the per-view state reducer
- data snapshot loading (JSON -> pandas)
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
