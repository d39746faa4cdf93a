"""Catalog dashboard engine (UI-agnostic).

This package contains:
- schema registry and field coercion (front matter -> typed items)
- the query engine, statistics and status-group ordering
- document sources and the reactive loader (revision + items snapshots)
- settings/presets and dashboard compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
