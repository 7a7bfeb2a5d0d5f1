"""
Analysis layer: derived views of a machine's history.

IMPORTANT: This is NOT seen by the engine. One-way derivation only.

- field_series: one field's value across retained records
- changed_keys: which fields each tick touched
- summarize_history: tick, retention and numeric field ranges
"""

from rulesim.analysis.trace import (
    FieldStats,
    HistorySummary,
    field_series,
    changed_keys,
    summarize_history,
)

__all__ = [
    "FieldStats",
    "HistorySummary",
    "field_series",
    "changed_keys",
    "summarize_history",
]
