"""
Derived views over committed history.

One-way: these functions read records and never touch the engine.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from numbers import Real
from typing import TYPE_CHECKING, Sequence

import numpy as np

from rulesim.core.state import State

if TYPE_CHECKING:
    from rulesim.core.history import HistoryStore


_MISSING = object()


@dataclass
class FieldStats:
    """Range of a numeric field over the retained records."""

    minimum: float
    maximum: float
    final: float


@dataclass
class HistorySummary:
    """Snapshot of a history store for reporting."""

    tick: int
    retained: int
    limit: float
    fields: list[str]
    numeric: dict[str, FieldStats] = field(default_factory=dict)

    @property
    def first_tick(self) -> int:
        """Tick number of the oldest retained record."""
        if self.retained == 0:
            return 0
        return max(0, self.tick - self.retained + 1)


def field_series(
    records: Sequence[State],
    key: str,
    default: float = np.nan,
) -> np.ndarray:
    """
    Value of `key` in each record, as a float array.

    Records without the key contribute `default`.

    Raises:
        ValueError: if a value is not numeric
    """
    values = np.full(len(records), default, dtype=np.float64)
    for i, record in enumerate(records):
        value = record.get(key, _MISSING)
        if value is _MISSING:
            continue
        if not isinstance(value, Real):
            raise ValueError(f"Field {key!r} is not numeric at record {i}: {value!r}")
        values[i] = float(value)
    return values


def changed_keys(records: Sequence[State]) -> list[frozenset[str]]:
    """
    Keys whose value changed between consecutive records.

    One entry per transition, so len(result) == len(records) - 1.
    Keys that appear or disappear count as changed.
    """
    changes = []
    for before, after in zip(records, records[1:]):
        keys = set(before) | set(after)
        changes.append(frozenset(
            k for k in keys
            if before.get(k, _MISSING) != after.get(k, _MISSING)
        ))
    return changes


def summarize_history(history: "HistoryStore") -> HistorySummary:
    """Summarize what a history store currently retains."""
    records = history.records
    fields = sorted({k for record in records for k in record})

    numeric = {}
    for key in fields:
        present = [record[key] for record in records if key in record]
        if present and all(isinstance(v, Real) for v in present):
            series = np.array(present, dtype=np.float64)
            numeric[key] = FieldStats(
                minimum=float(series.min()),
                maximum=float(series.max()),
                final=float(series[-1]),
            )

    return HistorySummary(
        tick=history.tick,
        retained=len(records),
        limit=history.limit,
        fields=fields,
        numeric=numeric,
    )
