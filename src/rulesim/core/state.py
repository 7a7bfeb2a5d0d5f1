"""
State snapshots.

A state is a plain field-name → value mapping. Committed snapshots are
read-only views over a private dict copy, so nothing that holds a
reference to one can change it. New states are produced by merging
partial states over an existing one (merge-on-write); the merged
mappings are never touched.
"""

from __future__ import annotations
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

# Read-only field mapping. Committed records and exit states are always States.
State = Mapping[str, Any]


def freeze(values: Optional[Mapping[str, Any]] = None) -> State:
    """Return an immutable snapshot of `values` (copied, never aliased)."""
    return MappingProxyType(dict(values or {}))


def merge(base: Mapping[str, Any], *overlays: Optional[Mapping[str, Any]]) -> State:
    """
    Merge partial states over `base`, later overlays winning.

    None overlays are skipped. Returns a new frozen snapshot.
    """
    merged = dict(base)
    for overlay in overlays:
        if overlay:
            merged.update(overlay)
    return MappingProxyType(merged)


def strip_keys(partial: Mapping[str, Any], keys: Iterable[str]) -> dict[str, Any]:
    """Copy of `partial` without `keys`."""
    protected = set(keys)
    return {k: v for k, v in partial.items() if k not in protected}
