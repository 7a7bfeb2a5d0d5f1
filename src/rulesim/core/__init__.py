"""
Core engine primitives.

This layer knows NOTHING about what a program means. It only knows:
- States: immutable field mappings
- Programs: ordered (condition, action, priority) rules plus input bindings
- History: committed snapshots, the pending tick, rewind
- The machine: running rules tick by tick until nothing fires

Derived views (series, summaries, plots) live in rulesim.analysis and
rulesim.viz and never feed back into the engine.
"""

from rulesim.core.state import State, freeze, merge
from rulesim.core.program import (
    ProgramEntry,
    InputBinding,
    Program,
    ProgramBuilder,
    resolve_priority,
    order_entries,
    merge_programs,
)
from rulesim.core.history import HistoryStore
from rulesim.core.machine import StateMachine, MachineConfig, PriorityResolutionError

__all__ = [
    "State",
    "freeze",
    "merge",
    "ProgramEntry",
    "InputBinding",
    "Program",
    "ProgramBuilder",
    "resolve_priority",
    "order_entries",
    "merge_programs",
    "HistoryStore",
    "StateMachine",
    "MachineConfig",
    "PriorityResolutionError",
]
