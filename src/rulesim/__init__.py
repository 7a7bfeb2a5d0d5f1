"""
rulesim: a tick-driven, rule-based state machine engine

A program is a table of (condition, action, priority) rules evaluated
against a single state once per discrete tick.

Core concepts:
- Conditions gate actions
- Firing actions stage partial writes into the pending next state
- Every tick commits a new immutable snapshot to the history
- Input bindings are re-sampled every tick and cannot be overwritten
- A tick where nothing fires halts the machine

History can be rewound (optionally carrying a mutation back in time),
which aborts whatever is left of the tick in progress.
"""

__version__ = "0.1.0"
