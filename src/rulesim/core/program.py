"""
Programs: the resolved rule table a machine executes.

A program is plain data:
- ProgramEntry: condition + action + priority (number or function)
- InputBinding: a state key fed from an external provider every tick

ProgramBuilder assembles both explicitly; nothing is discovered by
inspecting methods or attributes at runtime.

Ordering rule: priorities are resolved once per tick, then entries run in
ascending priority. Ties keep registration order (stable sort), which is
what makes a tick deterministic.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Callable, Mapping, Optional, Sequence, TYPE_CHECKING, Union

import numpy as np

from rulesim.core.state import State

if TYPE_CHECKING:
    from rulesim.core.machine import StateMachine


Condition = Callable[[State, "StateMachine"], Any]
Action = Callable[[State, "StateMachine"], Optional[Mapping[str, Any]]]
PriorityFunction = Callable[[State, "StateMachine"], Any]
Priority = Union[Real, PriorityFunction]


@dataclass(frozen=True)
class ProgramEntry:
    """One rule: when `condition` holds, run `action`."""

    condition: Condition
    action: Action
    priority: Priority = 0  # Lower runs earlier
    name: str | None = None  # Only used in log lines

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        return getattr(self.action, "__name__", repr(self.action))


@dataclass(frozen=True)
class InputBinding:
    """
    A state key driven from outside the program.

    `source` is sampled once per tick; `transform`, when given, is applied
    to the sampled value. Actions can never override the key.
    """

    key: str
    source: Callable[[], Any]
    transform: Callable[[Any], Any] | None = None

    def sample(self) -> Any:
        value = self.source()
        if self.transform is not None:
            return self.transform(value)
        return value


@dataclass(frozen=True)
class Program:
    """Resolved program table plus its input bindings."""

    entries: tuple[ProgramEntry, ...] = ()
    inputs: tuple[InputBinding, ...] = ()

    @property
    def input_keys(self) -> frozenset[str]:
        return frozenset(binding.key for binding in self.inputs)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class ProgramBuilder:
    """
    Explicit registration of rules and inputs.

    Usage:
        builder = ProgramBuilder()
        builder.rule(lambda s, m: s["n"] < 3, lambda s, m: {"n": s["n"] + 1})

        @builder.when(lambda s, m: s["n"] >= 3, priority=-1)
        def stop(state, machine):
            machine.halt()

        builder.input("clock", read_clock)
        program = builder.build()
    """

    _entries: list[ProgramEntry] = field(default_factory=list, init=False)
    _inputs: list[InputBinding] = field(default_factory=list, init=False)

    def rule(
        self,
        condition: Condition,
        action: Action,
        priority: Priority = 0,
        name: str | None = None,
    ) -> "ProgramBuilder":
        """Register a rule. Returns the builder for chaining."""
        if not callable(condition):
            raise TypeError(f"condition must be callable, got {condition!r}")
        if not callable(action):
            raise TypeError(f"action must be callable, got {action!r}")
        self._entries.append(ProgramEntry(condition, action, priority, name))
        return self

    def when(self, condition: Condition, priority: Priority = 0, name: str | None = None):
        """Decorator form of `rule`: the decorated function is the action."""
        def register(action: Action) -> Action:
            self.rule(condition, action, priority, name)
            return action
        return register

    def input(
        self,
        key: str,
        source: Callable[[], Any],
        transform: Callable[[Any], Any] | None = None,
    ) -> "ProgramBuilder":
        """Bind `key` to an external provider."""
        if not callable(source):
            raise TypeError(f"input source for {key!r} must be callable")
        if transform is not None and not callable(transform):
            raise TypeError(f"input transform for {key!r} must be callable")
        self._inputs.append(InputBinding(key, source, transform))
        return self

    def build(self) -> Program:
        return Program(entries=tuple(self._entries), inputs=tuple(self._inputs))


def resolve_priority(priority: Priority, state: State, machine: "StateMachine") -> float:
    """
    Resolve an entry's priority for this tick.

    Function priorities are called with (state, machine). Anything that
    isn't a usable number (None, NaN, strings that don't parse) becomes 0.
    """
    value = priority(state, machine) if callable(priority) else priority
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if np.isnan(value):
        return 0.0
    return value


def order_entries(
    entries: Sequence[ProgramEntry],
    state: State,
    machine: "StateMachine",
) -> list[ProgramEntry]:
    """
    Return entries sorted ascending by resolved priority.

    Ties keep registration order.
    """
    if not entries:
        return []
    priorities = np.array(
        [resolve_priority(entry.priority, state, machine) for entry in entries],
        dtype=np.float64,
    )
    order = np.argsort(priorities, kind="stable")
    return [entries[i] for i in order]


def merge_programs(preferred: Program, other: Program) -> Program:
    """
    Union of two programs.

    Entries sharing the same condition callable collapse into one; the
    preferred program's entry wins but keeps the slot of the first
    registration. Input bindings collapse the same way by key.
    """
    table: dict[Any, ProgramEntry] = {}
    for entry in other.entries + preferred.entries:
        table[entry.condition] = entry

    bindings: dict[str, InputBinding] = {}
    for binding in other.inputs + preferred.inputs:
        bindings[binding.key] = binding

    return Program(entries=tuple(table.values()), inputs=tuple(bindings.values()))
