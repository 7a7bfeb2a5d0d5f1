"""
StateMachine: the execution engine.

One tick:
1. Seed history on the very first tick
2. Resolve priorities against the current snapshot and order the rules
3. Evaluate rules in order; firing actions stage writes into the pending state
4. Commit the pending state as the next snapshot
5. If nothing fired, the machine is inert and halts on that snapshot

Conditions and actions see the snapshot the tick started from, but they
also see the live machine. An action may halt the machine (later rules
are skipped, the tick still commits) or rewind its history (the rest of
the tick is abandoned and nothing is committed).
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Literal, Mapping, Optional, Sequence, Union

from rulesim.core.history import HistoryStore
from rulesim.core.program import (
    InputBinding,
    Program,
    ProgramEntry,
    merge_programs,
    order_entries,
)
from rulesim.core.state import State, freeze, merge

logger = logging.getLogger(__name__)


class PriorityResolutionError(RuntimeError):
    """A priority function halted the machine or rewound its history."""


@dataclass
class MachineConfig:
    """Configuration for a state machine."""

    history_limit: float = math.inf  # Max retained records (clamped to >= 1)
    name: str = "machine"  # Prefix for log lines


StateCombiner = Callable[..., Mapping[str, Any]]


class StateMachine:
    """
    Rule-based state machine over a single state mapping.

    Usage:
        builder = ProgramBuilder()
        builder.rule(lambda s, m: True, lambda s, m: {"counter": s["counter"] + 1})
        machine = StateMachine(builder.build(), {"counter": 0})
        machine.step()  # → 1
    """

    def __init__(
        self,
        program: Union[Program, Sequence[ProgramEntry]],
        initial_state: Optional[Mapping[str, Any]] = None,
        inputs: Sequence[InputBinding] = (),
        config: MachineConfig | None = None,
    ):
        if not isinstance(program, Program):
            program = Program(entries=tuple(program), inputs=tuple(inputs))
        elif inputs:
            program = Program(entries=program.entries, inputs=program.inputs + tuple(inputs))

        self.config = config or MachineConfig()
        self._program = program
        self._exit_state: State | None = None
        self._history = HistoryStore(
            initial_state,
            program.inputs,
            limit=self.config.history_limit,
        )

    @property
    def program(self) -> Program:
        return self._program

    @property
    def history(self) -> HistoryStore:
        return self._history

    @property
    def exit_state(self) -> State | None:
        """State at program exit, or None while the machine is running."""
        return self._exit_state

    @property
    def finished(self) -> bool:
        return self._exit_state is not None

    # ═══════════════════════════════════════════════════════════════
    # EXECUTION
    # ═══════════════════════════════════════════════════════════════

    def step(self, self_halt: bool = True) -> int:
        """
        Advance a single tick.

        Args:
            self_halt: Set the exit state when no rule fires this tick.

        Returns:
            Number of actions fired. A tick aborted by a rewind always
            reports at least 1, so callers never mistake it for quiescence.
        """
        history = self._history
        history.seed()

        tick_at_start = history.tick
        generation_at_start = history.generation
        state = history.current_state
        exit_at_start = self._exit_state

        ordered = order_entries(self._program.entries, state, self)
        if (
            history.tick != tick_at_start
            or history.generation != generation_at_start
            or self._exit_state is not exit_at_start
        ):
            raise PriorityResolutionError(
                f"{self.config.name}: priority functions must not halt the machine "
                f"or rewind its history (tick {tick_at_start})"
            )

        def rewound() -> bool:
            return self._exit_state is None and (
                history.tick != tick_at_start
                or history.generation != generation_at_start
            )

        fired = 0
        for entry in ordered:
            if rewound():
                return self._abort(tick_at_start, fired)
            if self._exit_state is not None:
                break
            if entry.condition(state, self):
                partial = entry.action(state, self)
                if partial:
                    history.stage(partial)
                fired += 1
        if rewound():
            return self._abort(tick_at_start, fired)

        committed = history.commit()
        if fired == 0 and self_halt:
            logger.debug("%s: no rule fired at tick %d, halting", self.config.name, history.tick)
            self._exit_state = committed
        return fired

    def _abort(self, tick: int, fired: int) -> int:
        logger.debug(
            "%s: history rewound during tick %d, abandoning it after %d action(s)",
            self.config.name, tick, fired,
        )
        return max(1, fired)

    def run(self, keep_alive: bool = False, max_ticks: int | None = None) -> State:
        """
        Step until the machine exits.

        Args:
            keep_alive: Keep stepping through ticks where nothing fires; only
                        an explicit `halt()` (or `max_ticks`) ends the run.
            max_ticks: Optional cap on the number of steps taken by this call.

        Returns:
            The exit state if the machine exited, else the current state.
        """
        steps = 0
        while self._exit_state is None:
            if max_ticks is not None and steps >= max_ticks:
                break
            self.step(self_halt=not keep_alive)
            steps += 1

        reason = "halted" if self._exit_state is not None else "tick cap reached"
        logger.info(
            "%s: run finished after %d step(s) at tick %d (%s)",
            self.config.name, steps, self._history.tick, reason,
        )
        if self._exit_state is not None:
            return self._exit_state
        return self._history.current_state

    # ═══════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════

    def reset(self, initial_state: Optional[Mapping[str, Any]] = None) -> None:
        """Return to the initial state, optionally with a new one."""
        self._exit_state = None
        self._history.reset(initial_state)

    def halt(self, exit_state: Optional[Mapping[str, Any]] = None) -> None:
        """
        Signal program completion.

        A partial `exit_state` is merged over the current state; without
        one the current state is captured as is. Calling again overwrites.
        """
        if exit_state:
            self._exit_state = merge(self._history.current_state, exit_state)
        elif self._history.records:
            self._exit_state = self._history.current_state
        else:
            # Nothing committed yet: copy, the pending state keeps changing
            self._exit_state = freeze(self._history.current_state)
        logger.debug("%s: halted at tick %d", self.config.name, self._history.tick)

    def recombine(
        self,
        other: "StateMachine",
        precedence: Literal["self", "other"] = "self",
        initial_state: Union[Mapping[str, Any], StateCombiner, Literal["initial", "current"]] = "initial",
    ) -> "StateMachine":
        """
        Combine this machine with another one.

        Shared state fields may cause emergent behaviour, and a `halt()`
        from either parent's rules ends the child for both.

        Args:
            other: Machine to combine with
            precedence: Which machine wins conflicting rules, inputs and
                        state fields
            initial_state: "initial" or "current" to merge the parents'
                           states, an explicit state, or a combiner called as
                           combiner(first=, second=, precedence="first"|"second")

        Returns:
            A new machine exhibiting both parents' behaviour
        """
        if precedence not in ("self", "other"):
            raise ValueError(f"Unknown precedence: {precedence}")
        preferred, secondary = (self, other) if precedence == "self" else (other, self)

        if callable(initial_state):
            state = initial_state(
                first=self,
                second=other,
                precedence="first" if precedence == "self" else "second",
            )
        elif initial_state == "initial":
            state = merge(secondary.history.initial_state, preferred.history.initial_state)
        elif initial_state == "current":
            state = merge(secondary.history.current_state, preferred.history.current_state)
        elif isinstance(initial_state, Mapping):
            state = initial_state
        else:
            raise ValueError(f"Unknown initial state mode: {initial_state!r}")

        config = MachineConfig(
            history_limit=self.config.history_limit,
            name=f"{self.config.name}+{other.config.name}",
        )
        return StateMachine(merge_programs(preferred._program, secondary._program), state, config=config)
