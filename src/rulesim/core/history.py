"""
History store: the committed snapshot log behind a machine.

The store owns:
- records: committed snapshots, oldest first, capped at `limit`
- the pending state: mutable accumulator for the tick in progress
- tick: number of commits since the last full reset
- generation: number of rewinds performed (lets the engine notice a
  rewind even when it leaves `tick` where it was)

Every pending tick starts as a copy of the latest record overlaid with
freshly sampled inputs. Inputs are applied last, and staged writes to
input keys are dropped, so an input key always holds that tick's sample.
"""

from __future__ import annotations
import logging
import math
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

from rulesim.core.program import InputBinding
from rulesim.core.state import State, freeze, merge, strip_keys

logger = logging.getLogger(__name__)


class HistoryStore:
    """
    Append-only, bounded log of committed states with rewind support.

    The initial state is the supplied value merged with a first collection
    of inputs; nothing is committed until `seed()` or `commit()` is called.
    """

    def __init__(
        self,
        initial_state: Optional[Mapping[str, Any]] = None,
        inputs: Sequence[InputBinding] = (),
        limit: float = math.inf,
    ):
        self._inputs: tuple[InputBinding, ...] = tuple(inputs)
        self._input_keys = frozenset(binding.key for binding in self._inputs)
        self._limit: float = math.inf
        self._records: list[State] = []
        self._tick = 0
        self._generation = 0

        self._initial_state: State = merge(initial_state or {}, self.collect_inputs())
        self._pending: dict[str, Any] = dict(self._initial_state)

        self.limit = limit

    # ═══════════════════════════════════════════════════════════════
    # READ-ONLY VIEW
    # ═══════════════════════════════════════════════════════════════

    @property
    def records(self) -> tuple[State, ...]:
        """Committed snapshots, oldest first."""
        return tuple(self._records)

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def generation(self) -> int:
        """Number of rewinds performed since construction."""
        return self._generation

    @property
    def initial_state(self) -> State:
        return self._initial_state

    @property
    def current_state(self) -> State:
        """Last committed record, or the pending state before the first commit."""
        if self._records:
            return self._records[-1]
        return MappingProxyType(self._pending)

    @property
    def next_state(self) -> State:
        """Read-only view of the pending state."""
        return MappingProxyType(self._pending)

    @property
    def input_keys(self) -> frozenset[str]:
        return self._input_keys

    @property
    def limit(self) -> float:
        """Maximum number of retained records."""
        return self._limit

    @limit.setter
    def limit(self, limit: float):
        if limit < 1:
            limit = 1
        self._limit = limit
        self._trim()

    # ═══════════════════════════════════════════════════════════════
    # REWIND
    # ═══════════════════════════════════════════════════════════════

    def rewind(self, n: float = math.inf, mutate: Optional[Mapping[str, Any]] = None) -> None:
        """
        Rewind time by `n` ticks.

        Drops the `n` newest records. If that would leave nothing (or `n`
        is unbounded) history is reset to the initial state instead.

        A partial state passed as `mutate` is merged into the rewound
        current record, bringing information back from the future.
        Input keys are stripped from it.

        Any tick in progress is aborted: the pending state is rebuilt.
        """
        if n < 0:
            raise ValueError(f"Cannot rewind by a negative number of ticks: {n}")

        if math.isfinite(n) and n < len(self._records):
            n = int(n)
            if n:
                del self._records[-n:]
            self._tick -= n
        else:
            self._records.clear()
            self._tick = 0
            self._records.append(self._initial_state)

        if mutate:
            self._records[-1] = merge(self._records[-1], strip_keys(mutate, self._input_keys))

        self._generation += 1
        logger.debug(
            "Rewound %s tick(s): tick=%d, %d record(s) retained",
            n, self._tick, len(self._records),
        )
        self.begin_pending_tick()

    def clear(self) -> None:
        """Rewind to the beginning."""
        self.rewind(math.inf)

    def reset(self, initial_state: Optional[Mapping[str, Any]] = None) -> None:
        """Full rewind, optionally replacing the initial state first."""
        if initial_state is not None:
            self._initial_state = merge(initial_state, self.collect_inputs())
        self.clear()

    # ═══════════════════════════════════════════════════════════════
    # TICK MECHANICS
    # ═══════════════════════════════════════════════════════════════

    def stage(self, partial: Mapping[str, Any]) -> State:
        """Merge a partial state into the pending tick. Input keys are dropped."""
        protected = self._input_keys.intersection(partial)
        if protected:
            logger.debug("Ignoring writes to input keys: %s", sorted(protected))
        self._pending.update(strip_keys(partial, protected))
        return self.next_state

    def seed(self) -> bool:
        """
        Push the pending state as the first record without counting a tick.

        Returns False if history already holds records.
        """
        if self._records:
            return False
        self._records.append(freeze(self._pending))
        logger.debug("Seeded history with the initial state")
        self.begin_pending_tick()
        return True

    def commit(self) -> State:
        """Commit the pending state and begin the next tick."""
        record = freeze(self._pending)
        self._records.append(record)
        self._trim()
        self.begin_pending_tick()
        self._tick += 1
        logger.debug("Committed tick %d", self._tick)
        return record

    def begin_pending_tick(self) -> State:
        """Pending state = latest record overlaid with fresh inputs."""
        base = self._records[-1] if self._records else self._initial_state
        self._pending = dict(base)
        self._pending.update(self.collect_inputs())
        return self.next_state

    def collect_inputs(self) -> dict[str, Any]:
        """Sample every input binding."""
        return {binding.key: binding.sample() for binding in self._inputs}

    def _trim(self):
        excess = len(self._records) - self._limit
        if excess > 0:
            del self._records[:math.ceil(excess)]
