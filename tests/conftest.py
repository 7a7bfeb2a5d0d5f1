"""
Pytest configuration and shared fixtures.
"""

import matplotlib
matplotlib.use("Agg")

import pytest


def always(state, machine):
    return True


def increment(state, machine):
    return {"counter": state["counter"] + 1}


@pytest.fixture
def counter_program():
    """Single rule: always add 1 to `counter`."""
    from rulesim.core import ProgramBuilder
    return ProgramBuilder().rule(always, increment, name="increment").build()


@pytest.fixture
def counter_machine(counter_program):
    """Machine running the counter program from counter=0."""
    from rulesim.core import StateMachine
    return StateMachine(counter_program, {"counter": 0})


@pytest.fixture
def recorder():
    """List-backed action factory: each action appends its label when fired."""
    fired = []

    def make(label, partial=None):
        def action(state, machine):
            fired.append(label)
            return partial
        action.__name__ = f"record_{label}"
        return action

    make.fired = fired
    return make
