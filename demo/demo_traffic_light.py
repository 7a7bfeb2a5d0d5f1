#!/usr/bin/env python3
"""
Demo: Traffic Light Controller

A pedestrian crossing driven by rules:

1. The light cycles green → yellow → red on timers
2. A button (an input binding) requests the crossing early
3. A rule with a state-dependent priority handles the request first
4. After a fixed number of cycles the controller halts itself

Output: output/demo_traffic_light/history.png
"""

import logging
from pathlib import Path

import numpy as np

from rulesim.core import MachineConfig, ProgramBuilder, StateMachine
from rulesim.analysis import field_series, summarize_history
from rulesim.viz import plot_field_history, plot_change_raster, save_figure

import matplotlib.pyplot as plt


DURATIONS = {"green": 6, "yellow": 2, "red": 4}
NEXT_LIGHT = {"green": "yellow", "yellow": "red", "red": "green"}
LIGHT_LEVEL = {"green": 0, "yellow": 1, "red": 2}


def build_controller(button_presses: set[int], max_cycles: int = 3) -> StateMachine:
    clock = {"tick": 0}

    def read_button():
        clock["tick"] += 1
        return clock["tick"] in button_presses

    builder = ProgramBuilder()
    builder.input("button", read_button)

    @builder.when(lambda s, m: s["cycles"] >= max_cycles, priority=-10, name="done")
    def done(state, machine):
        machine.halt({"light": "off"})

    @builder.when(
        lambda s, m: s["button"] and s["light"] == "green" and s["elapsed"] >= 2,
        priority=lambda s, m: -1 if s["button"] else 1,
        name="crossing-request",
    )
    def crossing_request(state, machine):
        return {"light": "yellow", "elapsed": 0}

    @builder.when(lambda s, m: s["elapsed"] >= DURATIONS[s["light"]], name="advance")
    def advance(state, machine):
        light = NEXT_LIGHT[state["light"]]
        return {
            "light": light,
            "elapsed": 0,
            "cycles": state["cycles"] + (light == "green"),
        }

    @builder.when(lambda s, m: True, priority=5, name="timer")
    def timer(state, machine):
        return {"elapsed": state["elapsed"] + 1, "level": LIGHT_LEVEL[state["light"]]}

    return StateMachine(
        builder.build(),
        {"light": "green", "elapsed": 0, "cycles": 0, "level": 0},
        config=MachineConfig(history_limit=500, name="crossing"),
    )


def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    print("=" * 60)
    print("  TRAFFIC LIGHT CONTROLLER")
    print("=" * 60)

    controller = build_controller(button_presses={4, 20})

    print("\n1. Running until the controller halts itself...")
    final = controller.run()
    print(f"   Exit state: {dict(final)}")

    summary = summarize_history(controller.history)
    print(f"\n2. History: tick={summary.tick}, retained={summary.retained}")
    for key, stats in summary.numeric.items():
        print(f"   {key:8s} min={stats.minimum:.0f} max={stats.maximum:.0f} final={stats.final:.0f}")

    levels = field_series(controller.history.records, "level")
    print(f"\n3. Ticks spent red: {int(np.sum(levels == 2))}")

    print("\n4. Rewinding 5 ticks and forcing red...")
    controller.reset()
    for _ in range(12):
        controller.step()
    controller.history.rewind(5, {"light": "red", "elapsed": 0})
    print(f"   tick={controller.history.tick}, light={controller.history.current_state['light']}")

    output_dir = Path("output/demo_traffic_light")
    output_dir.mkdir(parents=True, exist_ok=True)

    fig, axes = plt.subplots(2, 1, figsize=(10, 7))
    plot_field_history(controller.history.records, ["level", "elapsed"], ax=axes[0])
    plot_change_raster(controller.history.records, ax=axes[1])
    save_figure(fig, output_dir / "history.png")
    print(f"\nSaved: {output_dir / 'history.png'}")


if __name__ == "__main__":
    main()
