"""
Plots of a machine's history.

- Field trajectories: numeric fields over ticks
- Change raster: which fields each tick touched
"""

from __future__ import annotations
from pathlib import Path
from typing import Sequence

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from matplotlib.axes import Axes

from rulesim.analysis.trace import changed_keys, field_series
from rulesim.core.state import State


def plot_field_history(
    records: Sequence[State],
    keys: Sequence[str],
    title: str = "Field History",
    ax: Axes | None = None,
    figsize: tuple[float, float] = (10, 5),
    first_tick: int = 0,
    colors: Sequence[str] | None = None,
    line_width: float = 1.5,
) -> tuple[Figure, Axes]:
    """
    Plot numeric fields across retained records.

    Args:
        records: Committed snapshots, oldest first
        keys: Fields to plot (one line each)
        title: Plot title
        ax: Existing axes (creates new if None)
        first_tick: Tick number of records[0], for the x axis
        colors: Optional color per key
        line_width: Line width

    Returns:
        (fig, ax) tuple
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    ticks = np.arange(first_tick, first_tick + len(records))
    for i, key in enumerate(keys):
        color = colors[i % len(colors)] if colors else None
        ax.step(
            ticks,
            field_series(records, key),
            where="post",
            label=key,
            color=color,
            linewidth=line_width,
        )

    ax.set_title(title)
    ax.set_xlabel("tick")
    ax.set_ylabel("value")
    if keys:
        ax.legend(loc="best")

    return fig, ax


def plot_change_raster(
    records: Sequence[State],
    title: str = "Field Changes",
    ax: Axes | None = None,
    figsize: tuple[float, float] = (10, 4),
    first_tick: int = 0,
    cmap: str = "Greys",
) -> tuple[Figure, Axes]:
    """
    Show which fields changed on each tick.

    Rows are fields (sorted), columns are transitions; a filled cell means
    the field's value differs from the previous record.
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    changes = changed_keys(records)
    fields = sorted({k for record in records for k in record})
    raster = np.zeros((len(fields), len(changes)), dtype=np.float64)
    for col, changed in enumerate(changes):
        for row, key in enumerate(fields):
            if key in changed:
                raster[row, col] = 1.0

    ax.imshow(
        raster,
        aspect="auto",
        cmap=cmap,
        vmin=0.0,
        vmax=1.0,
        interpolation="nearest",
        extent=(first_tick + 0.5, first_tick + len(changes) + 0.5, len(fields) - 0.5, -0.5),
    )
    ax.set_yticks(range(len(fields)))
    ax.set_yticklabels(fields)
    ax.set_title(title)
    ax.set_xlabel("tick")

    return fig, ax


def save_figure(fig: Figure, path: str | Path, dpi: int = 150, **kwargs) -> None:
    """Save figure to file."""
    fig.savefig(path, dpi=dpi, bbox_inches="tight", **kwargs)
