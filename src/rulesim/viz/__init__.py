"""
Visualization utilities.

- Field trajectories over ticks
- Change rasters
"""

from rulesim.viz.history import (
    plot_field_history,
    plot_change_raster,
    save_figure,
)

__all__ = [
    "plot_field_history",
    "plot_change_raster",
    "save_figure",
]
