"""Utility modules."""

from .progress import ProgressReporter
from .visualization import plot_contours, plot_lattice, plot_tin, save_figure

__all__ = ["ProgressReporter", "plot_contours", "plot_lattice", "plot_tin", "save_figure"]
