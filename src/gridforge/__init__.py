"""
gridforge

A Python library for turning scattered survey samples into regular grids,
Delaunay triangulations and contour lines.
"""

__version__ = "0.1.0"

from .analysis.gridding import contour_grid, grid_points
from .config import ContourSettings, GridSettings
from .core.lattice import Lattice
from .core.mesh import EditableMesh
from .core.triangulation import TIN, triangulate
from .interpolation import InterpolationMethod, create_interpolator
from .io.point_set import PointSet, PointSetLoader

__all__ = [
    "contour_grid",
    "grid_points",
    "ContourSettings",
    "GridSettings",
    "Lattice",
    "EditableMesh",
    "TIN",
    "triangulate",
    "InterpolationMethod",
    "create_interpolator",
    "PointSet",
    "PointSetLoader",
]
