"""Analysis modules: contours, boundaries, breaklines, hulls and the gridding pipeline."""

from .boundaries import Boundary, BoundaryType, apply_boundary_mask
from .breaklines import Breakline, BreaklineType, process_breaklines
from .contours import Contour, FilledBand, Polyline, chain_segments, grid_contours, tin_contours
from .gridding import ContourResult, GridResult, contour_grid, grid_points
from .hull import concave_hull, convex_hull

__all__ = [
    "Boundary",
    "BoundaryType",
    "apply_boundary_mask",
    "Breakline",
    "BreaklineType",
    "process_breaklines",
    "Contour",
    "FilledBand",
    "Polyline",
    "chain_segments",
    "grid_contours",
    "tin_contours",
    "ContourResult",
    "GridResult",
    "contour_grid",
    "grid_points",
    "concave_hull",
    "convex_hull",
]
