"""
Interpolator Base

Shared contract for every gridding algorithm: scattered (x, y, z) samples
plus two axis arrays in, a Lattice out. Cells without an estimate are NaN.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import ClassVar, Iterator, Optional

import numpy as np

from ..core.lattice import Lattice
from ..core.spatial_index import SpatialIndex
from ..core.validation import validate_grid_axes, validate_points_array
from ..utils.progress import ProgressReporter, as_reporter


# Distances below this are treated as an exact hit on a sample
EXACT_DISTANCE = 1e-10

# Point count above which distance-based methods build a spatial index
INDEX_THRESHOLD = 200


class InterpolationMethod(Enum):
    """Gridding algorithms."""
    IDW = "idw"                          # Inverse distance weighting
    NATURAL_NEIGHBOR = "natural"
    MINIMUM_CURVATURE = "mincurv"
    KRIGING_ORDINARY = "kriging_ord"
    KRIGING_UNIVERSAL = "kriging_uni"
    KRIGING_SIMPLE = "kriging_sim"
    RBF = "rbf"                          # Radial basis functions
    TIN = "tin"                          # Linear on a Delaunay triangulation
    NEAREST = "nearest"
    MOVING_AVERAGE = "moving_avg"
    POLYNOMIAL_REGRESSION = "poly_reg"
    MODIFIED_SHEPARD = "mod_shepard"
    DATA_METRICS = "data_metrics"


def as_xyz(points) -> np.ndarray:
    """Accept a PointSet or an N x 3 array-like and return a float array."""
    return validate_points_array(getattr(points, "xyz", points))


def idw_estimate(z: np.ndarray, dist: np.ndarray, power: float = 2.0) -> float:
    """Plain inverse-distance average of neighbour values (NaN when empty)."""
    if len(z) == 0:
        return np.nan
    with np.errstate(divide="ignore"):
        w = 1.0 / np.power(dist, power)
    total = w.sum()
    if not np.isfinite(total) or total <= 0:
        return np.nan
    return float(np.dot(w, z) / total)


class Interpolator(ABC):
    """
    Abstract base class for gridding algorithms.

    Subclasses are dataclasses holding their parameters and implement
    ``_estimate``, which fills a flat row-major value buffer.
    """
    method: ClassVar[InterpolationMethod]

    def interpolate(self, points, grid_x, grid_y, on_progress=None) -> Lattice:
        """
        Estimate a value at every lattice node.

        Args:
            points: PointSet or N x 3 array-like of (x, y, z) samples
            grid_x: Node X coordinates
            grid_y: Node Y coordinates
            on_progress: Optional callback receiving a fraction in [0, 1]

        Returns:
            Lattice over (grid_x, grid_y). Nodes without an estimate are NaN.
        """
        xyz = as_xyz(points)
        gx, gy = validate_grid_axes(grid_x, grid_y)
        progress = as_reporter(on_progress)
        crs = getattr(points, "crs", None)

        if len(gx) == 0 or len(gy) == 0:
            progress.finish()
            return Lattice(gx, gy, np.zeros(0), crs=crs)

        values = self._estimate(xyz, gx, gy, progress)
        progress.finish()
        return Lattice(gx, gy, values, crs=crs)

    @abstractmethod
    def _estimate(
        self,
        xyz: np.ndarray,
        grid_x: np.ndarray,
        grid_y: np.ndarray,
        progress: ProgressReporter,
    ) -> np.ndarray:
        """Return ``len(grid_x) * len(grid_y)`` values in row-major order."""

    @staticmethod
    def _rows(grid_y: np.ndarray, progress: ProgressReporter) -> Iterator[int]:
        """Iterate row indices, reporting progress after each row."""
        ny = len(grid_y)
        for j in range(ny):
            yield j
            progress((j + 1) / ny)


def build_index(xyz: np.ndarray, threshold: Optional[int] = INDEX_THRESHOLD) -> Optional[SpatialIndex]:
    """Spatial index over the samples, or None for small sets when ``threshold`` is given."""
    if threshold is not None and len(xyz) <= threshold:
        return None
    return SpatialIndex.build(xyz)
