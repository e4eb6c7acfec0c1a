"""
Distance-Weighted Interpolators

Local estimators that combine nearby samples by distance: inverse distance
weighting, a Sibson-style natural neighbour approximation, nearest neighbour,
moving average and the modified Shepard method.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..core.spatial_index import SpatialIndex
from ..core.validation import (
    validate_neighbor_count,
    validate_positive,
    validate_power,
)
from .base import (
    EXACT_DISTANCE,
    InterpolationMethod,
    Interpolator,
    build_index,
)

# Cap on distance-matrix elements evaluated at once by the brute-force path
_BLOCK_ELEMENTS = 4_000_000


def _brute_force_row(xyz, grid_x, y, power, radius):
    """IDW over every sample for one lattice row, in column blocks."""
    px, py, pz = xyz[:, 0], xyz[:, 1], xyz[:, 2]
    out = np.empty(len(grid_x))
    block = max(1, _BLOCK_ELEMENTS // max(1, len(xyz)))

    for start in range(0, len(grid_x), block):
        gx = grid_x[start:start + block]
        d = np.sqrt((gx[:, None] - px[None, :]) ** 2 + (y - py[None, :]) ** 2)

        exact = d < EXACT_DISTANCE
        has_exact = exact.any(axis=1)
        first_exact = exact.argmax(axis=1)

        with np.errstate(divide="ignore", invalid="ignore"):
            w = np.where(d <= radius, 1.0 / np.power(d, power), 0.0)
            w_sum = w.sum(axis=1)
            vals = np.where(w_sum > 0, (w @ pz) / np.where(w_sum > 0, w_sum, 1.0), np.nan)

        out[start:start + block] = np.where(has_exact, pz[first_exact], vals)
    return out


@dataclass
class IDWInterpolator(Interpolator):
    """
    Inverse distance weighting.

    Each node is the ``1/d^power`` weighted mean of the samples within
    ``search_radius``. A sample closer than 1e-10 is returned as-is.

    Attributes:
        power: Distance exponent
        search_radius: Samples farther away are ignored (inf = no limit)
        max_neighbors: Use only the k nearest samples (0 = all). Honoured
            once the sample count is large enough to be indexed (over 200).
    """
    power: float = 2.0
    search_radius: float = math.inf
    max_neighbors: int = 0

    method = InterpolationMethod.IDW

    def __post_init__(self):
        self.power = validate_power(self.power)
        self.search_radius = validate_positive(self.search_radius, "search_radius", allow_inf=True)
        self.max_neighbors = validate_neighbor_count(self.max_neighbors)

    def _estimate(self, xyz, grid_x, grid_y, progress):
        nx = len(grid_x)
        values = np.full(nx * len(grid_y), np.nan)
        if len(xyz) == 0:
            return values

        index = build_index(xyz)
        use_knn = index is not None and self.max_neighbors > 0
        use_radius = index is not None and not use_knn and math.isfinite(self.search_radius)

        for j in self._rows(grid_y, progress):
            y = grid_y[j]
            if not (use_knn or use_radius):
                values[j * nx:(j + 1) * nx] = _brute_force_row(
                    xyz, grid_x, y, self.power, self.search_radius
                )
                continue

            for i in range(nx):
                if use_knn:
                    idx, dist = index.k_nearest(grid_x[i], y, self.max_neighbors)
                else:
                    idx, dist = index.radius_query_with_distances(grid_x[i], y, self.search_radius)
                values[j * nx + i] = self._weigh(xyz[:, 2], idx, dist)

        return values

    def _weigh(self, z, idx, dist) -> float:
        exact = np.flatnonzero(dist < EXACT_DISTANCE)
        if exact.size:
            return float(z[idx[exact[0]]])

        keep = dist <= self.search_radius
        if not keep.any():
            return math.nan
        w = 1.0 / np.power(dist[keep], self.power)
        return float(np.dot(w, z[idx[keep]]) / w.sum())


@dataclass
class NaturalNeighborInterpolator(Interpolator):
    """
    Natural neighbour approximation.

    Uses the 16 nearest samples with weights ``max(0, 1/d - 1/d_max)^2``,
    where ``d_max`` is the distance to the farthest of them. Sibson's area
    stealing is not computed; the weights fall to zero at the edge of the
    neighbourhood, which gives a similar local, smooth surface.
    """
    neighbors: int = 16

    method = InterpolationMethod.NATURAL_NEIGHBOR

    def __post_init__(self):
        self.neighbors = validate_neighbor_count(self.neighbors, "neighbors", minimum=1)

    def _estimate(self, xyz, grid_x, grid_y, progress):
        nx = len(grid_x)
        values = np.full(nx * len(grid_y), np.nan)
        k = min(len(xyz), self.neighbors)
        if k == 0:
            return values

        index = SpatialIndex.build(xyz)
        z = xyz[:, 2]
        for j in self._rows(grid_y, progress):
            for i in range(nx):
                idx, dist = index.k_nearest(grid_x[i], grid_y[j], k)
                if dist[0] < EXACT_DISTANCE:
                    values[j * nx + i] = z[idx[0]]
                    continue
                w = np.maximum(0.0, 1.0 / dist - 1.0 / dist[-1]) ** 2
                w_sum = w.sum()
                if w_sum > 0:
                    values[j * nx + i] = np.dot(w, z[idx]) / w_sum
        return values


@dataclass
class NearestNeighborInterpolator(Interpolator):
    """Value of the closest sample, if it lies within ``search_radius``."""
    search_radius: float = math.inf

    method = InterpolationMethod.NEAREST

    def __post_init__(self):
        self.search_radius = validate_positive(self.search_radius, "search_radius", allow_inf=True)

    def _estimate(self, xyz, grid_x, grid_y, progress):
        nx = len(grid_x)
        values = np.full(nx * len(grid_y), np.nan)
        if len(xyz) == 0:
            return values

        index = SpatialIndex.build(xyz)
        for j in self._rows(grid_y, progress):
            for i in range(nx):
                idx, dist = index.k_nearest(grid_x[i], grid_y[j], 1)
                if len(idx) and dist[0] <= self.search_radius:
                    values[j * nx + i] = xyz[idx[0], 2]
        return values


@dataclass
class MovingAverageInterpolator(Interpolator):
    """
    Average of the samples inside a fixed search circle.

    Attributes:
        search_radius: Circle radius. None uses a tenth of the larger
            sample extent.
        min_points: Nodes with fewer samples in range are left empty
        weighted: Weight samples by 1/d (a coincident sample dominates)
    """
    search_radius: Optional[float] = None
    min_points: int = 1
    weighted: bool = True

    method = InterpolationMethod.MOVING_AVERAGE

    def __post_init__(self):
        if self.search_radius is not None:
            self.search_radius = validate_positive(self.search_radius, "search_radius", allow_inf=True)
        self.min_points = validate_neighbor_count(self.min_points, "min_points", minimum=1)

    def _estimate(self, xyz, grid_x, grid_y, progress):
        nx = len(grid_x)
        values = np.full(nx * len(grid_y), np.nan)
        if len(xyz) == 0:
            return values

        radius = self.search_radius
        if not radius:
            radius = max(np.ptp(xyz[:, 0]), np.ptp(xyz[:, 1])) / 10.0

        index = SpatialIndex.build(xyz)
        z = xyz[:, 2]
        for j in self._rows(grid_y, progress):
            for i in range(nx):
                idx, dist = index.radius_query_with_distances(grid_x[i], grid_y[j], radius)
                if len(idx) < self.min_points or len(idx) == 0:
                    continue
                if self.weighted:
                    with np.errstate(divide="ignore"):
                        w = np.where(dist < EXACT_DISTANCE, 1e10, 1.0 / dist)
                    values[j * nx + i] = np.dot(w, z[idx]) / w.sum()
                else:
                    values[j * nx + i] = z[idx].mean()
        return values


@dataclass
class ModifiedShepardInterpolator(Interpolator):
    """
    Modified Shepard method (Franke-Nielson weights).

    The ``neighbors`` closest samples are weighted by
    ``max(0, (R - d) / (R * d))^power`` with ``R`` the distance to the
    farthest of them, so the influence of each sample vanishes at ``R``.
    """
    power: float = 2.0
    neighbors: int = 12

    method = InterpolationMethod.MODIFIED_SHEPARD

    def __post_init__(self):
        self.power = validate_power(self.power)
        self.neighbors = validate_neighbor_count(self.neighbors, "neighbors", minimum=1)

    def _estimate(self, xyz, grid_x, grid_y, progress):
        nx = len(grid_x)
        values = np.full(nx * len(grid_y), np.nan)
        k = min(self.neighbors, len(xyz))
        if k == 0:
            return values

        index = SpatialIndex.build(xyz)
        z = xyz[:, 2]
        for j in self._rows(grid_y, progress):
            for i in range(nx):
                idx, dist = index.k_nearest(grid_x[i], grid_y[j], k)
                if dist[0] < EXACT_DISTANCE:
                    values[j * nx + i] = z[idx[0]]
                    continue
                rw = dist[-1]
                s = np.maximum(0.0, (rw - dist) / (rw * dist))
                w = np.power(s, self.power)
                w_sum = w.sum()
                if w_sum > 0:
                    values[j * nx + i] = np.dot(w, z[idx]) / w_sum
        return values
