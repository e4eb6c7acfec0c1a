"""
TIN Linear Interpolator

Triangulates the samples and evaluates each lattice node by barycentric
interpolation inside the triangle containing it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..core.triangulation import TIN, triangulate
from .base import InterpolationMethod, Interpolator

logger = logging.getLogger(__name__)


# Barycentric coordinates down to this value still count as inside
BARYCENTRIC_TOLERANCE = -0.001


class TriangleBuckets:
    """
    Uniform-grid lookup from a location to candidate triangles.

    Every triangle is listed in each bucket its bounding box overlaps.
    """

    def __init__(self, tin: TIN):
        self.tin = tin
        m = tin.n_triangles
        extent = 1.0
        if tin.n_points:
            extent = max(np.ptp(tin.x), np.ptp(tin.y)) or 1.0
        self.cell_size = extent / min(math.sqrt(max(m, 1)), 100)
        self.inv_cell = 1.0 / self.cell_size
        self.buckets: Dict[Tuple[int, int], List[int]] = {}

        if m == 0:
            return
        tx = tin.x[tin.triangles]
        ty = tin.y[tin.triangles]
        bx0 = np.floor(tx.min(axis=1) * self.inv_cell).astype(np.int64)
        bx1 = np.floor(tx.max(axis=1) * self.inv_cell).astype(np.int64)
        by0 = np.floor(ty.min(axis=1) * self.inv_cell).astype(np.int64)
        by1 = np.floor(ty.max(axis=1) * self.inv_cell).astype(np.int64)

        for t in range(m):
            for bj in range(by0[t], by1[t] + 1):
                for bi in range(bx0[t], bx1[t] + 1):
                    self.buckets.setdefault((bi, bj), []).append(t)

    def sample(self, x: float, y: float) -> float:
        """Linear estimate at (x, y), NaN outside the triangulation."""
        key = (int(math.floor(x * self.inv_cell)), int(math.floor(y * self.inv_cell)))
        bucket = self.buckets.get(key)
        if not bucket:
            return math.nan

        tin = self.tin
        for t in bucket:
            a, b, c = tin.triangles[t]
            ax, ay = tin.x[a], tin.y[a]
            bx, by = tin.x[b], tin.y[b]
            cx, cy = tin.x[c], tin.y[c]
            d = (by - cy) * (ax - cx) + (cx - bx) * (ay - cy)
            if abs(d) < 1e-12:
                continue
            w1 = ((by - cy) * (x - cx) + (cx - bx) * (y - cy)) / d
            w2 = ((cy - ay) * (x - cx) + (ax - cx) * (y - cy)) / d
            w3 = 1.0 - w1 - w2
            if w1 >= BARYCENTRIC_TOLERANCE and w2 >= BARYCENTRIC_TOLERANCE and w3 >= BARYCENTRIC_TOLERANCE:
                return float(tin.z[a] * w1 + tin.z[b] * w2 + tin.z[c] * w3)
        return math.nan


@dataclass
class TINInterpolator(Interpolator):
    """
    Linear interpolation on a (constrained) Delaunay triangulation.

    Nodes outside the convex hull of the samples are NaN. Progress runs
    0-0.7 for the triangulation, 0.7-0.8 for bucketing and 0.8-1 for
    sampling.

    Attributes:
        constraint_edges: Optional (a, b) sample index pairs forced into the
            triangulation (breaklines)
    """
    constraint_edges: Optional[Sequence[Tuple[int, int]]] = field(default=None, repr=False)

    method = InterpolationMethod.TIN

    def __post_init__(self):
        self.tin: Optional[TIN] = None

    def _estimate(self, xyz, grid_x, grid_y, progress):
        nx = len(grid_x)
        values = np.full(nx * len(grid_y), np.nan)
        if len(xyz) < 3:
            return values

        self.tin = triangulate(xyz, self.constraint_edges, on_progress=progress.child(0.0, 0.7))
        progress(0.7)
        if self.tin.n_triangles == 0:
            return values

        buckets = TriangleBuckets(self.tin)
        logger.debug(
            "Bucketed %d triangles into %d cells", self.tin.n_triangles, len(buckets.buckets)
        )
        progress(0.8)

        sampling = progress.child(0.8, 1.0)
        for j in self._rows(grid_y, sampling):
            y = grid_y[j]
            for i in range(nx):
                values[j * nx + i] = buckets.sample(grid_x[i], y)
        return values
