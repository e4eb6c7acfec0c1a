"""
Spatial Index Module

Uniform-grid bucket index over a 2D point set. Points are bucketed by the cell
their coordinates fall in and stored in compressed (CSR) form, so a query only
scans the buckets overlapping the search circle.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


# Largest bucket count per axis used when deriving a default cell size
MAX_CELLS_PER_AXIS = 100

# Number of radius doublings tried by k_nearest before scanning everything
MAX_RADIUS_DOUBLINGS = 16


class SpatialIndex:
    """
    Bucket index answering radius and k-nearest queries.

    The point coordinates are copied on construction; the index describes an
    immutable snapshot of the point set.

    Attributes:
        cell_size: Edge length of one bucket
        n: Number of indexed points
    """

    def __init__(self, xy: np.ndarray, cell_size: float = 1.0):
        xy = np.asarray(xy, dtype=np.float64)
        if xy.size == 0:
            xy = xy.reshape(0, 2)

        self.cell_size = float(cell_size) if cell_size and cell_size > 0 else 1.0
        self.inv_cell = 1.0 / self.cell_size
        self.n = len(xy)
        self._px = np.ascontiguousarray(xy[:, 0])
        self._py = np.ascontiguousarray(xy[:, 1])

        if self.n == 0:
            self._cx_min = self._cy_min = 0
            self._cx_range = self._cy_range = 1
            self._cell_start = np.zeros(2, dtype=np.int64)
            self._flat_idx = np.zeros(0, dtype=np.int64)
            return

        cx = np.floor(self._px * self.inv_cell).astype(np.int64)
        cy = np.floor(self._py * self.inv_cell).astype(np.int64)
        self._cx_min = int(cx.min())
        self._cy_min = int(cy.min())
        self._cx_range = int(cx.max()) - self._cx_min + 1
        self._cy_range = int(cy.max()) - self._cy_min + 1

        keys = (cy - self._cy_min) * self._cx_range + (cx - self._cx_min)
        total_cells = self._cx_range * self._cy_range

        counts = np.bincount(keys, minlength=total_cells)
        self._cell_start = np.zeros(total_cells + 1, dtype=np.int64)
        np.cumsum(counts, out=self._cell_start[1:])

        # Stable sort keeps insertion order inside each bucket
        self._flat_idx = np.argsort(keys, kind="stable").astype(np.int64)

        logger.debug(
            "Built spatial index: %d points, %dx%d cells of size %.4g",
            self.n, self._cx_range, self._cy_range, self.cell_size,
        )

    @classmethod
    def build(cls, points, cell_size: Optional[float] = None) -> SpatialIndex:
        """
        Build an index over ``points`` (N x 2 or N x 3, only x/y are used).

        The default cell size is ``extent / min(sqrt(n), 100)`` where extent
        is the larger of the X and Y spans (1 when the points coincide).
        """
        pts = np.asarray(points, dtype=np.float64)
        if pts.size == 0:
            return cls(np.zeros((0, 2)), 1.0)

        xy = pts[:, :2]
        if cell_size is None:
            extent = float(max(np.ptp(xy[:, 0]), np.ptp(xy[:, 1]))) or 1.0
            cell_size = extent / min(math.sqrt(len(xy)), MAX_CELLS_PER_AXIS)
        return cls(xy, cell_size or 1.0)

    def _candidates(self, x: float, y: float, radius: float) -> np.ndarray:
        """Point indices in every bucket overlapping the circle, in encounter order."""
        if self.n == 0:
            return np.zeros(0, dtype=np.int64)

        cr = int(math.ceil(radius * self.inv_cell))
        cx_base = int(math.floor(x * self.inv_cell))
        cy_base = int(math.floor(y * self.inv_cell))

        cx_max = self._cx_min + self._cx_range - 1
        cy_max = self._cy_min + self._cy_range - 1
        cx_lo = max(cx_base - cr, self._cx_min)
        cx_hi = min(cx_base + cr, cx_max)
        cy_lo = max(cy_base - cr, self._cy_min)
        cy_hi = min(cy_base + cr, cy_max)
        if cx_lo > cx_hi or cy_lo > cy_hi:
            return np.zeros(0, dtype=np.int64)

        cs = self._cell_start
        # Buckets of one row are contiguous in CSR storage
        chunks = []
        for cy in range(cy_lo, cy_hi + 1):
            row_off = (cy - self._cy_min) * self._cx_range
            start = cs[row_off + (cx_lo - self._cx_min)]
            end = cs[row_off + (cx_hi - self._cx_min) + 1]
            if end > start:
                chunks.append(self._flat_idx[start:end])

        if not chunks:
            return np.zeros(0, dtype=np.int64)
        return np.concatenate(chunks)

    def radius_query_with_distances(
        self, x: float, y: float, radius: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Find points within ``radius`` of (x, y), boundary inclusive.

        Returns:
            (indices, distances), in bucket encounter order
        """
        if self.n == 0 or not radius >= 0:
            return np.zeros(0, dtype=np.int64), np.zeros(0)

        if math.isinf(radius):
            idx = np.arange(self.n, dtype=np.int64)
        else:
            idx = self._candidates(x, y, radius)

        d2 = (self._px[idx] - x) ** 2 + (self._py[idx] - y) ** 2
        keep = d2 <= radius * radius
        return idx[keep], np.sqrt(d2[keep])

    def radius_query(self, x: float, y: float, radius: float) -> np.ndarray:
        """Indices of points within ``radius`` of (x, y), unordered."""
        return self.radius_query_with_distances(x, y, radius)[0]

    def k_nearest(self, x: float, y: float, k: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Find the ``k`` points closest to (x, y).

        The search starts at twice the cell size and doubles the radius until
        enough points are found, falling back to a full scan. Equal distances
        keep their encounter order.

        Returns:
            (indices, distances) sorted ascending by distance, length min(k, n)
        """
        if k <= 0 or self.n == 0:
            return np.zeros(0, dtype=np.int64), np.zeros(0)

        radius = self.cell_size * 2
        for _ in range(MAX_RADIUS_DOUBLINGS):
            idx = self._candidates(x, y, radius)
            d2 = (self._px[idx] - x) ** 2 + (self._py[idx] - y) ** 2
            keep = d2 <= radius * radius
            if np.count_nonzero(keep) >= k:
                idx, d2 = idx[keep], d2[keep]
                order = np.argsort(d2, kind="stable")[:k]
                return idx[order], np.sqrt(d2[order])
            radius *= 2

        # Exhaustive scan
        d2 = (self._px - x) ** 2 + (self._py - y) ** 2
        order = np.argsort(d2, kind="stable")[:k]
        return order.astype(np.int64), np.sqrt(d2[order])
