"""
Data Metrics Interpolator

Bins samples to their nearest lattice node and reports a statistic per node.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np

from .base import InterpolationMethod, Interpolator


class DataMetric(Enum):
    """Per-node statistics."""
    MEAN = "mean"
    MEDIAN = "median"
    COUNT = "count"
    MIN = "min"
    MAX = "max"
    RANGE = "range"
    STDDEV = "stddev"
    SUM = "sum"


def _reduce(values: np.ndarray, metric: DataMetric) -> float:
    if metric is DataMetric.COUNT:
        return float(len(values))
    if metric is DataMetric.SUM:
        return float(values.sum())
    if metric is DataMetric.MIN:
        return float(values.min())
    if metric is DataMetric.MAX:
        return float(values.max())
    if metric is DataMetric.RANGE:
        return float(values.max() - values.min())
    if metric is DataMetric.MEDIAN:
        # Upper median for even counts
        return float(np.sort(values)[len(values) // 2])
    if metric is DataMetric.STDDEV:
        return float(values.std())
    return float(values.mean())


@dataclass
class DataMetricsInterpolator(Interpolator):
    """Statistic of the samples snapping to each node; empty nodes are NaN."""
    metric: DataMetric = DataMetric.MEAN

    method = InterpolationMethod.DATA_METRICS

    def __post_init__(self):
        if isinstance(self.metric, str):
            self.metric = DataMetric(self.metric)

    def _estimate(self, xyz, grid_x, grid_y, progress):
        nx, ny = len(grid_x), len(grid_y)
        values = np.full(nx * ny, np.nan)
        if len(xyz) == 0:
            return values

        dx = grid_x[1] - grid_x[0] if nx > 1 else 1.0
        dy = grid_y[1] - grid_y[0] if ny > 1 else 1.0
        gi = np.floor((xyz[:, 0] - grid_x[0]) / dx + 0.5).astype(np.int64)
        gj = np.floor((xyz[:, 1] - grid_y[0]) / dy + 0.5).astype(np.int64)
        inside = (gi >= 0) & (gi < nx) & (gj >= 0) & (gj < ny)

        cells = gj[inside] * nx + gi[inside]
        z = xyz[inside, 2]
        order = np.argsort(cells, kind="stable")
        cells, z = cells[order], z[order]
        unique, starts = np.unique(cells, return_index=True)
        ends = np.append(starts[1:], len(cells))

        total = max(1, len(unique))
        for n, (cell, start, end) in enumerate(zip(unique, starts, ends)):
            values[cell] = _reduce(z[start:end], self.metric)
            if n % 1024 == 0:
                progress(n / total)
        return values
