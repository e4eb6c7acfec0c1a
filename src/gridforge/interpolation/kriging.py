"""
Kriging Interpolators

Ordinary, universal and simple kriging over the k nearest samples, with an
isotropic variogram whose parameters are estimated from the data unless
given explicitly. Nodes whose kriging system is singular or produces
unstable weights fall back to inverse distance weighting over the same
neighbours.
"""

from __future__ import annotations

import logging
import math
import warnings
from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from ..core.linalg import solve_linear_system
from ..core.spatial_index import SpatialIndex
from ..core.validation import ValidationError, validate_neighbor_count, validate_positive
from .base import EXACT_DISTANCE, InterpolationMethod, Interpolator, idw_estimate

logger = logging.getLogger(__name__)


# Semivariogram bins used for parameter estimation
VARIOGRAM_BINS = 15

# Samples used for the empirical semivariogram before thinning kicks in
VARIOGRAM_SAMPLE_LIMIT = 500

# Diagonal entries below this are replaced to keep the system solvable
DIAGONAL_FLOOR = 1e-10


class VariogramModel(Enum):
    """Isotropic semivariogram shapes."""
    SPHERICAL = "spherical"
    EXPONENTIAL = "exponential"
    GAUSSIAN = "gaussian"
    LINEAR = "linear"
    POWER = "power"


@dataclass(frozen=True)
class VariogramParams:
    """
    Semivariogram parameters.

    Attributes:
        sill: Partial sill (semivariance plateau above the nugget)
        range: Distance at which the plateau is reached
        nugget: Semivariance jump at the origin
    """
    sill: float
    range: float
    nugget: float


def variogram(h, model: VariogramModel, params: VariogramParams):
    """
    Semivariance at lag ``h`` (scalar or array). ``h == 0`` is always 0.
    """
    h = np.asarray(h, dtype=np.float64)
    s, r, n = params.sill, params.range, params.nugget

    if model is VariogramModel.EXPONENTIAL:
        g = n + s * (1.0 - np.exp(-3.0 * h / r))
    elif model is VariogramModel.GAUSSIAN:
        g = n + s * (1.0 - np.exp(-3.0 * h * h / (r * r)))
    elif model is VariogramModel.LINEAR:
        g = n + s * np.minimum(h / r, 1.0)
    elif model is VariogramModel.POWER:
        g = n + s * np.power(h, 1.5) / math.pow(r, 1.5)
    else:
        hr = h / r
        g = np.where(h >= r, n + s, n + s * (1.5 * hr - 0.5 * hr ** 3))

    g = np.where(h == 0, 0.0, g)
    return float(g) if g.ndim == 0 else g


def estimate_variogram_params(points) -> VariogramParams:
    """
    Estimate sill, range and nugget from the samples.

    The sill is the population variance of z (at least 0.01) and the nugget
    1% of it. The range is the centre of the first of 15 lag bins (up to
    half the largest pair distance) holding at least two pairs whose mean
    semivariance reaches 95% of the variance. Above 500 samples only every
    ``n // 500``-th sample enters the pair set.
    """
    xyz = np.asarray(getattr(points, "xyz", points), dtype=np.float64).reshape(-1, 3)
    n = len(xyz)
    if n < 2:
        return VariogramParams(sill=0.01, range=1.0, nugget=1e-6)

    z = xyz[:, 2]
    mean = z.sum() / n
    variance = max(float(np.dot(z, z) / n - mean * mean), 1e-10)

    step = n // VARIOGRAM_SAMPLE_LIMIT if n > VARIOGRAM_SAMPLE_LIMIT else 1
    sample = xyz[::step]
    ia, ib = np.triu_indices(len(sample), k=1)
    dist = np.hypot(sample[ia, 0] - sample[ib, 0], sample[ia, 1] - sample[ib, 1])
    gamma = 0.5 * (sample[ia, 2] - sample[ib, 2]) ** 2

    max_dist = float(dist.max()) if dist.size else 0.0
    if dist.size == 0 or max_dist < 1e-10:
        return VariogramParams(
            sill=max(variance, 0.01),
            range=1.0,
            nugget=max(variance * 0.01, 1e-6),
        )

    max_lag = max_dist * 0.5
    bin_width = max_lag / VARIOGRAM_BINS
    use = (dist < max_lag) & (dist >= 1e-10)
    bins = np.minimum(np.floor(dist[use] / bin_width).astype(np.int64), VARIOGRAM_BINS - 1)
    counts = np.bincount(bins, minlength=VARIOGRAM_BINS)
    sums = np.bincount(bins, weights=gamma[use], minlength=VARIOGRAM_BINS)

    est_range = max_lag * 0.5
    target = variance * 0.95
    for b in range(VARIOGRAM_BINS):
        if counts[b] >= 2 and sums[b] / counts[b] >= target:
            est_range = (b + 0.5) * bin_width
            break

    sill = max(variance, 0.01)
    return VariogramParams(
        sill=sill,
        range=max(est_range, bin_width),
        nugget=max(sill * 0.01, 1e-6),
    )


def _pairwise_distances(xy: np.ndarray) -> np.ndarray:
    diff = xy[:, None, :] - xy[None, :, :]
    return np.sqrt((diff ** 2).sum(axis=2))


def _variogram_matrix(xy, model, params) -> np.ndarray:
    k = len(xy)
    gamma = variogram(_pairwise_distances(xy), model, params).reshape(k, k)
    diag = np.diag(gamma).copy()
    diag[diag < DIAGONAL_FLOOR] = max(params.nugget, 1e-6)
    np.fill_diagonal(gamma, diag)
    return gamma


def ordinary_kriging_weights(
    neighbors_xy,
    target: Tuple[float, float],
    model: VariogramModel,
    params: VariogramParams,
) -> Optional[np.ndarray]:
    """
    Solve the ordinary kriging system for one target location.

    Args:
        neighbors_xy: (k, 2) neighbour coordinates
        target: (x, y) of the estimate
        model: Variogram model
        params: Variogram parameters

    Returns:
        The k sample weights, or None if the system is singular or the
        weights are unstable (``|sum - 1| > 2`` or any ``|w| > 10``).
        Accepted weights sum to 1 up to rounding.
    """
    xy = np.asarray(neighbors_xy, dtype=np.float64).reshape(-1, 2)
    k = len(xy)
    if k == 0:
        return None

    A = np.zeros((k + 1, k + 1))
    A[:k, :k] = _variogram_matrix(xy, model, params)
    A[:k, k] = 1.0
    A[k, :k] = 1.0

    dist = np.hypot(xy[:, 0] - target[0], xy[:, 1] - target[1])
    rhs = np.ones(k + 1)
    rhs[:k] = variogram(dist, model, params)

    sol = solve_linear_system(A, rhs)
    if sol is None:
        return None
    w = sol[:k]
    if abs(w.sum() - 1.0) > 2 or np.abs(w).max() > 10:
        return None
    return w


@dataclass
class _KrigingInterpolator(Interpolator):
    """
    Shared neighbourhood search and fallback for the kriging variants.

    Attributes:
        model: Variogram model
        max_neighbors: Nearest samples used per node
        sill: Override for the estimated sill
        range: Override for the estimated range
        nugget: Override for the estimated nugget
    """
    model: VariogramModel = VariogramModel.SPHERICAL
    max_neighbors: int = 16
    sill: Optional[float] = None
    range: Optional[float] = None
    nugget: Optional[float] = None

    def __post_init__(self):
        if isinstance(self.model, str):
            self.model = VariogramModel(self.model)
        self.max_neighbors = validate_neighbor_count(self.max_neighbors, "max_neighbors", minimum=1)
        if self.max_neighbors < 3:
            warnings.warn(
                f"max_neighbors={self.max_neighbors} gives a poorly constrained "
                "kriging system; most nodes will use the IDW fallback.",
                UserWarning,
                stacklevel=3,
            )
        if self.sill is not None:
            self.sill = validate_positive(self.sill, "sill")
        if self.range is not None:
            self.range = validate_positive(self.range, "range")
        if self.nugget is not None and (self.nugget < 0 or not math.isfinite(self.nugget)):
            raise ValidationError(f"nugget must be a non-negative number, got {self.nugget}")

    def variogram_params(self, xyz: np.ndarray) -> VariogramParams:
        """Estimated parameters with any explicit overrides applied."""
        estimated = estimate_variogram_params(xyz)
        return VariogramParams(
            sill=estimated.sill if self.sill is None else self.sill,
            range=estimated.range if self.range is None else self.range,
            nugget=estimated.nugget if self.nugget is None else self.nugget,
        )

    def _empty_value(self, xyz: np.ndarray) -> float:
        return math.nan

    def _prepare(self, xyz: np.ndarray) -> None:
        """Hook for per-run state derived from the samples."""

    @abstractmethod
    def _predict(self, nb_xy, nb_z, dist, x, y, params) -> Optional[float]:
        """Estimate at (x, y) from the neighbours, or None to fall back to IDW."""

    def _estimate(self, xyz, grid_x, grid_y, progress):
        nx = len(grid_x)
        k = min(self.max_neighbors, len(xyz))
        if k == 0:
            return np.full(nx * len(grid_y), self._empty_value(xyz))

        params = self.variogram_params(xyz)
        self._prepare(xyz)
        logger.debug(
            "%s: sill=%.4g range=%.4g nugget=%.4g model=%s",
            type(self).__name__, params.sill, params.range, params.nugget, self.model.value,
        )

        index = SpatialIndex.build(xyz)
        values = np.full(nx * len(grid_y), np.nan)
        fallbacks = 0

        for j in self._rows(grid_y, progress):
            y = grid_y[j]
            for i in range(nx):
                x = grid_x[i]
                idx, dist = index.k_nearest(x, y, k)
                if dist[0] < EXACT_DISTANCE:
                    values[j * nx + i] = xyz[idx[0], 2]
                    continue

                nb_z = xyz[idx, 2]
                val = self._predict(xyz[idx, :2], nb_z, dist, x, y, params)
                if val is None:
                    fallbacks += 1
                    val = idw_estimate(nb_z, dist, 2.0)
                values[j * nx + i] = val

        if fallbacks:
            logger.debug("%s: %d nodes used the IDW fallback", type(self).__name__, fallbacks)
        return values


@dataclass
class OrdinaryKrigingInterpolator(_KrigingInterpolator):
    """Kriging with an unknown constant mean (weights constrained to sum to 1)."""

    method = InterpolationMethod.KRIGING_ORDINARY

    def _predict(self, nb_xy, nb_z, dist, x, y, params):
        w = ordinary_kriging_weights(nb_xy, (x, y), self.model, params)
        if w is None:
            return None
        val = float(np.dot(w, nb_z))
        return val if math.isfinite(val) else math.nan


@dataclass
class UniversalKrigingInterpolator(_KrigingInterpolator):
    """
    Kriging with a polynomial trend.

    Drift terms use coordinates normalized to the bounding box of the
    neighbours and the node: (x, y) for order 1, plus (x^2, xy, y^2) for
    order 2. Weights are rejected when ``|sum - 1| > 0.5`` or any
    ``|w| > 3``, and predictions outside the neighbours' z range widened by
    ``max(0.5 * span, 0.1 * span + 1)`` are replaced by the fallback.
    """
    drift_order: int = 1

    method = InterpolationMethod.KRIGING_UNIVERSAL

    def __post_init__(self):
        super().__post_init__()
        if self.drift_order not in (1, 2):
            raise ValidationError(f"drift_order must be 1 or 2, got {self.drift_order}")

    def _drift(self, u, v) -> np.ndarray:
        if self.drift_order == 2:
            return np.stack([u, v, u * u, u * v, v * v], axis=-1)
        return np.stack([u, v], axis=-1)

    def _predict(self, nb_xy, nb_z, dist, x, y, params):
        k = len(nb_xy)
        lx_min = min(x, nb_xy[:, 0].min())
        lx_max = max(x, nb_xy[:, 0].max())
        ly_min = min(y, nb_xy[:, 1].min())
        ly_max = max(y, nb_xy[:, 1].max())
        lx_range = (lx_max - lx_min) or 1.0
        ly_range = (ly_max - ly_min) or 1.0

        drift = self._drift((nb_xy[:, 0] - lx_min) / lx_range, (nb_xy[:, 1] - ly_min) / ly_range)
        target_drift = self._drift(
            np.asarray((x - lx_min) / lx_range), np.asarray((y - ly_min) / ly_range)
        )
        m = drift.shape[1]
        size = k + 1 + m

        A = np.zeros((size, size))
        A[:k, :k] = _variogram_matrix(nb_xy, self.model, params)
        A[:k, k] = 1.0
        A[k, :k] = 1.0
        A[:k, k + 1:] = drift
        A[k + 1:, :k] = drift.T

        rhs = np.zeros(size)
        rhs[:k] = variogram(dist, self.model, params)
        rhs[k] = 1.0
        rhs[k + 1:] = target_drift

        sol = solve_linear_system(A, rhs)
        if sol is None:
            return None
        w = sol[:k]
        if abs(w.sum() - 1.0) > 0.5 or np.abs(w).max() > 3:
            return None

        val = float(np.dot(w, nb_z))
        if not math.isfinite(val):
            return None

        z_min, z_max = float(nb_z.min()), float(nb_z.max())
        margin = max((z_max - z_min) * 0.5, abs(z_max - z_min) * 0.1 + 1.0)
        if z_min - margin <= val <= z_max + margin:
            return val
        return None


@dataclass
class SimpleKrigingInterpolator(_KrigingInterpolator):
    """
    Kriging around a known mean.

    Uses the covariance ``C(h) = sill + nugget - gamma(h)``. The mean
    defaults to the sample mean; nodes without neighbours get the mean.
    """
    known_mean: Optional[float] = None

    method = InterpolationMethod.KRIGING_SIMPLE

    def _prepare(self, xyz):
        self._mean = self._empty_value(xyz)

    def _empty_value(self, xyz):
        if self.known_mean is not None:
            return float(self.known_mean)
        return float(xyz[:, 2].mean()) if len(xyz) else math.nan

    def _predict(self, nb_xy, nb_z, dist, x, y, params):
        total = params.sill + params.nugget
        k = len(nb_xy)
        C = total - variogram(_pairwise_distances(nb_xy), self.model, params).reshape(k, k)
        diag = np.diag(C).copy()
        diag[diag < DIAGONAL_FLOOR] = max(params.nugget, 1e-6)
        np.fill_diagonal(C, diag)
        rhs = total - variogram(dist, self.model, params)

        w = solve_linear_system(C, rhs)
        if w is None or np.abs(w).max() > 10:
            return None

        val = self._mean + float(np.dot(w, nb_z - self._mean))
        return val if math.isfinite(val) else math.nan
