"""Interpolation algorithms producing lattices from scattered samples."""

from __future__ import annotations

import math
from typing import Dict, Optional, Sequence, Tuple, Type

from .base import InterpolationMethod, Interpolator, as_xyz
from .binning import DataMetric, DataMetricsInterpolator
from .distance import (
    IDWInterpolator,
    ModifiedShepardInterpolator,
    MovingAverageInterpolator,
    NaturalNeighborInterpolator,
    NearestNeighborInterpolator,
)
from .kriging import (
    OrdinaryKrigingInterpolator,
    SimpleKrigingInterpolator,
    UniversalKrigingInterpolator,
    VariogramModel,
    VariogramParams,
    estimate_variogram_params,
    ordinary_kriging_weights,
    variogram,
)
from .minimum_curvature import MinimumCurvatureInterpolator
from .rbf import RBFBasis, RBFInterpolator
from .regression import PolynomialRegressionInterpolator
from .tin_linear import TINInterpolator

INTERPOLATORS: Dict[InterpolationMethod, Type[Interpolator]] = {
    InterpolationMethod.IDW: IDWInterpolator,
    InterpolationMethod.NATURAL_NEIGHBOR: NaturalNeighborInterpolator,
    InterpolationMethod.MINIMUM_CURVATURE: MinimumCurvatureInterpolator,
    InterpolationMethod.KRIGING_ORDINARY: OrdinaryKrigingInterpolator,
    InterpolationMethod.KRIGING_UNIVERSAL: UniversalKrigingInterpolator,
    InterpolationMethod.KRIGING_SIMPLE: SimpleKrigingInterpolator,
    InterpolationMethod.RBF: RBFInterpolator,
    InterpolationMethod.TIN: TINInterpolator,
    InterpolationMethod.NEAREST: NearestNeighborInterpolator,
    InterpolationMethod.MOVING_AVERAGE: MovingAverageInterpolator,
    InterpolationMethod.POLYNOMIAL_REGRESSION: PolynomialRegressionInterpolator,
    InterpolationMethod.MODIFIED_SHEPARD: ModifiedShepardInterpolator,
    InterpolationMethod.DATA_METRICS: DataMetricsInterpolator,
}


def create_interpolator(
    settings,
    constraint_edges: Optional[Sequence[Tuple[int, int]]] = None,
) -> Interpolator:
    """
    Instantiate the interpolator selected by a GridSettings record.

    Args:
        settings: GridSettings (or any object with the same attributes)
        constraint_edges: Breakline edges, only used by the TIN method

    Returns:
        Configured Interpolator
    """
    s = settings
    method = InterpolationMethod(s.method)
    radius = math.inf if s.search_radius is None else s.search_radius
    kriging = dict(
        model=s.variogram_model,
        max_neighbors=s.max_neighbors,
        sill=s.sill,
        range=s.range,
        nugget=s.nugget,
    )

    options = {
        InterpolationMethod.IDW: dict(
            power=s.power, search_radius=radius, max_neighbors=s.max_neighbors,
        ),
        InterpolationMethod.MINIMUM_CURVATURE: dict(
            tension=s.tension,
            max_iterations=s.max_iterations,
            convergence=s.convergence,
            relaxation=s.relaxation,
        ),
        InterpolationMethod.KRIGING_ORDINARY: kriging,
        InterpolationMethod.KRIGING_UNIVERSAL: dict(kriging, drift_order=s.drift_order),
        InterpolationMethod.KRIGING_SIMPLE: dict(kriging, known_mean=s.known_mean),
        InterpolationMethod.RBF: dict(
            basis=s.rbf_basis, shape_param=s.rbf_shape, smoothing=s.rbf_smoothing,
        ),
        InterpolationMethod.TIN: dict(constraint_edges=constraint_edges),
        InterpolationMethod.NEAREST: dict(search_radius=radius),
        InterpolationMethod.MOVING_AVERAGE: dict(
            search_radius=s.search_radius,
            min_points=s.min_points,
            weighted=s.weighted,
        ),
        InterpolationMethod.POLYNOMIAL_REGRESSION: dict(order=s.poly_order),
        InterpolationMethod.MODIFIED_SHEPARD: dict(power=s.power, neighbors=s.shepard_neighbors),
        InterpolationMethod.DATA_METRICS: dict(metric=s.data_metric),
    }
    return INTERPOLATORS[method](**options.get(method, {}))


__all__ = [
    "InterpolationMethod",
    "Interpolator",
    "INTERPOLATORS",
    "create_interpolator",
    "as_xyz",
    "IDWInterpolator",
    "NaturalNeighborInterpolator",
    "MinimumCurvatureInterpolator",
    "OrdinaryKrigingInterpolator",
    "UniversalKrigingInterpolator",
    "SimpleKrigingInterpolator",
    "RBFInterpolator",
    "RBFBasis",
    "TINInterpolator",
    "NearestNeighborInterpolator",
    "MovingAverageInterpolator",
    "PolynomialRegressionInterpolator",
    "ModifiedShepardInterpolator",
    "DataMetricsInterpolator",
    "DataMetric",
    "VariogramModel",
    "VariogramParams",
    "variogram",
    "estimate_variogram_params",
    "ordinary_kriging_weights",
]
