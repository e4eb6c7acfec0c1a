"""
Configuration Module

Settings records for gridding and contouring runs. Both serialize to plain
dictionaries (enum members as their string values) so they can be stored
as JSON next to the outputs.
"""

from __future__ import annotations

import dataclasses
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .core.validation import (
    ValidationError,
    validate_padding,
    validate_positive,
    validate_resolution,
)
from .interpolation.base import InterpolationMethod
from .interpolation.binning import DataMetric
from .interpolation.kriging import VariogramModel
from .interpolation.rbf import RBFBasis


class ContourMethod(Enum):
    """Source surface for isolines."""
    GRID = "grid"   # Marching squares over the lattice
    TIN = "tin"     # Direct tracing over a triangulation of the samples


_ENUM_FIELDS = {
    "method": InterpolationMethod,
    "variogram_model": VariogramModel,
    "rbf_basis": RBFBasis,
    "data_metric": DataMetric,
}


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - names)
    if unknown:
        warnings.warn(
            f"Ignoring unknown {cls.__name__} keys: {', '.join(unknown)}",
            UserWarning,
            stacklevel=3,
        )
    return {k: v for k, v in data.items() if k in names}


def _to_dict(obj) -> Dict[str, Any]:
    return {
        f.name: (getattr(obj, f.name).value if isinstance(getattr(obj, f.name), Enum) else getattr(obj, f.name))
        for f in dataclasses.fields(obj)
    }


@dataclass
class GridSettings:
    """
    Parameters of one gridding run.

    Only the parameters read by the selected ``method`` matter; the rest
    keep their defaults.

    Attributes:
        method: Interpolation algorithm
        resolution: Lattice nodes along X (2-4000)
        padding: Margin around the data in percent of its extent (0-500)
        power: IDW / modified Shepard distance exponent
        search_radius: IDW, nearest and moving-average radius (None = unlimited,
            or a tenth of the data extent for moving average)
        max_neighbors: IDW and kriging neighbourhood size
        tension: Minimum curvature tension (0-1)
        max_iterations: Minimum curvature sweep limit
        convergence: Minimum curvature stopping threshold
        relaxation: Minimum curvature relaxation factor
        variogram_model: Kriging variogram model
        sill: Kriging sill override (None = estimate)
        range: Kriging range override (None = estimate)
        nugget: Kriging nugget override (None = estimate)
        drift_order: Universal kriging drift order (1 or 2)
        known_mean: Simple kriging mean (None = data mean)
        rbf_basis: RBF kernel
        rbf_shape: RBF shape parameter
        rbf_smoothing: RBF diagonal smoothing
        poly_order: Polynomial regression order (1-4)
        shepard_neighbors: Modified Shepard neighbourhood size
        data_metric: Statistic for data metrics gridding
        min_points: Moving-average minimum sample count
        weighted: Moving-average inverse distance weighting
        hillshade_azimuth: Light direction in degrees
        hillshade_altitude: Light elevation in degrees
        hillshade_z_factor: Vertical exaggeration for the hillshade
    """
    method: InterpolationMethod = InterpolationMethod.IDW
    resolution: int = 50
    padding: float = 5.0

    power: float = 2.0
    search_radius: Optional[float] = None
    max_neighbors: int = 16

    tension: float = 0.25
    max_iterations: int = 200
    convergence: float = 0.001
    relaxation: float = 1.0

    variogram_model: VariogramModel = VariogramModel.SPHERICAL
    sill: Optional[float] = None
    range: Optional[float] = None
    nugget: Optional[float] = None
    drift_order: int = 1
    known_mean: Optional[float] = None

    rbf_basis: RBFBasis = RBFBasis.MULTIQUADRIC
    rbf_shape: float = 1.0
    rbf_smoothing: float = 0.0

    poly_order: int = 2
    shepard_neighbors: int = 12
    data_metric: DataMetric = DataMetric.MEAN
    min_points: int = 1
    weighted: bool = True

    hillshade_azimuth: float = 315.0
    hillshade_altitude: float = 45.0
    hillshade_z_factor: float = 1.0

    def __post_init__(self):
        for name, enum_cls in _ENUM_FIELDS.items():
            value = getattr(self, name)
            if not isinstance(value, enum_cls):
                try:
                    setattr(self, name, enum_cls(value))
                except ValueError:
                    choices = ", ".join(m.value for m in enum_cls)
                    raise ValidationError(
                        f"Invalid {name} '{value}'. Choose one of: {choices}"
                    ) from None

        self.resolution = validate_resolution(self.resolution)
        self.padding = validate_padding(self.padding)
        if self.search_radius is not None:
            self.search_radius = validate_positive(self.search_radius, "search_radius", allow_inf=True)
        self.hillshade_z_factor = validate_positive(self.hillshade_z_factor, "hillshade_z_factor")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> GridSettings:
        """Build settings from a dictionary; unknown keys are ignored with a warning."""
        return cls(**_known_fields(cls, data))

    def to_dict(self) -> Dict[str, Any]:
        return _to_dict(self)


@dataclass
class ContourSettings:
    """
    Parameters of one contouring run.

    Attributes:
        interval: Level spacing (None = a tenth of the value range)
        method: Trace over the lattice or over a triangulation of the samples
        smoothing: Chaikin smoothing factor (0 = off)
        filled: Also build filled bands
    """
    interval: Optional[float] = None
    method: ContourMethod = ContourMethod.GRID
    smoothing: float = 0.0
    filled: bool = True

    def __post_init__(self):
        if not isinstance(self.method, ContourMethod):
            try:
                self.method = ContourMethod(self.method)
            except ValueError:
                raise ValidationError(
                    f"Invalid contour method '{self.method}'. Choose 'grid' or 'tin'"
                ) from None
        if self.interval is not None:
            self.interval = validate_positive(self.interval, "interval")
        if not self.smoothing >= 0:
            raise ValidationError(f"smoothing must be non-negative, got {self.smoothing}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ContourSettings:
        return cls(**_known_fields(cls, data))

    def to_dict(self) -> Dict[str, Any]:
        return _to_dict(self)
