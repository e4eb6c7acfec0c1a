"""
Gridding Pipeline

End-to-end runs: samples to a masked lattice with statistics and hillshade,
then lattice (or triangulation) to contours and filled bands.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import numpy as np

from ..config import ContourMethod, ContourSettings, GridSettings
from ..core.lattice import Lattice, build_grid_axes
from ..core.triangulation import triangulate
from ..core.validation import EmptyResultError
from ..interpolation import InterpolationMethod, as_xyz, create_interpolator
from ..utils.progress import as_reporter
from .boundaries import Boundary, apply_boundary_mask
from .breaklines import Breakline, merge_breakline_points
from .contours import (
    Contour,
    FilledBand,
    contour_levels,
    filled_contours,
    grid_contours,
    smooth_contours,
    tin_contours,
)

logger = logging.getLogger(__name__)


@dataclass
class GridResult:
    """
    Output of :func:`grid_points`.

    Attributes:
        lattice: Interpolated (and masked) lattice
        statistics: ``Lattice.statistics()`` of the masked lattice
        hillshade: Flat shaded-relief intensities (0-255)
        settings: Settings used for the run
        elapsed: Wall-clock seconds spent
    """
    lattice: Lattice
    statistics: dict
    hillshade: np.ndarray
    settings: GridSettings
    elapsed: float = 0.0

    def summary(self) -> dict:
        return {
            "method": self.settings.method.value,
            "elapsed_seconds": round(self.elapsed, 3),
            **self.statistics,
        }


@dataclass
class ContourResult:
    """Output of :func:`contour_grid`."""
    contours: List[Contour]
    filled: List[FilledBand] = field(default_factory=list)
    levels: List[float] = field(default_factory=list)

    @property
    def n_polylines(self) -> int:
        return sum(len(c.polylines) for c in self.contours)


def grid_points(
    points,
    settings: Optional[GridSettings] = None,
    boundaries: Optional[Sequence[Boundary]] = None,
    breaklines: Optional[Sequence[Breakline]] = None,
    on_progress=None,
) -> GridResult:
    """
    Interpolate samples onto a lattice covering their padded extent.

    Breaklines are densified at the cell size for the TIN method (which
    also receives their constraint edges) and at a third of it otherwise.

    Args:
        points: PointSet or N x 3 array-like
        settings: Gridding parameters (defaults if None)
        boundaries: Optional outer/inner masking polygons
        breaklines: Optional breaklines
        on_progress: Optional callback receiving a fraction in [0, 1]

    Raises:
        EmptyResultError: If there are no samples
        ValidationError: For invalid settings
    """
    settings = settings or GridSettings()
    progress = as_reporter(on_progress)
    started = time.perf_counter()

    xyz = as_xyz(points)
    if len(xyz) == 0:
        raise EmptyResultError("No samples to grid. Load a point set with at least one point.")

    bounds = (xyz[:, 0].min(), xyz[:, 1].min(), xyz[:, 0].max(), xyz[:, 1].max())
    grid_x, grid_y = build_grid_axes(bounds, settings.resolution, settings.padding)
    logger.info(
        "Gridding %d samples with %s onto %d x %d nodes",
        len(xyz), settings.method.value, len(grid_x), len(grid_y),
    )

    n_data = len(xyz)
    constraint_edges = None
    if breaklines:
        cell = (grid_x[1] - grid_x[0]) or 1.0
        use_tin = settings.method is InterpolationMethod.TIN
        xyz, edges = merge_breakline_points(xyz, breaklines, cell if use_tin else cell / 3)
        if use_tin and edges:
            constraint_edges = edges
        logger.debug("Breaklines added %d samples and %d constraint edges", len(xyz) - n_data, len(edges))
    progress(0.1)

    interpolator = create_interpolator(settings, constraint_edges=constraint_edges)
    lattice = interpolator.interpolate(xyz, grid_x, grid_y, on_progress=progress.child(0.1, 0.6))
    lattice.crs = getattr(points, "crs", None)

    if boundaries:
        lattice = apply_boundary_mask(lattice, boundaries)
    progress(0.7)

    stats = lattice.statistics()
    hillshade = lattice.hillshade(
        settings.hillshade_azimuth, settings.hillshade_altitude, settings.hillshade_z_factor
    )
    progress.finish()

    elapsed = time.perf_counter() - started
    logger.info("Gridding finished in %.2fs (%d empty nodes)", elapsed, stats["null_count"])
    return GridResult(lattice=lattice, statistics=stats, hillshade=hillshade, settings=settings, elapsed=elapsed)


def contour_grid(
    source: Union[GridResult, Lattice],
    settings: Optional[ContourSettings] = None,
    points=None,
    breaklines: Optional[Sequence[Breakline]] = None,
) -> ContourResult:
    """
    Contour a gridding result.

    The interval defaults to a tenth of the lattice value range. With the
    TIN method and samples given, isolines are traced over a triangulation
    of the samples (plus densified breaklines at the cell size); otherwise
    marching squares runs over the lattice. Filled bands always come from
    the lattice.

    Args:
        source: GridResult or Lattice
        settings: Contouring parameters (defaults if None)
        points: Samples for the TIN method
        breaklines: Breaklines for the TIN method
    """
    settings = settings or ContourSettings()
    lattice = source.lattice if isinstance(source, GridResult) else source
    stats = lattice.statistics()
    if stats["count"] == 0:
        return ContourResult(contours=[])

    interval = settings.interval or (stats["max"] - stats["min"]) / 10
    if not interval > 0:
        logger.info("Lattice is flat; no contours generated")
        return ContourResult(contours=[])
    levels = contour_levels(stats["min"], stats["max"], interval)

    samples = as_xyz(points) if points is not None else np.zeros((0, 3))
    if settings.method is ContourMethod.TIN and len(samples):
        constraint_edges = None
        if breaklines:
            cell = abs(lattice.dx) if lattice.nx > 1 else 1.0
            samples, edges = merge_breakline_points(samples, breaklines, cell)
            constraint_edges = edges or None
        tin = triangulate(samples, constraint_edges)
        contours = tin_contours(tin, levels)
    else:
        contours = grid_contours(lattice, levels)

    if settings.smoothing > 0:
        contours = smooth_contours(contours, settings.smoothing)

    filled = filled_contours(lattice, levels) if settings.filled else []
    logger.info("Generated %d contour levels (interval %.4g)", len(contours), interval)
    return ContourResult(contours=contours, filled=filled, levels=levels)
