"""
Lattice Module

Regular grid of estimated values produced by the interpolators, plus the
grid-level operations (statistics, hillshade, resampling, grid math).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
from scipy.ndimage import gaussian_filter

from .validation import (
    GridSizeError,
    ValidationError,
    validate_bounds,
    validate_grid_axes,
    validate_padding,
    validate_resolution,
)


# Written for empty nodes by raster exporters
NODATA_VALUE = -9999.0


def build_grid_axes(
    bounds: Tuple[float, float, float, float],
    resolution: int = 100,
    padding: float = 0.0,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build evenly spaced lattice axes covering padded data bounds.

    Args:
        bounds: (min_x, min_y, max_x, max_y) of the samples
        resolution: Number of nodes along X (2-4000)
        padding: Extra margin on each side, in percent of the extent (0-500)

    Returns:
        (grid_x, grid_y). The Y node count follows the padded aspect ratio.

    Raises:
        ResolutionError: If resolution is out of range
        PaddingError: If padding is out of range
        BoundsError: If bounds are not finite
    """
    min_x, min_y, max_x, max_y = validate_bounds(bounds)
    nx = validate_resolution(resolution)
    pad = validate_padding(padding) / 100.0

    pad_x = (max_x - min_x) * pad
    pad_y = (max_y - min_y) * pad
    width = max_x - min_x + 2 * pad_x
    height = max_y - min_y + 2 * pad_y

    # Zero extent on an axis becomes one unit centred on the data
    if width <= 0:
        pad_x, width = 0.5, 1.0
    if height <= 0:
        pad_y, height = 0.5, 1.0

    ny = max(2, int(math.floor(nx * height / width + 0.5)) or nx)

    grid_x = (min_x - pad_x) + np.arange(nx) * (width / (nx - 1))
    grid_y = (min_y - pad_y) + np.arange(ny) * (height / (ny - 1))
    return grid_x, grid_y


@dataclass
class Lattice:
    """
    Regular grid of values over two coordinate axes.

    Values are stored row-major: node (i, j) at column i of ``grid_x`` and
    row j of ``grid_y`` lives at ``values[j * nx + i]``. NaN marks nodes
    without an estimate.

    Attributes:
        grid_x: Node X coordinates (length nx)
        grid_y: Node Y coordinates (length ny)
        values: Flat value buffer of length nx * ny
        crs: Coordinate reference system carried through from the samples
    """
    grid_x: np.ndarray
    grid_y: np.ndarray
    values: np.ndarray
    crs: Optional[str] = None

    def __post_init__(self):
        self.grid_x, self.grid_y = validate_grid_axes(self.grid_x, self.grid_y)
        values = np.asarray(self.values, dtype=np.float64)
        expected = len(self.grid_x) * len(self.grid_y)
        if values.size != expected:
            raise GridSizeError(
                f"Lattice needs {len(self.grid_x)} x {len(self.grid_y)} = {expected} "
                f"values, got {values.size}"
            )
        self.values = values.reshape(-1)

    @classmethod
    def filled(cls, grid_x, grid_y, value: float = np.nan, crs: Optional[str] = None) -> Lattice:
        """Lattice with every node set to ``value``."""
        grid_x = np.asarray(grid_x, dtype=np.float64)
        grid_y = np.asarray(grid_y, dtype=np.float64)
        return cls(grid_x, grid_y, np.full(len(grid_x) * len(grid_y), value), crs=crs)

    def with_values(self, values) -> Lattice:
        """New lattice on the same axes."""
        return Lattice(self.grid_x.copy(), self.grid_y.copy(), np.asarray(values, dtype=np.float64), crs=self.crs)

    @property
    def nx(self) -> int:
        return len(self.grid_x)

    @property
    def ny(self) -> int:
        return len(self.grid_y)

    @property
    def shape(self) -> Tuple[int, int]:
        """Grid dimensions (ny, nx)."""
        return (self.ny, self.nx)

    @property
    def dx(self) -> float:
        return float(self.grid_x[1] - self.grid_x[0]) if self.nx > 1 else 1.0

    @property
    def dy(self) -> float:
        return float(self.grid_y[1] - self.grid_y[0]) if self.ny > 1 else 1.0

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Node extent (min_x, min_y, max_x, max_y)."""
        if self.nx == 0 or self.ny == 0:
            return (math.nan, math.nan, math.nan, math.nan)
        return (
            float(self.grid_x.min()), float(self.grid_y.min()),
            float(self.grid_x.max()), float(self.grid_y.max()),
        )

    def as_array(self) -> np.ndarray:
        """Values as a (ny, nx) view."""
        return self.values.reshape(self.ny, self.nx)

    def value_at(self, i: int, j: int) -> float:
        """Value at column i, row j."""
        return float(self.values[j * self.nx + i])

    @property
    def valid_mask(self) -> np.ndarray:
        return ~np.isnan(self.values)

    def sample(self, x: float, y: float) -> float:
        """
        Bilinear sample at (x, y).

        Returns NaN outside the lattice or when a surrounding node is empty.
        """
        if self.nx < 2 or self.ny < 2:
            return math.nan

        fx = (x - self.grid_x[0]) / self.dx
        fy = (y - self.grid_y[0]) / self.dy
        if fx < 0 or fy < 0 or fx > self.nx - 1 or fy > self.ny - 1:
            return math.nan

        i0 = min(int(math.floor(fx)), self.nx - 2)
        j0 = min(int(math.floor(fy)), self.ny - 2)
        tx, ty = fx - i0, fy - j0

        grid = self.as_array()
        z00, z10 = grid[j0, i0], grid[j0, i0 + 1]
        z01, z11 = grid[j0 + 1, i0], grid[j0 + 1, i0 + 1]

        z0 = z00 * (1 - tx) + z10 * tx
        z1 = z01 * (1 - tx) + z11 * tx
        return float(z0 * (1 - ty) + z1 * ty)

    def statistics(self) -> dict:
        """Summary of valid node values."""
        valid = self.values[~np.isnan(self.values)]
        count = int(valid.size)
        return {
            "min": float(valid.min()) if count else math.nan,
            "max": float(valid.max()) if count else math.nan,
            "mean": float(valid.mean()) if count else 0.0,
            "std_dev": float(valid.std()) if count else 0.0,
            "count": count,
            "null_count": int(self.values.size - count),
            "nx": self.nx,
            "ny": self.ny,
            "cells": int(self.values.size),
        }

    def hillshade(
        self,
        azimuth: float = 315.0,
        altitude: float = 45.0,
        z_factor: float = 1.0,
    ) -> np.ndarray:
        """
        Shaded-relief intensity (0-255) for each node.

        Uses central differences on interior nodes; border nodes copy their
        inner neighbour. Returns a flat array in the lattice's row-major order.
        """
        nx, ny = self.nx, self.ny
        shade = np.zeros((ny, nx))
        if nx < 3 or ny < 3:
            return shade.reshape(-1)

        grid = self.as_array()
        az = math.radians(360.0 - azimuth + 90.0)
        alt = math.radians(altitude)

        dzdx = (grid[1:-1, 2:] - grid[1:-1, :-2]) * z_factor / (2 * self.dx)
        dzdy = (grid[2:, 1:-1] - grid[:-2, 1:-1]) * z_factor / (2 * self.dy)
        slope = np.arctan(np.sqrt(dzdx ** 2 + dzdy ** 2))
        aspect = np.arctan2(dzdy, -dzdx)

        hs = (np.cos(az - aspect) * np.sin(slope) * math.cos(alt)
              + math.sin(alt) * np.cos(slope))
        shade[1:-1, 1:-1] = np.clip(hs * 255.0, 0.0, 255.0)

        # Edges copy the adjacent interior row/column
        shade[0, :] = shade[1, :]
        shade[-1, :] = shade[-2, :]
        shade[:, 0] = shade[:, 1]
        shade[:, -1] = shade[:, -2]
        return shade.reshape(-1)

    def combine(self, other: Union[Lattice, np.ndarray], operation: str) -> Lattice:
        """
        Node-wise arithmetic with another lattice of the same shape.

        Args:
            other: Lattice or flat array of the same length
            operation: "add", "subtract", "multiply" or "divide"
                (division by zero gives NaN)

        Raises:
            GridSizeError: If shapes differ
            ValidationError: If the operation is unknown
        """
        b = other.values if isinstance(other, Lattice) else np.asarray(other, dtype=np.float64).reshape(-1)
        if b.size != self.values.size:
            raise GridSizeError(
                f"Cannot combine lattices of {self.values.size} and {b.size} nodes"
            )

        a = self.values
        if operation == "add":
            result = a + b
        elif operation == "subtract":
            result = a - b
        elif operation == "multiply":
            result = a * b
        elif operation == "divide":
            with np.errstate(divide="ignore", invalid="ignore"):
                result = np.where(b != 0, a / np.where(b != 0, b, 1.0), np.nan)
        else:
            raise ValidationError(
                f"Unknown grid operation '{operation}'. "
                "Use add, subtract, multiply or divide."
            )
        return self.with_values(result)

    def resample(self, new_nx: int, new_ny: int) -> Lattice:
        """Bilinear resampling onto ``new_nx`` x ``new_ny`` nodes over the same extent."""
        new_nx = validate_resolution(new_nx, "new_nx")
        new_ny = validate_resolution(new_ny, "new_ny")
        if self.nx < 1 or self.ny < 1:
            raise GridSizeError("Cannot resample an empty lattice")

        sx = np.arange(new_nx) * (self.nx - 1) / (new_nx - 1)
        sy = np.arange(new_ny) * (self.ny - 1) / (new_ny - 1)
        x0 = np.floor(sx).astype(int)
        y0 = np.floor(sy).astype(int)
        x1 = np.minimum(x0 + 1, self.nx - 1)
        y1 = np.minimum(y0 + 1, self.ny - 1)
        fx = (sx - x0)[None, :]
        fy = (sy - y0)[:, None]

        g = self.as_array()
        result = (
            g[np.ix_(y0, x0)] * (1 - fx) * (1 - fy)
            + g[np.ix_(y0, x1)] * fx * (1 - fy)
            + g[np.ix_(y1, x0)] * (1 - fx) * fy
            + g[np.ix_(y1, x1)] * fx * fy
        )

        grid_x = np.linspace(self.grid_x[0], self.grid_x[-1], new_nx)
        grid_y = np.linspace(self.grid_y[0], self.grid_y[-1], new_ny)
        return Lattice(grid_x, grid_y, result.reshape(-1), crs=self.crs)

    def smooth(self, sigma: float = 1.0) -> Lattice:
        """Apply Gaussian smoothing, keeping empty nodes empty."""
        grid = self.as_array()
        nodata_mask = np.isnan(grid)
        if nodata_mask.all():
            return self.with_values(self.values.copy())

        filled = np.where(nodata_mask, np.nanmean(grid), grid)
        smoothed = gaussian_filter(filled, sigma=sigma)
        smoothed[nodata_mask] = np.nan
        return self.with_values(smoothed.reshape(-1))

    def to_geotiff(self, filepath: str) -> None:
        """Export lattice to GeoTIFF (requires rasterio)."""
        from .validation import validate_output_path

        filepath = str(validate_output_path(filepath, "GeoTIFF output"))

        try:
            import rasterio
            from rasterio.transform import from_origin
        except ImportError:
            raise ImportError(
                "rasterio required for GeoTIFF export. "
                "Install with: pip install rasterio"
            )

        dx, dy = abs(self.dx), abs(self.dy)
        min_x, _, _, max_y = self.bounds
        transform = from_origin(min_x - dx / 2, max_y + dy / 2, dx, dy)

        # Flip vertically (GeoTIFF rows run north to south)
        data = np.flipud(self.as_array())
        data = np.where(np.isnan(data), NODATA_VALUE, data)

        with rasterio.open(
            filepath,
            'w',
            driver='GTiff',
            height=self.ny,
            width=self.nx,
            count=1,
            dtype=data.dtype,
            crs=self.crs,
            transform=transform,
            nodata=NODATA_VALUE,
        ) as dst:
            dst.write(data, 1)
