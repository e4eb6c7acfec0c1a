"""
Input Validation Module

Provides validation functions and custom exceptions for the gridforge package.
All validation functions provide clear, actionable error messages.
"""

from __future__ import annotations

import math
import os
import warnings
from pathlib import Path
from typing import Sequence, Tuple, Union

import numpy as np


# Grid resolution limits (number of columns along X)
MIN_RESOLUTION = 2
MAX_RESOLUTION = 4000

# Padding limits, in percent of the data extent
MAX_PADDING = 500.0

# Hard cap on lattice size; anything above this is refused outright
MAX_GRID_CELLS = 400_000_000


class ValidationError(ValueError):
    """Base exception for validation errors with user-friendly messages."""
    pass


class ResolutionError(ValidationError):
    """Invalid grid resolution."""
    pass


class PaddingError(ValidationError):
    """Invalid padding percentage."""
    pass


class BoundsError(ValidationError):
    """Bounds are not finite or have no extent."""
    pass


class GeometryError(ValidationError):
    """Malformed boundary or breakline geometry."""
    pass


class MatrixShapeError(ValidationError):
    """Linear system has incompatible dimensions."""
    pass


class GridSizeError(ValidationError):
    """Lattice buffers are malformed or too large."""
    pass


class EmptyResultError(ValidationError):
    """Calculation produced no results."""
    pass


class FilePermissionError(ValidationError):
    """Cannot write to specified path."""
    pass


def validate_resolution(resolution: int, context: str = "resolution") -> int:
    """
    Validate the number of grid columns.

    Args:
        resolution: Number of lattice nodes along the X axis
        context: Description used in error messages

    Returns:
        The validated resolution as an int

    Raises:
        ResolutionError: If resolution is not an integer in [2, 4000]
    """
    if resolution is None:
        raise ResolutionError(f"{context} cannot be None")

    if isinstance(resolution, bool) or not isinstance(resolution, (int, float, np.integer)):
        raise ResolutionError(
            f"{context} must be a number, got {type(resolution).__name__}"
        )

    if not math.isfinite(resolution) or int(resolution) != resolution:
        raise ResolutionError(f"{context} must be a whole number, got {resolution}")

    if resolution < MIN_RESOLUTION or resolution > MAX_RESOLUTION:
        raise ResolutionError(
            f"Invalid {context}: {resolution}. Must be between "
            f"{MIN_RESOLUTION} and {MAX_RESOLUTION}."
        )

    return int(resolution)


def validate_padding(padding: float) -> float:
    """
    Validate grid padding given as a percentage of the data extent.

    Raises:
        PaddingError: If padding is not a finite number in [0, 500]
    """
    if padding is None or not isinstance(padding, (int, float, np.floating, np.integer)):
        raise PaddingError(f"padding must be a number, got {padding!r}")

    if not math.isfinite(padding) or padding < 0 or padding > MAX_PADDING:
        raise PaddingError(
            f"Invalid padding: {padding}. Must be between 0 and {MAX_PADDING:.0f}."
        )

    return float(padding)


def validate_bounds(
    bounds: Tuple[float, float, float, float],
) -> Tuple[float, float, float, float]:
    """
    Validate (min_x, min_y, max_x, max_y) bounds.

    Raises:
        BoundsError: If any value is not finite or max < min
    """
    if bounds is None or len(bounds) != 4:
        raise BoundsError(
            f"bounds must be (min_x, min_y, max_x, max_y), got {bounds!r}"
        )

    min_x, min_y, max_x, max_y = (float(v) for v in bounds)
    if not all(math.isfinite(v) for v in (min_x, min_y, max_x, max_y)):
        raise BoundsError("Invalid bounds: all values must be finite numbers")

    if max_x < min_x or max_y < min_y:
        raise BoundsError(
            f"Invalid bounds: max ({max_x}, {max_y}) is below min ({min_x}, {min_y})"
        )

    return (min_x, min_y, max_x, max_y)


def validate_positive(value: float, name: str, allow_inf: bool = False) -> float:
    """
    Validate that a parameter is a positive number.

    Args:
        value: Value to check
        name: Parameter name used in error messages
        allow_inf: Accept +inf (e.g. an unlimited search radius)

    Returns:
        The validated value as a float

    Raises:
        ValidationError: If value is None, not a number, or <= 0
    """
    if value is None:
        raise ValidationError(f"{name} cannot be None")

    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        raise ValidationError(f"{name} must be a number, got {type(value).__name__}")

    if math.isnan(value) or value <= 0:
        raise ValidationError(f"{name} must be positive, got {value}")

    if math.isinf(value) and not allow_inf:
        raise ValidationError(f"{name} must be finite, got {value}")

    return float(value)


def validate_power(power: float, context: str = "power") -> float:
    """
    Validate an inverse-distance power exponent.

    Raises:
        ValidationError: If power is not a positive finite number
    """
    power = validate_positive(power, context)

    if power > 10:
        warnings.warn(
            f"{context} of {power} is unusually high; estimates will behave "
            "like nearest neighbour. Typical values are 1-4.",
            UserWarning,
            stacklevel=2
        )

    return power


def validate_neighbor_count(count: int, name: str = "max_neighbors", minimum: int = 0) -> int:
    """
    Validate a neighbour count parameter.

    Raises:
        ValidationError: If count is not an integer >= minimum
    """
    if count is None or isinstance(count, bool) or int(count) != count:
        raise ValidationError(f"{name} must be an integer, got {count!r}")

    if count < minimum:
        raise ValidationError(f"{name} must be at least {minimum}, got {count}")

    return int(count)


def validate_points_array(points: np.ndarray, context: str = "points") -> np.ndarray:
    """
    Validate an N x 3 coordinate array.

    Raises:
        ValidationError: If the array does not have shape (N, 3)
    """
    arr = np.asarray(points, dtype=np.float64)

    if arr.size == 0:
        return arr.reshape(0, 3)

    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValidationError(
            f"{context} must be an N x 3 array of (x, y, z), got shape {arr.shape}"
        )

    return arr


def validate_grid_axes(grid_x, grid_y) -> Tuple[np.ndarray, np.ndarray]:
    """
    Validate lattice axis arrays.

    Raises:
        GridSizeError: If an axis is not 1-D, not finite, or the grid is oversized
    """
    gx = np.asarray(grid_x, dtype=np.float64)
    gy = np.asarray(grid_y, dtype=np.float64)

    for name, axis in (("grid_x", gx), ("grid_y", gy)):
        if axis.ndim != 1:
            raise GridSizeError(f"{name} must be one-dimensional, got shape {axis.shape}")
        if not np.all(np.isfinite(axis)):
            raise GridSizeError(f"{name} contains non-finite coordinates")

    validate_grid_dimensions(len(gy), len(gx))
    return gx, gy


def validate_grid_dimensions(rows: int, cols: int) -> None:
    """
    Validate that grid dimensions are valid.

    Args:
        rows: Number of rows (ny)
        cols: Number of columns (nx)

    Raises:
        GridSizeError: If dimensions are negative or exceed the hard cap
    """
    if rows < 0 or cols < 0:
        raise GridSizeError(f"Invalid grid dimensions ({rows} rows x {cols} cols).")

    total_cells = rows * cols
    if total_cells > MAX_GRID_CELLS:
        raise GridSizeError(
            f"Grid of {rows}x{cols} = {total_cells:,} cells exceeds the limit of "
            f"{MAX_GRID_CELLS:,}. Use a coarser resolution."
        )

    # Warn on very large grids
    if total_cells > 16_000_000:
        warnings.warn(
            f"Creating very large grid ({rows}x{cols} = {total_cells:,} cells). "
            "Consider using a coarser resolution to reduce run time.",
            UserWarning,
            stacklevel=2
        )


def validate_polygon(
    vertices: Sequence[Sequence[float]],
    context: str = "boundary",
) -> np.ndarray:
    """
    Validate polygon vertices.

    Args:
        vertices: Sequence of (x, y[, ...]) vertices; the ring may be open or closed
        context: Description used in error messages

    Returns:
        Float array of shape (N, 2)

    Raises:
        GeometryError: If fewer than 3 distinct vertices or non-finite coordinates
    """
    try:
        arr = np.asarray([(v[0], v[1]) for v in vertices], dtype=np.float64)
    except (TypeError, IndexError, ValueError) as e:
        raise GeometryError(f"{context} vertices must be (x, y) pairs: {e}") from e

    if len(arr) > 1 and np.allclose(arr[0], arr[-1]):
        arr = arr[:-1]

    if len(arr) < 3:
        raise GeometryError(
            f"{context} needs at least 3 vertices, got {len(arr)}"
        )

    if not np.all(np.isfinite(arr)):
        raise GeometryError(f"{context} contains non-finite coordinates")

    return arr


def validate_polyline(
    vertices: Sequence[Sequence[float]],
    min_dims: int = 3,
    context: str = "breakline",
) -> list:
    """
    Validate polyline vertices.

    Args:
        vertices: Sequence of vertex tuples
        min_dims: Minimum number of values per vertex (2 for x,y; 3 for x,y,z; 4 for walls)
        context: Description used in error messages

    Returns:
        List of float tuples

    Raises:
        GeometryError: If fewer than 2 vertices or vertices are too short
    """
    if vertices is None or len(vertices) < 2:
        raise GeometryError(f"{context} needs at least 2 vertices")

    result = []
    for i, v in enumerate(vertices):
        if len(v) < min_dims:
            raise GeometryError(
                f"{context} vertex {i} has {len(v)} values, expected at least {min_dims}"
            )
        values = tuple(float(c) for c in v)
        if not all(math.isfinite(c) for c in values[:min_dims]):
            raise GeometryError(f"{context} vertex {i} contains non-finite values")
        result.append(values)

    return result


def validate_output_path(filepath: Union[str, Path], context: str = "output file") -> Path:
    """
    Validate output path is writable before attempting to write.

    Args:
        filepath: The path to validate
        context: Description of what will be written (used in error messages)

    Returns:
        The validated path as a Path object

    Raises:
        FilePermissionError: If directory doesn't exist or isn't writable
    """
    path = Path(filepath)
    parent = path.parent

    # Handle empty parent (current directory)
    if str(parent) == '.':
        parent = Path.cwd()

    if not parent.exists():
        raise FilePermissionError(
            f"Cannot write {context}: directory '{parent}' does not exist. "
            "Create the directory first or specify a different path."
        )

    if not os.access(parent, os.W_OK):
        raise FilePermissionError(
            f"Cannot write {context}: no write permission for directory '{parent}'."
        )

    if path.exists() and not os.access(path, os.W_OK):
        raise FilePermissionError(
            f"Cannot overwrite {context}: file '{path}' exists but is not writable."
        )

    return path
