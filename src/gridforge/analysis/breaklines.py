"""
Breakline Densification

Turns breakline polylines into extra samples (and, for the triangulation,
constrained edges) so surfaces follow ridges, channels and walls.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..core.spatial_index import SpatialIndex
from ..core.validation import validate_polyline, validate_positive

# Subdivisions per breakline segment are capped at this count
MAX_SEGMENT_SUBDIVISIONS = 500


class BreaklineType(Enum):
    """How a breakline supplies elevations."""
    STANDARD = "standard"     # Vertices carry (x, y, z)
    PROXIMITY = "proximity"   # Vertices are (x, y); z from the nearest sample
    WALL = "wall"             # Vertices carry (x, y, z_top, z_bottom)


_VERTEX_DIMS = {
    BreaklineType.STANDARD: 3,
    BreaklineType.PROXIMITY: 2,
    BreaklineType.WALL: 4,
}


@dataclass
class Breakline:
    """Polyline constraint on the surface."""
    vertices: Sequence[Sequence[float]]
    kind: BreaklineType = BreaklineType.STANDARD

    def __post_init__(self):
        if not isinstance(self.kind, BreaklineType):
            self.kind = BreaklineType(self.kind)
        self.vertices = validate_polyline(
            self.vertices, _VERTEX_DIMS[self.kind], f"{self.kind.value} breakline"
        )


def _subdivisions(dx: float, dy: float, spacing: float) -> int:
    return min(MAX_SEGMENT_SUBDIVISIONS, int(math.ceil(math.hypot(dx, dy) / spacing)))


def densify_breakline(vertices, max_spacing: float) -> np.ndarray:
    """
    Resample a 3D polyline so consecutive points are at most ``max_spacing``
    apart in plan (at most 500 pieces per segment). Z is interpolated
    linearly.

    Returns:
        (N, 3) array of (x, y, z)
    """
    max_spacing = validate_positive(max_spacing, "max_spacing")
    out: List[Tuple[float, float, float]] = []
    for i, (x, y, z) in enumerate(v[:3] for v in vertices):
        out.append((x, y, z))
        if i == len(vertices) - 1:
            break
        nx_, ny_, nz_ = vertices[i + 1][:3]
        dx, dy, dz = nx_ - x, ny_ - y, nz_ - z
        n_seg = _subdivisions(dx, dy, max_spacing)
        for s in range(1, n_seg):
            t = s / n_seg
            out.append((x + dx * t, y + dy * t, z + dz * t))
    return np.asarray(out, dtype=np.float64).reshape(-1, 3)


def densify_proximity_breakline(vertices, max_spacing: float, data_points) -> np.ndarray:
    """
    Resample a 2D polyline and take each point's z from the nearest sample
    in ``data_points`` (0 when there are none).

    Returns:
        (N, 3) array of (x, y, z)
    """
    max_spacing = validate_positive(max_spacing, "max_spacing")
    data = np.asarray(getattr(data_points, "xyz", data_points), dtype=np.float64).reshape(-1, 3)
    index = SpatialIndex.build(data) if len(data) else None

    def z_at(x: float, y: float) -> float:
        if index is None:
            return 0.0
        idx, _ = index.k_nearest(x, y, 1)
        return float(data[idx[0], 2]) if len(idx) else 0.0

    out = []
    for i, v in enumerate(vertices):
        x, y = v[0], v[1]
        out.append((x, y, z_at(x, y)))
        if i == len(vertices) - 1:
            break
        dx, dy = vertices[i + 1][0] - x, vertices[i + 1][1] - y
        n_seg = _subdivisions(dx, dy, max_spacing)
        for s in range(1, n_seg):
            t = s / n_seg
            mx, my = x + dx * t, y + dy * t
            out.append((mx, my, z_at(mx, my)))
    return np.asarray(out, dtype=np.float64).reshape(-1, 3)


def _unit_normal(dx: float, dy: float) -> Tuple[float, float]:
    length = math.hypot(dx, dy) or 1.0
    return -dy / length, dx / length


def densify_wall_breakline(vertices, max_spacing: float) -> np.ndarray:
    """
    Resample a wall polyline into point pairs straddling the wall.

    Each station emits a point offset to the left of the wall direction
    carrying the top elevation and one offset to the right carrying the
    bottom elevation; the offset is a tenth of ``max_spacing``.

    Returns:
        (N, 3) array of (x, y, z), two rows per station
    """
    max_spacing = validate_positive(max_spacing, "max_spacing")
    offset = max_spacing * 0.1
    last = len(vertices) - 1
    out = []

    for i, v in enumerate(vertices):
        x, y, z_top, z_bot = v[:4]
        if i < last:
            px, py = _unit_normal(vertices[i + 1][0] - x, vertices[i + 1][1] - y)
        elif i > 0:
            px, py = _unit_normal(x - vertices[i - 1][0], y - vertices[i - 1][1])
        else:
            px, py = 0.0, 1.0
        out.append((x + px * offset, y + py * offset, z_top))
        out.append((x - px * offset, y - py * offset, z_bot))

        if i == last:
            break
        nx_, ny_, n_top, n_bot = vertices[i + 1][:4]
        dx, dy = nx_ - x, ny_ - y
        sx, sy = _unit_normal(dx, dy)
        n_seg = _subdivisions(dx, dy, max_spacing)
        for s in range(1, n_seg):
            t = s / n_seg
            mx, my = x + dx * t, y + dy * t
            out.append((mx + sx * offset, my + sy * offset, z_top + (n_top - z_top) * t))
            out.append((mx - sx * offset, my - sy * offset, z_bot + (n_bot - z_bot) * t))

    return np.asarray(out, dtype=np.float64).reshape(-1, 3)


@dataclass
class BreaklinePoints:
    """
    Result of densifying a set of breaklines.

    Attributes:
        points: (M, 3) extra samples, to be appended after the data points
        constraint_edges: Index pairs into the combined (data + extra) array
    """
    points: np.ndarray
    constraint_edges: List[Tuple[int, int]]


def process_breaklines(
    breaklines: Sequence[Breakline],
    spacing: float,
    data_points,
) -> BreaklinePoints:
    """
    Densify every breakline and chain consecutive points into constraint edges.

    Wall breaklines add points only; their paired offsets already keep the
    two sides apart, so no edges are produced for them.

    Args:
        breaklines: Breaklines to process
        spacing: Maximum distance between densified points
        data_points: Samples the extra points will be appended to; used for
            the index offset and proximity elevations
    """
    data = np.asarray(getattr(data_points, "xyz", data_points), dtype=np.float64).reshape(-1, 3)
    chunks = []
    edges: List[Tuple[int, int]] = []
    start = len(data)

    for bl in breaklines:
        if bl.kind is BreaklineType.PROXIMITY:
            pts = densify_proximity_breakline(bl.vertices, spacing, data)
        elif bl.kind is BreaklineType.WALL:
            pts = densify_wall_breakline(bl.vertices, spacing)
        else:
            pts = densify_breakline(bl.vertices, spacing)

        if bl.kind is not BreaklineType.WALL and len(pts) >= 2:
            edges.extend((start + i, start + i + 1) for i in range(len(pts) - 1))
        chunks.append(pts)
        start += len(pts)

    extra = np.vstack(chunks) if chunks else np.zeros((0, 3))
    return BreaklinePoints(points=extra, constraint_edges=edges)


def merge_breakline_points(data_points, breaklines: Optional[Sequence[Breakline]], spacing: float):
    """
    Data samples with densified breakline points appended.

    Returns:
        (combined N x 3 array, constraint edges)
    """
    data = np.asarray(getattr(data_points, "xyz", data_points), dtype=np.float64).reshape(-1, 3)
    if not breaklines:
        return data, []
    result = process_breaklines(breaklines, spacing, data)
    return np.vstack([data, result.points]), result.constraint_edges
