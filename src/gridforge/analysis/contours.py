"""
Contour Extraction Module

Isolines from a lattice (marching squares) or directly from a triangulation,
chained into polylines, optionally smoothed, plus cell-level filled bands.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..core.lattice import Lattice
from ..core.triangulation import TIN
from ..core.validation import ValidationError, validate_positive

logger = logging.getLogger(__name__)

Point2 = Tuple[float, float]
Segment = Tuple[Point2, Point2]

# Level lists longer than this are refused
MAX_CONTOUR_LEVELS = 100_000

# Value differences below this make interpolation fall back to the midpoint
FLAT_EDGE_TOLERANCE = 1e-15


@dataclass
class Polyline:
    """
    Chained contour line.

    Closed rings do not repeat their first point at the end.
    """
    points: List[Point2]
    closed: bool = False

    def __len__(self) -> int:
        return len(self.points)

    def to_array(self) -> np.ndarray:
        return np.asarray(self.points, dtype=np.float64).reshape(-1, 2)

    def segments(self) -> List[Segment]:
        pts = self.points
        n = len(pts)
        if self.closed:
            return [(pts[i], pts[(i + 1) % n]) for i in range(n)]
        return [(pts[i], pts[i + 1]) for i in range(n - 1)]


@dataclass
class Contour:
    """All isolines at one level."""
    level: float
    polylines: List[Polyline]
    segments: List[Segment] = field(default_factory=list, repr=False)

    @property
    def n_points(self) -> int:
        return sum(len(p) for p in self.polylines)


@dataclass
class FilledBand:
    """
    Lattice nodes whose value lies in ``[level_min, level_max)``.

    Attributes:
        level_min: Lower band limit
        level_max: Upper band limit
        cells: (k, 4) array of (x, y, dx, dy) per node
    """
    level_min: float
    level_max: float
    cells: np.ndarray


def contour_levels(min_value: float, max_value: float, interval: float) -> List[float]:
    """
    Levels at multiples of ``interval`` between two values.

    Starts at ``ceil(min / interval) * interval`` and steps up to ``max``
    inclusive. Each level is rounded to 10 decimals.

    Raises:
        ValidationError: If interval is not positive or would produce more
            than 100 000 levels
    """
    interval = validate_positive(interval, "contour interval")
    if not (math.isfinite(min_value) and math.isfinite(max_value)):
        return []

    start = math.ceil(min_value / interval) * interval
    if start > max_value:
        return []
    if (max_value - start) / interval + 1 > MAX_CONTOUR_LEVELS:
        raise ValidationError(
            f"Contour interval {interval} gives more than {MAX_CONTOUR_LEVELS} levels "
            f"between {min_value} and {max_value}. Use a larger interval."
        )

    levels = []
    v = start
    while v <= max_value:
        levels.append(round(v, 10))
        v += interval
    return levels


def _lerp(a: float, b: float, va: float, vb: float, level: float) -> float:
    dv = vb - va
    if abs(dv) < FLAT_EDGE_TOLERANCE:
        return (a + b) * 0.5
    return (level - va) / dv * (b - a) + a


def cell_segments(
    corners: Sequence[float],
    x0: float, x1: float, y0: float, y1: float,
    level: float,
) -> List[Segment]:
    """
    Marching-squares segments for one cell.

    Args:
        corners: Values at (x0, y0), (x1, y0), (x1, y1), (x0, y1)
        x0, x1, y0, y1: Cell extent
        level: Isoline value

    Returns:
        Zero, one or two segments. Saddles (cases 5 and 10) are resolved by
        comparing the mean of the corners with the level.
    """
    v0, v1, v2, v3 = corners
    case = ((8 if v0 >= level else 0) | (4 if v1 >= level else 0)
            | (2 if v2 >= level else 0) | (1 if v3 >= level else 0))
    if case == 0 or case == 15:
        return []

    top = right = bottom = left = None
    if (case & 12) in (4, 8):
        top = (_lerp(x0, x1, v0, v1, level), y0)
    if (case & 6) in (2, 4):
        right = (x1, _lerp(y0, y1, v1, v2, level))
    if (case & 3) in (1, 2):
        bottom = (_lerp(x0, x1, v3, v2, level), y1)
    if (case & 9) in (1, 8):
        left = (x0, _lerp(y0, y1, v0, v3, level))

    crossings = [p for p in (top, right, bottom, left) if p is not None]
    if len(crossings) == 2:
        return [(crossings[0], crossings[1])]

    center = (v0 + v1 + v2 + v3) * 0.25
    connected = center >= level
    if case == 5:
        if connected:
            return [(top, right), (bottom, left)]
        return [(top, left), (bottom, right)]
    if connected:
        return [(top, left), (bottom, right)]
    return [(top, right), (bottom, left)]


def grid_contours(lattice: Lattice, levels: Iterable[float]) -> List[Contour]:
    """
    Marching-squares isolines over a lattice.

    Cells with an empty (NaN) corner are skipped. Only levels that produce
    at least one segment appear in the result.
    """
    nx, ny = lattice.nx, lattice.ny
    if nx < 2 or ny < 2:
        return []

    grid = lattice.as_array()
    gx = lattice.grid_x.tolist()
    gy = lattice.grid_y.tolist()
    v0 = grid[:-1, :-1]
    v1 = grid[:-1, 1:]
    v2 = grid[1:, 1:]
    v3 = grid[1:, :-1]
    valid = ~(np.isnan(v0) | np.isnan(v1) | np.isnan(v2) | np.isnan(v3))

    contours = []
    for level in levels:
        above = [np.where(valid, v >= level, False) for v in (v0, v1, v2, v3)]
        n_above = above[0].astype(np.int8) + above[1] + above[2] + above[3]
        active = valid & (n_above > 0) & (n_above < 4)

        segments: List[Segment] = []
        for j, i in zip(*np.nonzero(active)):
            corners = (float(v0[j, i]), float(v1[j, i]), float(v2[j, i]), float(v3[j, i]))
            segments.extend(cell_segments(corners, gx[i], gx[i + 1], gy[j], gy[j + 1], level))

        if segments:
            contours.append(Contour(level=level, polylines=chain_segments(segments), segments=segments))

    logger.debug("Traced %d contour levels over a %dx%d lattice", len(contours), nx, ny)
    return contours


def _tin_crossing(tin: TIN, a: int, b: int, level: float) -> Optional[Point2]:
    """Crossing of the level along edge (a, b), computed from the lower index."""
    if a > b:
        a, b = b, a
    za, zb = tin.z[a], tin.z[b]
    if not ((za < level <= zb) or (zb < level <= za)):
        return None
    t = (level - za) / (zb - za)
    return (
        float(tin.x[a] + t * (tin.x[b] - tin.x[a])),
        float(tin.y[a] + t * (tin.y[b] - tin.y[a])),
    )


def tin_contours(tin: TIN, levels: Iterable[float]) -> List[Contour]:
    """
    Isolines traced directly over the triangles of a TIN.

    An edge is crossed when one end is below the level and the other at or
    above it. A triangle contributes a segment only when exactly two of its
    edges are crossed; a level passing through a vertex is picked up by the
    neighbouring triangles.
    """
    if tin.n_triangles == 0:
        return []

    triangles = tin.triangles.tolist()
    contours = []
    for level in levels:
        segments: List[Segment] = []
        for a, b, c in triangles:
            crossings = [
                p for p in (
                    _tin_crossing(tin, a, b, level),
                    _tin_crossing(tin, b, c, level),
                    _tin_crossing(tin, c, a, level),
                ) if p is not None
            ]
            if len(crossings) == 2:
                segments.append((crossings[0], crossings[1]))

        if segments:
            contours.append(Contour(level=level, polylines=chain_segments(segments), segments=segments))
    return contours


def chain_segments(segments: Sequence[Segment]) -> List[Polyline]:
    """
    Join segments that share endpoints into polylines.

    Endpoints are matched through buckets of size ``eps = max(1e-8,
    max|coord| * 1e-10)``. Each chain is extended at its tail, then at its
    head. A chain of more than two points whose ends coincide within eps is
    closed and its duplicate end point dropped.
    """
    if not segments:
        return []

    max_coord = max(
        max(abs(p[0][0]), abs(p[0][1]), abs(p[1][0]), abs(p[1][1])) for p in segments
    )
    eps = max(1e-8, max_coord * 1e-10)
    inv_eps = 1.0 / eps

    def key(p: Point2) -> Tuple[int, int]:
        return (math.floor(p[0] * inv_eps + 0.5), math.floor(p[1] * inv_eps + 0.5))

    buckets: Dict[Tuple[int, int], List[Tuple[int, int]]] = {}
    for s, (p, q) in enumerate(segments):
        buckets.setdefault(key(p), []).append((s, 0))
        buckets.setdefault(key(q), []).append((s, 1))

    used = [False] * len(segments)

    def take(s: int) -> None:
        used[s] = True
        for end in segments[s]:
            k = key(end)
            bucket = buckets.get(k)
            if not bucket:
                continue
            for n in range(len(bucket) - 1, -1, -1):
                if bucket[n][0] == s:
                    del bucket[n]
                    break
            if not bucket:
                del buckets[k]

    def match(p: Point2) -> Optional[Point2]:
        for s, end in buckets.get(key(p), ()):
            if not used[s]:
                take(s)
                return segments[s][1 - end]
        return None

    polylines = []
    for s in range(len(segments)):
        if used[s]:
            continue
        take(s)
        chain = [segments[s][0], segments[s][1]]

        nxt = match(chain[-1])
        while nxt is not None:
            chain.append(nxt)
            nxt = match(chain[-1])

        head: List[Point2] = []
        prv = match(chain[0])
        while prv is not None:
            head.append(prv)
            prv = match(prv)
        if head:
            chain = head[::-1] + chain

        first, last = chain[0], chain[-1]
        closed = (len(chain) > 2 and abs(first[0] - last[0]) < eps
                  and abs(first[1] - last[1]) < eps)
        if closed:
            chain.pop()
        polylines.append(Polyline(points=chain, closed=closed))

    return polylines


def _chaikin(points: List[Point2], closed: bool, iterations: int) -> List[Point2]:
    pts = np.asarray(points, dtype=np.float64)
    for _ in range(iterations):
        if len(pts) < 3:
            break
        nxt = np.roll(pts, -1, axis=0) if closed else pts[1:]
        cur = pts if closed else pts[:-1]
        q = cur * 0.75 + nxt * 0.25
        r = cur * 0.25 + nxt * 0.75
        pts = np.stack([q, r], axis=1).reshape(-1, 2)
    return [(float(x), float(y)) for x, y in pts]


def smooth_contours(contours: Sequence[Contour], factor: float = 0.5) -> List[Contour]:
    """
    Chaikin corner cutting applied to every polyline.

    Runs ``round(factor * 4)`` passes (at least one). Closed rings wrap
    around their seam; polylines with fewer than 3 points are left as they
    are. Segments are rebuilt from the smoothed polylines.
    """
    iterations = int(math.floor(factor * 4 + 0.5)) or 1

    result = []
    for contour in contours:
        chains = contour.polylines or chain_segments(contour.segments)
        smoothed = []
        for chain in chains:
            if len(chain.points) < 3:
                smoothed.append(Polyline(points=list(chain.points), closed=chain.closed))
            else:
                smoothed.append(Polyline(
                    points=_chaikin(chain.points, chain.closed, iterations),
                    closed=chain.closed,
                ))

        segments = [seg for pl in smoothed for seg in pl.segments()]
        result.append(Contour(level=contour.level, polylines=smoothed, segments=segments))
    return result


def filled_contours(lattice: Lattice, levels: Sequence[float]) -> List[FilledBand]:
    """
    Cell-level filled bands between consecutive levels.

    Levels are padded with -inf and +inf; a node belongs to the band
    ``[lo, hi)`` containing its value. The open outer bands report
    ``levels[0] - 1`` and ``levels[-1] + 1`` as their limits. Empty bands
    are omitted.
    """
    if not levels:
        return []

    values = lattice.as_array()
    valid = ~np.isnan(values)
    xx, yy = np.meshgrid(lattice.grid_x, lattice.grid_y)
    dx, dy = lattice.dx, lattice.dy

    bounds = [-math.inf, *levels, math.inf]
    bands = []
    for lo, hi in zip(bounds[:-1], bounds[1:]):
        with np.errstate(invalid="ignore"):
            mask = valid & (values >= lo) & (values < hi)
        if not mask.any():
            continue
        cells = np.column_stack([
            xx[mask], yy[mask],
            np.full(mask.sum(), dx), np.full(mask.sum(), dy),
        ])
        bands.append(FilledBand(
            level_min=levels[0] - 1 if lo == -math.inf else lo,
            level_max=levels[-1] + 1 if hi == math.inf else hi,
            cells=cells,
        ))
    return bands
