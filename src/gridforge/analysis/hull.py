"""
Hull Generation

Convex and concave outlines of a sample set, used to derive an automatic
outer boundary.
"""

from __future__ import annotations

import math
from typing import List, Tuple

import numpy as np

from ..core.validation import ValidationError

Vertex = Tuple[float, float]


def _cross(o: Vertex, a: Vertex, b: Vertex) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def _xy_list(points) -> List[Vertex]:
    arr = np.asarray(getattr(points, "xyz", points), dtype=np.float64)
    if arr.size == 0:
        return []
    return [(float(x), float(y)) for x, y in arr.reshape(len(arr), -1)[:, :2]]


def convex_hull(points) -> List[Vertex]:
    """
    Convex hull by Andrew's monotone chain.

    Args:
        points: (N, 2+) array-like or PointSet

    Returns:
        Hull vertices in counter-clockwise order without repeating the first.
        Collinear boundary points are dropped. Fewer than 3 inputs are
        returned unchanged.
    """
    pts = _xy_list(points)
    if len(pts) < 3:
        return pts

    pts.sort()
    lower: List[Vertex] = []
    for p in pts:
        while len(lower) >= 2 and _cross(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)

    upper: List[Vertex] = []
    for p in reversed(pts):
        while len(upper) >= 2 and _cross(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)

    return lower[:-1] + upper[:-1]


def concave_hull(points, concavity: float = 0.5) -> List[Vertex]:
    """
    Concave outline grown inward from the convex hull.

    Edges at least ``mean_edge * (1.2 - concavity)`` long are split by the
    unused sample nearest their midpoint, provided it lies on the inner side
    and within 80% of the edge length. Scanning restarts after every
    insertion, for at most ``len(points)`` insertions.

    Args:
        points: (N, 2+) array-like or PointSet
        concavity: 0 gives the convex hull, 1 the tightest outline

    Raises:
        ValidationError: If concavity is outside [0, 1]
    """
    if not 0 <= concavity <= 1:
        raise ValidationError(f"concavity must be between 0 and 1, got {concavity}")

    pts = _xy_list(points)
    if len(pts) < 3:
        return pts
    hull = convex_hull(pts)
    if concavity <= 0 or len(hull) < 3:
        return hull

    used = set(hull)
    interior = [p for p in pts if p not in used]
    if not interior:
        return hull

    perimeter = sum(
        math.dist(hull[i], hull[(i + 1) % len(hull)]) for i in range(len(hull))
    )
    threshold = perimeter / len(hull) * (1.2 - concavity)

    result = list(hull)
    for _ in range(len(pts)):
        inserted = False
        for i in range(len(result)):
            a, b = result[i], result[(i + 1) % len(result)]
            edge_len = math.dist(a, b)
            if edge_len < threshold:
                continue

            mid = ((a[0] + b[0]) / 2, (a[1] + b[1]) / 2)
            best_dist = edge_len * 0.8
            best = None
            for p in interior:
                if p in used:
                    continue
                d = math.dist(p, mid)
                # Left of a->b is inside for a counter-clockwise ring
                if d < best_dist and _cross(a, b, p) > 0:
                    best_dist = d
                    best = p

            if best is not None:
                result.insert(i + 1, best)
                used.add(best)
                inserted = True
                break
        if not inserted:
            break

    return result
