"""
Delaunay Triangulation Module

Incremental Bowyer-Watson triangulation of scattered samples with optional
constrained edges enforced by edge flipping (Sloan's CDT procedure).
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from ..utils.progress import as_reporter
from .validation import validate_points_array

logger = logging.getLogger(__name__)

Edge = Tuple[int, int]

# Circumcircle membership tolerance used while inserting points
INSERT_TOLERANCE = 1e-8

# Below this the circumcircle determinant is treated as collinear
COLLINEAR_TOLERANCE = 1e-12

# Delaunay restoration passes after each constraint edge
RESTORE_PASSES = 4

# Super-triangle span as a multiple of the point-set extent
SUPER_TRIANGLE_SCALE = 20.0


def edge_key(a: int, b: int) -> Edge:
    """Undirected edge key."""
    return (a, b) if a < b else (b, a)


def circumcircle(ax, ay, bx, by, cx, cy) -> Tuple[float, float, float]:
    """
    Circumcentre and squared radius of triangle (a, b, c).

    Near-collinear triangles get an undefined (NaN) centre and an infinite
    radius, so distance comparisons against them are always false.

    Returns:
        (center_x, center_y, radius_squared)
    """
    d = 2.0 * (ax * (by - cy) + bx * (cy - ay) + cx * (ay - by))
    if abs(d) < COLLINEAR_TOLERANCE:
        return math.nan, math.nan, math.inf

    a2 = ax * ax + ay * ay
    b2 = bx * bx + by * by
    c2 = cx * cx + cy * cy
    ux = (a2 * (by - cy) + b2 * (cy - ay) + c2 * (ay - by)) / d
    uy = (a2 * (cx - bx) + b2 * (ax - cx) + c2 * (bx - ax)) / d
    return ux, uy, (ax - ux) ** 2 + (ay - uy) ** 2


def segments_cross(ax, ay, bx, by, cx, cy, dx, dy) -> bool:
    """Proper intersection of segments ab and cd (shared endpoints excluded)."""
    d1 = (bx - ax) * (cy - ay) - (by - ay) * (cx - ax)
    d2 = (bx - ax) * (dy - ay) - (by - ay) * (dx - ax)
    d3 = (dx - cx) * (ay - cy) - (dy - cy) * (ax - cx)
    d4 = (dx - cx) * (by - cy) - (dy - cy) * (bx - cx)
    return (((d1 > 0 and d2 < 0) or (d1 < 0 and d2 > 0)) and
            ((d3 > 0 and d4 < 0) or (d3 < 0 and d4 > 0)))


@dataclass
class TIN:
    """
    Triangulated irregular network.

    Attributes:
        triangles: (m, 3) array of vertex indices
        x: Vertex X coordinates
        y: Vertex Y coordinates
        z: Vertex values
        constrained_edges: Undirected edges marked as breaklines. An edge is
            listed even when enforcement gave up before it appeared.
    """
    triangles: np.ndarray
    x: np.ndarray
    y: np.ndarray
    z: np.ndarray
    constrained_edges: Set[Edge] = field(default_factory=set)

    _edges: Optional[Set[Edge]] = field(default=None, repr=False)

    def __post_init__(self):
        self.triangles = np.asarray(self.triangles, dtype=np.int64).reshape(-1, 3)
        self.x = np.asarray(self.x, dtype=np.float64)
        self.y = np.asarray(self.y, dtype=np.float64)
        self.z = np.asarray(self.z, dtype=np.float64)

    @property
    def n_points(self) -> int:
        return len(self.x)

    @property
    def n_triangles(self) -> int:
        return len(self.triangles)

    def edges(self) -> Set[Edge]:
        """All undirected triangle edges."""
        if self._edges is None:
            result = set()
            for a, b, c in self.triangles.tolist():
                result.add(edge_key(a, b))
                result.add(edge_key(b, c))
                result.add(edge_key(c, a))
            self._edges = result
        return self._edges

    def has_edge(self, a: int, b: int) -> bool:
        return edge_key(a, b) in self.edges()

    def boundary_edges(self) -> List[Edge]:
        """Edges used by exactly one triangle."""
        counts: Dict[Edge, int] = {}
        for a, b, c in self.triangles.tolist():
            for e in (edge_key(a, b), edge_key(b, c), edge_key(c, a)):
                counts[e] = counts.get(e, 0) + 1
        return [e for e, count in counts.items() if count == 1]

    def hull_vertex_count(self) -> int:
        """Number of vertices on the outer boundary of the mesh."""
        return len({v for e in self.boundary_edges() for v in e})

    def points(self) -> np.ndarray:
        """Vertices as an N x 3 array."""
        return np.column_stack([self.x, self.y, self.z])

    @classmethod
    def empty(cls) -> TIN:
        return cls(np.zeros((0, 3), dtype=np.int64), np.zeros(0), np.zeros(0), np.zeros(0))


class _Triangulator:
    """Mutable working state for one triangulation build."""

    def __init__(self, xyz: np.ndarray):
        self.n = n = len(xyz)
        x_min, y_min = xyz[:, 0].min(), xyz[:, 1].min()
        x_max, y_max = xyz[:, 0].max(), xyz[:, 1].max()
        self.bbox = (x_min, y_min, x_max, y_max)

        dmax = max(x_max - x_min, y_max - y_min) or 1.0
        mid_x, mid_y = (x_min + x_max) / 2, (y_min + y_max) / 2

        self.px = np.empty(n + 3)
        self.py = np.empty(n + 3)
        self.px[:n] = xyz[:, 0]
        self.py[:n] = xyz[:, 1]
        self.px[n:] = (mid_x - SUPER_TRIANGLE_SCALE * dmax, mid_x,
                       mid_x + SUPER_TRIANGLE_SCALE * dmax)
        self.py[n:] = (mid_y - dmax, mid_y + SUPER_TRIANGLE_SCALE * dmax, mid_y - dmax)

        capacity = n * 6 + 10
        self.tri = np.zeros((capacity, 3), dtype=np.int64)
        self.cx = np.zeros(capacity)
        self.cy = np.zeros(capacity)
        self.r2 = np.zeros(capacity)
        self.alive = np.zeros(capacity, dtype=bool)
        self.count = 0
        self.free_slots: List[int] = []

    def _grow(self) -> None:
        extra = len(self.alive)
        self.tri = np.vstack([self.tri, np.zeros((extra, 3), dtype=np.int64)])
        self.cx = np.concatenate([self.cx, np.zeros(extra)])
        self.cy = np.concatenate([self.cy, np.zeros(extra)])
        self.r2 = np.concatenate([self.r2, np.zeros(extra)])
        self.alive = np.concatenate([self.alive, np.zeros(extra, dtype=bool)])

    def _set_circumcircle(self, t: int) -> None:
        a, b, c = self.tri[t]
        px, py = self.px, self.py
        self.cx[t], self.cy[t], self.r2[t] = circumcircle(
            px[a], py[a], px[b], py[b], px[c], py[c]
        )

    def add_triangle(self, a: int, b: int, c: int) -> int:
        if self.free_slots:
            t = self.free_slots.pop()
        else:
            if self.count >= len(self.alive):
                self._grow()
            t = self.count
            self.count += 1
        self.tri[t] = (a, b, c)
        self.alive[t] = True
        self._set_circumcircle(t)
        return t

    def insertion_order(self) -> np.ndarray:
        """Serpentine bin order for locality of successive insertions."""
        n = self.n
        x_min, y_min, x_max, y_max = self.bbox
        num_bins = max(1, int(math.floor(math.sqrt(n) * 0.5)))
        bin_w = (x_max - x_min) / num_bins or 1.0
        bin_h = (y_max - y_min) / num_bins or 1.0

        bx = np.minimum(num_bins - 1, np.floor((self.px[:n] - x_min) / bin_w)).astype(np.int64)
        by = np.minimum(num_bins - 1, np.floor((self.py[:n] - y_min) / bin_h)).astype(np.int64)
        bx = np.where(by & 1, num_bins - 1 - bx, bx)
        keys = by * num_bins + bx
        return np.argsort(keys, kind="stable")

    def insert_all(self, progress) -> None:
        n = self.n
        self.add_triangle(n, n + 1, n + 2)
        progress_step = max(1, n // 50)

        for si, pi in enumerate(self.insertion_order().tolist()):
            self.insert_point(pi)
            if si % progress_step == 0:
                progress(si / n)

    def insert_point(self, pi: int) -> None:
        x, y = self.px[pi], self.py[pi]
        m = self.count
        d2 = (x - self.cx[:m]) ** 2 + (y - self.cy[:m]) ** 2
        with np.errstate(invalid="ignore"):
            bad = np.nonzero(self.alive[:m] & (d2 <= self.r2[:m] + INSERT_TOLERANCE))[0]
        bad_list = bad.tolist()

        # Edges shared by two bad triangles are interior to the cavity
        counts: Dict[Edge, int] = {}
        bad_edges = []
        for t in bad_list:
            a, b, c = self.tri[t].tolist()
            for e1, e2 in ((a, b), (b, c), (c, a)):
                key = edge_key(e1, e2)
                counts[key] = counts.get(key, 0) + 1
                bad_edges.append((e1, e2, key))

        boundary = [(e1, e2) for e1, e2, key in bad_edges if counts[key] == 1]

        self.alive[bad] = False
        self.free_slots.extend(bad_list)

        for e1, e2 in boundary:
            self.add_triangle(pi, e1, e2)

    def live_triangles(self) -> List[int]:
        return np.nonzero(self.alive[:self.count])[0].tolist()

    def final_triangles(self) -> np.ndarray:
        live = np.nonzero(self.alive[:self.count])[0]
        tri = self.tri[live]
        keep = np.all(tri < self.n, axis=1)
        return tri[keep]


class _ConstraintEnforcer:
    """Edge-flipping enforcement of constrained edges on a finished triangulation."""

    def __init__(self, state: _Triangulator):
        self.state = state
        self.edge_adj: Dict[Edge, List[int]] = {}
        self.constrained: Set[Edge] = set()
        self.unmet: List[Edge] = []
        for t in state.live_triangles():
            self._add_adjacency(t)

    def _tri_edges(self, t: int) -> Tuple[Edge, Edge, Edge]:
        a, b, c = self.state.tri[t].tolist()
        return edge_key(a, b), edge_key(b, c), edge_key(c, a)

    def _add_adjacency(self, t: int) -> None:
        for key in self._tri_edges(t):
            self.edge_adj.setdefault(key, []).append(t)

    def _remove_adjacency(self, t: int) -> None:
        for key in self._tri_edges(t):
            tris = self.edge_adj.get(key)
            if tris is None:
                continue
            if t in tris:
                tris.remove(t)
            if not tris:
                del self.edge_adj[key]

    def _opposite(self, t: int, ea: int, eb: int) -> int:
        for v in self.state.tri[t].tolist():
            if v != ea and v != eb:
                return v
        return int(self.state.tri[t][2])

    def _cross(self, a: int, b: int, c: int, d: int) -> bool:
        px, py = self.state.px, self.state.py
        return segments_cross(px[a], py[a], px[b], py[b], px[c], py[c], px[d], py[d])

    def _flip(self, t1: int, t2: int, ea: int, eb: int) -> Edge:
        p = self._opposite(t1, ea, eb)
        q = self._opposite(t2, ea, eb)
        self._remove_adjacency(t1)
        self._remove_adjacency(t2)
        self.state.tri[t1] = (p, q, ea)
        self.state.tri[t2] = (p, q, eb)
        self.state._set_circumcircle(t1)
        self.state._set_circumcircle(t2)
        self._add_adjacency(t1)
        self._add_adjacency(t2)
        return p, q

    def enforce(self, ca: int, cb: int) -> None:
        n = self.state.n
        if ca < 0 or cb < 0 or ca >= n or cb >= n or ca == cb:
            return

        ckey = edge_key(ca, cb)
        if self.edge_adj.get(ckey):
            self.constrained.add(ckey)
            return

        crossing = deque(
            key for key, tris in self.edge_adj.items()
            if len(tris) == 2
            and ca not in key and cb not in key
            and self._cross(ca, cb, key[0], key[1])
        )

        new_edges: List[List[int]] = []
        max_iter = len(crossing) ** 2 + len(crossing) + 10
        while crossing and max_iter > 0:
            max_iter -= 1
            ea, eb = crossing.popleft()
            tris = self.edge_adj.get(edge_key(ea, eb))
            if not tris or len(tris) != 2:
                continue

            t1, t2 = tris
            p = self._opposite(t1, ea, eb)
            q = self._opposite(t2, ea, eb)

            # Quad is convex iff its diagonals cross
            if not self._cross(p, q, ea, eb):
                crossing.append((ea, eb))
                continue

            fp, fq = self._flip(t1, t2, ea, eb)
            if edge_key(fp, fq) == ckey:
                break
            if self._cross(ca, cb, fp, fq):
                crossing.append((fp, fq))
            else:
                new_edges.append([fp, fq])

        if ckey not in self.edge_adj:
            self.unmet.append(ckey)
            logger.warning(
                "Constraint edge %s could not be enforced within the flip limit",
                ckey,
            )
        self.constrained.add(ckey)

        self._restore(new_edges)

    def _restore(self, new_edges: List[List[int]]) -> None:
        px, py = self.state.px, self.state.py
        changed = True
        passes = 0
        while changed and passes < RESTORE_PASSES:
            passes += 1
            changed = False
            for ne in new_edges:
                key = edge_key(ne[0], ne[1])
                if key in self.constrained:
                    continue
                tris = self.edge_adj.get(key)
                if not tris or len(tris) != 2:
                    continue
                t1, t2 = tris
                p = self._opposite(t1, ne[0], ne[1])
                q = self._opposite(t2, ne[0], ne[1])
                d2 = (px[q] - self.state.cx[t1]) ** 2 + (py[q] - self.state.cy[t1]) ** 2
                if d2 < self.state.r2[t1] - INSERT_TOLERANCE and self._cross(p, q, ne[0], ne[1]):
                    ne[0], ne[1] = self._flip(t1, t2, ne[0], ne[1])
                    changed = True


def triangulate(
    points,
    constraint_edges: Optional[Iterable[Sequence[int]]] = None,
    on_progress=None,
) -> TIN:
    """
    Build a (constrained) Delaunay triangulation.

    Args:
        points: N x 3 array-like or PointSet of (x, y, z) samples
        constraint_edges: Optional (a, b) index pairs to force into the mesh
        on_progress: Optional callback receiving a fraction in [0, 1]

    Returns:
        TIN over the input points. Fewer than 3 points gives a TIN
        without triangles.
    """
    xyz = validate_points_array(getattr(points, "xyz", points))
    progress = as_reporter(on_progress)
    n = len(xyz)

    if n < 3:
        progress.finish()
        return TIN(np.zeros((0, 3), dtype=np.int64), xyz[:, 0], xyz[:, 1], xyz[:, 2])

    state = _Triangulator(xyz)
    state.insert_all(progress)

    constrained: Set[Edge] = set()
    if constraint_edges is not None:
        constraint_edges = [(int(a), int(b)) for a, b in constraint_edges]
    if constraint_edges:
        enforcer = _ConstraintEnforcer(state)
        for a, b in constraint_edges:
            enforcer.enforce(a, b)
        constrained = enforcer.constrained
        if enforcer.unmet:
            logger.warning(
                "%d of %d constraint edges are not present in the triangulation",
                len(enforcer.unmet), len(constraint_edges),
            )

    triangles = state.final_triangles()
    logger.debug("Triangulated %d points into %d triangles", n, len(triangles))
    progress.finish()

    return TIN(
        triangles=triangles,
        x=xyz[:, 0].copy(),
        y=xyz[:, 1].copy(),
        z=xyz[:, 2].copy(),
        constrained_edges=constrained,
    )
