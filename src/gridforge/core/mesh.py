"""
Editable Mesh Module

Mutable triangulated surface supporting local topological edits (edge
swaps, point insertion and deletion, triangle removal, flattening and
locking, breakline insertion) with bounded undo/redo.

Vertices and triangles live in index-stable arenas. Removed slots are
recycled by later insertions, so an index stays valid until the element it
names is deleted.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from .history import EditHistory, MeshSnapshot
from .triangulation import TIN, circumcircle, edge_key, segments_cross

logger = logging.getLogger(__name__)

Edge = Tuple[int, int]

# Barycentric slack when testing point-in-triangle
BARYCENTRIC_TOLERANCE = 1e-8

# Squared-radius slack for the circumcircle test during Delaunay restoration
CIRCLE_TOLERANCE = 1e-8

# Restoration flips are capped at this multiple of the initial edge stack
RESTORE_FLIP_FACTOR = 4

# Breakline flip passes are capped at this multiple of the triangle count
BREAKLINE_PASS_FACTOR = 3


def point_in_triangle(px, py, ax, ay, bx, by, cx, cy) -> bool:
    """Barycentric containment test; degenerate triangles contain nothing."""
    d = (bx - ax) * (cy - ay) - (by - ay) * (cx - ax)
    if abs(d) < 1e-12:
        return False
    u = ((px - ax) * (cy - ay) - (py - ay) * (cx - ax)) / d
    v = ((py - ay) * (bx - ax) - (px - ax) * (by - ay)) / d
    tol = BARYCENTRIC_TOLERANCE
    return u >= -tol and v >= -tol and u + v <= 1 + tol


def distance_to_segment(px, py, ax, ay, bx, by) -> float:
    """Distance from (px, py) to segment ab."""
    dx, dy = bx - ax, by - ay
    length2 = dx * dx + dy * dy
    if length2 < 1e-12:
        return math.hypot(px - ax, py - ay)
    t = max(0.0, min(1.0, ((px - ax) * dx + (py - ay) * dy) / length2))
    return math.hypot(px - (ax + t * dx), py - (ay + t * dy))


def is_convex_quad(a, b, c, d) -> bool:
    """
    Whether the quadrilateral a-b-c-d (in ring order) is convex.

    Args:
        a, b, c, d: (x, y) corners

    Collinear corners are tolerated.
    """
    pts = (a, b, c, d)
    pos = neg = 0
    for i in range(4):
        o, p, q = pts[i], pts[(i + 1) % 4], pts[(i + 2) % 4]
        cross = (p[0] - o[0]) * (q[1] - p[1]) - (p[1] - o[1]) * (q[0] - p[0])
        if cross > 0:
            pos += 1
        elif cross < 0:
            neg += 1
    return pos == 0 or neg == 0


@dataclass
class MeshStats:
    """Counts describing the current mesh state."""
    vertices: int
    triangles: int
    locked_triangles: int
    constrained_edges: int
    can_undo: bool
    can_redo: bool

    def to_dict(self) -> dict:
        return {
            "vertices": self.vertices,
            "triangles": self.triangles,
            "locked_triangles": self.locked_triangles,
            "constrained_edges": self.constrained_edges,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
        }


@dataclass
class EdgeHit:
    """Edge found by :meth:`EditableMesh.find_edge_at`."""
    triangle: int
    edge: Edge
    distance: float


@dataclass
class VertexHit:
    """Vertex found by :meth:`EditableMesh.find_vertex_at`."""
    vertex: int
    distance: float


@dataclass
class SwapPreview:
    """
    Outcome an edge swap would have.

    Attributes:
        removed_edge: Edge that would disappear
        new_edge: Edge joining the two opposite vertices
        triangles: The two triangles that would replace the pair
    """
    removed_edge: Edge
    new_edge: Edge
    triangles: Tuple[Tuple[int, int, int], Tuple[int, int, int]]


class EditableMesh:
    """
    Triangulated surface with local edits and undo/redo.

    Every successful edit records a snapshot in the history, mutates the
    arenas and rebuilds the edge and vertex adjacency before returning.
    Refused edits return False (or None) and leave the mesh and history
    untouched.

    Example:
        >>> mesh = EditableMesh.from_tin(triangulate(points))
        >>> vi = mesh.insert_point(5.0, 5.0, 12.0)
        >>> mesh.undo()
        True
    """

    def __init__(
        self,
        x: Sequence[float],
        y: Sequence[float],
        z: Sequence[float],
        triangles: Iterable[Sequence[int]],
        constrained_edges: Optional[Iterable[Sequence[int]]] = None,
        history: Optional[EditHistory] = None,
    ):
        if not len(x) == len(y) == len(z):
            raise ValueError("x, y and z must have the same length")

        self._x: List[float] = [float(v) for v in x]
        self._y: List[float] = [float(v) for v in y]
        self._z: List[float] = [float(v) for v in z]
        self._vertex_alive: List[bool] = [True] * len(self._x)

        self._tris: List[Tuple[int, int, int]] = [
            (int(a), int(b), int(c)) for a, b, c in triangles
        ]
        self._alive: List[bool] = [True] * len(self._tris)
        self._locked: List[bool] = [False] * len(self._tris)

        self._constrained: Set[Edge] = {
            edge_key(int(a), int(b)) for a, b in (constrained_edges or ())
        }
        self._free_vertices: List[int] = []
        self._free_triangles: List[int] = []

        self.history = history if history is not None else EditHistory()

        self._edge_tris: Dict[Edge, List[int]] = {}
        self._vertex_tris: Dict[int, List[int]] = {}
        self._rebuild()

    @classmethod
    def from_tin(cls, tin: TIN, history: Optional[EditHistory] = None) -> EditableMesh:
        """Wrap a triangulation; the TIN itself is not modified."""
        return cls(
            tin.x.tolist(), tin.y.tolist(), tin.z.tolist(),
            tin.triangles.tolist(), tin.constrained_edges, history,
        )

    # ------------------------------------------------------------------
    # State and adjacency
    # ------------------------------------------------------------------

    def _rebuild(self) -> None:
        edge_tris: Dict[Edge, List[int]] = {}
        vertex_tris: Dict[int, List[int]] = {}
        for t, (a, b, c) in enumerate(self._tris):
            if not self._alive[t]:
                continue
            for e in (edge_key(a, b), edge_key(b, c), edge_key(c, a)):
                edge_tris.setdefault(e, []).append(t)
            for v in (a, b, c):
                vertex_tris.setdefault(v, []).append(t)
        self._edge_tris = edge_tris
        self._vertex_tris = vertex_tris

    def _snapshot(self) -> MeshSnapshot:
        return MeshSnapshot(
            vertices=tuple(zip(self._x, self._y, self._z)),
            vertex_alive=tuple(self._vertex_alive),
            triangles=tuple(self._tris),
            triangle_alive=tuple(self._alive),
            triangle_locked=tuple(self._locked),
            constrained_edges=frozenset(self._constrained),
            free_vertices=tuple(self._free_vertices),
            free_triangles=tuple(self._free_triangles),
        )

    def _restore(self, snap: MeshSnapshot) -> None:
        self._x = [v[0] for v in snap.vertices]
        self._y = [v[1] for v in snap.vertices]
        self._z = [v[2] for v in snap.vertices]
        self._vertex_alive = list(snap.vertex_alive)
        self._tris = list(snap.triangles)
        self._alive = list(snap.triangle_alive)
        self._locked = list(snap.triangle_locked)
        self._constrained = set(snap.constrained_edges)
        self._free_vertices = list(snap.free_vertices)
        self._free_triangles = list(snap.free_triangles)
        self._rebuild()

    def _record(self) -> None:
        self.history.push(self._snapshot())

    def _add_vertex(self, x: float, y: float, z: float) -> int:
        if self._free_vertices:
            vi = self._free_vertices.pop()
            self._x[vi], self._y[vi], self._z[vi] = x, y, z
            self._vertex_alive[vi] = True
            return vi
        self._x.append(x)
        self._y.append(y)
        self._z.append(z)
        self._vertex_alive.append(True)
        return len(self._x) - 1

    def _release_vertex(self, vi: int) -> None:
        self._vertex_alive[vi] = False
        self._free_vertices.append(vi)
        self._constrained = {e for e in self._constrained if vi not in e}

    def _add_triangle(self, a: int, b: int, c: int) -> int:
        if self._free_triangles:
            t = self._free_triangles.pop()
            self._tris[t] = (a, b, c)
            self._alive[t] = True
            self._locked[t] = False
            return t
        self._tris.append((a, b, c))
        self._alive.append(True)
        self._locked.append(False)
        return len(self._tris) - 1

    def _kill_triangle(self, t: int) -> None:
        self._alive[t] = False
        self._locked[t] = False
        self._free_triangles.append(t)

    def _xy(self, v: int) -> Tuple[float, float]:
        return self._x[v], self._y[v]

    def _valid_vertex(self, v: int) -> bool:
        return 0 <= v < len(self._x) and self._vertex_alive[v]

    def _valid_triangle(self, t: int) -> bool:
        return 0 <= t < len(self._tris) and self._alive[t]

    def _opposite(self, t: int, va: int, vb: int) -> int:
        for v in self._tris[t]:
            if v != va and v != vb:
                return v
        return -1

    def _in_circumcircle(self, t: Tuple[int, int, int], p: int) -> bool:
        a, b, c = t
        ux, uy, r2 = circumcircle(*self._xy(a), *self._xy(b), *self._xy(c))
        d2 = (self._x[p] - ux) ** 2 + (self._y[p] - uy) ** 2
        return d2 < r2 - CIRCLE_TOLERANCE

    def _flip_candidate(self, va: int, vb: int) -> Optional[Tuple[int, int, int, int]]:
        """
        Triangles and opposite vertices of a flippable edge.

        Returns:
            (t1, t2, opp1, opp2), or None when the edge is constrained,
            not interior, touches a locked triangle, or bounds a
            non-convex quad.
        """
        key = edge_key(va, vb)
        if key in self._constrained:
            return None
        tris = self._edge_tris.get(key, [])
        if len(tris) != 2:
            return None
        t1, t2 = tris
        if not (self._alive[t1] and self._alive[t2]):
            return None
        if self._locked[t1] or self._locked[t2]:
            return None
        opp1 = self._opposite(t1, va, vb)
        opp2 = self._opposite(t2, va, vb)
        if opp1 < 0 or opp2 < 0:
            return None
        if not is_convex_quad(self._xy(va), self._xy(opp1), self._xy(vb), self._xy(opp2)):
            return None
        return t1, t2, opp1, opp2

    def _flip(self, va: int, vb: int, t1: int, t2: int, opp1: int, opp2: int) -> None:
        self._tris[t1] = (opp1, opp2, va)
        self._tris[t2] = (opp1, opp2, vb)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def n_vertices(self) -> int:
        return sum(self._vertex_alive)

    @property
    def n_triangles(self) -> int:
        return sum(self._alive)

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def vertex(self, v: int) -> Tuple[float, float, float]:
        return self._x[v], self._y[v], self._z[v]

    def triangle(self, t: int) -> Tuple[int, int, int]:
        return self._tris[t]

    def is_alive(self, t: int) -> bool:
        return self._valid_triangle(t)

    def is_locked(self, t: int) -> bool:
        return self._valid_triangle(t) and self._locked[t]

    def triangles(self) -> List[int]:
        """Indices of live triangles."""
        return [t for t, alive in enumerate(self._alive) if alive]

    def edges(self) -> List[Edge]:
        """Unique undirected edges of the live triangles."""
        return list(self._edge_tris)

    def is_constrained_edge(self, a: int, b: int) -> bool:
        return edge_key(a, b) in self._constrained

    def triangles_of_edge(self, a: int, b: int) -> List[int]:
        return list(self._edge_tris.get(edge_key(a, b), []))

    def triangles_of_vertex(self, v: int) -> List[int]:
        return list(self._vertex_tris.get(v, []))

    def find_triangle_at(self, x: float, y: float) -> Optional[int]:
        """First live triangle containing (x, y), or None."""
        for t, (a, b, c) in enumerate(self._tris):
            if not self._alive[t]:
                continue
            if point_in_triangle(x, y, *self._xy(a), *self._xy(b), *self._xy(c)):
                return t
        return None

    def find_edge_at(self, x: float, y: float, tolerance: float) -> Optional[EdgeHit]:
        """Closest edge within ``tolerance`` of (x, y)."""
        best: Optional[EdgeHit] = None
        for t, (a, b, c) in enumerate(self._tris):
            if not self._alive[t]:
                continue
            for ea, eb in ((a, b), (b, c), (c, a)):
                d = distance_to_segment(x, y, *self._xy(ea), *self._xy(eb))
                if d <= tolerance and (best is None or d < best.distance):
                    best = EdgeHit(triangle=t, edge=(ea, eb), distance=d)
        return best

    def find_vertex_at(self, x: float, y: float, tolerance: float) -> Optional[VertexHit]:
        """Closest live vertex within ``tolerance`` of (x, y)."""
        best: Optional[VertexHit] = None
        for v in range(len(self._x)):
            if not self._vertex_alive[v]:
                continue
            d = math.hypot(self._x[v] - x, self._y[v] - y)
            if d <= tolerance and (best is None or d < best.distance):
                best = VertexHit(vertex=v, distance=d)
        return best

    def swap_preview(self, va: int, vb: int) -> Optional[SwapPreview]:
        """What :meth:`swap_edge` would produce, or None if it would refuse."""
        candidate = self._flip_candidate(va, vb)
        if candidate is None:
            return None
        _, _, opp1, opp2 = candidate
        return SwapPreview(
            removed_edge=edge_key(va, vb),
            new_edge=edge_key(opp1, opp2),
            triangles=((opp1, opp2, va), (opp1, opp2, vb)),
        )

    def stats(self) -> MeshStats:
        return MeshStats(
            vertices=self.n_vertices,
            triangles=self.n_triangles,
            locked_triangles=sum(1 for t in self.triangles() if self._locked[t]),
            constrained_edges=len(self._constrained),
            can_undo=self.can_undo,
            can_redo=self.can_redo,
        )

    def to_tin(self) -> TIN:
        """
        Compact copy of the live mesh as a TIN.

        Dead vertex slots are dropped and indices renumbered; constrained
        edges are carried over.
        """
        remap = {}
        for v, alive in enumerate(self._vertex_alive):
            if alive:
                remap[v] = len(remap)
        order = list(remap)
        triangles = [[remap[v] for v in self._tris[t]] for t in self.triangles()]
        constrained = {
            edge_key(remap[a], remap[b])
            for a, b in self._constrained if a in remap and b in remap
        }
        return TIN(
            triangles=np.asarray(triangles, dtype=np.int64).reshape(-1, 3),
            x=np.array([self._x[v] for v in order]),
            y=np.array([self._y[v] for v in order]),
            z=np.array([self._z[v] for v in order]),
            constrained_edges=constrained,
        )

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def swap_edge(self, va: int, vb: int) -> bool:
        """
        Replace the diagonal shared by two triangles with the other one.

        Refused for constrained or boundary edges, locked triangles and
        non-convex quads.
        """
        candidate = self._flip_candidate(va, vb)
        if candidate is None:
            return False
        self._record()
        self._flip(va, vb, *candidate)
        self._rebuild()
        return True

    def insert_point(self, x: float, y: float, z: float) -> Optional[int]:
        """
        Split the containing triangle at (x, y) and restore the Delaunay
        property around the new vertex.

        Returns:
            Index of the new vertex, or None when (x, y) is outside the mesh
            or inside a locked triangle.
        """
        t = self.find_triangle_at(x, y)
        if t is None or self._locked[t]:
            return None

        self._record()
        v0, v1, v2 = self._tris[t]
        vi = self._add_vertex(float(x), float(y), float(z))
        self._kill_triangle(t)
        self._add_triangle(v0, v1, vi)
        self._add_triangle(v1, v2, vi)
        self._add_triangle(v2, v0, vi)
        self._rebuild()

        self._restore_delaunay(vi, [[v0, v1], [v1, v2], [v2, v0]])
        return vi

    def _restore_delaunay(self, vi: int, stack: List[List[int]]) -> None:
        max_flips = RESTORE_FLIP_FACTOR * len(stack)
        flips = 0
        while stack and flips < max_flips:
            ea, eb = stack.pop()
            candidate = self._flip_candidate(ea, eb)
            if candidate is None:
                continue
            t1, t2, opp1, opp2 = candidate
            if not self._in_circumcircle((ea, eb, opp1), opp2):
                continue
            self._flip(ea, eb, t1, t2, opp1, opp2)
            self._rebuild()
            flips += 1
            stack.extend([[opp1, ea], [opp1, eb], [opp2, ea], [opp2, eb]])
        if stack and flips >= max_flips:
            logger.warning("Delaunay restoration around vertex %d stopped after %d flips", vi, flips)

    def delete_point(self, vi: int) -> bool:
        """
        Remove a vertex and fan-triangulate the hole left by its ring.

        Refused when the vertex has no triangles or any of them is locked.
        """
        if not self._valid_vertex(vi):
            return False
        ring = [t for t in self._vertex_tris.get(vi, []) if self._alive[t]]
        if not ring or any(self._locked[t] for t in ring):
            return False

        self._record()
        boundary: List[int] = []
        for t in ring:
            for v in self._tris[t]:
                if v != vi and v not in boundary:
                    boundary.append(v)
            self._kill_triangle(t)

        cx, cy = self._xy(vi)
        boundary.sort(key=lambda v: math.atan2(self._y[v] - cy, self._x[v] - cx))
        for i in range(1, len(boundary) - 1):
            self._add_triangle(boundary[0], boundary[i], boundary[i + 1])

        self._release_vertex(vi)
        self._rebuild()
        return True

    def delete_triangle(self, t: int) -> bool:
        if not self._valid_triangle(t) or self._locked[t]:
            return False
        self._record()
        self._kill_triangle(t)
        self._rebuild()
        return True

    def flatten_triangle(self, t: int) -> bool:
        """Set a triangle's three vertex elevations to their mean."""
        if not self._valid_triangle(t):
            return False
        self._record()
        verts = self._tris[t]
        mean = sum(self._z[v] for v in verts) / 3.0
        for v in verts:
            self._z[v] = mean
        self._rebuild()
        return True

    def modify_vertex_z(self, vi: int, z: float) -> bool:
        if not self._valid_vertex(vi):
            return False
        self._record()
        self._z[vi] = float(z)
        self._rebuild()
        return True

    def lock_triangle(self, t: int, locked: bool = True) -> bool:
        """Lock (or unlock) a triangle against topological edits."""
        if not self._valid_triangle(t):
            return False
        self._record()
        self._locked[t] = bool(locked)
        self._rebuild()
        return True

    def add_breakline(self, va: int, vb: int) -> bool:
        """
        Force edge (va, vb) into the mesh by flipping crossing edges.

        The edge is marked constrained whether or not it could be formed.

        Returns:
            True if the edge exists in the mesh afterwards.
        """
        if va == vb or not (self._valid_vertex(va) and self._valid_vertex(vb)):
            return False

        self._record()
        key = edge_key(va, vb)
        ax, ay = self._xy(va)
        bx, by = self._xy(vb)

        achieved = key in self._edge_tris
        max_passes = BREAKLINE_PASS_FACTOR * len(self._tris)
        passes = 0
        while not achieved and passes < max_passes:
            passes += 1
            flipped = False
            for ea, eb in list(self._edge_tris):
                if ea in key or eb in key:
                    continue
                if not segments_cross(ax, ay, bx, by, *self._xy(ea), *self._xy(eb)):
                    continue
                candidate = self._flip_candidate(ea, eb)
                if candidate is None:
                    continue
                self._flip(ea, eb, *candidate)
                self._rebuild()
                flipped = True
                break
            achieved = key in self._edge_tris
            if not flipped:
                break

        self._constrained.add(key)
        if not achieved:
            logger.warning("Breakline %d-%d could not be formed; marked constrained anyway", va, vb)
        return achieved

    def undo(self) -> bool:
        snap = self.history.undo(self._snapshot())
        if snap is None:
            return False
        self._restore(snap)
        return True

    def redo(self) -> bool:
        snap = self.history.redo(self._snapshot())
        if snap is None:
            return False
        self._restore(snap)
        return True

    def close(self) -> None:
        """Drop the edit history."""
        self.history.clear()
