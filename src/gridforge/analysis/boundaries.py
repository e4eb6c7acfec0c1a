"""
Boundary Masking

Outer boundaries clip the lattice to their interior; inner boundaries cut
holes. Containment is evaluated with shapely's vectorized predicates.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence, Tuple

import numpy as np
import shapely
from shapely.geometry import Polygon

from ..core.lattice import Lattice
from ..core.validation import validate_polygon


class BoundaryType(Enum):
    """Masking behaviour of a boundary polygon."""
    OUTER = "outer"   # Keep nodes inside
    INNER = "inner"   # Remove nodes inside (hole)


@dataclass
class Boundary:
    """
    Polygon used to mask lattice nodes.

    Attributes:
        vertices: (x, y) ring, open or closed
        kind: Outer (clip) or inner (hole)
    """
    vertices: Sequence[Tuple[float, float]]
    kind: BoundaryType = BoundaryType.OUTER

    def __post_init__(self):
        if not isinstance(self.kind, BoundaryType):
            self.kind = BoundaryType(self.kind)
        self.vertices = [tuple(v) for v in validate_polygon(self.vertices, f"{self.kind.value} boundary")]

    @property
    def polygon(self) -> Polygon:
        return Polygon(self.vertices)

    @property
    def area(self) -> float:
        return float(self.polygon.area)


def point_in_polygon(x, y, polygon) -> np.ndarray:
    """
    Whether (x, y) lies strictly inside ``polygon``.

    Args:
        x, y: Scalars or arrays of coordinates
        polygon: shapely Polygon, Boundary, or sequence of (x, y) vertices

    Returns:
        Boolean scalar or array matching the input shape
    """
    if isinstance(polygon, Boundary):
        polygon = polygon.polygon
    elif not isinstance(polygon, Polygon):
        polygon = Polygon(validate_polygon(polygon))
    return shapely.contains_xy(polygon, x, y)


def apply_boundary_mask(lattice: Lattice, boundaries: Iterable[Boundary]) -> Lattice:
    """
    Blank lattice nodes outside the outer boundaries or inside inner ones.

    When at least one outer boundary is given, a node must fall inside one
    of them to keep its value. Nodes on a boundary edge count as outside.

    Returns:
        New lattice; the input is unchanged
    """
    boundaries = list(boundaries)
    values = lattice.values.copy()
    if not boundaries or values.size == 0:
        return lattice.with_values(values)

    xx, yy = np.meshgrid(lattice.grid_x, lattice.grid_y)
    xx, yy = xx.ravel(), yy.ravel()

    outers = [b for b in boundaries if b.kind is BoundaryType.OUTER]
    inners = [b for b in boundaries if b.kind is BoundaryType.INNER]

    keep = np.ones(values.size, dtype=bool)
    if outers:
        inside_any = np.zeros(values.size, dtype=bool)
        for b in outers:
            inside_any |= shapely.contains_xy(b.polygon, xx, yy)
        keep &= inside_any
    for b in inners:
        keep &= ~shapely.contains_xy(b.polygon, xx, yy)

    values[~keep] = np.nan
    return lattice.with_values(values)
