"""Core data structures and algorithms."""

from .history import EditHistory, MeshSnapshot
from .lattice import Lattice, build_grid_axes
from .linalg import solve_linear_system
from .mesh import EditableMesh, MeshStats
from .spatial_index import SpatialIndex
from .triangulation import TIN, triangulate
from .validation import ValidationError

__all__ = [
    "EditHistory",
    "MeshSnapshot",
    "Lattice",
    "build_grid_axes",
    "solve_linear_system",
    "EditableMesh",
    "MeshStats",
    "SpatialIndex",
    "TIN",
    "triangulate",
    "ValidationError",
]
