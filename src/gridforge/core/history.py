"""
Edit History

Bounded undo/redo stacks of immutable mesh snapshots.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, FrozenSet, Optional, Tuple

Edge = Tuple[int, int]


@dataclass(frozen=True)
class MeshSnapshot:
    """
    Complete, immutable copy of an editable mesh's state.

    Attributes:
        vertices: (x, y, z) per vertex slot
        vertex_alive: Whether each vertex slot is in use
        triangles: (a, b, c) per triangle slot
        triangle_alive: Whether each triangle slot is in use
        triangle_locked: Lock flag per triangle slot
        constrained_edges: Breakline edges
        free_vertices: Recyclable vertex slots
        free_triangles: Recyclable triangle slots
    """
    vertices: Tuple[Tuple[float, float, float], ...]
    vertex_alive: Tuple[bool, ...]
    triangles: Tuple[Tuple[int, int, int], ...]
    triangle_alive: Tuple[bool, ...]
    triangle_locked: Tuple[bool, ...]
    constrained_edges: FrozenSet[Edge]
    free_vertices: Tuple[int, ...] = ()
    free_triangles: Tuple[int, ...] = ()


class EditHistory:
    """
    Undo/redo stacks holding at most ``max_depth`` snapshots each.

    Pushing a new snapshot clears the redo stack. When a stack is full the
    oldest snapshot is discarded.
    """

    def __init__(self, max_depth: int = 50):
        if max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {max_depth}")
        self.max_depth = max_depth
        self._undo: Deque[MeshSnapshot] = deque(maxlen=max_depth)
        self._redo: Deque[MeshSnapshot] = deque(maxlen=max_depth)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def __len__(self) -> int:
        return len(self._undo)

    def push(self, snapshot: MeshSnapshot) -> None:
        """Record the state before an edit."""
        self._undo.append(snapshot)
        self._redo.clear()

    def undo(self, current: MeshSnapshot) -> Optional[MeshSnapshot]:
        """Swap ``current`` onto the redo stack and return the state to restore."""
        if not self._undo:
            return None
        self._redo.append(current)
        return self._undo.pop()

    def redo(self, current: MeshSnapshot) -> Optional[MeshSnapshot]:
        if not self._redo:
            return None
        self._undo.append(current)
        return self._redo.pop()

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
