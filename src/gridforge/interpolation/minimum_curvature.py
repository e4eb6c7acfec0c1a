"""
Minimum Curvature Interpolator

Iterative biharmonic relaxation of an IDW starting surface, with the node
nearest each sample pinned to the sample value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from ..core.validation import ValidationError, validate_neighbor_count, validate_positive
from .base import InterpolationMethod, Interpolator
from .distance import IDWInterpolator

logger = logging.getLogger(__name__)


@dataclass
class MinimumCurvatureInterpolator(Interpolator):
    """
    Minimum curvature surface by Gauss-Seidel relaxation.

    Nodes at least two cells from the border are updated with

        g + t * (lap - g) - tension * 0.1 * bilap

    where ``t = tension * relaxation``, ``lap`` is the mean of the four
    direct neighbours and ``bilap`` the 13-point biharmonic stencil divided
    by 8. The ring one cell from the border only gets the Laplacian term;
    the outermost ring keeps its IDW seed. Updates are applied in place, row
    by row, so later nodes see values already relaxed in the same sweep.

    Attributes:
        tension: Blend between harmonic (high) and biharmonic (low) behaviour
        max_iterations: Sweep limit
        convergence: Stop once the largest interior change drops below this
        relaxation: Over/under-relaxation factor
    """
    tension: float = 0.25
    max_iterations: int = 200
    convergence: float = 0.001
    relaxation: float = 1.0

    method = InterpolationMethod.MINIMUM_CURVATURE

    def __post_init__(self):
        if not 0 <= self.tension <= 1:
            raise ValidationError(f"tension must be between 0 and 1, got {self.tension}")
        self.max_iterations = validate_neighbor_count(self.max_iterations, "max_iterations", minimum=1)
        self.convergence = validate_positive(self.convergence, "convergence")
        self.relaxation = validate_positive(self.relaxation, "relaxation")

    def _estimate(self, xyz, grid_x, grid_y, progress):
        nx, ny = len(grid_x), len(grid_y)
        seed = IDWInterpolator(power=2.0)._estimate(xyz, grid_x, grid_y, progress.child(0.0, 0.2))

        dx = grid_x[1] - grid_x[0] if nx > 1 else 1.0
        dy = grid_y[1] - grid_y[0] if ny > 1 else 1.0

        known = np.zeros(nx * ny, dtype=bool)
        if len(xyz):
            gi = np.floor((xyz[:, 0] - grid_x[0]) / dx + 0.5).astype(np.int64)
            gj = np.floor((xyz[:, 1] - grid_y[0]) / dy + 0.5).astype(np.int64)
            inside = (gi >= 0) & (gi < nx) & (gj >= 0) & (gj < ny)
            # Later samples win when several snap to the same node
            cells = gj[inside] * nx + gi[inside]
            seed[cells] = xyz[inside, 2]
            known[cells] = True

        interior = [
            j * nx + i
            for j in range(2, ny - 2) for i in range(2, nx - 2)
            if not known[j * nx + i]
        ]
        ring = [
            j * nx + i
            for j in range(1, ny - 1) for i in range(1, nx - 1)
            if not (2 <= i < nx - 2 and 2 <= j < ny - 2) and not known[j * nx + i]
        ]

        g = seed.tolist()
        t = self.tension * self.relaxation
        damp = self.tension * 0.1
        relax = progress.child(0.2, 1.0)
        n2 = 2 * nx

        iterations = 0
        for iterations in range(1, self.max_iterations + 1):
            max_change = 0.0
            for idx in interior:
                c = g[idx]
                near = g[idx - 1] + g[idx + 1] + g[idx - nx] + g[idx + nx]
                diag = (g[idx - nx - 1] + g[idx - nx + 1]
                        + g[idx + nx - 1] + g[idx + nx + 1])
                far = g[idx - n2] + g[idx + n2] + g[idx - 2] + g[idx + 2]
                lap = near / 4.0
                bilap = (far + 2.0 * diag - 8.0 * near + 20.0 * c) / 8.0
                new = c + t * (lap - c) - damp * bilap
                change = abs(new - c)
                if change > max_change:
                    max_change = change
                g[idx] = new

            for idx in ring:
                c = g[idx]
                avg = (g[idx - 1] + g[idx + 1] + g[idx - nx] + g[idx + nx]) / 4.0
                g[idx] = c + t * (avg - c)

            relax(iterations / self.max_iterations)
            if max_change < self.convergence:
                break

        logger.debug("Minimum curvature stopped after %d iterations", iterations)
        return np.asarray(g, dtype=np.float64)
