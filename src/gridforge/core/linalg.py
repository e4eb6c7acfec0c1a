"""
Dense Linear Solver

Small Gaussian-elimination solver used by the kriging, RBF and polynomial
regression interpolators. Singular systems are reported by returning None so
callers can fall back to a simpler estimate.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from .validation import MatrixShapeError


# Pivots smaller than this mark the system as singular
PIVOT_TOLERANCE = 1e-12


def solve_linear_system(A, b) -> Optional[np.ndarray]:
    """
    Solve ``A x = b`` with row scaling and partial pivoting.

    Each row of the augmented matrix is first divided by its largest absolute
    entry to improve conditioning. Elimination then picks the largest
    remaining pivot in each column.

    Args:
        A: Square (n, n) coefficient matrix
        b: Right-hand side of length n

    Returns:
        Solution vector of length n, or None if a pivot magnitude
        drops below 1e-12

    Raises:
        MatrixShapeError: If A is not square or b has the wrong length
    """
    A = np.asarray(A, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)

    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise MatrixShapeError(f"Coefficient matrix must be square, got shape {A.shape}")
    n = A.shape[0]
    if b.ndim != 1 or b.shape[0] != n:
        raise MatrixShapeError(
            f"Right-hand side must have length {n}, got shape {b.shape}"
        )
    if n == 0:
        return np.zeros(0)

    aug = np.empty((n, n + 1))
    aug[:, :n] = A
    aug[:, n] = b

    # Row scaling, skipping rows that are numerically zero
    row_max = np.max(np.abs(aug), axis=1)
    scale = np.where(row_max > 1e-30, row_max, 1.0)
    aug /= scale[:, None]

    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(aug[col:, col])))
        pivot_val = abs(aug[pivot_row, col])
        if pivot_row != col:
            aug[[col, pivot_row]] = aug[[pivot_row, col]]
        if pivot_val < PIVOT_TOLERANCE:
            return None

        if col + 1 < n:
            factors = aug[col + 1:, col] / aug[col, col]
            aug[col + 1:, col:] -= factors[:, None] * aug[col, col:]

    x = np.zeros(n)
    for i in range(n - 1, -1, -1):
        if abs(aug[i, i]) < PIVOT_TOLERANCE:
            return None
        x[i] = (aug[i, n] - np.dot(aug[i, i + 1:n], x[i + 1:])) / aug[i, i]

    return x
