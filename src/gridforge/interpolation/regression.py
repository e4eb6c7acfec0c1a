"""
Polynomial Regression Interpolator

Least-squares trend surface of order 1-4 over the whole sample set.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..core.linalg import solve_linear_system
from ..core.validation import ValidationError
from .base import InterpolationMethod, Interpolator


def polynomial_terms(u, v, order: int) -> np.ndarray:
    """
    Design matrix columns for a bivariate polynomial.

    Order 1 gives (1, u, v); each higher order appends its monomials with
    the power of u descending.
    """
    u = np.asarray(u, dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)
    terms = [np.ones_like(u), u, v]
    for degree in range(2, order + 1):
        for pv in range(degree + 1):
            terms.append(u ** (degree - pv) * v ** pv)
    return np.stack(terms, axis=-1)


@dataclass
class PolynomialRegressionInterpolator(Interpolator):
    """
    Global polynomial trend fitted through the normal equations.

    Coordinates are centred on their mean and scaled by their (population)
    standard deviation before fitting. A singular system leaves the lattice
    empty.
    """
    order: int = 2

    method = InterpolationMethod.POLYNOMIAL_REGRESSION

    def __post_init__(self):
        if self.order not in (1, 2, 3, 4):
            raise ValidationError(f"order must be between 1 and 4, got {self.order}")

    def fit(self, xyz: np.ndarray):
        """Return (coefficients or None, (x_mean, y_mean, x_std, y_std))."""
        x, y, z = xyz[:, 0], xyz[:, 1], xyz[:, 2]
        x_mean, y_mean = x.mean(), y.mean()
        x_std = x.std() or 1.0
        y_std = y.std() or 1.0

        X = polynomial_terms((x - x_mean) / x_std, (y - y_mean) / y_std, self.order)
        beta = solve_linear_system(X.T @ X, X.T @ z)
        return beta, (x_mean, y_mean, x_std, y_std)

    def _estimate(self, xyz, grid_x, grid_y, progress):
        nx = len(grid_x)
        values = np.full(nx * len(grid_y), np.nan)
        if len(xyz) == 0:
            return values

        beta, (x_mean, y_mean, x_std, y_std) = self.fit(xyz)
        if beta is None:
            return values

        u = (grid_x - x_mean) / x_std
        for j in self._rows(grid_y, progress):
            v = np.full(nx, (grid_y[j] - y_mean) / y_std)
            row = polynomial_terms(u, v, self.order) @ beta
            values[j * nx:(j + 1) * nx] = np.where(np.isfinite(row), row, np.nan)
        return values
