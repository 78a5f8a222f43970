"""
Local weighted regression (LOESS) smoother.

For every observation x0, the q = floor(span * n) nearest points are weighted
with the tricube kernel (1 - (d / d_max)^3)^3 and a polynomial of the given
degree is fit by weighted least squares around x0. The fitted value at x0 is
the intercept of that local fit.

Because each fitted value is linear in y, the smoother is an n x n operator
matrix L (fitted = L @ y). Standard errors are computed from L the same way
R's loess reports se.fit:

    s^2 = RSS / trace((I - L)^T (I - L))
    se_i = s * sqrt(sum_j L_ij^2)
"""

from typing import Optional

import numpy as np

from rental_trends.config import DEFAULT_DEGREE, DEFAULT_SPAN


def tricube(u: np.ndarray) -> np.ndarray:
    """Tricube kernel; zero outside |u| < 1."""
    u = np.abs(u)
    return np.where(u < 1, (1 - u ** 3) ** 3, 0.0)


class LoessSmoother:
    """
    Local polynomial regression of y on a single predictor x.

    Usage:
        smoother = LoessSmoother(span=0.25)
        smoother.fit(x, y)
        smoother.fitted_, smoother.residuals_, smoother.std_error_
    """

    def __init__(self, span: float = DEFAULT_SPAN, degree: int = DEFAULT_DEGREE):
        """
        Initialize the smoother.

        Args:
            span: Fraction of points in each local neighborhood (0 < span <= 1)
            degree: Degree of the local polynomial (0, 1 or 2)
        """
        if not 0 < span <= 1:
            raise ValueError(f"span must be in (0, 1], got {span}")
        if degree not in (0, 1, 2):
            raise ValueError(f"degree must be 0, 1 or 2, got {degree}")

        self.span = span
        self.degree = degree
        self.operator_: Optional[np.ndarray] = None
        self.fitted_: Optional[np.ndarray] = None
        self.residuals_: Optional[np.ndarray] = None
        self.std_error_: Optional[np.ndarray] = None
        self.residual_scale_: Optional[float] = None

    def neighborhood_size(self, n: int) -> int:
        """Number of points in each local neighborhood for n observations."""
        return int(np.floor(self.span * n))

    def min_observations(self) -> int:
        """Smallest n for which every neighborhood can support the local fit."""
        # The farthest neighbor gets zero weight, so one extra point is needed
        n = self.degree + 2
        while self.neighborhood_size(n) < self.degree + 2:
            n += 1
        return n

    def _build_operator(self, x: np.ndarray) -> np.ndarray:
        n = len(x)
        q = self.neighborhood_size(n)
        if q < self.degree + 2:
            raise ValueError(
                f"span too small: {q} points per neighborhood for degree {self.degree} "
                f"(n={n}, span={self.span})"
            )

        operator = np.zeros((n, n))
        for i in range(n):
            dist = np.abs(x - x[i])
            max_dist = np.partition(dist, q - 1)[q - 1]
            inside = dist < max_dist

            weights = tricube(dist[inside] / max_dist)
            design = np.vander((x[inside] - x[i]) / max_dist, self.degree + 1, increasing=True)
            sqrt_w = np.sqrt(weights)

            # Intercept row of the weighted least-squares solution
            operator[i, inside] = np.linalg.pinv(design * sqrt_w[:, None])[0] * sqrt_w

        return operator

    def fit(self, x: np.ndarray, y: np.ndarray) -> 'LoessSmoother':
        """
        Fit the smoother.

        Args:
            x: Predictor values (finite, distinct)
            y: Response values (finite)

        Returns:
            self
        """
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)

        if x.shape != y.shape or x.ndim != 1:
            raise ValueError(f"x and y must be 1-D arrays of equal length, got {x.shape} and {y.shape}")
        if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
            raise ValueError("x and y must be finite")
        if len(np.unique(x)) != len(x):
            raise ValueError("x values must be distinct")

        operator = self._build_operator(x)
        fitted = operator @ y
        residuals = y - fitted

        # Equivalent residual degrees of freedom
        delta1 = np.sum((np.eye(len(x)) - operator) ** 2)
        rss = np.sum(residuals ** 2)
        residual_scale = np.sqrt(rss / delta1) if delta1 > 0 else 0.0

        self.operator_ = operator
        self.fitted_ = fitted
        self.residuals_ = residuals
        self.residual_scale_ = float(residual_scale)
        self.std_error_ = residual_scale * np.sqrt(np.sum(operator ** 2, axis=1))
        return self
