"""
Similarity-based capacity regression.

A brute-force k-nearest-neighbour regressor in normalized feature space.  It
compares every test point with every training point, which is fine for the
small datasets the service accepts; no spatial index is built.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .. import config
from ..errors import InsufficientDataError


@dataclass(frozen=True)
class NeighborsModel:
    """Fitted training set; predictions average the targets of the k closest rows."""

    X: np.ndarray
    y: np.ndarray
    k: int

    def neighbors(self, point: np.ndarray) -> np.ndarray:
        """Indices of the k closest training rows; ties keep training order."""
        distances = np.sqrt(np.sum((self.X - point) ** 2, axis=1))
        return np.argsort(distances, kind="stable")[: self.k]

    def predict(self, X: np.ndarray) -> np.ndarray:
        X = np.atleast_2d(np.asarray(X, dtype=float))
        return np.array([self.y[self.neighbors(row)].mean() for row in X], dtype=float)


class KNeighborsCapacityRegressor:
    """Regressor interface: ``fit(X, y)`` returns a model with ``predict(X)``."""

    def __init__(self, k: int = config.KNN_NEIGHBORS) -> None:
        if k < 1:
            raise ValueError("k must be at least 1")
        self.k = k

    def fit(self, X: np.ndarray, y: np.ndarray) -> NeighborsModel:
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        if X.shape[0] == 0:
            raise InsufficientDataError("Training set is empty; no neighbours to average")
        if X.shape[0] != y.shape[0]:
            raise ValueError("X and y must have the same number of rows")
        return NeighborsModel(X=X, y=y, k=self.k)
