"""Error and fit statistics comparing predicted capacities with ground truth."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Sequence

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error

from .. import config
from ..errors import EmptyInputError, LengthMismatchError


@dataclass(frozen=True)
class Metrics:
    rmse: float
    mae: float
    r2: float
    accuracy: float  # percentage of points within the relative error threshold

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def r_squared(actual: np.ndarray, predicted: np.ndarray) -> float:
    """
    Coefficient of determination.

    When every actual value is identical the ratio is undefined; a perfect
    prediction then scores 1.0 and anything else 0.0.
    """
    ss_res = float(np.sum((actual - predicted) ** 2))
    ss_tot = float(np.sum((actual - actual.mean()) ** 2))
    if ss_tot == 0.0:
        return 1.0 if ss_res == 0.0 else 0.0
    return 1.0 - ss_res / ss_tot


def threshold_accuracy(
    actual: np.ndarray, predicted: np.ndarray, threshold: float = config.ACCURACY_THRESHOLD
) -> float:
    """Percentage of points whose relative error is below `threshold`.

    Points with an actual value of zero have no relative error and are left
    out of both the numerator and the denominator.  The error is taken
    relative to ``|actual|``; with a signed denominator every negative actual
    would count as accurate regardless of the prediction.
    """
    valid = actual != 0
    if not valid.any():
        return 0.0
    relative = np.abs(actual[valid] - predicted[valid]) / np.abs(actual[valid])
    return float(np.count_nonzero(relative < threshold) / valid.sum() * 100.0)


def compute_metrics(actual: Sequence[float], predicted: Sequence[float]) -> Metrics:
    y_true = np.asarray(actual, dtype=float)
    y_pred = np.asarray(predicted, dtype=float)
    if y_true.shape != y_pred.shape:
        raise LengthMismatchError(
            f"actual and predicted differ in length: {y_true.shape[0]} != {y_pred.shape[0]}"
        )
    if y_true.size == 0:
        raise EmptyInputError("Cannot compute metrics on an empty test set")
    return Metrics(
        rmse=float(np.sqrt(mean_squared_error(y_true, y_pred))),
        mae=float(mean_absolute_error(y_true, y_pred)),
        r2=r_squared(y_true, y_pred),
        accuracy=threshold_accuracy(y_true, y_pred),
    )
