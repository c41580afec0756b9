"""
Sequence path: sliding windows of normalized sensor vectors.

Window ``i`` covers rows ``[i, i + sequence_length)`` and is labelled with
the capacity of row ``i + sequence_length``.  The network itself is
delegated to the injected regressor; this module only builds windows,
calls the regressor and unwinds its outputs into a flat prediction series.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from .. import config
from ..data.sources import require_columns, require_numeric
from ..errors import CellHealthError, ExternalModelError, InsufficientSequenceLengthError
from .metrics import compute_metrics
from .model import PredictionResult, Regressor
from .normalize import FeatureScaler

logger = logging.getLogger(__name__)


def build_windows(
    features: np.ndarray,
    targets: np.ndarray,
    sequence_length: int = config.SEQUENCE_LENGTH,
) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(X, y)`` with X shaped ``(n_windows, sequence_length, n_features)``."""
    features = np.asarray(features, dtype=float)
    targets = np.asarray(targets, dtype=float)
    n_windows = max(len(features) - sequence_length, 0)
    n_features = features.shape[1] if features.ndim == 2 else 0
    X = np.empty((n_windows, sequence_length, n_features), dtype=float)
    for i in range(n_windows):
        X[i] = features[i : i + sequence_length]
    y = targets[sequence_length : sequence_length + n_windows].copy()
    return X, y


def _windows_for(
    frame: pd.DataFrame, scaler: FeatureScaler, partition: str, sequence_length: int
) -> Tuple[np.ndarray, np.ndarray]:
    X, y = build_windows(
        scaler.transform(frame),
        pd.to_numeric(frame[config.TARGET_COLUMN], errors="coerce").to_numpy(dtype=float),
        sequence_length,
    )
    if len(X) == 0:
        raise InsufficientSequenceLengthError(
            f"{partition} partition has {len(frame)} rows; at least {sequence_length + 1} "
            "are needed to form one window"
        )
    return X, y


def train_sequence(
    train: pd.DataFrame,
    test: pd.DataFrame,
    regressor: Optional[Regressor] = None,
    sequence_length: int = config.SEQUENCE_LENGTH,
    model_type: str = "lstm",
) -> PredictionResult:
    """Fit a sequence regressor on windows of `train` and evaluate on `test`."""
    required = config.SEQUENCE_FEATURES + [config.TARGET_COLUMN]
    require_columns(train, required)
    require_columns(test, required)
    require_numeric(train, required, "training partition")
    require_numeric(test, required, "test partition")

    scaler = FeatureScaler.fit(train, config.SEQUENCE_FEATURES)
    train_X, train_y = _windows_for(train, scaler, "Training", sequence_length)
    test_X, test_y = _windows_for(test, scaler, "Test", sequence_length)

    if regressor is None:
        from .networks import LSTMSequenceRegressor

        regressor = LSTMSequenceRegressor()

    logger.info("Training %s on %d windows of length %d", model_type, len(train_X), sequence_length)
    try:
        model = regressor.fit(train_X, train_y)
        predicted = np.asarray(model.predict(test_X), dtype=float).reshape(-1)
    except CellHealthError:
        raise
    except Exception as exc:
        raise ExternalModelError(f"Sequence model failed: {exc}") from exc

    return PredictionResult(
        model_type=model_type,
        actual=test_y,
        predicted=predicted,
        metrics=compute_metrics(test_y, predicted),
        rows=test.iloc[sequence_length:].reset_index(drop=True),
    )
