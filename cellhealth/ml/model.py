"""
Model training for CellHealth.

This module trains a regressor that predicts battery capacity from discharge
measurements and evaluates it on the held-out suffix of the dataset.  The
learning algorithm is an injected capability: anything with
``fit(X, y) -> model`` and ``model.predict(X) -> y`` can be plugged in, which
keeps the numeric pipeline testable without a particular backend.

The classic pipeline uses:

* min-max scaling fitted on the training partition only
* a brute-force k-nearest-neighbour regressor (``knn``), or one of the
  scikit-learn ensembles RandomForestRegressor (``random_forest``),
  AdaBoostRegressor (``adaboost``) and GradientBoostingRegressor
  (``gradient_boost``)

The sequence pipeline (``lstm``) lives in `cellhealth.ml.sequence`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

import numpy as np
import pandas as pd
from sklearn.ensemble import AdaBoostRegressor, GradientBoostingRegressor, RandomForestRegressor

from .. import config
from ..data.sources import require_columns, require_numeric, split_dataset
from ..errors import CellHealthError, ExternalModelError
from .metrics import Metrics, compute_metrics
from .neighbors import KNeighborsCapacityRegressor
from .normalize import FeatureScaler

logger = logging.getLogger(__name__)


class FittedModel(Protocol):
    def predict(self, X: np.ndarray) -> np.ndarray: ...


class Regressor(Protocol):
    def fit(self, X: np.ndarray, y: np.ndarray) -> FittedModel: ...


@dataclass
class PredictionResult:
    """Predictions on the test partition together with their metrics."""

    model_type: str
    actual: np.ndarray
    predicted: np.ndarray
    metrics: Metrics
    rows: pd.DataFrame  # test rows the predictions correspond to


class SklearnRegressor:
    """Adapter giving a scikit-learn estimator the ``fit -> model`` interface."""

    def __init__(self, estimator: Any) -> None:
        self.estimator = estimator

    def fit(self, X: np.ndarray, y: np.ndarray) -> Any:
        return self.estimator.fit(X, y)


REGRESSORS: Dict[str, Callable[[], Regressor]] = {
    "knn": lambda: KNeighborsCapacityRegressor(k=config.KNN_NEIGHBORS),
    "random_forest": lambda: SklearnRegressor(
        RandomForestRegressor(n_estimators=config.ENSEMBLE_ESTIMATORS, random_state=config.RANDOM_SEED)
    ),
    "adaboost": lambda: SklearnRegressor(
        AdaBoostRegressor(n_estimators=config.ENSEMBLE_ESTIMATORS, random_state=config.RANDOM_SEED)
    ),
    "gradient_boost": lambda: SklearnRegressor(
        GradientBoostingRegressor(n_estimators=config.ENSEMBLE_ESTIMATORS, random_state=config.RANDOM_SEED)
    ),
}


def train_classic(
    train: pd.DataFrame,
    test: pd.DataFrame,
    model_type: str = config.DEFAULT_MODEL_TYPE,
    regressor: Optional[Regressor] = None,
) -> PredictionResult:
    """
    Train a point-wise regressor and evaluate it on the test partition.

    :param train: ordered training prefix of the dataset.
    :param test: remaining rows; scaled with the training statistics.
    :param model_type: key into `REGRESSORS`; ignored when `regressor` is given.
    :param regressor: optional injected regressor.
    :returns: PredictionResult for every test row.
    """
    required = config.CLASSIC_FEATURES + [config.TARGET_COLUMN]
    require_columns(train, required)
    require_columns(test, required)
    require_numeric(train, required, "training partition")
    require_numeric(test, required, "test partition")

    if regressor is None:
        if model_type not in REGRESSORS:
            raise ValueError(f"Unknown model type: {model_type!r}")
        regressor = REGRESSORS[model_type]()

    scaler = FeatureScaler.fit(train, config.CLASSIC_FEATURES)
    train_X = scaler.transform(train)
    test_X = scaler.transform(test)
    train_y = pd.to_numeric(train[config.TARGET_COLUMN], errors="coerce").to_numpy(dtype=float)
    actual = pd.to_numeric(test[config.TARGET_COLUMN], errors="coerce").to_numpy(dtype=float)

    logger.info("Training %s on %d rows, evaluating on %d rows", model_type, len(train), len(test))
    try:
        model = regressor.fit(train_X, train_y)
        predicted = np.asarray(model.predict(test_X), dtype=float).reshape(-1) if len(test_X) else np.empty(0)
    except CellHealthError:
        raise
    except Exception as exc:
        raise ExternalModelError(f"{model_type} model failed: {exc}") from exc

    return PredictionResult(
        model_type=model_type,
        actual=actual,
        predicted=predicted,
        metrics=compute_metrics(actual, predicted),
        rows=test.reset_index(drop=True),
    )


def train_model(
    data: pd.DataFrame,
    model_type: str = config.DEFAULT_MODEL_TYPE,
    train_split: float = config.DEFAULT_TRAIN_SPLIT,
    regressor: Optional[Regressor] = None,
) -> PredictionResult:
    """
    Split the dataset, train the selected model and compute its metrics.

    :param data: DataFrame in acquisition order.
    :param model_type: one of `config.MODEL_TYPES`.
    :param train_split: fraction of rows used as the training prefix.
    :returns: PredictionResult on the test suffix.
    """
    if model_type not in config.MODEL_TYPES:
        raise ValueError(f"Unknown model type: {model_type!r}")
    sequence = model_type in config.SEQUENCE_MODEL_TYPES
    # checked before splitting so errors name the row of the uploaded file
    required = (config.SEQUENCE_FEATURES if sequence else config.CLASSIC_FEATURES) + [config.TARGET_COLUMN]
    require_columns(data, required)
    require_numeric(data, required)

    split = split_dataset(data, train_split)
    if sequence:
        from .sequence import train_sequence

        return train_sequence(split.train, split.test, regressor=regressor, model_type=model_type)
    return train_classic(split.train, split.test, model_type=model_type, regressor=regressor)
