"""
Feature scaling.

Two scalings are used:

* `FeatureScaler`: min-max scaling fitted on the training partition only and
  applied unchanged to the test partition, so no test statistics leak into
  training.
* `ZScoreCalibration`: a fixed table of means and standard deviations for the
  interactive predictor.  It is a calibration constant of the pretrained
  network, not a statistic learned from uploaded data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Tuple

import numpy as np
import pandas as pd

from .. import config
from ..data.sources import require_columns
from ..errors import DegenerateFeatureError, InsufficientDataError


@dataclass(frozen=True)
class FeatureScaler:
    """Per-feature (min, max) statistics."""

    features: List[str]
    bounds: Dict[str, Tuple[float, float]]

    @classmethod
    def fit(cls, train: pd.DataFrame, features: List[str], on_degenerate: str = "zero") -> "FeatureScaler":
        """
        Compute min/max for each feature from the training frame.

        :param on_degenerate: ``"zero"`` maps a constant feature to 0 everywhere;
                              ``"raise"`` rejects it with DegenerateFeatureError.
        """
        if on_degenerate not in ("zero", "raise"):
            raise ValueError(f"Unknown on_degenerate policy: {on_degenerate!r}")
        if train.empty:
            raise InsufficientDataError("Cannot fit scaler on an empty training set")
        require_columns(train, features)
        bounds: Dict[str, Tuple[float, float]] = {}
        for feature in features:
            values = pd.to_numeric(train[feature], errors="coerce").to_numpy(dtype=float)
            lo, hi = float(np.nanmin(values)), float(np.nanmax(values))
            if lo == hi and on_degenerate == "raise":
                raise DegenerateFeatureError(feature)
            bounds[feature] = (lo, hi)
        return cls(features=list(features), bounds=bounds)

    def transform(self, frame: pd.DataFrame) -> np.ndarray:
        """Return a ``(len(frame), len(features))`` array of scaled values."""
        require_columns(frame, self.features)
        out = np.empty((len(frame), len(self.features)), dtype=float)
        for j, feature in enumerate(self.features):
            lo, hi = self.bounds[feature]
            values = pd.to_numeric(frame[feature], errors="coerce").to_numpy(dtype=float)
            if hi == lo:
                out[:, j] = 0.0
            else:
                out[:, j] = (values - lo) / (hi - lo)
        return out


@dataclass(frozen=True)
class ZScoreCalibration:
    """Fixed mean/std table for the interactive network's inputs and output."""

    fields: List[str] = field(default_factory=lambda: list(config.INPUT_FIELDS))
    input_mean: Mapping[str, float] = field(default_factory=lambda: dict(config.INPUT_MEAN))
    input_std: Mapping[str, float] = field(default_factory=lambda: dict(config.INPUT_STD))
    output_mean: float = config.OUTPUT_MEAN
    output_std: float = config.OUTPUT_STD

    def normalize(self, inputs: Mapping[str, float]) -> np.ndarray:
        return np.array(
            [(inputs[name] - self.input_mean[name]) / self.input_std[name] for name in self.fields],
            dtype=float,
        )

    def denormalize(self, value: float) -> float:
        return value * self.output_std + self.output_mean


DEFAULT_CALIBRATION = ZScoreCalibration()
