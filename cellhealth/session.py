"""
Session state for CellHealth.

`AnalysisSession` owns one uploaded dataset and the results trained on it;
a new upload replaces the whole session.  `PredictionSession` owns the
interactive predictor and its history for the life of the process.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator, Optional

import pandas as pd

from . import config
from .errors import NoDatasetError, SessionBusyError
from .ml.model import PredictionResult, Regressor, train_model
from .ml.predictor import CapacityPredictor, PredictionInputs, PredictionOutcome
from .reports import HistoryEntry, PredictionHistory

logger = logging.getLogger(__name__)


@dataclass
class AnalysisSession:
    dataset: pd.DataFrame
    filename: str = ""
    size_bytes: int = 0
    result: Optional[PredictionResult] = None
    in_progress: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @contextmanager
    def busy(self) -> Iterator[None]:
        """Mark the session busy; a second entry while busy is rejected."""
        with self._lock:
            if self.in_progress:
                raise SessionBusyError("Training already running")
            self.in_progress = True
        try:
            yield
        finally:
            self.in_progress = False

    def train(
        self,
        model_type: str = config.DEFAULT_MODEL_TYPE,
        train_split: float = config.DEFAULT_TRAIN_SPLIT,
        regressor: Optional[Regressor] = None,
    ) -> PredictionResult:
        with self.busy():
            logger.info("Training %s on %s (split=%.2f)", model_type, self.filename or "dataset", train_split)
            result = train_model(self.dataset, model_type=model_type, train_split=train_split, regressor=regressor)
            self.result = result
            logger.info("Finished %s: %s", model_type, result.metrics)
            return result

    def require_result(self) -> PredictionResult:
        if self.result is None:
            raise NoDatasetError("No training results yet; train a model first")
        return self.result


@dataclass
class PredictionSession:
    predictor: CapacityPredictor
    history: PredictionHistory = field(default_factory=PredictionHistory)

    def predict(self, inputs: PredictionInputs) -> PredictionOutcome:
        outcome = self.predictor.predict(inputs)
        self.history.add(
            HistoryEntry(
                voltage=inputs.voltage,
                current=inputs.current,
                temperature=inputs.temperature,
                time=inputs.time,
                cycle=inputs.cycle,
                capacity=outcome.capacity,
                health=outcome.health_percent,
                timestamp=datetime.now(timezone.utc),
            )
        )
        return outcome
