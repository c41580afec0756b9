"""
Interactive single-sample capacity prediction.

Pipeline: validate → z-score normalize (fixed calibration) → network →
denormalize → physics blend → health classification.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import numpy as np

from .. import config
from ..errors import CellHealthError, ExternalModelError, FieldViolation, ValidationError
from .model import FittedModel
from .normalize import DEFAULT_CALIBRATION, ZScoreCalibration
from .physics import blend, estimate_remaining_cycles, health_percent, health_status

logger = logging.getLogger(__name__)

UNITS = {"voltage": "V", "current": "A", "temperature": "°C"}


@dataclass(frozen=True)
class PredictionInputs:
    voltage: float
    current: float
    temperature: float
    time: float
    cycle: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


DEFAULT_INPUTS = PredictionInputs(voltage=3.95, current=-1.99, temperature=24.5, time=50.0, cycle=50)


def random_inputs(rng: Optional[np.random.Generator] = None) -> PredictionInputs:
    """Plausible sample values for filling the form."""
    rng = rng or np.random.default_rng()
    return PredictionInputs(
        voltage=round(float(3.0 + rng.random() * 1.2), 4),
        current=round(float(-2.0 + rng.random() * 0.5), 4),
        temperature=round(float(20 + rng.random() * 25), 2),
        time=round(float(rng.random() * 3000), 2),
        cycle=int(rng.integers(1, 151)),
    )


def validate_inputs(inputs: PredictionInputs) -> None:
    """Raise ValidationError listing every field that is out of range."""
    violations: List[FieldViolation] = []
    for name, value in inputs.to_dict().items():
        if not math.isfinite(value):
            violations.append(FieldViolation(name, f"{name} must be a finite number"))
            continue
        if name not in config.INPUT_BOUNDS:
            continue
        lo, hi = config.INPUT_BOUNDS[name]
        unit = UNITS.get(name, "")
        if hi is None and value < lo:
            violations.append(FieldViolation(name, f"{name} should be at least {lo:g}"))
        elif hi is not None and not lo <= value <= hi:
            violations.append(
                FieldViolation(name, f"{name} should be between {lo:g}{unit} and {hi:g}{unit}")
            )
    if violations:
        raise ValidationError(violations)


@dataclass(frozen=True)
class PredictionOutcome:
    capacity: float
    health_percent: float
    status: str
    color: str
    remaining_cycles: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CapacityPredictor:
    """Maps one sensor sample to a blended capacity estimate."""

    def __init__(
        self,
        model: Optional[FittedModel] = None,
        calibration: ZScoreCalibration = DEFAULT_CALIBRATION,
        nominal_capacity: float = config.NOMINAL_CAPACITY_AH,
    ) -> None:
        if model is None:
            from .networks import pretrained_dense_model

            model = pretrained_dense_model()
        self.model = model
        self.calibration = calibration
        self.nominal_capacity = nominal_capacity

    def model_capacity(self, inputs: PredictionInputs) -> float:
        """Raw network estimate in ampere-hours, before the physics blend."""
        normalized = self.calibration.normalize(inputs.to_dict())
        try:
            output = np.asarray(self.model.predict(normalized.reshape(1, -1)), dtype=float).reshape(-1)
        except CellHealthError:
            raise
        except Exception as exc:
            raise ExternalModelError(f"Capacity model failed: {exc}") from exc
        if output.size != 1:
            raise ExternalModelError(f"Capacity model returned {output.size} values, expected 1")
        return self.calibration.denormalize(float(output[0]))

    def predict(self, inputs: PredictionInputs) -> PredictionOutcome:
        validate_inputs(inputs)
        capacity = blend(
            self.model_capacity(inputs), inputs.temperature, inputs.cycle, self.nominal_capacity
        )
        percent = health_percent(capacity, self.nominal_capacity)
        status = health_status(percent)
        logger.info("Predicted capacity %.4f Ah (%.1f%%, %s)", capacity, percent, status.text)
        return PredictionOutcome(
            capacity=capacity,
            health_percent=percent,
            status=status.text,
            color=status.color,
            remaining_cycles=estimate_remaining_cycles(capacity, inputs.cycle, self.nominal_capacity),
        )
