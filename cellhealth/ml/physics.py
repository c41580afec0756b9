"""
Physics-based capacity model and health classification.

Capacity fade is modelled as ``C(n) = C0 * exp(-k * n)`` with a linear
temperature correction around 25 °C.  The final estimate blends the network
output (70%) with this model (30%) and clamps it to
``[MIN_CAPACITY_AH, nominal]``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .. import config


@dataclass(frozen=True)
class HealthStatus:
    text: str
    color: str


# Evaluated top-down; the first band whose lower bound is met wins
HEALTH_BANDS = [
    (90.0, HealthStatus("Excellent", "#28a745")),
    (80.0, HealthStatus("Good", "#5cb85c")),
    (70.0, HealthStatus("Fair", "#ffc107")),
    (60.0, HealthStatus("Degraded", "#fd7e14")),
]
POOR = HealthStatus("Poor", "#dc3545")


def theoretical_capacity(
    cycle: float,
    nominal_capacity: float = config.NOMINAL_CAPACITY_AH,
    degradation_rate: float = config.DEGRADATION_RATE,
) -> float:
    return nominal_capacity * math.exp(-degradation_rate * cycle)


def temperature_factor(temperature: float) -> float:
    return 1 - (temperature - config.REFERENCE_TEMPERATURE_C) * config.TEMPERATURE_COEFFICIENT


def blend(
    capacity_model: float,
    temperature: float,
    cycle: float,
    nominal_capacity: float = config.NOMINAL_CAPACITY_AH,
) -> float:
    """Combine the model output with the physics model and clamp the result."""
    theoretical = theoretical_capacity(cycle, nominal_capacity)
    adjusted = (
        capacity_model * config.MODEL_WEIGHT
        + theoretical * temperature_factor(temperature) * config.PHYSICS_WEIGHT
    )
    return max(config.MIN_CAPACITY_AH, min(adjusted, nominal_capacity))


def health_percent(capacity: float, nominal_capacity: float = config.NOMINAL_CAPACITY_AH) -> float:
    return capacity / nominal_capacity * 100


def health_status(percent: float) -> HealthStatus:
    for lower_bound, status in HEALTH_BANDS:
        if percent >= lower_bound:
            return status
    return POOR


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def estimate_remaining_cycles(
    current_capacity: float,
    current_cycle: float,
    nominal_capacity: float = config.NOMINAL_CAPACITY_AH,
) -> Optional[int]:
    """
    Cycles left until capacity reaches the end-of-life threshold (80% of nominal).

    The fade rate is extrapolated linearly from the loss so far.  Returns 0
    at or below end of life, and None when no loss has been observed yet
    (the cycle count is too low to estimate a rate).
    """
    end_of_life = nominal_capacity * config.END_OF_LIFE_FRACTION
    if current_capacity <= end_of_life:
        return 0
    if current_cycle <= 0:
        return None
    rate = (nominal_capacity - current_capacity) / current_cycle
    if rate <= 0:
        return None
    return _round_half_up((current_capacity - end_of_life) / rate)
