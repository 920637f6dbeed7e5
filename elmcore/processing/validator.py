"""
Range checks, anomaly tags and quality tiers.

Out of range values are flagged, never dropped: the record keeps its value,
is_valid turns False and quality drops to POOR.
"""

from __future__ import annotations

import statistics
from typing import Collection, List, Optional, Sequence

from ..errors import ValidationError
from ..models import AnomalyType, Quality
from ..pids.definitions import PIDDefinition
from ..pids.sets import DYNAMIC_PIDS

OUTLIER_Z = 3.0
EXTREME_OUTLIER_Z = 5.0
MIN_SAMPLES_FOR_Z = 5
SUDDEN_CHANGE_RATIO = 0.5
STUCK_WINDOW = 20

GOOD_LATENCY_MS = 250.0
FAIR_LATENCY_MS = 1000.0


def check_range(definition: Optional[PIDDefinition], value: float) -> Optional[ValidationError]:
    if definition is None:
        return None
    low, high = definition.min_value, definition.max_value
    if (low is not None and value < low) or (high is not None and value > high):
        return ValidationError(definition.pid, value, low, high)
    return None


def detect_anomaly(
    definition: Optional[PIDDefinition],
    value: float,
    history: Sequence[float],
    dynamic_pids: Collection[str] = DYNAMIC_PIDS,
) -> Optional[AnomalyType]:
    """history holds earlier values of the same PID, oldest first, without value."""
    if definition is not None and check_range(definition, value) is not None:
        return AnomalyType.OUT_OF_RANGE

    if len(history) >= MIN_SAMPLES_FOR_Z:
        mean = statistics.fmean(history)
        std = statistics.pstdev(history)
        if std > 0:
            z = abs(value - mean) / std
            if z > EXTREME_OUTLIER_Z:
                return AnomalyType.EXTREME_OUTLIER
            if z > OUTLIER_Z:
                return AnomalyType.OUTLIER

    if history and definition is not None and definition.has_bounds:
        span = definition.max_value - definition.min_value
        if span > 0 and abs(value - history[-1]) > span * SUDDEN_CHANGE_RATIO:
            return AnomalyType.SUDDEN_CHANGE

    if definition is not None and definition.pid in dynamic_pids and len(history) >= STUCK_WINDOW - 1:
        recent = list(history[-(STUCK_WINDOW - 1):])
        if all(v == value for v in recent):
            return AnomalyType.STUCK_VALUE

    return None


def assess_quality(
    *,
    decoded: bool,
    in_range: bool = True,
    anomaly: Optional[AnomalyType] = None,
    warnings: Optional[List[str]] = None,
    latency_ms: Optional[float] = None,
) -> Quality:
    if not decoded:
        return Quality.INVALID
    if not in_range:
        return Quality.POOR
    latency = latency_ms or 0.0
    if anomaly is not None or warnings or latency > FAIR_LATENCY_MS:
        return Quality.FAIR
    if latency > GOOD_LATENCY_MS:
        return Quality.GOOD
    return Quality.EXCELLENT
