from __future__ import annotations

import statistics
from collections import deque
from dataclasses import dataclass
from typing import Deque, Generic, Iterator, List, Optional, Sequence, TypeVar

from ..models import Trend

T = TypeVar("T")

TREND_WINDOW = 10


class RollingBuffer(Generic[T]):
    """Fixed capacity, oldest entry evicted first."""

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._items: Deque[T] = deque(maxlen=capacity)

    def append(self, item: T) -> None:
        self._items.append(item)

    def clear(self) -> None:
        self._items.clear()

    def latest(self, n: Optional[int] = None) -> List[T]:
        items = list(self._items)
        return items if n is None else items[-n:]

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)


@dataclass(frozen=True)
class ParameterStatistics:
    count: int
    minimum: float
    maximum: float
    mean: float
    std_dev: float
    latest: float
    trend: Trend


def compute_trend(values: Sequence[float], span: Optional[float] = None) -> Trend:
    """
    Least-squares slope of the last TREND_WINDOW values against a noise floor.

    The floor is 0.5 % of the physical span when known, else 1 % of the mean.
    Large scatter around the fitted line reads as VOLATILE.
    """
    window = list(values)[-TREND_WINDOW:]
    n = len(window)
    if n < 3:
        return Trend.STABLE

    mean_x = (n - 1) / 2.0
    mean_y = statistics.fmean(window)
    sxx = sum((x - mean_x) ** 2 for x in range(n))
    slope = sum((x - mean_x) * (y - mean_y) for x, y in enumerate(window)) / sxx

    threshold = span * 0.005 if span else abs(mean_y) * 0.01
    threshold = max(threshold, 1e-9)

    residuals = [y - (mean_y + slope * (x - mean_x)) for x, y in enumerate(window)]
    noise = statistics.pstdev(residuals)
    if noise > threshold * 10 and noise > abs(slope) * (n - 1) / 2.0:
        return Trend.VOLATILE
    if slope > threshold:
        return Trend.INCREASING
    if slope < -threshold:
        return Trend.DECREASING
    return Trend.STABLE


def summarize(values: Sequence[float], span: Optional[float] = None) -> Optional[ParameterStatistics]:
    if not values:
        return None
    return ParameterStatistics(
        count=len(values),
        minimum=min(values),
        maximum=max(values),
        mean=statistics.fmean(values),
        std_dev=statistics.pstdev(values) if len(values) > 1 else 0.0,
        latest=values[-1],
        trend=compute_trend(values, span),
    )
