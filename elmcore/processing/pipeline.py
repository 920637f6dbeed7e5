from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from ..models import (
    ErrorValue,
    NumericValue,
    ParsedResponse,
    ProcessedObdData,
    Quality,
    TextValue,
    Trend,
)
from ..pids.database import PIDDatabase, default_database
from ..pids.definitions import PIDDefinition
from .statistics import ParameterStatistics, RollingBuffer, compute_trend, summarize
from .units import UnitConverter, UnitSystem
from .validator import assess_quality, check_range, detect_anomaly

logger = logging.getLogger(__name__)

ProcessedListener = Callable[[ProcessedObdData], None]


@dataclass
class ProcessingStats:
    total: int = 0
    valid: int = 0
    invalid: int = 0
    out_of_range: int = 0
    anomalies: int = 0

    @property
    def success_rate(self) -> float:
        return self.valid / self.total if self.total else 0.0


@dataclass
class QualityMetrics:
    samples: int = 0
    by_quality: Counter = field(default_factory=Counter)
    latency_total_ms: float = 0.0
    latency_samples: int = 0

    @property
    def average_latency_ms(self) -> float:
        return self.latency_total_ms / self.latency_samples if self.latency_samples else 0.0

    def ratio(self, quality: Quality) -> float:
        return self.by_quality[quality] / self.samples if self.samples else 0.0


class DataProcessor:
    """
    ParsedResponse -> ProcessedObdData.

    Steps per reply: range check, anomaly tag, quality tier, unit
    conversion, rolling buffer + trend, listeners.

    Only numeric records enter the rolling buffers. Trends run on the
    converted values, so switching the unit system starts the buffers over.
    """

    def __init__(
        self,
        database: Optional[PIDDatabase] = None,
        unit_system: Union[str, UnitSystem] = UnitSystem.METRIC,
        buffer_size: int = 100,
    ):
        self.database = database or default_database()
        self.converter = UnitConverter(unit_system)
        self.buffer_size = buffer_size
        self._buffers: Dict[str, RollingBuffer[ProcessedObdData]] = {}
        self._quality: Dict[str, QualityMetrics] = {}
        self._listeners: List[ProcessedListener] = []
        self.stats = ProcessingStats()

    # -----------------------------
    # Configuration
    # -----------------------------
    @property
    def unit_system(self) -> UnitSystem:
        return self.converter.system

    def set_unit_system(self, system: Union[str, UnitSystem]) -> None:
        new_system = UnitSystem.parse(system)
        if new_system is self.converter.system:
            return
        self.converter = UnitConverter(new_system)
        self._buffers.clear()
        logger.info("Unit system set to %s, rolling buffers cleared", new_system.value)

    def add_listener(self, listener: ProcessedListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ProcessedListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -----------------------------
    # Processing
    # -----------------------------
    def process(
        self,
        parsed: ParsedResponse,
        definition: Optional[PIDDefinition] = None,
        latency_ms: Optional[float] = None,
    ) -> ProcessedObdData:
        mode = parsed.mode or "01"
        pid = parsed.pid
        definition = definition or self.database.get(mode, pid)
        key = f"{mode}{pid}"
        self.stats.total += 1

        value = parsed.value
        if not parsed.is_valid or value is None or isinstance(value, ErrorValue):
            record = self._invalid_record(parsed, definition, latency_ms)
        elif isinstance(value, TextValue):
            record = ProcessedObdData(
                pid=pid,
                name=definition.name if definition else f"PID {key}",
                raw_value=value.text,
                processed_value=value.text,
                unit="",
                quality=assess_quality(decoded=True, warnings=parsed.warnings, latency_ms=latency_ms),
                timestamp=parsed.timestamp,
                mode=mode,
                latency_ms=latency_ms,
            )
        else:
            record = self._numeric_record(parsed, value, definition, key, latency_ms)

        if record.is_valid:
            self.stats.valid += 1
        else:
            self.stats.invalid += 1
        if record.anomaly is not None:
            self.stats.anomalies += 1
        self._track_quality(key, record)

        for listener in list(self._listeners):
            try:
                listener(record)
            except Exception:
                logger.exception("Processed-data listener %r failed", listener)
        return record

    def _invalid_record(
        self,
        parsed: ParsedResponse,
        definition: Optional[PIDDefinition],
        latency_ms: Optional[float],
    ) -> ProcessedObdData:
        raw: Union[float, str, None] = None
        unit = ""
        # unknown PIDs still carry a best-effort number
        if isinstance(parsed.value, NumericValue):
            raw, unit = parsed.value.value, parsed.value.unit
        logger.debug("Invalid reply for %s%s: %s", parsed.mode, parsed.pid, parsed.error)
        return ProcessedObdData(
            pid=parsed.pid,
            name=definition.name if definition else f"PID {parsed.mode}{parsed.pid}",
            raw_value=raw,
            processed_value=raw,
            unit=unit,
            quality=Quality.INVALID,
            timestamp=parsed.timestamp,
            mode=parsed.mode or "01",
            is_valid=False,
            latency_ms=latency_ms,
        )

    def _numeric_record(
        self,
        parsed: ParsedResponse,
        value: NumericValue,
        definition: Optional[PIDDefinition],
        key: str,
        latency_ms: Optional[float],
    ) -> ProcessedObdData:
        buffer = self._buffers.setdefault(key, RollingBuffer(self.buffer_size))
        history = [float(r.raw_value) for r in buffer]

        range_error = check_range(definition, value.value)
        if range_error is not None:
            self.stats.out_of_range += 1
            logger.debug("%s", range_error)
        anomaly = detect_anomaly(definition, value.value, history)
        quality = assess_quality(
            decoded=True,
            in_range=range_error is None,
            anomaly=anomaly,
            warnings=parsed.warnings,
            latency_ms=latency_ms,
        )

        processed, unit = self.converter.convert(value.value, value.unit)
        converted_history = [float(r.processed_value) for r in buffer] + [processed]
        trend = compute_trend(converted_history, self._converted_span(definition))

        record = ProcessedObdData(
            pid=parsed.pid,
            name=definition.name if definition else f"PID {key}",
            raw_value=value.value,
            processed_value=processed,
            unit=unit,
            quality=quality,
            timestamp=parsed.timestamp,
            anomaly=anomaly,
            trend=trend,
            mode=parsed.mode or "01",
            is_valid=range_error is None,
            latency_ms=latency_ms,
        )
        buffer.append(record)
        return record

    def _converted_span(self, definition: Optional[PIDDefinition]) -> Optional[float]:
        if definition is None or not definition.has_bounds:
            return None
        low, _ = self.converter.convert(definition.min_value, definition.unit)
        high, _ = self.converter.convert(definition.max_value, definition.unit)
        return abs(high - low) or None

    def _track_quality(self, key: str, record: ProcessedObdData) -> None:
        metrics = self._quality.setdefault(key, QualityMetrics())
        metrics.samples += 1
        metrics.by_quality[record.quality] += 1
        if record.latency_ms is not None:
            metrics.latency_total_ms += record.latency_ms
            metrics.latency_samples += 1

    # -----------------------------
    # Queries
    # -----------------------------
    def history(self, pid: str, mode: str = "01") -> List[ProcessedObdData]:
        buffer = self._buffers.get(f"{mode}{pid.upper()}")
        return buffer.latest() if buffer else []

    def statistics(self, pid: str, mode: str = "01") -> Optional[ParameterStatistics]:
        records = self.history(pid, mode)
        definition = self.database.get(mode, pid)
        return summarize([float(r.processed_value) for r in records], self._converted_span(definition))

    def trend(self, pid: str, mode: str = "01") -> Trend:
        stats = self.statistics(pid, mode)
        return stats.trend if stats else Trend.STABLE

    def quality_metrics(self, pid: str, mode: str = "01") -> QualityMetrics:
        return self._quality.get(f"{mode}{pid.upper()}", QualityMetrics())

    def reset(self) -> None:
        self._buffers.clear()
        self._quality.clear()
        self.stats = ProcessingStats()
