from .pipeline import DataProcessor, ProcessingStats, QualityMetrics
from .statistics import ParameterStatistics, RollingBuffer, compute_trend, summarize
from .units import IMPERIAL_CONVERSIONS, UnitConverter, UnitSystem, format_value
from .validator import assess_quality, check_range, detect_anomaly

__all__ = [
    "DataProcessor",
    "ProcessingStats",
    "QualityMetrics",
    "ParameterStatistics",
    "RollingBuffer",
    "compute_trend",
    "summarize",
    "IMPERIAL_CONVERSIONS",
    "UnitConverter",
    "UnitSystem",
    "format_value",
    "assess_quality",
    "check_range",
    "detect_anomaly",
]
