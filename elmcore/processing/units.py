"""
Unit conversion.

Decoders always produce metric values; conversion happens once, on the way
out of the pipeline. MIXED behaves like IMPERIAL for every unit that has an
imperial counterpart.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, Optional, Tuple, Union


class UnitSystem(str, Enum):
    METRIC = "metric"
    IMPERIAL = "imperial"
    MIXED = "mixed"

    @classmethod
    def parse(cls, value: Union[str, "UnitSystem", None]) -> "UnitSystem":
        if isinstance(value, UnitSystem):
            return value
        try:
            return cls((value or "metric").strip().lower())
        except ValueError:
            return cls.METRIC


def _mpg(l_per_100km: float) -> float:
    return 235.214 / l_per_100km if l_per_100km > 0 else 0.0


# metric unit -> (imperial unit, conversion)
IMPERIAL_CONVERSIONS: Dict[str, Tuple[str, Callable[[float], float]]] = {
    "°C": ("°F", lambda c: c * 9.0 / 5.0 + 32.0),
    "km/h": ("mph", lambda kmh: kmh * 0.621371),
    "kPa": ("psi", lambda kpa: kpa * 0.145038),
    "km": ("mi", lambda km: km * 0.621371),
    "L": ("gal", lambda l: l * 0.264172),
    "L/h": ("gal/h", lambda lh: lh * 0.264172),
    "L/100km": ("mpg", _mpg),
    "kg": ("lb", lambda kg: kg * 2.20462),
    "g/s": ("lb/h", lambda gs: gs * 7.93664),
    "Nm": ("lb-ft", lambda nm: nm * 0.737562),
    "kW": ("hp", lambda kw: kw * 1.34102),
}

_PRECISION = {
    "°C": 1, "°F": 1,
    "km/h": 0, "mph": 0,
    "kPa": 2, "psi": 2,
    "rpm": 0,
    "%": 1,
    "V": 2, "A": 2,
    "L/h": 2, "gal/h": 2,
    "L/100km": 1, "mpg": 1,
    "g/s": 2, "lb/h": 2,
    "Nm": 1, "lb-ft": 1,
    "kW": 1, "hp": 1,
}


class UnitConverter:
    def __init__(self, system: Union[str, UnitSystem] = UnitSystem.METRIC):
        self.system = UnitSystem.parse(system)

    def target_unit(self, unit: str) -> str:
        if self.system is UnitSystem.METRIC or unit not in IMPERIAL_CONVERSIONS:
            return unit
        return IMPERIAL_CONVERSIONS[unit][0]

    def convert(self, value: float, unit: str) -> Tuple[float, str]:
        """(value, unit) in the selected system. Unknown units pass through."""
        if self.system is UnitSystem.METRIC:
            return value, unit
        rule = IMPERIAL_CONVERSIONS.get(unit)
        if rule is None:
            return value, unit
        target, fn = rule
        return fn(value), target


def format_value(value: Optional[float], unit: str = "") -> str:
    if value is None:
        return "N/A"
    precision = _PRECISION.get(unit, 2)
    text = f"{value:.{precision}f}"
    return f"{text} {unit}".rstrip()
