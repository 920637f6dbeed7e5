from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..models import ErrorValue, NumericValue, PIDValue, TextValue


@dataclass(frozen=True)
class PIDDefinition:
    """
    One OBD-II parameter.

    formula receives the first `length` data bytes as positional arguments
    (A, B, C, ...) and returns a number or a string. With variable=True it
    receives every data byte, `length` then being the minimum.
    """
    mode: str
    pid: str
    name: str
    unit: str
    length: int
    formula: Callable
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    description: str = ""
    variable: bool = False

    @property
    def key(self) -> str:
        return f"{self.mode}{self.pid}"

    @property
    def has_bounds(self) -> bool:
        return self.min_value is not None and self.max_value is not None

    def decode(self, data: Sequence[int]) -> PIDValue:
        if len(data) < self.length:
            return ErrorValue(f"{self.key}: expected {self.length} data byte(s), got {len(data)}")

        window = tuple(data) if self.variable else tuple(data[: self.length])
        try:
            result = self.formula(*window)
        except (ArithmeticError, ValueError, IndexError, TypeError) as e:
            return ErrorValue(f"{self.key}: {type(e).__name__}: {e}")

        if isinstance(result, str):
            return TextValue(result)
        return NumericValue(float(result), self.unit)

    def with_mode(self, mode: str, name: Optional[str] = None) -> "PIDDefinition":
        return PIDDefinition(
            mode=mode,
            pid=self.pid,
            name=name or self.name,
            unit=self.unit,
            length=self.length,
            formula=self.formula,
            min_value=self.min_value,
            max_value=self.max_value,
            description=self.description,
            variable=self.variable,
        )
