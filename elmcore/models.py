from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Callable, List, Optional, Union

from .errors import ElmError


# -----------------------------
# Devices
# -----------------------------
class TransportKind(str, Enum):
    BLUETOOTH = "bluetooth"
    USB = "usb"
    WIFI = "wifi"


@dataclass(frozen=True)
class Device:
    """An adapter found by discovery. Immutable."""
    identifier: str
    name: str
    address: str
    kind: TransportKind
    paired: bool = False
    connected: bool = False


# -----------------------------
# Commands
# -----------------------------
class CommandPriority(IntEnum):
    # lower value runs first
    CRITICAL = 0
    HIGH = 1
    NORMAL = 2
    LOW = 3
    BATCH = 4


class CommandType(str, Enum):
    INITIALIZATION = "initialization"
    DATA = "data"
    DIAGNOSTIC = "diagnostic"
    CONTROL = "control"
    CUSTOM = "custom"


def _new_command_id() -> str:
    return uuid.uuid4().hex


@dataclass
class ObdCommand:
    """
    One request for the adapter.

    timeout_s / retry_count left as None take the scheduler defaults.
    validator receives the raw reply text and returns False to reject it.
    """
    command: str
    description: str = ""
    priority: CommandPriority = CommandPriority.NORMAL
    timeout_s: Optional[float] = None
    retry_count: Optional[int] = None
    command_type: CommandType = CommandType.DATA
    expected_length: Optional[int] = None
    validator: Optional[Callable[[str], bool]] = None
    id: str = field(default_factory=_new_command_id)


# -----------------------------
# Decoded values
# -----------------------------
@dataclass(frozen=True)
class NumericValue:
    value: float
    unit: str


@dataclass(frozen=True)
class TextValue:
    text: str


@dataclass(frozen=True)
class ErrorValue:
    reason: str


PIDValue = Union[NumericValue, TextValue, ErrorValue]


@dataclass
class ParsedResponse:
    raw: str
    cleaned: str
    mode: str = ""
    pid: str = ""
    data: List[int] = field(default_factory=list)
    value: Optional[PIDValue] = None
    is_valid: bool = False
    timestamp: float = 0.0
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    ecu: Optional[str] = None


# -----------------------------
# Processed output
# -----------------------------
class Quality(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    INVALID = "invalid"


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    VOLATILE = "volatile"


class AnomalyType(str, Enum):
    OUT_OF_RANGE = "out_of_range"
    OUTLIER = "outlier"
    EXTREME_OUTLIER = "extreme_outlier"
    SUDDEN_CHANGE = "sudden_change"
    STUCK_VALUE = "stuck_value"


@dataclass
class ProcessedObdData:
    pid: str
    name: str
    raw_value: Union[float, str, None]
    processed_value: Union[float, str, None]
    unit: str
    quality: Quality
    timestamp: float
    anomaly: Optional[AnomalyType] = None
    trend: Trend = Trend.STABLE
    mode: str = "01"
    is_valid: bool = True
    latency_ms: Optional[float] = None


@dataclass
class PidResult:
    pid: str
    data: Optional[ProcessedObdData] = None
    error: Optional[ElmError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.data is not None
