# elmcore/__init__.py
import logging

from .config import EngineSettings, load_settings, save_settings
from .connection import ConnectionState, ConnectionStateMachine
from .errors import (
    CommandCancelledError,
    CommandTimeoutError,
    ConnectionStateError,
    DeviceDisconnectedError,
    ElmError,
    InitializationError,
    ProtocolError,
    TransportError,
    UnknownPidError,
    ValidationError,
)
from .models import (
    CommandPriority,
    CommandType,
    Device,
    ObdCommand,
    PidResult,
    ProcessedObdData,
    Quality,
    Trend,
    TransportKind,
)
from .dtc import DTCDatabase, DTCStatus, DtcInfo
from .pids import PIDDatabase, PIDDefinition, default_database
from .processing import DataProcessor, UnitSystem, format_value
from .rawlog import RawLogger
from .scheduler import CommandScheduler
from .obd2 import OBDClient

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "EngineSettings",
    "load_settings",
    "save_settings",
    "ConnectionState",
    "ConnectionStateMachine",
    "CommandCancelledError",
    "CommandTimeoutError",
    "ConnectionStateError",
    "DeviceDisconnectedError",
    "ElmError",
    "InitializationError",
    "ProtocolError",
    "TransportError",
    "UnknownPidError",
    "ValidationError",
    "CommandPriority",
    "CommandType",
    "Device",
    "ObdCommand",
    "PidResult",
    "ProcessedObdData",
    "Quality",
    "Trend",
    "TransportKind",
    "DTCDatabase",
    "DTCStatus",
    "DtcInfo",
    "PIDDatabase",
    "PIDDefinition",
    "default_database",
    "DataProcessor",
    "UnitSystem",
    "format_value",
    "RawLogger",
    "CommandScheduler",
    "OBDClient",
]
__version__ = "0.1.0"
