# elmcore/pids/__init__.py
from .definitions import PIDDefinition
from .database import PIDDatabase, default_database, normalize_pid
from .decoders import parse_supported
from .sets import DIAGNOSTIC_PIDS, DYNAMIC_PIDS, FUEL_PIDS, TEMPERATURE_PIDS, THROTTLE_PIDS

__all__ = [
    "PIDDefinition",
    "PIDDatabase",
    "default_database",
    "normalize_pid",
    "parse_supported",
    "DIAGNOSTIC_PIDS",
    "DYNAMIC_PIDS",
    "FUEL_PIDS",
    "TEMPERATURE_PIDS",
    "THROTTLE_PIDS",
]
