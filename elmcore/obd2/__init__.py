from .base import BaseClient, chain
from .client import OBDClient
from .vehicle_info import vin_from_reply

__all__ = ["BaseClient", "OBDClient", "chain", "vin_from_reply"]
