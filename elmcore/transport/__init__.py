# elmcore/transport/__init__.py
from typing import List

from ..errors import TransportError
from ..models import Device, TransportKind
from .base import BufferedTransport, Transport
from .ble_transport import BleTransport, find_ble_devices
from .serial_transport import SerialTransport, find_serial_devices
from .wifi_transport import WifiTransport, default_wifi_device


def transport_for(device: Device) -> Transport:
    """Build (not open) the transport matching device.kind."""
    if device.kind == TransportKind.USB:
        return SerialTransport(device.address)
    if device.kind == TransportKind.BLUETOOTH:
        return BleTransport(device.address)
    if device.kind == TransportKind.WIFI:
        return WifiTransport(device.address)
    raise TransportError(f"Unsupported transport kind: {device.kind!r}")


def discover_devices(include_ble: bool = True) -> List[Device]:
    devices: List[Device] = list(find_serial_devices())
    if include_ble:
        devices.extend(find_ble_devices())
    return devices


__all__ = [
    "Transport",
    "BufferedTransport",
    "SerialTransport",
    "BleTransport",
    "WifiTransport",
    "transport_for",
    "discover_devices",
    "find_serial_devices",
    "find_ble_devices",
    "default_wifi_device",
]
