from __future__ import annotations

import logging
import time
from typing import List, Optional

import serial
import serial.tools.list_ports

from .. import config
from ..errors import DeviceDisconnectedError, TransportError
from ..models import Device, TransportKind
from .base import BufferedTransport

logger = logging.getLogger(__name__)


def _translate(exc: BaseException) -> TransportError:
    error_str = str(exc).lower()
    if "device not configured" in error_str or "disconnected" in error_str:
        return DeviceDisconnectedError(f"Device disconnected: {exc}")
    return TransportError(f"Communication error: {exc}")


class SerialTransport(BufferedTransport):
    """USB / RS-232 ELM327 over pyserial."""

    kind = TransportKind.USB
    BAUD_RATES = [38400, 9600, 115200, 57600, 19200]

    def __init__(self, port: str, baudrate: Optional[int] = None):
        super().__init__()
        self.port = port
        self.baudrate = baudrate or config.serial_baudrate()
        self.connection: Optional[serial.Serial] = None

    @property
    def is_open(self) -> bool:
        if not self.connection:
            return False
        return bool(self.connection.is_open)

    def open(self) -> None:
        if self.is_open:
            return
        try:
            self.connection = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                timeout=0,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
            )
        except (OSError, serial.SerialException) as e:
            raise TransportError(f"Serial port error: {e}") from e
        # adapters drop bytes sent right after the port opens
        time.sleep(0.2)
        logger.info("Opened serial port %s @ %d", self.port, self.baudrate)

    def _check_open(self) -> None:
        if not self.connection:
            raise DeviceDisconnectedError("Serial port is not open")
        try:
            if not self.connection.is_open:
                raise DeviceDisconnectedError("Serial port is closed")
        except (OSError, serial.SerialException) as e:
            raise DeviceDisconnectedError(f"Device disconnected: {e}") from e

    def discard_input(self) -> None:
        super().discard_input()
        if not self.connection:
            return
        try:
            self.connection.reset_input_buffer()
        except (OSError, serial.SerialException) as e:
            raise _translate(e) from e

    def write(self, data: bytes) -> None:
        self._check_open()
        try:
            self.connection.write(data)
            self.connection.flush()
        except (OSError, serial.SerialException) as e:
            raise _translate(e) from e

    def _read_chunk(self, wait_s: float) -> bytes:
        self._check_open()
        try:
            n = self.connection.in_waiting
            if n:
                return self.connection.read(n)
        except (OSError, serial.SerialException) as e:
            raise _translate(e) from e
        time.sleep(min(wait_s, 0.01))
        return b""

    def close(self) -> None:
        if not self.connection:
            return
        try:
            self.connection.close()
        except (OSError, serial.SerialException) as e:
            logger.warning("Closing %s failed: %s", self.port, e)
        finally:
            self.connection = None
            self._pending.clear()


def find_serial_devices() -> List[Device]:
    """USB-serial ports ranked by how much they look like an ELM327."""
    ranked: List[tuple] = []
    try:
        ports_list = serial.tools.list_ports.comports()
    except (OSError, serial.SerialException) as e:
        logger.warning("Serial port listing failed: %s", e)
        return []

    for p in ports_list:
        dev = (p.device or "").lower()
        desc = (p.description or "").lower()

        if "bluetooth" in dev or "debug-console" in dev:
            continue

        score = 0
        if "usb" in desc:
            score += 2
        if any(x in desc for x in ["elm", "ch340", "pl2303", "ftdi", "cp210"]):
            score += 3
        if "usbserial" in dev or "wchusbserial" in dev:
            score += 2
        if "slab_usbtouart" in dev or "silicon labs" in desc:
            score += 2

        if score > 0 and p.device:
            ranked.append((score, p))

    ranked.sort(key=lambda item: item[0], reverse=True)
    return [
        Device(
            identifier=p.device,
            name=p.description or p.device,
            address=p.device,
            kind=TransportKind.USB,
        )
        for _, p in ranked
    ]
