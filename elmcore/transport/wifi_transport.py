from __future__ import annotations

import logging
import socket
from typing import Optional, Tuple

from .. import config
from ..errors import DeviceDisconnectedError, TransportError
from ..models import Device, TransportKind
from .base import BufferedTransport

logger = logging.getLogger(__name__)


def parse_address(address: str) -> Tuple[str, int]:
    """'192.168.0.10:35000' -> ('192.168.0.10', 35000); port defaults from config."""
    host, sep, port = (address or "").strip().rpartition(":")
    if not sep:
        return address.strip() or config.wifi_host(), config.wifi_port()
    try:
        return host, int(port)
    except ValueError as e:
        raise TransportError(f"Invalid Wi-Fi adapter address {address!r}") from e


class WifiTransport(BufferedTransport):
    """Wi-Fi ELM327 clones expose the same ASCII protocol on a TCP socket."""

    kind = TransportKind.WIFI

    def __init__(self, address: Optional[str] = None, connect_timeout_s: float = 5.0):
        super().__init__()
        self.host, self.port = parse_address(address or f"{config.wifi_host()}:{config.wifi_port()}")
        self.connect_timeout_s = connect_timeout_s
        self._sock: Optional[socket.socket] = None

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def open(self) -> None:
        if self._sock:
            return
        try:
            self._sock = socket.create_connection((self.host, self.port), timeout=self.connect_timeout_s)
        except OSError as e:
            raise TransportError(f"Wi-Fi adapter {self.host}:{self.port} unreachable: {e}") from e
        logger.info("Connected to Wi-Fi adapter %s:%d", self.host, self.port)

    def write(self, data: bytes) -> None:
        if not self._sock:
            raise DeviceDisconnectedError("Socket is closed")
        try:
            self._sock.sendall(data)
        except OSError as e:
            self._drop()
            raise DeviceDisconnectedError(f"Device disconnected: {e}") from e

    def _read_chunk(self, wait_s: float) -> bytes:
        if not self._sock:
            raise DeviceDisconnectedError("Socket is closed")
        try:
            self._sock.settimeout(max(wait_s, 0.001))
            chunk = self._sock.recv(1024)
        except socket.timeout:
            return b""
        except OSError as e:
            self._drop()
            raise DeviceDisconnectedError(f"Device disconnected: {e}") from e
        if not chunk:
            self._drop()
            raise DeviceDisconnectedError("Adapter closed the connection")
        return chunk

    def _drop(self) -> None:
        sock, self._sock = self._sock, None
        if sock:
            try:
                sock.close()
            except OSError:
                pass

    def close(self) -> None:
        self._drop()
        self._pending.clear()


def default_wifi_device() -> Device:
    address = f"{config.wifi_host()}:{config.wifi_port()}"
    return Device(identifier=address, name="Wi-Fi ELM327", address=address, kind=TransportKind.WIFI)
