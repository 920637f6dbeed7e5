from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import List, Optional, Tuple

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError

from .. import config
from ..errors import DeviceDisconnectedError, TransportError
from ..models import Device, TransportKind
from .base import BufferedTransport

logger = logging.getLogger(__name__)

# Known BLE UART profiles (service, rx/write, tx/notify) in priority order.
KNOWN_PROFILES = [
    (
        "0000fff0-0000-1000-8000-00805f9b34fb",
        "0000fff2-0000-1000-8000-00805f9b34fb",
        "0000fff1-0000-1000-8000-00805f9b34fb",
    ),
    (
        "49535343-fe7d-4ae5-8fa9-9fafd205e455",
        "49535343-6daa-4d02-abf6-19569aca69fe",
        "49535343-aca3-481c-91ec-d85e28a60318",
    ),
    (
        "6e400001-b5a3-f393-e0a9-e50e24dcca9e",
        "6e400002-b5a3-f393-e0a9-e50e24dcca9e",
        "6e400003-b5a3-f393-e0a9-e50e24dcca9e",
    ),
    (
        "0000ffe0-0000-1000-8000-00805f9b34fb",
        "0000ffe1-0000-1000-8000-00805f9b34fb",
        "0000ffe1-0000-1000-8000-00805f9b34fb",
    ),
]

_ADAPTER_NAME_TOKENS = (
    "veepeak",
    "obd",
    "obdii",
    "obdlink",
    "vlinker",
    "elm",
    "vgate",
    "scan tool",
    "diagnostic",
)

_NOISE_NAME_TOKENS = ("airpods", "iphone", "watch", "macbook", "ipad", "beats", "bose", "jabra")


def _pick_write_notify(services, service_filter: str) -> Tuple[Optional[str], Optional[str]]:
    for service in services:
        if service_filter and service.uuid.lower() != service_filter:
            continue
        write_chars = []
        notify_chars = []
        for ch in service.characteristics:
            props = {p.lower() for p in ch.properties}
            if "write" in props or "write-without-response" in props:
                write_chars.append(ch.uuid)
            if "notify" in props or "indicate" in props:
                notify_chars.append(ch.uuid)
        if write_chars and notify_chars:
            return write_chars[0], notify_chars[0]
    return None, None


class BleTransport(BufferedTransport):
    """
    BLE ELM327 clones over a GATT UART profile.

    bleak is asyncio-only, so the transport owns an event loop running in a
    daemon thread and bridges every call with run_coroutine_threadsafe().
    Notifications append to a buffer guarded by a lock.
    """

    kind = TransportKind.BLUETOOTH

    def __init__(self, address: str, *, timeout: float = 3.0):
        super().__init__()
        self.address = address
        self.timeout = timeout
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._client: Optional[BleakClient] = None
        self._rx_uuid: Optional[str] = config.ble_rx_uuid()
        self._tx_uuid: Optional[str] = config.ble_tx_uuid()
        self._service_uuid: Optional[str] = config.ble_service_uuid()
        self._notify_buffer = bytearray()
        self._lock = threading.Lock()
        self._is_open = False

    @property
    def is_open(self) -> bool:
        return self._is_open

    def open(self) -> None:
        if self._is_open:
            return
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="ble-transport-loop", daemon=True)
        self._thread.start()
        fut = asyncio.run_coroutine_threadsafe(self._connect(), self._loop)
        try:
            fut.result(timeout=self.timeout + config.ble_scan_timeout_s() + 5)
        except (BleakError, OSError, asyncio.TimeoutError, FutureTimeoutError) as e:
            self._stop_loop()
            raise TransportError(f"BLE connect to {self.address} failed: {e}") from e
        except TransportError:
            self._stop_loop()
            raise
        self._is_open = True
        logger.info("Connected to BLE adapter %s (rx=%s tx=%s)", self.address, self._rx_uuid, self._tx_uuid)

    def close(self) -> None:
        was_open, self._is_open = self._is_open, False
        if was_open and self._loop and self._client:
            fut = asyncio.run_coroutine_threadsafe(self._disconnect(), self._loop)
            try:
                fut.result(timeout=self.timeout + 2)
            except (BleakError, OSError, asyncio.TimeoutError, FutureTimeoutError) as e:
                logger.warning("BLE disconnect from %s failed: %s", self.address, e)
        self._stop_loop()
        self._client = None
        self._pending.clear()
        with self._lock:
            self._notify_buffer.clear()

    def discard_input(self) -> None:
        super().discard_input()
        with self._lock:
            self._notify_buffer.clear()

    def write(self, data: bytes) -> None:
        if not self._is_open or not self._client or not self._loop:
            raise DeviceDisconnectedError("BLE link is closed")
        if not data:
            return
        fut = asyncio.run_coroutine_threadsafe(
            self._client.write_gatt_char(self._rx_uuid, data, response=False),
            self._loop,
        )
        try:
            fut.result(timeout=self.timeout)
        except (BleakError, OSError, asyncio.TimeoutError, FutureTimeoutError) as e:
            self._is_open = False
            raise DeviceDisconnectedError(f"Device disconnected: {e}") from e

    def _read_chunk(self, wait_s: float) -> bytes:
        if not self._is_open:
            raise DeviceDisconnectedError("BLE link is closed")
        with self._lock:
            if self._notify_buffer:
                data = bytes(self._notify_buffer)
                self._notify_buffer.clear()
                return data
        time.sleep(min(wait_s, 0.01))
        return b""

    # -----------------------------
    # Event loop side
    # -----------------------------
    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _stop_loop(self) -> None:
        if self._loop:
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread:
            self._thread.join(timeout=1.0)
        self._thread = None
        self._loop = None

    async def _connect(self) -> None:
        scan_timeout = max(self.timeout, config.ble_scan_timeout_s())
        device = await BleakScanner.find_device_by_address(self.address, timeout=scan_timeout)
        if device is None:
            raise TransportError(
                "BLE device not found. If it is paired in the OS Bluetooth settings, "
                "disconnect it there and try again."
            )

        self._client = BleakClient(device)
        await self._client.connect(timeout=self.timeout)
        self._select_characteristics()
        if not self._rx_uuid or not self._tx_uuid:
            raise TransportError("No writable/notifiable BLE characteristic pair found")
        await self._client.start_notify(self._tx_uuid, self._on_notify)

    async def _disconnect(self) -> None:
        if self._tx_uuid:
            await self._client.stop_notify(self._tx_uuid)
        await self._client.disconnect()

    def _select_characteristics(self) -> None:
        if self._rx_uuid and self._tx_uuid:
            return
        services = self._client.services
        service_filter = (self._service_uuid or "").lower()
        service_map = {service.uuid.lower(): service for service in services}
        for svc_uuid, rx_known, tx_known in KNOWN_PROFILES:
            if service_filter and svc_uuid != service_filter:
                continue
            service = service_map.get(svc_uuid)
            if not service:
                continue
            char_uuids = {ch.uuid.lower() for ch in service.characteristics}
            if rx_known in char_uuids and tx_known in char_uuids:
                self._rx_uuid = self._rx_uuid or rx_known
                self._tx_uuid = self._tx_uuid or tx_known
                return

        rx_uuid, tx_uuid = _pick_write_notify(services, service_filter)
        if not rx_uuid or not tx_uuid:
            # any write/notify pair across services
            rx_uuid, tx_uuid = _pick_write_notify(services, "")
        self._rx_uuid = self._rx_uuid or rx_uuid
        self._tx_uuid = self._tx_uuid or tx_uuid

    def _on_notify(self, _sender, data: bytearray) -> None:
        if not data:
            return
        with self._lock:
            self._notify_buffer.extend(data)


# -----------------------------
# Discovery
# -----------------------------
def _looks_like_adapter(name: str, service_uuids: List[str]) -> bool:
    n = (name or "").lower()
    if any(token in n for token in _NOISE_NAME_TOKENS):
        return False
    if any(token in n for token in _ADAPTER_NAME_TOKENS):
        return True
    known = {svc for svc, _, _ in KNOWN_PROFILES}
    override = (config.ble_service_uuid() or "").strip().lower()
    if override:
        known.add(override)
    return any(u in known for u in service_uuids)


async def _scan(timeout_s: float, include_all: bool) -> List[Tuple[int, Device]]:
    result = await BleakScanner.discover(timeout=timeout_s, return_adv=True)
    target_name = (config.ble_name() or "").lower()
    found: List[Tuple[int, Device]] = []
    for dev, adv in result.values():
        name = (dev.name or adv.local_name or "").strip()
        uuids = [str(u).lower() for u in (adv.service_uuids or [])]
        if target_name:
            if target_name not in name.lower():
                continue
        elif not include_all and not _looks_like_adapter(name, uuids):
            continue
        found.append(
            (
                adv.rssi if adv.rssi is not None else -999,
                Device(
                    identifier=dev.address,
                    name=name or dev.address,
                    address=dev.address,
                    kind=TransportKind.BLUETOOTH,
                ),
            )
        )
    return found


def find_ble_devices(include_all: bool = False, timeout_s: Optional[float] = None) -> List[Device]:
    """
    Scan for BLE adapters, strongest signal first.

    ELMCORE_BLE_ADDRESS skips the scan, ELMCORE_BLE_NAME filters by name.
    """
    address = config.ble_address()
    if address:
        return [Device(identifier=address, name=config.ble_name() or address, address=address, kind=TransportKind.BLUETOOTH)]

    try:
        found = asyncio.run(_scan(timeout_s or config.ble_scan_timeout_s(), include_all))
    except (BleakError, OSError) as e:
        logger.warning("BLE scan failed: %s", e)
        return []
    found.sort(key=lambda item: item[0], reverse=True)
    return [device for _, device in found]
