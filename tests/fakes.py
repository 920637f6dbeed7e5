from __future__ import annotations

import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Tuple

from elmcore.config import EngineSettings
from elmcore.errors import DeviceDisconnectedError
from elmcore.models import TransportKind
from elmcore.obd2 import OBDClient
from elmcore.transport.base import BufferedTransport

from tests.replay_transport import INIT_STEPS, REPLAY_DEVICE, ReplayTransport


def fast_settings(**overrides: Any) -> EngineSettings:
    """Short timeouts so failure paths finish quickly under test."""
    values: Dict[str, Any] = {
        "command_timeout_s": 0.3,
        "retry_count": 1,
        "retry_delay_s": 0.0,
        "reset_timeout_s": 0.5,
        "init_step_timeout_s": 0.5,
        "poll_interval_s": 0.01,
        "inter_pid_delay_s": 0.0,
        "monitor_interval_ms": 50,
    }
    values.update(overrides)
    return EngineSettings(**values)


def build_client(
    steps: Iterable[Dict[str, Any]],
    *,
    settings: Optional[EngineSettings] = None,
    manufacturer: Optional[str] = None,
    connect: bool = True,
) -> Tuple[OBDClient, ReplayTransport]:
    """OBDClient over a replay transport, already READY unless connect=False."""
    transport = ReplayTransport(list(INIT_STEPS) + list(steps))
    client = OBDClient(
        settings or fast_settings(),
        manufacturer=manufacturer,
        transport_factory=lambda _device: transport,
    )
    if connect:
        client.connect(REPLAY_DEVICE)
    return client, transport


class RecordingTransport(BufferedTransport):
    """
    Answers every command through responder(command) after reply_delay_s and
    records write order plus how many commands were ever outstanding at once.
    """

    kind = TransportKind.USB

    def __init__(
        self,
        responder: Optional[Callable[[str], List[str]]] = None,
        reply_delay_s: float = 0.0,
    ) -> None:
        super().__init__()
        self.responder = responder or (lambda _cmd: ["OK"])
        self.reply_delay_s = reply_delay_s
        self.written: List[str] = []
        self.outstanding = 0
        self.max_outstanding = 0
        self._queue: Deque[Tuple[float, bytes]] = deque()
        self._lock = threading.Lock()
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        self._open = True

    def close(self) -> None:
        self._open = False

    def discard_input(self) -> None:
        super().discard_input()
        with self._lock:
            self._queue.clear()

    def write(self, data: bytes) -> None:
        if not self._open:
            raise DeviceDisconnectedError("closed")
        command = data.decode("ascii").strip()
        with self._lock:
            self.written.append(command)
            self.outstanding += 1
            self.max_outstanding = max(self.max_outstanding, self.outstanding)
            payload = "\r".join(self.responder(command)) + "\r\r>"
            self._queue.append((time.monotonic() + self.reply_delay_s, payload.encode("ascii")))

    def read_until(self, terminator: bytes = b">", timeout: float = 5.0) -> bytes:
        data = super().read_until(terminator, timeout)
        with self._lock:
            self.outstanding -= 1
        return data

    def _read_chunk(self, wait_s: float) -> bytes:
        with self._lock:
            if self._queue and self._queue[0][0] <= time.monotonic():
                return self._queue.popleft()[1]
        time.sleep(min(wait_s, 0.002))
        return b""
