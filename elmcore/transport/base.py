from __future__ import annotations

import time
from abc import ABC, abstractmethod

from ..errors import CommandTimeoutError, TransportError
from ..models import TransportKind


class Transport(ABC):
    """
    Byte pipe to an ELM327 adapter.

    The core only relies on ordered delivery within one session and on
    read_until() telling a timeout (CommandTimeoutError) apart from a dead
    link (TransportError).
    """

    kind: TransportKind

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    def open(self) -> None:
        ...

    @abstractmethod
    def write(self, data: bytes) -> None:
        ...

    @abstractmethod
    def read_until(self, terminator: bytes = b">", timeout: float = 5.0) -> bytes:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def discard_input(self) -> None:
        return None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class BufferedTransport(Transport):
    """
    read_until() on top of a non-blocking chunk reader.

    Bytes received after the terminator, or before a timeout, stay in the
    pending buffer for the next call.
    """

    def __init__(self) -> None:
        self._pending = bytearray()

    @abstractmethod
    def _read_chunk(self, wait_s: float) -> bytes:
        """Return whatever arrived within wait_s (possibly b"")."""

    def discard_input(self) -> None:
        self._pending.clear()

    def read_until(self, terminator: bytes = b">", timeout: float = 5.0) -> bytes:
        if not self.is_open:
            raise TransportError("Transport is not open")

        deadline = time.monotonic() + max(0.0, timeout)
        while True:
            idx = self._pending.find(terminator)
            if idx >= 0:
                end = idx + len(terminator)
                out = bytes(self._pending[:end])
                del self._pending[:end]
                return out

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise CommandTimeoutError(f"No {terminator!r} within {timeout:.2f}s")

            chunk = self._read_chunk(min(remaining, 0.05))
            if chunk:
                self._pending.extend(chunk)
