"""
Adapter lifecycle.

    DISCONNECTED -> CONNECTING -> INITIALIZING -> READY -> DISCONNECTING -> DISCONNECTED
                        |              |            |
                        +--------------+------------+--> ERROR -> DISCONNECTING

Any transport or init failure releases the transport and parks the machine in
ERROR with last_error set. Leaving ERROR always goes through disconnect().
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .config import EngineSettings
from .elm.initializer import run_initializer
from .errors import ConnectionStateError, ElmError, InitializationError, TransportError
from .models import Device, ObdCommand
from .scheduler import CommandScheduler, RawLoggerFn
from .transport import transport_for
from .transport.base import Transport

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    INITIALIZING = "initializing"
    READY = "ready"
    DISCONNECTING = "disconnecting"
    ERROR = "error"


_TRANSITIONS = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {ConnectionState.INITIALIZING, ConnectionState.ERROR, ConnectionState.DISCONNECTING},
    ConnectionState.INITIALIZING: {ConnectionState.READY, ConnectionState.ERROR, ConnectionState.DISCONNECTING},
    ConnectionState.READY: {ConnectionState.DISCONNECTING, ConnectionState.ERROR},
    ConnectionState.DISCONNECTING: {ConnectionState.DISCONNECTED},
    ConnectionState.ERROR: {ConnectionState.DISCONNECTING},
}

StateListener = Callable[[ConnectionState, ConnectionState], None]


@dataclass
class Connection:
    """The live link to one Device. Dropped on disconnect."""
    device: Device
    transport: Transport
    scheduler: CommandScheduler
    elm_version: Optional[str] = None
    opened_at: float = field(default_factory=time.time)


class ConnectionStateMachine:
    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        transport_factory: Callable[[Device], Transport] = transport_for,
        raw_logger: Optional[RawLoggerFn] = None,
    ):
        self.settings = settings or EngineSettings()
        self.transport_factory = transport_factory
        self.raw_logger = raw_logger

        self._lock = threading.RLock()
        self._state = ConnectionState.DISCONNECTED
        self._connection: Optional[Connection] = None
        self._listeners: List[StateListener] = []
        self.last_error: Optional[ElmError] = None

    # -----------------------------
    # Introspection
    # -----------------------------
    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ConnectionState.READY

    @property
    def connection(self) -> Optional[Connection]:
        return self._connection

    @property
    def device(self) -> Optional[Device]:
        return self._connection.device if self._connection else None

    @property
    def elm_version(self) -> Optional[str]:
        return self._connection.elm_version if self._connection else None

    @property
    def scheduler(self) -> Optional[CommandScheduler]:
        return self._connection.scheduler if self._connection else None

    def add_listener(self, listener: StateListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def connect(self, device: Device) -> None:
        """
        Open the transport for device and initialize the adapter.

        Blocks until READY. Raises ConnectionStateError when not DISCONNECTED,
        TransportError when the link cannot be opened and InitializationError
        when an AT step fails.
        """
        with self._lock:
            if self._state is not ConnectionState.DISCONNECTED:
                raise ConnectionStateError(f"connect() while {self._state.value}")
            self.last_error = None
            self._transition(ConnectionState.CONNECTING)

        logger.info("Connecting to %s (%s)", device.name, device.kind.value)
        transport: Optional[Transport] = None
        try:
            transport = self.transport_factory(device)
            transport.open()
        except TransportError as e:
            self._abandon(transport)
            self._fail(e)
            raise
        except Exception as e:
            self._abandon(transport)
            error = TransportError(f"Opening {device.name} failed: {type(e).__name__}: {e}")
            self._fail(error)
            raise error from e

        scheduler = CommandScheduler(
            transport,
            settings=self.settings,
            raw_logger=self.raw_logger,
            on_transport_error=self._on_transport_error,
        )
        with self._lock:
            self._connection = Connection(device=device, transport=transport, scheduler=scheduler)
            self._transition(ConnectionState.INITIALIZING)
        scheduler.start()

        try:
            version = run_initializer(scheduler, self.settings)
        except InitializationError as e:
            self._fail(e)
            raise

        with self._lock:
            if self._state is not ConnectionState.INITIALIZING:
                raise ConnectionStateError(f"connection {self._state.value} during initialization")
            self._connection.elm_version = version
            self._transition(ConnectionState.READY)
        logger.info("Adapter ready (%s)", version)

    def disconnect(self) -> None:
        """Cancel outstanding commands, close the transport, end in DISCONNECTED."""
        with self._lock:
            if self._state is ConnectionState.DISCONNECTED:
                raise ConnectionStateError("disconnect() while disconnected")
            self._transition(ConnectionState.DISCONNECTING)
            connection = self._connection

        if connection is not None:
            self._release(connection)

        with self._lock:
            self._connection = None
            self._transition(ConnectionState.DISCONNECTED)
        logger.info("Disconnected")

    def submit(self, command: ObdCommand) -> Future:
        with self._lock:
            if self._state is not ConnectionState.READY or self._connection is None:
                raise ConnectionStateError(f"Adapter not ready ({self._state.value})")
            scheduler = self._connection.scheduler
        return scheduler.submit(command)

    # -----------------------------
    # Internals
    # -----------------------------
    def _transition(self, new_state: ConnectionState) -> None:
        # caller holds self._lock
        old_state = self._state
        if new_state not in _TRANSITIONS[old_state]:
            raise ConnectionStateError(f"Invalid transition {old_state.value} -> {new_state.value}")
        self._state = new_state
        logger.info("Connection %s -> %s", old_state.value, new_state.value)
        for listener in list(self._listeners):
            listener(old_state, new_state)

    def _fail(self, error: ElmError) -> None:
        with self._lock:
            if self._state not in (
                ConnectionState.CONNECTING,
                ConnectionState.INITIALIZING,
                ConnectionState.READY,
            ):
                return
            self.last_error = error
            self._transition(ConnectionState.ERROR)
            connection = self._connection
        logger.error("Connection failed: %s", error)
        if connection is not None:
            self._release(connection)

    def _on_transport_error(self, error: TransportError) -> None:
        # runs on the scheduler worker; during init the initializer reports it
        if self._state is ConnectionState.READY:
            self._fail(error)

    @staticmethod
    def _abandon(transport: Optional[Transport]) -> None:
        # transport that never made it into a Connection
        if transport is None:
            return
        try:
            transport.close()
        except TransportError as e:
            logger.warning("Closing transport failed: %s", e)

    @staticmethod
    def _release(connection: Connection) -> None:
        connection.scheduler.stop()
        try:
            connection.transport.close()
        except TransportError as e:
            logger.warning("Closing transport failed: %s", e)
