from __future__ import annotations

import logging
from concurrent.futures import CancelledError, Future
from typing import Any, Callable, Optional

from ..config import EngineSettings
from ..connection import ConnectionState, ConnectionStateMachine
from ..dtc.database import DTCDatabase
from ..errors import CommandCancelledError
from ..models import CommandPriority, CommandType, Device, ObdCommand
from ..pids.database import PIDDatabase, default_database
from ..processing.pipeline import DataProcessor
from ..scheduler import RawLoggerFn
from ..transport import transport_for
from ..transport.base import Transport

logger = logging.getLogger(__name__)


def chain(source: Future, transform: Callable[[Any], Any]) -> Future:
    """
    Future resolving to transform(source.result()).

    Errors from source, or raised by transform, complete the returned future
    instead of escaping into the scheduler thread.
    """
    out: Future = Future()

    def _done(f: Future) -> None:
        try:
            value = f.result()
        except CancelledError:
            out.set_exception(CommandCancelledError())
            return
        except Exception as e:
            out.set_exception(e)
            return
        try:
            out.set_result(transform(value))
        except Exception as e:
            out.set_exception(e)

    source.add_done_callback(_done)
    return out


class BaseClient:
    """
    Lifecycle and command plumbing shared by the OBDClient mixins.

    Mixins expect:
      - self._submit(command, priority, command_type, **kwargs) -> Future[str]
      - self.pids (PIDDatabase), self.dtc_db (DTCDatabase),
        self.processor (DataProcessor), self.settings (EngineSettings)
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        *,
        pid_database: Optional[PIDDatabase] = None,
        dtc_database: Optional[DTCDatabase] = None,
        manufacturer: Optional[str] = None,
        transport_factory: Callable[[Device], Transport] = transport_for,
        raw_logger: Optional[RawLoggerFn] = None,
    ):
        self.settings = settings or EngineSettings.from_env()
        self.pids = pid_database or default_database()
        self.dtc_db = dtc_database or DTCDatabase(manufacturer=manufacturer)
        self.processor = DataProcessor(
            self.pids,
            unit_system=self.settings.unit_system,
            buffer_size=self.settings.buffer_size,
        )
        self.connection = ConnectionStateMachine(
            self.settings,
            transport_factory=transport_factory,
            raw_logger=raw_logger,
        )

    # -----------------------------
    # Connection
    # -----------------------------
    def connect(self, device: Device) -> None:
        self.connection.connect(device)

    def disconnect(self) -> None:
        self.connection.disconnect()

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    @property
    def is_connected(self) -> bool:
        return self.connection.is_ready

    @property
    def device(self) -> Optional[Device]:
        return self.connection.device

    @property
    def elm_version(self) -> Optional[str]:
        return self.connection.elm_version

    def set_manufacturer(self, manufacturer: Optional[str]) -> None:
        self.dtc_db = self.dtc_db.for_manufacturer(manufacturer)

    # -----------------------------
    # Commands
    # -----------------------------
    def _submit(
        self,
        command: str,
        priority: CommandPriority = CommandPriority.NORMAL,
        command_type: CommandType = CommandType.DATA,
        **kwargs,
    ) -> Future:
        return self.connection.submit(
            ObdCommand(command=command, priority=priority, command_type=command_type, **kwargs)
        )

    def send_raw(
        self,
        command: str,
        priority: CommandPriority = CommandPriority.NORMAL,
        timeout_s: Optional[float] = None,
    ) -> Future:
        """Any command text; resolves to the adapter's reply text, prompt included."""
        return self._submit(command.strip(), priority, CommandType.CUSTOM, timeout_s=timeout_s)
