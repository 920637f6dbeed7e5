from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, List, Optional, Sequence

from ..errors import ConnectionStateError, ElmError
from ..models import CommandPriority, PidResult

logger = logging.getLogger(__name__)

MonitorCallback = Callable[[List[PidResult]], None]


class MonitorMixin:
    """
    Periodic polling of a PID set at LOW priority.

    Each cycle submits every PID, waits for the batch, hands the results to
    the callback (processed records also reach the pipeline listeners), then
    sleeps for what is left of the interval. Interactive requests queued in
    the meantime overtake the poll because of their higher priority.
    """

    _monitor_thread: Optional[threading.Thread] = None
    _monitor_stop: Optional[threading.Event] = None

    @property
    def monitoring(self) -> bool:
        return bool(self._monitor_thread and self._monitor_thread.is_alive())

    def start_monitoring(
        self,
        pids: Sequence[str],
        interval_ms: Optional[int] = None,
        callback: Optional[MonitorCallback] = None,
    ) -> None:
        if not self.is_connected:
            raise ConnectionStateError("Cannot monitor while not connected")
        if self.monitoring:
            self.stop_monitoring()

        interval_s = (interval_ms if interval_ms is not None else self.settings.monitor_interval_ms) / 1000.0
        stop = threading.Event()
        self._monitor_stop = stop
        self._monitor_thread = threading.Thread(
            target=self._monitor_loop,
            args=(list(pids), interval_s, callback, stop),
            name="elm-monitor",
            daemon=True,
        )
        self._monitor_thread.start()
        logger.info("Monitoring %d PID(s) every %.0f ms", len(pids), interval_s * 1000)

    def stop_monitoring(self, timeout: float = 5.0) -> None:
        thread, stop = self._monitor_thread, self._monitor_stop
        if stop is not None:
            stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._monitor_thread = None
        self._monitor_stop = None
        if thread is not None:
            logger.info("Monitoring stopped")

    def _monitor_loop(
        self,
        pids: List[str],
        interval_s: float,
        callback: Optional[MonitorCallback],
        stop: threading.Event,
    ) -> None:
        while not stop.is_set():
            started = time.monotonic()
            try:
                batch: Future = self.request_pids(pids, priority=CommandPriority.LOW)
            except ConnectionStateError as e:
                logger.warning("Monitoring ended: %s", e)
                return

            results = self._wait_batch(batch, stop)
            if results is None:
                return
            if callback is not None:
                callback(results)

            if not self.is_connected:
                logger.warning("Monitoring ended: connection %s", self.state.value)
                return
            elapsed = time.monotonic() - started
            stop.wait(max(0.0, interval_s - elapsed))

    @staticmethod
    def _wait_batch(batch: Future, stop: threading.Event) -> Optional[List[PidResult]]:
        while not stop.is_set():
            try:
                return batch.result(timeout=0.1)
            except FutureTimeoutError:
                continue
            except ElmError as e:
                logger.warning("Monitoring cycle failed: %s", e)
                return None
        return None
