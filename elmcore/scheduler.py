"""
Half-duplex command scheduler.

The ELM327 answers one command at a time, so every request goes through a
single worker thread that owns the transport:

    submit() -> priority heap -> worker: write, wait for '>' -> Future

Priorities preempt queued work only; the command on the wire always runs to
completion, timeout or cancellation. Timeouts are retried in place up to the
command's retry budget. Transport failures are never retried.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .config import EngineSettings
from .errors import CommandCancelledError, CommandTimeoutError, ProtocolError, TransportError
from .models import CommandPriority, CommandType, ObdCommand
from .protocol.codec import encode_command
from .protocol.normalize import meaningful_lines, split_lines
from .transport.base import Transport

logger = logging.getLogger(__name__)

RawLoggerFn = Callable[[str, str, List[str]], None]


@dataclass
class QueueEntry:
    command: ObdCommand
    future: Future
    sequence: int
    enqueued_at: float = field(default_factory=time.monotonic)
    attempts: int = 0
    claimed: bool = False


@dataclass(frozen=True)
class SchedulerStats:
    pending: int
    in_flight: bool
    completed: int
    succeeded: int
    failed: int
    cancelled: int
    timeouts: int
    retries: int
    average_latency_ms: float

    @property
    def success_rate(self) -> float:
        return self.succeeded / self.completed if self.completed else 0.0


class CommandScheduler:
    def __init__(
        self,
        transport: Transport,
        settings: Optional[EngineSettings] = None,
        raw_logger: Optional[RawLoggerFn] = None,
        on_transport_error: Optional[Callable[[TransportError], None]] = None,
        name: str = "elm-scheduler",
    ):
        self.transport = transport
        self.settings = settings or EngineSettings()
        self.raw_logger = raw_logger
        self.on_transport_error = on_transport_error
        self.name = name

        self._cond = threading.Condition()
        self._heap: List[Tuple[int, int, QueueEntry]] = []
        self._pending: Dict[str, QueueEntry] = {}
        self._in_flight: Optional[QueueEntry] = None
        self._sequence = itertools.count()
        self._thread: Optional[threading.Thread] = None
        self._stopping = False

        self._completed = 0
        self._succeeded = 0
        self._failed = 0
        self._cancelled = 0
        self._timeouts = 0
        self._retries = 0
        self._latency_total_ms = 0.0

    # -----------------------------
    # Lifecycle
    # -----------------------------
    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self) -> None:
        with self._cond:
            if self.running:
                return
            self._stopping = False
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()
        logger.debug("%s started", self.name)

    def stop(self, timeout: float = 2.0) -> None:
        """Cancel everything outstanding and let the worker exit."""
        self.clear()
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
            thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.debug("%s stopped", self.name)

    # -----------------------------
    # Queueing
    # -----------------------------
    def submit(self, command: ObdCommand) -> Future:
        """Queue a command; the future resolves to the raw reply text."""
        future: Future = Future()
        with self._cond:
            entry = QueueEntry(command=command, future=future, sequence=next(self._sequence))
            heapq.heappush(self._heap, (int(command.priority), entry.sequence, entry))
            self._pending[command.id] = entry
            self._cond.notify()
        logger.debug("Queued %s [%s] id=%s", command.command, command.priority.name, command.id)
        return future

    def submit_batch(self, commands: Iterable[ObdCommand]) -> List[Future]:
        return [self.submit(cmd) for cmd in commands]

    def send(
        self,
        text: str,
        priority: CommandPriority = CommandPriority.NORMAL,
        *,
        description: str = "",
        timeout_s: Optional[float] = None,
        retry_count: Optional[int] = None,
        command_type: CommandType = CommandType.CUSTOM,
    ) -> Future:
        return self.submit(
            ObdCommand(
                command=text,
                description=description,
                priority=priority,
                timeout_s=timeout_s,
                retry_count=retry_count,
                command_type=command_type,
            )
        )

    def cancel(self, command_id: str) -> bool:
        """Cancel one queued or in-flight command. False if it already finished."""
        with self._cond:
            entry = self._pending.pop(command_id, None)
            if entry is None and self._in_flight and self._in_flight.command.id == command_id:
                entry = self._in_flight
            if entry is None or not self._claim(entry):
                return False
            self._cancelled += 1
        self._resolve(entry, error=CommandCancelledError(command=entry.command.command))
        logger.debug("Cancelled %s id=%s", entry.command.command, command_id)
        return True

    def clear(self) -> int:
        """Cancel all queued and in-flight commands. Returns how many were cancelled."""
        with self._cond:
            entries = [entry for _, _, entry in self._heap]
            if self._in_flight is not None:
                entries.append(self._in_flight)
            self._heap.clear()
            self._pending.clear()
            claimed = [entry for entry in entries if self._claim(entry)]
            self._cancelled += len(claimed)
        for entry in claimed:
            self._resolve(entry, error=CommandCancelledError(command=entry.command.command))
        if claimed:
            logger.info("Cancelled %d outstanding command(s)", len(claimed))
        return len(claimed)

    def stats(self) -> SchedulerStats:
        with self._cond:
            avg = self._latency_total_ms / self._completed if self._completed else 0.0
            return SchedulerStats(
                pending=len(self._pending),
                in_flight=self._in_flight is not None,
                completed=self._completed,
                succeeded=self._succeeded,
                failed=self._failed,
                cancelled=self._cancelled,
                timeouts=self._timeouts,
                retries=self._retries,
                average_latency_ms=avg,
            )

    # -----------------------------
    # Completion helpers
    # -----------------------------
    def _claim(self, entry: QueueEntry) -> bool:
        # caller holds self._cond
        if entry.claimed or entry.future.done():
            return False
        entry.claimed = True
        return True

    @staticmethod
    def _resolve(entry: QueueEntry, result: Optional[str] = None, error: Optional[BaseException] = None) -> None:
        try:
            if error is not None:
                entry.future.set_exception(error)
            else:
                entry.future.set_result(result)
        except InvalidStateError:
            # the caller cancelled the Future itself in the meantime
            logger.debug("Future for %s already resolved", entry.command.command)

    def _finish(self, entry: QueueEntry, result: Optional[str] = None, error: Optional[BaseException] = None) -> None:
        with self._cond:
            if self._in_flight is entry:
                self._in_flight = None
            if not self._claim(entry):
                return
            latency_ms = (time.monotonic() - entry.enqueued_at) * 1000.0
            self._completed += 1
            self._latency_total_ms += latency_ms
            if error is None:
                self._succeeded += 1
            else:
                self._failed += 1
                if isinstance(error, CommandTimeoutError):
                    self._timeouts += 1
        self._resolve(entry, result=result, error=error)

    # -----------------------------
    # Worker
    # -----------------------------
    def _next_entry(self) -> Optional[QueueEntry]:
        with self._cond:
            while True:
                while not self._heap and not self._stopping:
                    self._cond.wait()
                if self._stopping:
                    return None
                _, _, entry = heapq.heappop(self._heap)
                self._pending.pop(entry.command.id, None)
                if entry.claimed:
                    continue
                # False when the caller cancelled the Future itself
                if not entry.future.set_running_or_notify_cancel():
                    self._cancelled += 1
                    continue
                self._in_flight = entry
                return entry

    def _run(self) -> None:
        while True:
            entry = self._next_entry()
            if entry is None:
                return
            try:
                reply = self._execute(entry)
            except CommandCancelledError:
                with self._cond:
                    if self._in_flight is entry:
                        self._in_flight = None
            except TransportError as e:
                logger.error("Transport failure on %s: %s", entry.command.command, e)
                self._finish(entry, error=e)
                if self.on_transport_error:
                    self.on_transport_error(e)
            except (CommandTimeoutError, ProtocolError) as e:
                self._finish(entry, error=e)
            except Exception as e:
                logger.exception("Unexpected failure while running %s", entry.command.command)
                self._finish(
                    entry,
                    error=ProtocolError(
                        f"{entry.command.command}: {type(e).__name__}: {e}",
                        command=entry.command.command,
                    ),
                )
            else:
                self._finish(entry, result=reply)
            # pause between two commands on the wire
            if self.settings.inter_pid_delay_s > 0:
                time.sleep(self.settings.inter_pid_delay_s)

    def _execute(self, entry: QueueEntry) -> str:
        cmd = entry.command
        timeout = cmd.timeout_s if cmd.timeout_s is not None else self.settings.command_timeout_s
        retries = cmd.retry_count if cmd.retry_count is not None else self.settings.retry_count

        while True:
            entry.attempts += 1
            self.transport.discard_input()
            self._trace("TX", cmd.command, [])
            self.transport.write(encode_command(cmd.command))

            try:
                raw = self._await_reply(entry, timeout)
            except CommandTimeoutError:
                if entry.attempts > retries:
                    raise CommandTimeoutError(
                        f"{cmd.command}: no reply within {timeout:.2f}s after {entry.attempts} attempt(s)",
                        command=cmd.command,
                        attempts=entry.attempts,
                    )
                with self._cond:
                    self._retries += 1
                logger.warning("%s timed out, retry %d/%d", cmd.command, entry.attempts, retries)
                if self.settings.retry_delay_s > 0:
                    time.sleep(self.settings.retry_delay_s)
                if entry.future.done():
                    raise CommandCancelledError(command=cmd.command)
                continue

            self._trace("RX", cmd.command, split_lines(raw))
            self._validate(cmd, raw)
            return raw

    def _trace(self, direction: str, command: str, lines: List[str]) -> None:
        if not self.raw_logger:
            return
        try:
            self.raw_logger(direction, command, lines)
        except Exception as e:
            logger.warning("Raw logger failed on %s %s: %s", direction, command, e)

    def _await_reply(self, entry: QueueEntry, timeout: float) -> str:
        deadline = time.monotonic() + timeout
        poll = max(0.001, self.settings.poll_interval_s)
        while True:
            if entry.future.done() or self._stopping:
                raise CommandCancelledError(command=entry.command.command)
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise CommandTimeoutError(f"{entry.command.command}: timeout", command=entry.command.command)
            try:
                data = self.transport.read_until(b">", min(remaining, poll))
            except CommandTimeoutError:
                continue
            return data.decode("ascii", errors="ignore")

    @staticmethod
    def _validate(cmd: ObdCommand, raw: str) -> None:
        if cmd.expected_length:
            hex_chars = sum(len(ln) for ln in meaningful_lines(raw, cmd.command))
            if hex_chars // 2 < cmd.expected_length:
                raise ProtocolError(
                    f"{cmd.command}: expected at least {cmd.expected_length} byte(s)",
                    command=cmd.command,
                    raw=raw,
                )
        if cmd.validator is not None and not cmd.validator(raw):
            raise ProtocolError(f"{cmd.command}: reply rejected by validator", command=cmd.command, raw=raw)
