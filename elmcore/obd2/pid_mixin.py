from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import CancelledError, Future
from typing import List, Optional, Sequence

from ..errors import CommandCancelledError, ElmError, ProtocolError
from ..models import CommandPriority, CommandType, PidResult, ProcessedObdData, TextValue
from ..pids.database import normalize_pid
from ..pids.decoders import parse_supported
from ..protocol.codec import encode_request, parse_response
from ..utils import elapsed_ms
from .base import chain

logger = logging.getLogger(__name__)

# bitmap PIDs 00, 20, 40, ... E0
_BITMAP_LIMIT = 0xE0


class PidMixin:
    """
    PID requests through the scheduler.

    A reply that carries no decodable payload (NO DATA, wrong header) fails
    the future with ProtocolError. Anything that decoded, even partially or
    for an unknown PID, comes back as a ProcessedObdData with its quality set.
    """

    def request_pid(
        self,
        pid: str,
        mode: str = "01",
        priority: CommandPriority = CommandPriority.NORMAL,
    ) -> Future:
        pid = normalize_pid(pid)
        command = encode_request(mode, pid).strip()
        if mode == "02":
            command += "00"  # freeze frame 0
        definition = self.pids.get(mode, pid)
        started = time.monotonic()

        def _process(raw: str) -> ProcessedObdData:
            latency_ms = elapsed_ms(started, time.monotonic())
            parsed = parse_response(raw, command, self.pids)
            if parsed.value is None:
                raise ProtocolError(f"{command}: {parsed.error}", command=command, raw=raw)
            return self.processor.process(parsed, definition, latency_ms)

        return chain(self._submit(command, priority, CommandType.DATA), _process)

    def request_pids(
        self,
        pids: Sequence[str],
        mode: str = "01",
        priority: CommandPriority = CommandPriority.NORMAL,
    ) -> Future:
        """Resolves to one PidResult per PID, in request order."""
        normalized: List[str] = []
        for p in pids:
            p = normalize_pid(p)
            if p and p not in normalized:
                normalized.append(p)

        out: Future = Future()
        results: List[Optional[PidResult]] = [None] * len(normalized)
        remaining = [len(normalized)]
        lock = threading.Lock()

        if not normalized:
            out.set_result([])
            return out

        def _collect(index: int, pid: str, f: Future) -> None:
            try:
                result = PidResult(pid=pid, data=f.result())
            except CancelledError:
                result = PidResult(pid=pid, error=CommandCancelledError())
            except ElmError as e:
                result = PidResult(pid=pid, error=e)
            except Exception as e:
                logger.warning("Request for PID %s failed unexpectedly: %r", pid, e)
                result = PidResult(pid=pid, error=ProtocolError(f"{mode}{pid}: {type(e).__name__}: {e}"))
            with lock:
                results[index] = result
                remaining[0] -= 1
                finished = remaining[0] == 0
            if finished:
                out.set_result(list(results))

        for index, pid in enumerate(normalized):
            future = self.request_pid(pid, mode, priority)
            future.add_done_callback(lambda f, i=index, p=pid: _collect(i, p, f))
        return out

    def get_supported_pids(self, mode: str = "01") -> Future:
        """
        Walk the 00/20/40/... bitmaps while the continuation bit is set.
        Resolves to the sorted list of supported PIDs.
        """
        out: Future = Future()
        found: List[str] = []

        def _step(offset: int) -> None:
            bitmap_pid = "%02X" % offset
            command = encode_request(mode, bitmap_pid).strip()
            if mode == "02":
                command += "00"

            def _done(f: Future) -> None:
                try:
                    raw = f.result()
                except CancelledError:
                    out.set_exception(CommandCancelledError(command=command))
                    return
                except ElmError as e:
                    if found:
                        out.set_result(sorted(found))
                    else:
                        out.set_exception(e)
                    return

                parsed = parse_response(raw, command, self.pids)
                if not parsed.is_valid or not isinstance(parsed.value, TextValue):
                    if found:
                        # later bitmaps may legitimately answer NO DATA
                        out.set_result(sorted(found))
                    else:
                        out.set_exception(
                            ProtocolError(f"{command}: {parsed.error}", command=command, raw=raw)
                        )
                    return

                supported = parse_supported(parsed.value.text)
                found.extend(p for p in supported if p not in found)
                next_offset = offset + 0x20
                if next_offset <= _BITMAP_LIMIT and "%02X" % next_offset in supported:
                    _step(next_offset)
                else:
                    logger.info("Mode %s supports %d PID(s)", mode, len(found))
                    out.set_result(sorted(found))

            try:
                future = self._submit(command, CommandPriority.NORMAL, CommandType.DATA)
            except ElmError as e:
                if offset == 0:
                    raise
                # connection went away between two bitmap requests
                out.set_exception(e)
                return
            future.add_done_callback(_done)

        _step(0)
        return out
