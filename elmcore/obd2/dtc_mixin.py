from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import List, Tuple

from ..dtc import DTC_MODES
from ..dtc.codec import parse_dtc_reply
from ..dtc.database import DTCStatus, DtcInfo
from ..errors import ProtocolError
from ..models import CommandPriority, CommandType
from ..pids.decoders import dtc_count, mil_on
from ..protocol.codec import is_positive_ack, parse_response, response_prefix
from ..protocol.normalize import find_error_token, meaningful_lines
from .base import chain

logger = logging.getLogger(__name__)


class DtcMixin:
    def read_dtcs(self, status: DTCStatus = DTCStatus.STORED) -> Future:
        """Resolves to a list of DtcInfo; an ECU with no codes gives []."""
        mode = DTC_MODES[status]

        def _decode(raw: str) -> List[DtcInfo]:
            token = find_error_token(raw)
            if token == "NO DATA":
                return []
            if token:
                raise ProtocolError(f"{mode}: {token}", command=mode, raw=raw)

            codes = parse_dtc_reply(raw, mode)
            if not codes:
                prefix = response_prefix(mode)
                if not any(prefix in line for line in meaningful_lines(raw, mode)):
                    raise ProtocolError(f"{mode}: unexpected response header", command=mode, raw=raw)
            logger.info("Read %d %s DTC(s)", len(codes), status.value)
            return [self.dtc_db.describe(code, status) for code in codes]

        return chain(self._submit(mode, CommandPriority.NORMAL, CommandType.DIAGNOSTIC), _decode)

    def read_pending_dtcs(self) -> Future:
        return self.read_dtcs(DTCStatus.PENDING)

    def read_permanent_dtcs(self) -> Future:
        return self.read_dtcs(DTCStatus.PERMANENT)

    def clear_dtcs(self) -> Future:
        """
        Mode 04. Resolves to True once the ECU acknowledges with 44.
        Nothing is cached locally; the next read_dtcs() shows the result.
        """

        def _ack(raw: str) -> bool:
            if not is_positive_ack(raw, "04"):
                token = find_error_token(raw) or "no positive acknowledgement"
                raise ProtocolError(f"04: {token}", command="04", raw=raw)
            logger.info("Trouble codes cleared")
            return True

        return chain(
            self._submit("04", CommandPriority.CRITICAL, CommandType.CONTROL, retry_count=0),
            _ack,
        )

    def get_mil_status(self) -> Future:
        """Resolves to (mil_on, stored_dtc_count) from PID 01 01."""

        def _status(raw: str) -> Tuple[bool, int]:
            parsed = parse_response(raw, "0101")
            if not parsed.is_valid or not parsed.data:
                raise ProtocolError(f"0101: {parsed.error or 'no data'}", command="0101", raw=raw)
            return mil_on(parsed.data[0]), dtc_count(parsed.data[0])

        return chain(self._submit("0101", CommandPriority.HIGH, CommandType.DIAGNOSTIC), _status)
