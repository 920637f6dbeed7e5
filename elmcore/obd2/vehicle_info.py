from __future__ import annotations

import logging
import re
from concurrent.futures import Future
from typing import List, Optional

from ..elm.protocol import describe_protocol
from ..errors import ProtocolError
from ..models import CommandPriority, CommandType
from ..protocol import extract_ascii, group_by_ecu, ecu_order, is_valid_vin, merge_frames
from ..protocol.normalize import find_error_token, meaningful_lines
from .base import chain

logger = logging.getLogger(__name__)

_VOLTAGE_RE = re.compile(r"(\d+(?:\.\d+)?)\s*V?", re.IGNORECASE)


def vin_from_reply(raw: str) -> Optional[str]:
    """
    VIN from a 0902 reply.

    CAN: ISO-TP frames per ECU, "49 02 01" then 17 characters.
    Older buses: one line per message, "49 02 NN" then 4 characters each.
    """
    grouped = group_by_ecu(meaningful_lines(raw, "0902"))
    for ecu in ecu_order(list(grouped)):
        frames = grouped[ecu]
        body: List[str] = []
        if ecu != "NOHDR":
            payload = merge_frames(frames)
            if payload[:2] == ["49", "02"]:
                body = payload[3:] if payload[2:3] == ["01"] else payload[2:]
        else:
            for frame in frames:
                if frame[:2] == ["49", "02"]:
                    body.extend(frame[3:])
                elif frame[3:5] == ["49", "02"]:
                    # 3-byte J1850 / ISO 9141 header in front, checksum last
                    body.extend(frame[6:-1])
        vin = extract_ascii(body).strip().upper()
        if len(vin) > 17:
            vin = vin[-17:]
        if is_valid_vin(vin):
            return vin
        if vin:
            logger.warning("Ignoring malformed VIN %r from %s", vin, ecu)
    return None


class VehicleInfoMixin:
    def describe_protocol(self) -> Future:
        """Resolves to the protocol name the adapter settled on (ATDPN)."""
        return chain(self._submit("ATDPN", CommandPriority.NORMAL, CommandType.CONTROL), describe_protocol)

    def read_voltage(self) -> Future:
        """Resolves to the supply voltage seen by the adapter (ATRV), or None."""

        def _volts(raw: str) -> Optional[float]:
            if find_error_token(raw):
                return None
            for line in meaningful_lines(raw, "ATRV"):
                m = _VOLTAGE_RE.search(line)
                if m:
                    return float(m.group(1))
            return None

        return chain(self._submit("ATRV", CommandPriority.NORMAL, CommandType.CONTROL), _volts)

    def read_vin(self) -> Future:
        """Resolves to the 17-character VIN, or None when the ECU has none."""

        def _vin(raw: str) -> Optional[str]:
            token = find_error_token(raw)
            if token == "NO DATA":
                return None
            if token:
                raise ProtocolError(f"0902: {token}", command="0902", raw=raw)
            return vin_from_reply(raw)

        return chain(
            self._submit("0902", CommandPriority.NORMAL, CommandType.DIAGNOSTIC, timeout_s=max(self.settings.command_timeout_s, 5.0)),
            _vin,
        )
