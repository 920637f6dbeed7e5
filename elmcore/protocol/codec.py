"""
Request encoding and reply parsing for the ELM327 ASCII protocol.

A request is "<mode><pid>\r". A reply is everything the adapter prints up to
its ">" prompt. parse_response() never raises on adapter output: problems are
reported through ParsedResponse.is_valid / .error.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Tuple

from ..models import ErrorValue, NumericValue, ParsedResponse
from ..utils import now
from .frames import ECU_PREFER
from .normalize import compact, find_error_token, hex_pairs, is_hex, meaningful_lines

if TYPE_CHECKING:
    from ..pids.database import PIDDatabase

logger = logging.getLogger(__name__)

# Service ids answered with data but without a PID byte
PIDLESS_MODES = {"03", "04", "07", "0A"}


def encode_request(mode: str, pid: Optional[str] = None) -> str:
    """('01', '0C') -> '010C\\r'"""
    mode = compact(mode).zfill(2)
    pid = compact(pid or "")
    if pid and len(pid) == 1:
        pid = "0" + pid
    return f"{mode}{pid}\r"


def encode_command(command: str) -> bytes:
    """Raw command text as written on the wire."""
    return f"{command.strip()}\r".encode("ascii", errors="ignore")


def split_command(command: str) -> Tuple[str, str]:
    """'010C' -> ('01', '0C'); '03' -> ('03', ''); AT commands -> ('', '')."""
    text = compact(command)
    if text.startswith("AT") or text.startswith("ST") or not is_hex(text) or len(text) < 2:
        return "", ""
    mode = text[:2]
    if mode in PIDLESS_MODES:
        return mode, ""
    return mode, text[2:4]


def response_prefix(mode: str, pid: str = "") -> str:
    """Positive reply header: mode + 0x40, then the PID echo."""
    return "%02X" % (int(mode, 16) + 0x40) + pid


def clean_response(raw: str) -> str:
    """Prompt, CR/LF and surrounding whitespace removed, uppercased."""
    return (raw or "").replace(">", "").replace("\r", "").replace("\n", "").strip().upper()


def is_positive_ack(raw: str, mode: str) -> bool:
    """True when the reply carries the positive header for mode (e.g. '44' for 04)."""
    if find_error_token(raw):
        return False
    prefix = response_prefix(mode)
    return any(line.startswith(prefix) or prefix in line for line in meaningful_lines(raw))


def _locate(lines: List[str], prefix: str) -> Optional[Tuple[str, str]]:
    """(header_before_prefix, payload_from_prefix) for the preferred ECU line."""
    hits = []
    for line in lines:
        idx = line.find(prefix)
        # prefix must start on a byte boundary; an 11-bit CAN id (3 chars) makes those odd
        while idx > 0 and idx % 2 != len(line) % 2:
            idx = line.find(prefix, idx + 1)
        if idx >= 0:
            hits.append((line[:idx], line[idx:]))
    if not hits:
        return None
    for ecu in ECU_PREFER:
        for header, payload in hits:
            if header.startswith(ecu):
                return header, payload
    return hits[0]


def _ecu_from_header(header: str) -> Optional[str]:
    if not header:
        return None
    # CAN id followed by the single-frame PCI byte
    if len(header) in (5, 10):
        return header[:-2]
    return header


def parse_response(
    raw: str,
    command: Optional[str] = None,
    database: Optional["PIDDatabase"] = None,
    timestamp: Optional[float] = None,
) -> ParsedResponse:
    """
    Parse one adapter reply.

    With command given, the reply is anchored on the expected positive
    header (e.g. "410C") so CAN ids / PCI bytes in front of it are skipped.
    With database given, the data bytes are decoded into .value.
    """
    ts = now() if timestamp is None else timestamp
    cleaned = clean_response(raw)
    result = ParsedResponse(raw=raw or "", cleaned=cleaned, timestamp=ts)

    if not cleaned:
        result.error = "empty response"
        return result

    token = find_error_token(cleaned)
    if token:
        result.error = token
        return result

    lines = meaningful_lines(raw, command)
    if not lines:
        result.error = "empty response"
        return result
    if not all(is_hex(ln) for ln in lines):
        result.error = "non-hex characters in response"
        return result
    result.cleaned = "".join(lines)

    mode, pid = split_command(command) if command else ("", "")
    if mode:
        found = _locate(lines, response_prefix(mode, pid))
        if not found:
            negative = _locate(lines, "7F" + mode)
            if negative:
                nrc = negative[1][4:6] or "??"
                result.error = f"negative response (NRC {nrc})"
            else:
                result.error = "unexpected response header"
            return result
        header, payload = found
        result.ecu = _ecu_from_header(header)
    else:
        payload = lines[0]

    if len(payload) < 4:
        result.error = "response too short"
        return result

    if len(payload) % 2 == 1:
        result.warnings.append("odd trailing nibble ignored")

    reply_mode = int(payload[:2], 16)
    result.mode = mode or "%02X" % (reply_mode - 0x40 if reply_mode >= 0x40 else reply_mode)
    if mode and not pid:
        data_start = 2
    else:
        result.pid = pid or payload[2:4]
        data_start = 4
        # freeze frame replies echo the frame number after the PID
        if result.mode == "02" and len(payload) >= 6:
            data_start = 6
    result.data = hex_pairs(payload[data_start:])
    result.is_valid = True

    if len(lines) > 1 and result.ecu is None:
        logger.debug("Reply to %s has %d lines, used the first match", command, len(lines))

    if database is not None and result.pid:
        _decode_into(result, database)
    return result


def _decode_into(result: ParsedResponse, database: "PIDDatabase") -> None:
    definition = database.get(result.mode, result.pid)
    if definition is None:
        # best effort: surface the bytes as one big-endian number
        if result.data:
            result.value = NumericValue(float(int.from_bytes(bytes(result.data), "big")), "")
        else:
            result.value = ErrorValue("no data bytes")
        result.is_valid = False
        result.error = f"unknown PID {result.mode}{result.pid}"
        return

    result.value = definition.decode(result.data)
    if isinstance(result.value, ErrorValue):
        result.is_valid = False
        result.error = result.value.reason
    elif len(result.data) > definition.length and not definition.variable:
        result.warnings.append(f"{len(result.data) - definition.length} extra byte(s) ignored")

