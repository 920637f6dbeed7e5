"""
DTC wire codec (SAE J2012 layout).

Each stored / pending code travels as a 16-bit big-endian word:

    bits 15-14  system letter  00=P 01=C 10=B 11=U
    bits 13-0   printed as 4 hex digits (first digit therefore 0-3)

0x0000 is padding ("no more codes").
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from ..protocol.frames import ecu_order, group_by_ecu
from ..protocol.isotp import merge_frames
from ..protocol.normalize import meaningful_lines

PREFIXES = "PCBU"

DTC_RE = re.compile(r"^[PCBU][0-3][0-9A-F]{3}$")


def word_to_code(word: int) -> Optional[str]:
    """0x0133 -> 'P0133'; 0 -> None."""
    word &= 0xFFFF
    if word == 0:
        return None
    return f"{PREFIXES[(word >> 14) & 0x3]}{word & 0x3FFF:04X}"


def code_to_word(code: str) -> int:
    """'P0133' -> 0x0133. Raises ValueError for anything word_to_code cannot produce."""
    key = (code or "").strip().upper()
    if not DTC_RE.match(key):
        raise ValueError(f"Invalid DTC code: {code!r}")
    return (PREFIXES.index(key[0]) << 14) | int(key[1:], 16)


def is_valid_code(code: str) -> bool:
    return bool(DTC_RE.match((code or "").strip().upper()))


def decode_dtc_bytes(hex4: str) -> Optional[str]:
    """'0133' -> 'P0133'; '0000' or garbage -> None."""
    try:
        return word_to_code(int(hex4, 16))
    except ValueError:
        return None


def codes_from_data(data: Sequence[int]) -> List[str]:
    """
    Data bytes following the 43/47/4A header -> codes.

    CAN adapters put a code-count byte first, which makes the byte count odd.
    """
    data = list(data or [])
    if len(data) % 2 == 1:
        data = data[1:]
    out: List[str] = []
    for i in range(0, len(data) - 1, 2):
        code = word_to_code((data[i] << 8) | data[i + 1])
        if code and code not in out:
            out.append(code)
    return out


def parse_dtc_reply(raw: str, mode: str = "03") -> List[str]:
    """
    Every code in a mode 03 / 07 / 0A reply, across ECUs and CAN frames.

    "4300" -> []
    "7E806430101330000" -> ["P0133"]
    """
    prefix = "%02X" % (int(mode, 16) + 0x40)
    grouped = group_by_ecu(meaningful_lines(raw, command=mode))
    codes: List[str] = []

    for ecu in ecu_order(list(grouped)):
        frames = grouped[ecu]
        if ecu != "NOHDR":
            payload = merge_frames(frames)
            if payload and payload[0] == prefix:
                found = codes_from_data([int(t, 16) for t in payload[1:]])
            else:
                found = []
        else:
            found = []
            for frame in frames:
                # legacy buses: optional 3-byte header in front, checksum after
                if frame[:1] == [prefix]:
                    body = frame[1:]
                elif frame[3:4] == [prefix]:
                    body = frame[4:-1]
                else:
                    continue
                found.extend(codes_from_data([int(t, 16) for t in body]))
        for code in found:
            if code not in codes:
                codes.append(code)
    return codes
