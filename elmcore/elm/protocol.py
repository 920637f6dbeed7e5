from __future__ import annotations

import re
from typing import Optional

from ..protocol.normalize import find_error_token, split_lines

PROTOCOL_NAMES = {
    "0": "Automatic",
    "1": "SAE J1850 PWM",
    "2": "SAE J1850 VPW",
    "3": "ISO 9141-2",
    "4": "ISO 14230-4 KWP (5 baud init)",
    "5": "ISO 14230-4 KWP (fast init)",
    "6": "ISO 15765-4 CAN (11 bit, 500 kbaud)",
    "7": "ISO 15765-4 CAN (29 bit, 500 kbaud)",
    "8": "ISO 15765-4 CAN (11 bit, 250 kbaud)",
    "9": "ISO 15765-4 CAN (29 bit, 250 kbaud)",
    "A": "SAE J1939 CAN",
    "B": "USER1 CAN",
    "C": "USER2 CAN",
}

# ATDPN answers "6", or "A6" when the protocol was found by auto-search
_DPN_RE = re.compile(r"^(A?)([0-9A-C])$")


def protocol_code(reply: str) -> Optional[str]:
    for line in split_lines(reply):
        m = _DPN_RE.match(line.replace(" ", ""))
        if m:
            return m.group(2)
    return None


def describe_protocol(reply: str) -> str:
    """Human readable protocol name from an ATDPN reply."""
    if find_error_token(reply):
        return f"Unknown: {reply.strip()}"
    code = protocol_code(reply)
    if code is None:
        return f"Unknown: {reply.strip()}"
    return PROTOCOL_NAMES[code]


def is_can_protocol(code: Optional[str]) -> bool:
    return code in {"6", "7", "8", "9", "A", "B", "C"}
