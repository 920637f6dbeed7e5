from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from .normalize import is_hex

# Engine ECU first, then the other OBD responders
ECU_PREFER = [
    "7E8", "7E9", "7EA", "7EB", "7EC", "7ED", "7EE", "7EF",
    "18DAF110", "18DAF111", "18DAF118",
]


def split_header(line: str) -> Tuple[Optional[str], str]:
    """
    Separate the CAN identifier the adapter prints with ATH1 / ATS0:
      7E8 + data      (11-bit id, odd length)
      18DAF110 + data (29-bit id)
    Anything else is returned untouched with no ECU.
    """
    if len(line) % 2 == 1 and len(line) > 3:
        return line[:3], line[3:]
    if len(line) > 8 and line.startswith("18DA"):
        return line[:8], line[8:]
    return None, line


def tokens(hex_text: str) -> List[str]:
    return [hex_text[i:i + 2] for i in range(0, len(hex_text) - 1, 2)]


def group_by_ecu(lines: List[str]) -> Dict[str, List[List[str]]]:
    """
    ecu -> [ [tokens_frame1], [tokens_frame2], ... ]

    Lines without a recognisable CAN id are grouped under "NOHDR".
    """
    out: Dict[str, List[List[str]]] = {}
    for ln in lines or []:
        if not ln or not is_hex(ln):
            continue
        ecu, body = split_header(ln)
        out.setdefault(ecu or "NOHDR", []).append(tokens(body))
    return out


def ecu_order(ecus: List[str]) -> List[str]:
    preferred = [e for e in ECU_PREFER if e in ecus]
    return preferred + [e for e in ecus if e not in preferred]
