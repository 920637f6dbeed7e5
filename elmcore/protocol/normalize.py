from __future__ import annotations

import re
from typing import List, Optional

HEX_RE = re.compile(r"^[0-9A-F]*$")

# Replies that mean the request failed. Order matters: longer tokens first so
# "CAN ERROR" is reported instead of plain "ERROR".
ERROR_TOKENS = (
    "UNABLE TO CONNECT",
    "BUFFER FULL",
    "CAN ERROR",
    "BUS BUSY",
    "NO DATA",
    "STOPPED",
    "ERROR",
    "?",
)

# Progress chatter the adapter prints before the real answer
NOISE_PREFIXES = (
    "SEARCHING",
    "BUS INIT",
)


def compact(text: str) -> str:
    return "".join((text or "").split()).upper()


def split_lines(raw: str) -> List[str]:
    """Prompt removed, CR/LF normalised, blank lines dropped."""
    text = (raw or "").replace(">", "").replace("\r", "\n")
    return [ln.strip() for ln in text.split("\n") if ln.strip()]


def find_error_token(text: str) -> Optional[str]:
    up = (text or "").upper()
    squeezed = compact(up)
    for token in ERROR_TOKENS:
        if token in up or token.replace(" ", "") in squeezed:
            return token
    return None


def is_noise(line: str, command: Optional[str] = None) -> bool:
    up = (line or "").strip().upper()
    if not up:
        return True
    if up == "OK":
        return True
    if up.startswith("ELM327"):
        return True
    if any(up.startswith(p) for p in NOISE_PREFIXES) and "ERROR" not in up:
        return True
    # echo still on (before ATE0, or adapters that ignore it)
    if command and compact(up) == compact(command):
        return True
    return False


def meaningful_lines(raw: str, command: Optional[str] = None) -> List[str]:
    return [compact(ln) for ln in split_lines(raw) if not is_noise(ln, command)]


def is_hex(text: str) -> bool:
    return bool(HEX_RE.match(text or ""))


def hex_pairs(text: str) -> List[int]:
    """'1AF8' -> [0x1A, 0xF8]; a trailing odd nibble is dropped."""
    return [int(text[i:i + 2], 16) for i in range(0, len(text) - 1, 2)]
