from __future__ import annotations

import re
from typing import Iterable, Union

VIN_RE = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")  # I, O and Q are never used


def extract_ascii(values: Iterable[Union[int, str]]) -> str:
    """Printable characters from byte values or hex tokens; padding is skipped."""
    s = ""
    for v in values or []:
        if isinstance(v, str):
            try:
                v = int(v, 16)
            except ValueError:
                continue
        if 32 <= v <= 126:
            s += chr(v)
    return s


def is_valid_vin(vin: str) -> bool:
    vin = (vin or "").strip().upper()
    return bool(VIN_RE.match(vin))
