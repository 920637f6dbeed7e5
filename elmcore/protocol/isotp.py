from __future__ import annotations

from typing import List


def strip_pci(frame: List[str]) -> List[str]:
    """
    Drop the ISO-TP protocol control info from ONE CAN frame (byte tokens,
    header already removed):
    - Single frame:      0x0L        -> drop 1 byte
    - First frame:       0x1L LL     -> drop 2 bytes
    - Consecutive frame: 0x2N        -> drop 1 byte
    - Flow control:      0x3?        -> no payload at all
    """
    if not frame:
        return []
    try:
        b = int(frame[0], 16)
    except ValueError:
        return list(frame)

    frame_type = (b & 0xF0) >> 4
    if frame_type == 0x0:
        return list(frame[1:])
    if frame_type == 0x1:
        return list(frame[2:])
    if frame_type == 0x2:
        return list(frame[1:])
    if frame_type == 0x3:
        return []
    return list(frame)


def merge_frames(frames: List[List[str]]) -> List[str]:
    out: List[str] = []
    for frame in frames:
        out.extend(strip_pci(frame))
    return out
