"""
Reusable PID formulas. Each takes the data bytes positionally (A, B, ...).
"""

from __future__ import annotations

from typing import Callable, List


def word(a: int, b: int) -> int:
    return (a * 256) + b


def percent(a: int) -> float:
    return (a * 100) / 255


def temperature(a: int) -> int:
    return a - 40


def fuel_trim(a: int) -> float:
    return (a - 128) * 100 / 128


# -----------------------------
# Bitmaps
# -----------------------------
def supported_pids(offset: int) -> Callable[..., str]:
    """
    Formula for PIDs 00/20/40/...: the 32-bit big-endian bitmap lists which of
    the next 32 PIDs the ECU answers. Bit 31 is PID offset+1.
    """

    def _decode(a: int, b: int, c: int, d: int) -> str:
        bitmap = (a << 24) | (b << 16) | (c << 8) | d
        found = ["%02X" % (i + 1 + offset) for i in range(32) if bitmap & (1 << (31 - i))]
        return ",".join(found)

    return _decode


def parse_supported(text: str) -> List[str]:
    """Inverse of the bitmap formulas' text output."""
    return [p.strip().upper() for p in (text or "").split(",") if p.strip()]


def monitor_status(a: int, b: int, c: int, d: int) -> str:
    mil = "ON" if a & 0x80 else "OFF"
    ignition = "compression" if b & 0x08 else "spark"
    return f"MIL: {mil}, DTC Count: {a & 0x7F}, Ignition: {ignition}"


def mil_on(a: int) -> bool:
    return bool(a & 0x80)


def dtc_count(a: int) -> int:
    return a & 0x7F


_FUEL_SYSTEM = {
    0x00: "",
    0x01: "Open loop due to insufficient engine temperature",
    0x02: "Closed loop, using oxygen sensor feedback",
    0x04: "Open loop due to engine load OR fuel cut due to deceleration",
    0x08: "Open loop due to system failure",
    0x10: "Closed loop, using at least one oxygen sensor but fault in feedback system",
}


def fuel_system_status(a: int, b: int) -> str:
    parts = [_FUEL_SYSTEM.get(x, "Unknown status") for x in (a, b)]
    return ", ".join(p for p in parts if p) or "Not available"


_SECONDARY_AIR = {
    0x01: "Upstream",
    0x02: "Downstream of catalytic converter",
    0x04: "From the outside atmosphere or off",
    0x08: "Pump commanded on for diagnostics",
}


def secondary_air_status(a: int) -> str:
    return _SECONDARY_AIR.get(a, "Unknown")


def o2_sensors_present(a: int) -> str:
    sensors = []
    for bit in range(8):
        if a & (1 << bit):
            sensors.append(f"Bank {bit // 4 + 1} - Sensor {bit % 4 + 1}")
    return ", ".join(sensors) or "None"


def o2_sensors_present_4bank(a: int) -> str:
    sensors = []
    for bit in range(8):
        if a & (1 << bit):
            sensors.append(f"Bank {bit // 2 + 1} - Sensor {bit % 2 + 1}")
    return ", ".join(sensors) or "None"


def o2_voltage(a: int, b: int) -> float:
    # B is the short term trim of that sensor, not part of the voltage
    return a / 200


def wide_range_ratio(a: int, b: int, c: int, d: int) -> float:
    return word(a, b) * 2 / 65536


_OBD_STANDARDS = {
    1: "OBD-II as defined by CARB",
    2: "OBD as defined by EPA",
    3: "OBD and OBD-II",
    4: "OBD-I",
    5: "Not OBD compliant",
    6: "EOBD (Europe)",
    7: "EOBD and OBD-II",
    8: "EOBD and OBD",
    9: "EOBD, OBD and OBD II",
    10: "JOBD (Japan)",
    11: "JOBD and OBD II",
    12: "JOBD and EOBD",
    13: "JOBD, EOBD, and OBD II",
    17: "Engine Manufacturer Diagnostics (EMD)",
    18: "Engine Manufacturer Diagnostics Enhanced (EMD+)",
    19: "Heavy Duty OBD Child/Partial (HD OBD-C)",
    20: "Heavy Duty OBD (HD OBD)",
    21: "World Wide Harmonized OBD (WWH OBD)",
}


def obd_standard(a: int) -> str:
    return _OBD_STANDARDS.get(a, f"Reserved ({a})")


_FUEL_TYPES = {
    0: "Not available",
    1: "Gasoline",
    2: "Methanol",
    3: "Ethanol",
    4: "Diesel",
    5: "LPG",
    6: "CNG",
    7: "Propane",
    8: "Electric",
    9: "Bifuel running Gasoline",
    10: "Bifuel running Methanol",
    11: "Bifuel running Ethanol",
    12: "Bifuel running LPG",
    13: "Bifuel running CNG",
    14: "Bifuel running Propane",
    15: "Bifuel running Electricity",
    16: "Bifuel running electric and combustion engine",
    17: "Hybrid gasoline",
    18: "Hybrid Ethanol",
    19: "Hybrid Diesel",
    20: "Hybrid Electric",
    21: "Hybrid running electric and combustion engine",
    22: "Hybrid Regenerative",
    23: "Bifuel running diesel",
}


def fuel_type(a: int) -> str:
    return _FUEL_TYPES.get(a, f"Unknown ({a})")


# -----------------------------
# Mode 09 strings
# -----------------------------
def ascii_text(*data: int) -> str:
    return "".join(chr(b) for b in data if 32 <= b <= 126).strip()


def vin(*data: int) -> str:
    # CAN replies carry the data-item count (01) in front of the 17 characters
    if len(data) > 17 and data[0] == 0x01:
        data = data[1:]
    return ascii_text(*data[:17])


def hex_text(*data: int) -> str:
    return "".join("%02X" % b for b in data)


def cvn(*data: int) -> str:
    # optional leading data-item count, then 4 bytes per calibration
    if len(data) % 4 == 1:
        data = data[1:]
    return " ".join(hex_text(*data[i:i + 4]) for i in range(0, len(data) - 3, 4))


def signed_word(a: int, b: int) -> int:
    v = word(a, b)
    return v - 0x10000 if v & 0x8000 else v
