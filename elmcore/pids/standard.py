"""
OBD-II PID Definitions
======================
Standard Parameter IDs and their decoding formulas (SAE J1979).

Formulas take the data bytes positionally: A is the first byte after the
"41 <PID>" header, B the second, and so on.
"""

from typing import List, Optional

from ..dtc.codec import word_to_code
from . import decoders as d
from .definitions import PIDDefinition


def _pid(
    pid: str,
    name: str,
    unit: str,
    length: int,
    formula,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
    description: str = "",
    *,
    mode: str = "01",
    variable: bool = False,
) -> PIDDefinition:
    return PIDDefinition(
        mode=mode,
        pid=pid,
        name=name,
        unit=unit,
        length=length,
        formula=formula,
        min_value=min_value,
        max_value=max_value,
        description=description,
        variable=variable,
    )


def _freeze_frame_dtc(a: int, b: int) -> str:
    return word_to_code((a << 8) | b) or "None"


# Mode 01 - Live Data PIDs
MODE01: List[PIDDefinition] = [
    # Support bitmaps and status
    _pid("00", "PIDs supported [01-20]", "", 4, d.supported_pids(0x00)),
    _pid("01", "Monitor status since DTCs cleared", "", 4, d.monitor_status,
         description="MIL state, DTC count and readiness monitors"),
    _pid("02", "Freeze DTC", "", 2, _freeze_frame_dtc,
         description="Trouble code that triggered the freeze frame"),
    _pid("03", "Fuel system status", "", 2, d.fuel_system_status),

    # Engine Load and Temperatures
    _pid("04", "Calculated Engine Load", "%", 1, d.percent, 0, 100,
         "Indicates percentage of peak available torque"),
    _pid("05", "Engine Coolant Temperature", "°C", 1, d.temperature, -40, 215,
         "Coolant temperature from ECT sensor"),

    # Fuel Trims
    _pid("06", "Short Term Fuel Trim - Bank 1", "%", 1, d.fuel_trim, -100, 99.2,
         "Immediate fuel adjustment (+ = adding fuel)"),
    _pid("07", "Long Term Fuel Trim - Bank 1", "%", 1, d.fuel_trim, -100, 99.2,
         "Learned fuel adjustment (+ = adding fuel)"),
    _pid("08", "Short Term Fuel Trim - Bank 2", "%", 1, d.fuel_trim, -100, 99.2,
         "Immediate fuel adjustment bank 2"),
    _pid("09", "Long Term Fuel Trim - Bank 2", "%", 1, d.fuel_trim, -100, 99.2,
         "Learned fuel adjustment bank 2"),

    # Pressures
    _pid("0A", "Fuel Pressure", "kPa", 1, lambda a: a * 3, 0, 765, "Fuel rail pressure (gauge)"),
    _pid("0B", "Intake Manifold Pressure", "kPa", 1, lambda a: a, 0, 255, "MAP sensor reading"),

    # Engine Speed and Vehicle Speed
    _pid("0C", "Engine RPM", "rpm", 2, lambda a, b: d.word(a, b) / 4, 0, 16383.75,
         "Current engine speed"),
    _pid("0D", "Vehicle Speed", "km/h", 1, lambda a: a, 0, 255, "Current vehicle speed"),
    _pid("0E", "Timing Advance", "°", 1, lambda a: (a / 2) - 64, -64, 63.5,
         "Ignition timing advance for #1 cylinder"),
    _pid("0F", "Intake Air Temperature", "°C", 1, d.temperature, -40, 215,
         "Air temperature entering the engine"),
    _pid("10", "MAF Air Flow Rate", "g/s", 2, lambda a, b: d.word(a, b) / 100, 0, 655.35,
         "Mass air flow sensor reading"),
    _pid("11", "Throttle Position", "%", 1, d.percent, 0, 100, "Absolute throttle position"),
    _pid("12", "Commanded Secondary Air Status", "", 1, d.secondary_air_status),
    _pid("13", "Oxygen Sensors Present (2 banks)", "", 1, d.o2_sensors_present),
]

# O2 sensor voltages, bank 1 sensor 1 .. bank 2 sensor 4
for _i in range(8):
    MODE01.append(
        _pid("%02X" % (0x14 + _i), f"O2 Sensor {_i + 1} Voltage", "V", 2, d.o2_voltage, 0, 1.275,
             f"Bank {_i // 4 + 1} Sensor {_i % 4 + 1} O2 voltage")
    )

MODE01 += [
    _pid("1C", "OBD Standards", "", 1, d.obd_standard, description="OBD standard this vehicle conforms to"),
    _pid("1D", "Oxygen Sensors Present (4 banks)", "", 1, d.o2_sensors_present_4bank),
    _pid("1E", "Auxiliary Input Status", "", 1, lambda a: "PTO active" if a & 0x01 else "PTO inactive"),
    _pid("1F", "Run Time Since Engine Start", "s", 2, d.word, 0, 65535, "Time since engine start"),

    _pid("20", "PIDs supported [21-40]", "", 4, d.supported_pids(0x20)),
    _pid("21", "Distance Traveled with MIL On", "km", 2, d.word, 0, 65535),
    _pid("22", "Fuel Rail Pressure (relative to vacuum)", "kPa", 2,
         lambda a, b: d.word(a, b) * 0.079, 0, 5177.265),
    _pid("23", "Fuel Rail Gauge Pressure", "kPa", 2, lambda a, b: d.word(a, b) * 10, 0, 655350,
         "Diesel or direct injection rail pressure"),
]

# Wide range O2 sensors: equivalence ratio + voltage
for _i in range(8):
    MODE01.append(
        _pid("%02X" % (0x24 + _i), f"O2 Sensor {_i + 1} Equivalence Ratio", "ratio", 4,
             d.wide_range_ratio, 0, 2, f"Wide range O2 sensor {_i + 1} (lambda)")
    )

MODE01 += [
    _pid("2C", "Commanded EGR", "%", 1, d.percent, 0, 100),
    _pid("2D", "EGR Error", "%", 1, d.fuel_trim, -100, 99.2),
    _pid("2E", "Commanded Evaporative Purge", "%", 1, d.percent, 0, 100),
    _pid("2F", "Fuel Tank Level", "%", 1, d.percent, 0, 100, "Fuel tank level input"),
    _pid("30", "Warm-ups Since Codes Cleared", "count", 1, lambda a: a, 0, 255),
    _pid("31", "Distance Traveled Since Codes Cleared", "km", 2, d.word, 0, 65535),
    _pid("32", "Evap System Vapor Pressure", "Pa", 2, lambda a, b: d.signed_word(a, b) / 4, -8192, 8191.75),
    _pid("33", "Barometric Pressure", "kPa", 1, lambda a: a, 0, 255, "Absolute barometric pressure"),
]

# Wide range O2 sensors: equivalence ratio + current
for _i in range(8):
    MODE01.append(
        _pid("%02X" % (0x34 + _i), f"O2 Sensor {_i + 1} Equivalence Ratio (current)", "ratio", 4,
             d.wide_range_ratio, 0, 2)
    )

MODE01 += [
    _pid("3C", "Catalyst Temperature Bank 1 Sensor 1", "°C", 2, lambda a, b: d.word(a, b) / 10 - 40, -40, 6513.5),
    _pid("3D", "Catalyst Temperature Bank 2 Sensor 1", "°C", 2, lambda a, b: d.word(a, b) / 10 - 40, -40, 6513.5),
    _pid("3E", "Catalyst Temperature Bank 1 Sensor 2", "°C", 2, lambda a, b: d.word(a, b) / 10 - 40, -40, 6513.5),
    _pid("3F", "Catalyst Temperature Bank 2 Sensor 2", "°C", 2, lambda a, b: d.word(a, b) / 10 - 40, -40, 6513.5),

    _pid("40", "PIDs supported [41-60]", "", 4, d.supported_pids(0x40)),
    _pid("41", "Monitor status this drive cycle", "", 4, d.hex_text),
    _pid("42", "Control Module Voltage", "V", 2, lambda a, b: d.word(a, b) / 1000, 0, 65.535,
         "ECU supply voltage"),
    _pid("43", "Absolute Load Value", "%", 2, lambda a, b: d.word(a, b) * 100 / 255, 0, 25700),
    _pid("44", "Commanded Air-Fuel Equivalence Ratio", "ratio", 2,
         lambda a, b: d.word(a, b) * 2 / 65536, 0, 2),
    _pid("45", "Relative Throttle Position", "%", 1, d.percent, 0, 100, "Relative throttle position"),
    _pid("46", "Ambient Air Temperature", "°C", 1, d.temperature, -40, 215),
    _pid("47", "Absolute Throttle Position B", "%", 1, d.percent, 0, 100, "Throttle position sensor B"),
    _pid("48", "Absolute Throttle Position C", "%", 1, d.percent, 0, 100),
    _pid("49", "Accelerator Pedal Position D", "%", 1, d.percent, 0, 100,
         "Accelerator pedal position sensor D"),
    _pid("4A", "Accelerator Pedal Position E", "%", 1, d.percent, 0, 100,
         "Accelerator pedal position sensor E"),
    _pid("4B", "Accelerator Pedal Position F", "%", 1, d.percent, 0, 100),
    _pid("4C", "Commanded Throttle Actuator", "%", 1, d.percent, 0, 100,
         "Commanded throttle actuator position"),
    _pid("4D", "Time Run with MIL On", "min", 2, d.word, 0, 65535),
    _pid("4E", "Time Since Trouble Codes Cleared", "min", 2, d.word, 0, 65535),
    _pid("50", "Maximum MAF Air Flow Rate", "g/s", 4, lambda a, b, c, e: a * 10, 0, 2550),
    _pid("51", "Fuel Type", "", 1, d.fuel_type),
    _pid("52", "Ethanol Fuel Percentage", "%", 1, d.percent, 0, 100),
    _pid("53", "Absolute Evap System Vapor Pressure", "kPa", 2, lambda a, b: d.word(a, b) / 200, 0, 327.675),
    _pid("54", "Evap System Vapor Pressure (wide)", "Pa", 2, d.signed_word, -32768, 32767),
    _pid("55", "Short Term Secondary O2 Trim - Bank 1", "%", 2, lambda a, b: d.fuel_trim(a), -100, 99.2),
    _pid("56", "Long Term Secondary O2 Trim - Bank 1", "%", 2, lambda a, b: d.fuel_trim(a), -100, 99.2),
    _pid("57", "Short Term Secondary O2 Trim - Bank 2", "%", 2, lambda a, b: d.fuel_trim(a), -100, 99.2),
    _pid("58", "Long Term Secondary O2 Trim - Bank 2", "%", 2, lambda a, b: d.fuel_trim(a), -100, 99.2),
    _pid("59", "Fuel Rail Absolute Pressure", "kPa", 2, lambda a, b: d.word(a, b) * 10, 0, 655350),
    _pid("5A", "Relative Accelerator Pedal Position", "%", 1, d.percent, 0, 100),
    _pid("5B", "Hybrid Battery Pack Remaining Life", "%", 1, d.percent, 0, 100),
    _pid("5C", "Engine Oil Temperature", "°C", 1, d.temperature, -40, 210, "Oil temperature (if supported)"),
    _pid("5D", "Fuel Injection Timing", "°", 2, lambda a, b: d.word(a, b) / 128 - 210, -210, 301.992),
    _pid("5E", "Engine Fuel Rate", "L/h", 2, lambda a, b: d.word(a, b) / 20, 0, 3276.75),

    _pid("60", "PIDs supported [61-80]", "", 4, d.supported_pids(0x60)),
    _pid("61", "Driver's Demand Engine Torque", "%", 1, lambda a: a - 125, -125, 130),
    _pid("62", "Actual Engine Torque", "%", 1, lambda a: a - 125, -125, 130),
    _pid("63", "Engine Reference Torque", "Nm", 2, d.word, 0, 65535),

    _pid("80", "PIDs supported [81-A0]", "", 4, d.supported_pids(0x80)),
    _pid("A0", "PIDs supported [A1-C0]", "", 4, d.supported_pids(0xA0)),
    _pid("C0", "PIDs supported [C1-E0]", "", 4, d.supported_pids(0xC0)),
]

# Mode 02 - Freeze frame: same layout as mode 01, captured when a DTC was set
MODE02: List[PIDDefinition] = [
    p.with_mode("02", f"{p.name} (freeze frame)") for p in MODE01 if p.pid != "01"
]

# Mode 09 - Vehicle information
MODE09: List[PIDDefinition] = [
    _pid("00", "Mode 09 PIDs supported [01-20]", "", 4, d.supported_pids(0x00), mode="09"),
    _pid("01", "VIN Message Count", "count", 1, lambda a: a, 0, 255, mode="09"),
    _pid("02", "Vehicle Identification Number", "", 17, d.vin, mode="09", variable=True,
         description="17 character VIN"),
    _pid("03", "Calibration ID Message Count", "count", 1, lambda a: a, 0, 255, mode="09"),
    _pid("04", "Calibration ID", "", 16, d.ascii_text, mode="09", variable=True),
    _pid("05", "CVN Message Count", "count", 1, lambda a: a, 0, 255, mode="09"),
    _pid("06", "Calibration Verification Numbers", "", 4, d.cvn, mode="09", variable=True),
    _pid("0A", "ECU Name", "", 20, d.ascii_text, mode="09", variable=True),
]

STANDARD_PIDS: List[PIDDefinition] = MODE01 + MODE02 + MODE09
