from __future__ import annotations

import unittest

from elmcore.errors import UnknownPidError
from elmcore.models import ErrorValue, NumericValue, TextValue
from elmcore.pids import (
    DIAGNOSTIC_PIDS,
    DYNAMIC_PIDS,
    FUEL_PIDS,
    TEMPERATURE_PIDS,
    THROTTLE_PIDS,
    PIDDatabase,
    PIDDefinition,
    default_database,
    normalize_pid,
    parse_supported,
)


class PidTableTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = default_database()

    def test_decoding_is_deterministic_for_declared_length(self) -> None:
        for definition in self.db:
            data = [0x41] * definition.length
            first = definition.decode(data)
            second = definition.decode(data)
            self.assertEqual(first, second, msg=definition.key)

    def test_short_data_is_an_error_value(self) -> None:
        for definition in self.db:
            if definition.length == 0:
                continue
            value = definition.decode([0x41] * (definition.length - 1))
            self.assertIsInstance(value, ErrorValue, msg=definition.key)

    def test_representative_formulas(self) -> None:
        cases = [
            ("0C", [0x1A, 0xF8], 1726.0),
            ("0D", [0x50], 80.0),
            ("05", [0x5F], 55.0),
            ("04", [0xFF], 100.0),
            ("11", [0x00], 0.0),
            ("42", [0x31, 0x2C], 12.588),
        ]
        for pid, data, expected in cases:
            value = self.db.get("01", pid).decode(data)
            self.assertIsInstance(value, NumericValue, msg=pid)
            self.assertAlmostEqual(expected, value.value, places=6, msg=pid)

    def test_supported_bitmap_is_text(self) -> None:
        value = self.db.get("01", "00").decode([0xBE, 0x1F, 0xA8, 0x13])
        self.assertIsInstance(value, TextValue)
        self.assertEqual(
            ["01", "03", "04", "05", "06", "07", "0C", "0D", "0E", "0F", "10", "11", "13", "15", "1C", "1F", "20"],
            parse_supported(value.text),
        )

    def test_extra_bytes_are_not_read(self) -> None:
        value = self.db.get("01", "0D").decode([0x50, 0xFF, 0xFF])
        self.assertEqual(NumericValue(80.0, "km/h"), value)

    def test_vin_pid_strips_item_count(self) -> None:
        data = [0x01] + [ord(c) for c in "1G1JC5444R7252367"]
        self.assertEqual(TextValue("1G1JC5444R7252367"), self.db.get("09", "02").decode(data))

    def test_freeze_frame_mirror(self) -> None:
        ff = self.db.get("02", "0C")
        self.assertIsNotNone(ff)
        self.assertIn("freeze frame", ff.name)
        self.assertIsNone(self.db.get("02", "01"))


class PidDatabaseTests(unittest.TestCase):
    def test_normalize_pid(self) -> None:
        self.assertEqual("0C", normalize_pid("c"))
        self.assertEqual("0C", normalize_pid(" 0c "))

    def test_require_raises_for_unknown(self) -> None:
        db = default_database()
        self.assertEqual("Engine RPM", db.require("01", "0C").name)
        with self.assertRaises(UnknownPidError):
            db.require("01", "FE")

    def test_extended_returns_new_database(self) -> None:
        base = default_database()
        custom = PIDDefinition(
            mode="22", pid="F1", name="Oil life", unit="%", length=1, formula=lambda a: a, min_value=0, max_value=100
        )
        extended = base.extended([custom])
        self.assertIsNone(base.get("22", "F1"))
        self.assertEqual(custom, extended.get("22", "F1"))
        self.assertEqual(len(base) + 1, len(extended))

    def test_override_wins(self) -> None:
        override = PIDDefinition(mode="01", pid="0D", name="Speed (mph)", unit="mph", length=1, formula=lambda a: a)
        db = PIDDatabase.standard().extended([override])
        self.assertEqual("Speed (mph)", db.get("01", "0D").name)

    def test_table_is_read_only(self) -> None:
        db = PIDDatabase.standard()
        with self.assertRaises(TypeError):
            db._table[("01", "0C")] = None  # pylint: disable=protected-access

    def test_pids_for_mode(self) -> None:
        db = default_database()
        mode09 = db.pids_for_mode("09")
        self.assertIn("02", mode09)
        self.assertEqual(sorted(mode09), mode09)
        self.assertNotIn("01", db.pids_for_mode("02"))
        self.assertEqual([], db.pids_for_mode("22"))

    def test_named_sets_are_known_pids(self) -> None:
        db = default_database()
        for pid_set in (DIAGNOSTIC_PIDS, TEMPERATURE_PIDS, THROTTLE_PIDS, FUEL_PIDS, DYNAMIC_PIDS):
            for pid in pid_set:
                self.assertIn(("01", pid), db)


if __name__ == "__main__":
    unittest.main()
