from __future__ import annotations

import json
import os
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest import mock

from elmcore import config
from elmcore.config import EngineSettings, load_settings, save_settings
from elmcore.errors import TransportError
from elmcore.models import Device, TransportKind
from elmcore.rawlog import RawLogger, log_raw
from elmcore.transport import BleTransport, SerialTransport, WifiTransport, transport_for
from elmcore.transport.ble_transport import _looks_like_adapter, _pick_write_notify
from elmcore.transport.wifi_transport import parse_address


class SettingsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = EngineSettings()
        self.assertEqual(5.0, settings.command_timeout_s)
        self.assertEqual(3, settings.retry_count)
        self.assertEqual(100, settings.buffer_size)
        self.assertEqual("metric", settings.unit_system)

    def test_from_env(self) -> None:
        env = {
            "ELMCORE_COMMAND_TIMEOUT": "2.5",
            "ELMCORE_RETRY_COUNT": "-4",
            "ELMCORE_BUFFER_SIZE": "not-a-number",
            "ELMCORE_UNIT_SYSTEM": " Imperial ",
        }
        with mock.patch.dict(os.environ, env):
            settings = EngineSettings.from_env()
        self.assertEqual(2.5, settings.command_timeout_s)
        self.assertEqual(0, settings.retry_count)
        self.assertEqual(100, settings.buffer_size)
        self.assertEqual("imperial", settings.unit_system)

    def test_from_dict_ignores_unknown_and_bad_values(self) -> None:
        settings = EngineSettings.from_dict({"retry_count": "2", "command_timeout_s": "fast", "colour": "red"})
        self.assertEqual(2, settings.retry_count)
        self.assertEqual(5.0, settings.command_timeout_s)

    def test_save_and_load(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "settings.json"
            save_settings(EngineSettings(retry_count=1, unit_system="imperial"), path)
            self.assertEqual(1, json.loads(path.read_text(encoding="utf-8"))["retry_count"])
            loaded = load_settings(path)
        self.assertEqual(1, loaded.retry_count)
        self.assertEqual("imperial", loaded.unit_system)

    def test_missing_or_corrupt_file_gives_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(EngineSettings(), load_settings(Path(tmp) / "absent.json"))
            corrupt = Path(tmp) / "corrupt.json"
            corrupt.write_text("{not json", encoding="utf-8")
            self.assertEqual(EngineSettings(), load_settings(corrupt))
            listing = Path(tmp) / "list.json"
            listing.write_text("[1, 2]", encoding="utf-8")
            self.assertEqual(EngineSettings(), load_settings(listing))


class TransportSelectionTests(unittest.TestCase):
    def test_transport_for_kind(self) -> None:
        serial_t = transport_for(Device("usb", "Adapter", "/dev/ttyUSB0", TransportKind.USB))
        self.assertIsInstance(serial_t, SerialTransport)
        self.assertEqual("/dev/ttyUSB0", serial_t.port)
        self.assertFalse(serial_t.is_open)

        wifi_t = transport_for(Device("wifi", "Adapter", "10.0.0.5:35001", TransportKind.WIFI))
        self.assertIsInstance(wifi_t, WifiTransport)
        self.assertEqual(("10.0.0.5", 35001), (wifi_t.host, wifi_t.port))

        ble_t = transport_for(Device("ble", "OBDII", "AA:BB:CC:DD:EE:FF", TransportKind.BLUETOOTH))
        self.assertIsInstance(ble_t, BleTransport)
        self.assertFalse(ble_t.is_open)

    def test_wifi_address(self) -> None:
        with mock.patch.dict(os.environ, {"ELMCORE_WIFI_PORT": "35000"}):
            self.assertEqual(("192.168.0.10", 35000), parse_address("192.168.0.10"))
        with self.assertRaises(TransportError):
            parse_address("192.168.0.10:port")

    def test_serial_baudrate_from_env(self) -> None:
        with mock.patch.dict(os.environ, {"ELMCORE_SERIAL_BAUDRATE": "115200"}):
            self.assertEqual(115200, SerialTransport("COM3").baudrate)
        self.assertEqual(9600, SerialTransport("COM3", 9600).baudrate)

    def test_ble_adapter_heuristics(self) -> None:
        with mock.patch.object(config, "ble_service_uuid", return_value=None):
            self.assertTrue(_looks_like_adapter("OBDII", []))
            self.assertTrue(_looks_like_adapter("Vlinker MC", []))
            self.assertFalse(_looks_like_adapter("Someone's AirPods", []))
            self.assertFalse(_looks_like_adapter("", ["0000180f-0000-1000-8000-00805f9b34fb"]))

    def test_ble_characteristic_choice(self) -> None:
        def ch(uuid, *props):
            return SimpleNamespace(uuid=uuid, properties=list(props))

        services = [
            SimpleNamespace(uuid="battery", characteristics=[ch("b1", "read")]),
            SimpleNamespace(uuid="uart", characteristics=[ch("w1", "write-without-response"), ch("n1", "Notify")]),
        ]
        self.assertEqual(("w1", "n1"), _pick_write_notify(services, ""))
        self.assertEqual((None, None), _pick_write_notify(services, "battery"))


class RawLoggerTests(unittest.TestCase):
    def test_appends_exchanges(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "logs" / "trace.log"
            raw_logger = RawLogger(path)
            raw_logger("TX", "010C", [])
            raw_logger("RX", "010C", ["7E804410C1AF8"])
            text = path.read_text(encoding="utf-8")
        self.assertIn("TX 010C", text)
        self.assertIn("RX 010C", text)
        self.assertIn("  7E804410C1AF8", text)

    def test_log_raw_forwards_to_logging(self) -> None:
        with self.assertLogs("elmcore.rawlog", level="DEBUG") as captured:
            log_raw("TX", "0100", [])
            log_raw("RX", "0100", ["7E8064100BE1FA813", "7E906410098180001"])
        self.assertIn("TX 0100", captured.output[0])
        self.assertIn("7E8064100BE1FA813 | 7E906410098180001", captured.output[1])


if __name__ == "__main__":
    unittest.main()
