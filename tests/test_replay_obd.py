from __future__ import annotations

import unittest
from pathlib import Path

from tests.fakes import build_client
from tests.replay_transport import FIXTURE_DIR, load_fixture

FIXTURE_PATH = FIXTURE_DIR / "obd_scan.json"


@unittest.skipIf(not FIXTURE_PATH.exists(), "Replay fixture missing: tests/fixtures/replay/obd_scan.json")
class ObdReplayTests(unittest.TestCase):
    def test_obd_replay_scan(self) -> None:
        fixture = load_fixture(FIXTURE_PATH)
        if not fixture.expected:
            self.skipTest("Replay fixture missing expected outputs")
        expected = fixture.expected

        client, transport = build_client(fixture.steps)
        try:
            protocol = client.describe_protocol().result(timeout=2)
            voltage = client.read_voltage().result(timeout=2)
            vin = client.read_vin().result(timeout=2)
            supported = client.get_supported_pids().result(timeout=3)
            mil = client.get_mil_status().result(timeout=2)
            wanted = [pid for pid in expected["pids"] if pid in supported]
            results = client.request_pids(wanted).result(timeout=5)
            dtcs = client.read_dtcs().result(timeout=2)
            pending = client.read_pending_dtcs().result(timeout=2)
        finally:
            client.disconnect()

        self.assertEqual(expected["protocol"], protocol)
        self.assertAlmostEqual(expected["voltage"], voltage)
        self.assertEqual(expected["vin"], vin)
        self.assertEqual(tuple(expected["mil"]), mil)

        self.assertEqual(list(expected["pids"]), wanted)
        for result in results:
            self.assertTrue(result.ok, msg=f"PID {result.pid}: {result.error}")
            self.assertAlmostEqual(expected["pids"][result.pid], result.data.processed_value, places=1)

        self.assertEqual(sorted(expected["dtcs"]), sorted(d.code for d in dtcs))
        self.assertEqual(expected["pending"], [d.code for d in pending])
        self.assertEqual(0, transport.remaining_steps)
        self.assertIsNone(transport.mismatch)


def _fixture_files() -> list:
    return sorted(Path(FIXTURE_DIR).glob("*.json"))


class FixtureFormatTests(unittest.TestCase):
    def test_fixtures_are_well_formed(self) -> None:
        for path in _fixture_files():
            fixture = load_fixture(path)
            self.assertTrue(fixture.steps, msg=f"{path.name} has no steps")
            for step in fixture.steps:
                self.assertIn("command", step, msg=f"{path.name}: step without command")


if __name__ == "__main__":
    unittest.main()
