from __future__ import annotations

import unittest

from elmcore.models import ErrorValue, NumericValue
from elmcore.pids import default_database
from elmcore.protocol import (
    clean_response,
    encode_command,
    encode_request,
    is_positive_ack,
    parse_response,
    split_command,
)


class RequestEncodingTests(unittest.TestCase):
    def test_encode_request_appends_carriage_return(self) -> None:
        self.assertEqual("010C\r", encode_request("01", "0C"))
        self.assertEqual("0105\r", encode_request("01", "5"))
        self.assertEqual("03\r", encode_request("03"))

    def test_encode_command_bytes(self) -> None:
        self.assertEqual(b"ATZ\r", encode_command(" ATZ "))

    def test_split_command(self) -> None:
        self.assertEqual(("01", "0C"), split_command("010C"))
        self.assertEqual(("03", ""), split_command("03"))
        self.assertEqual(("0A", ""), split_command("0A"))
        self.assertEqual(("", ""), split_command("ATDPN"))


class ResponseParsingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = default_database()

    def test_rpm_scenario(self) -> None:
        parsed = parse_response("41 0C 1A F8\r\r>", "010C", self.db)
        self.assertTrue(parsed.is_valid)
        self.assertEqual("01", parsed.mode)
        self.assertEqual("0C", parsed.pid)
        self.assertEqual([0x1A, 0xF8], parsed.data)
        self.assertEqual(NumericValue(1726.0, "rpm"), parsed.value)

    def test_coolant_scenario(self) -> None:
        parsed = parse_response("41 05 5F", "0105", self.db)
        self.assertTrue(parsed.is_valid)
        self.assertEqual(NumericValue(55.0, "°C"), parsed.value)

    def test_clean_response_strips_prompt_and_line_breaks(self) -> None:
        self.assertEqual("410C1AF8", clean_response("410c\r\n1AF8 >"))

    def test_can_header_is_skipped(self) -> None:
        parsed = parse_response("7E804410C1AF8\r\r>", "010C", self.db)
        self.assertTrue(parsed.is_valid)
        self.assertEqual("7E8", parsed.ecu)
        self.assertEqual([0x1A, 0xF8], parsed.data)

    def test_engine_ecu_preferred_over_others(self) -> None:
        raw = "7E904410C0000\r7E804410C1AF8\r\r>"
        parsed = parse_response(raw, "010C", self.db)
        self.assertEqual("7E8", parsed.ecu)
        self.assertEqual(1726.0, parsed.value.value)

    def test_searching_line_is_ignored(self) -> None:
        parsed = parse_response("SEARCHING...\r410D3C\r\r>", "010D", self.db)
        self.assertTrue(parsed.is_valid)
        self.assertEqual(NumericValue(60.0, "km/h"), parsed.value)

    def test_error_tokens_reject_reply(self) -> None:
        for raw in ("NO DATA", "?", "UNABLE TO CONNECT", "BUS BUSY", "CAN ERROR", "STOPPED"):
            parsed = parse_response(raw + "\r>", "010C", self.db)
            self.assertFalse(parsed.is_valid, msg=raw)
            self.assertIsNotNone(parsed.error)

    def test_empty_and_short_replies_are_invalid(self) -> None:
        self.assertEqual("empty response", parse_response(">", "010C").error)
        self.assertFalse(parse_response("41", None).is_valid)

    def test_short_payload_is_a_decode_error(self) -> None:
        parsed = parse_response("410C1A", "010C", self.db)
        self.assertFalse(parsed.is_valid)
        self.assertIsInstance(parsed.value, ErrorValue)

    def test_negative_response_reports_nrc(self) -> None:
        parsed = parse_response("7F0112", "010C", self.db)
        self.assertFalse(parsed.is_valid)
        self.assertIn("NRC 12", parsed.error)

    def test_unexpected_header(self) -> None:
        parsed = parse_response("410D3C", "010C", self.db)
        self.assertFalse(parsed.is_valid)
        self.assertEqual("unexpected response header", parsed.error)

    def test_odd_nibble_is_dropped_with_warning(self) -> None:
        parsed = parse_response("410D3C5", "010D", self.db)
        self.assertTrue(parsed.is_valid)
        self.assertEqual([0x3C], parsed.data)
        self.assertTrue(parsed.warnings)

    def test_unknown_pid_gives_best_effort_value(self) -> None:
        parsed = parse_response("417012AB", "0170", self.db)
        self.assertFalse(parsed.is_valid)
        self.assertEqual(NumericValue(float(0x12AB), ""), parsed.value)
        self.assertIn("unknown PID", parsed.error)

    def test_freeze_frame_skips_frame_number(self) -> None:
        parsed = parse_response("420C001AF8", "020C00", self.db)
        self.assertTrue(parsed.is_valid)
        self.assertEqual("02", parsed.mode)
        self.assertEqual(1726.0, parsed.value.value)

    def test_pidless_reply(self) -> None:
        parsed = parse_response("4300", "03")
        self.assertTrue(parsed.is_valid)
        self.assertEqual("", parsed.pid)
        self.assertEqual([0x00], parsed.data)

    def test_positive_ack(self) -> None:
        self.assertTrue(is_positive_ack("44\r\r>", "04"))
        self.assertTrue(is_positive_ack("7E80144\r>", "04"))
        self.assertFalse(is_positive_ack("NO DATA", "04"))
        self.assertFalse(is_positive_ack("7F0422", "04"))


if __name__ == "__main__":
    unittest.main()
