from __future__ import annotations

import unittest

from elmcore.elm.initializer import INIT_SEQUENCE, extract_version, run_initializer, step_accepted
from elmcore.errors import CommandTimeoutError, InitializationError
from elmcore.scheduler import CommandScheduler

from tests.fakes import fast_settings
from tests.replay_transport import INIT_STEPS, ReplayTransport


class InitializerTests(unittest.TestCase):
    def _run(self, steps, **settings):
        self.transport = ReplayTransport(steps)
        self.transport.open()
        scheduler = CommandScheduler(self.transport, fast_settings(**settings))
        self.addCleanup(scheduler.stop)
        scheduler.start()
        return run_initializer(scheduler)

    def test_full_sequence_reports_banner_version(self) -> None:
        version = self._run(INIT_STEPS)
        self.assertEqual("ELM327 v1.5", version)
        self.assertEqual([cmd for cmd, _ in INIT_SEQUENCE], self.transport.written)
        self.assertEqual(0, self.transport.remaining_steps)

    def test_banner_without_version(self) -> None:
        steps = [{"command": "ATZ", "lines": ["OK"]}] + INIT_STEPS[1:]
        self.assertEqual("unknown", self._run(steps))

    def test_error_token_aborts_before_later_steps(self) -> None:
        steps = [INIT_STEPS[0], {"command": "ATE0", "lines": ["?"]}] + INIT_STEPS[2:]
        with self.assertRaises(InitializationError) as ctx:
            self._run(steps)
        self.assertEqual("ATE0", ctx.exception.command)
        self.assertIn("?", ctx.exception.reply)
        self.assertEqual(["ATZ", "ATE0"], self.transport.written)
        self.assertEqual(4, self.transport.remaining_steps)

    def test_reply_without_ok_is_rejected(self) -> None:
        steps = INIT_STEPS[:5] + [{"command": "ATSP0", "lines": ["BUS INIT: ...ERROR"]}]
        with self.assertRaises(InitializationError) as ctx:
            self._run(steps)
        self.assertEqual("ATSP0", ctx.exception.command)

    def test_silent_reset_times_out_without_retry(self) -> None:
        steps = [{"command": "ATZ", "silent": True}] + INIT_STEPS[1:]
        with self.assertRaises(InitializationError) as ctx:
            self._run(steps, reset_timeout_s=0.2, retry_count=3)
        self.assertEqual("ATZ", ctx.exception.command)
        self.assertIsInstance(ctx.exception.cause, CommandTimeoutError)
        self.assertEqual(["ATZ"], self.transport.written)


class InitHelpersTests(unittest.TestCase):
    def test_extract_version(self) -> None:
        self.assertEqual("ELM327 v1.5", extract_version("\r\rELM327 v1.5\r\r>"))
        self.assertEqual("ELM327 v2.1", extract_version("ATZ\rELM327 v2.1"))
        self.assertIsNone(extract_version("OK"))
        self.assertIsNone(extract_version(""))

    def test_step_accepted(self) -> None:
        self.assertTrue(step_accepted("ATE0", "ATE0\rOK\r\r>"))
        self.assertTrue(step_accepted("ATZ", "ELM327 v1.5\r\r>"))
        self.assertFalse(step_accepted("ATL0", "ELM327 v1.5\r\r>"))
        self.assertFalse(step_accepted("ATH1", "?\r\r>"))
        self.assertFalse(step_accepted("ATSP0", "UNABLE TO CONNECT\r\r>"))


if __name__ == "__main__":
    unittest.main()
