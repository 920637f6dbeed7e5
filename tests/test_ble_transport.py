from __future__ import annotations

import unittest
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from unittest import mock

from elmcore.errors import TransportError
from elmcore.transport.ble_transport import BleTransport


def _timed_out(coro, _loop) -> Future:
    coro.close()
    fut: Future = Future()
    fut.set_exception(FutureTimeoutError())
    return fut


class BleTransportOpenTests(unittest.TestCase):
    def test_connect_timeout_becomes_transport_error(self) -> None:
        transport = BleTransport("AA:BB:CC:DD:EE:FF", timeout=0.1)
        with mock.patch("elmcore.transport.ble_transport.asyncio.run_coroutine_threadsafe", _timed_out):
            with self.assertRaises(TransportError):
                transport.open()
        self.assertFalse(transport.is_open)
        self.assertIsNone(transport._loop)


if __name__ == "__main__":
    unittest.main()
