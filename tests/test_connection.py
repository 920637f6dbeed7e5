from __future__ import annotations

import time
import unittest
from typing import List, Tuple

from elmcore.connection import ConnectionState, ConnectionStateMachine
from elmcore.errors import (
    CommandCancelledError,
    ConnectionStateError,
    DeviceDisconnectedError,
    InitializationError,
    TransportError,
)
from elmcore.models import ObdCommand

from tests.fakes import fast_settings
from tests.replay_transport import INIT_STEPS, REPLAY_DEVICE, ReplayTransport

S = ConnectionState


class _RefusingTransport(ReplayTransport):
    def open(self) -> None:
        raise DeviceDisconnectedError("port busy")


class _CrashingTransport(ReplayTransport):
    def open(self) -> None:
        raise RuntimeError("driver bug")


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class ConnectionStateMachineTests(unittest.TestCase):
    def _machine(self, transport: ReplayTransport) -> ConnectionStateMachine:
        self.transport = transport
        machine = ConnectionStateMachine(fast_settings(), transport_factory=lambda _device: transport)
        self.transitions: List[Tuple[ConnectionState, ConnectionState]] = []
        machine.add_listener(lambda old, new: self.transitions.append((old, new)))
        return machine

    def test_connect_and_disconnect(self) -> None:
        machine = self._machine(ReplayTransport(INIT_STEPS + [{"command": "ATRV", "lines": ["12.4V"]}]))
        machine.connect(REPLAY_DEVICE)

        self.assertTrue(machine.is_ready)
        self.assertEqual("ELM327 v1.5", machine.elm_version)
        self.assertEqual(REPLAY_DEVICE, machine.device)
        self.assertIn("12.4V", machine.submit(ObdCommand("ATRV")).result(timeout=2))

        scheduler = machine.scheduler
        machine.disconnect()
        self.assertEqual(
            [
                (S.DISCONNECTED, S.CONNECTING),
                (S.CONNECTING, S.INITIALIZING),
                (S.INITIALIZING, S.READY),
                (S.READY, S.DISCONNECTING),
                (S.DISCONNECTING, S.DISCONNECTED),
            ],
            self.transitions,
        )
        self.assertTrue(self.transport.closed)
        self.assertFalse(scheduler.running)
        self.assertIsNone(machine.connection)
        self.assertIsNone(machine.elm_version)

    def test_connect_only_from_disconnected(self) -> None:
        machine = self._machine(ReplayTransport(INIT_STEPS))
        machine.connect(REPLAY_DEVICE)
        self.addCleanup(machine.disconnect)
        with self.assertRaises(ConnectionStateError):
            machine.connect(REPLAY_DEVICE)
        self.assertEqual(1, self.transport.open_count)

    def test_disconnect_while_disconnected(self) -> None:
        machine = self._machine(ReplayTransport([]))
        with self.assertRaises(ConnectionStateError):
            machine.disconnect()
        self.assertEqual([], self.transitions)

    def test_submit_requires_ready(self) -> None:
        machine = self._machine(ReplayTransport([]))
        with self.assertRaises(ConnectionStateError):
            machine.submit(ObdCommand("0100"))

    def test_init_failure_parks_in_error(self) -> None:
        steps = [INIT_STEPS[0], {"command": "ATE0", "lines": ["?"]}]
        machine = self._machine(ReplayTransport(steps))
        with self.assertRaises(InitializationError):
            machine.connect(REPLAY_DEVICE)

        self.assertIs(S.ERROR, machine.state)
        self.assertIsInstance(machine.last_error, InitializationError)
        self.assertEqual((S.INITIALIZING, S.ERROR), self.transitions[-1])
        self.assertTrue(self.transport.closed)

        with self.assertRaises(ConnectionStateError):
            machine.connect(REPLAY_DEVICE)

        machine.disconnect()
        self.assertIs(S.DISCONNECTED, machine.state)
        self.assertEqual([(S.ERROR, S.DISCONNECTING), (S.DISCONNECTING, S.DISCONNECTED)], self.transitions[-2:])

        retry = ReplayTransport(INIT_STEPS)
        machine.transport_factory = lambda _device: retry
        machine.connect(REPLAY_DEVICE)
        self.assertTrue(machine.is_ready)
        self.assertIsNone(machine.last_error)
        machine.disconnect()

    def test_open_failure(self) -> None:
        machine = self._machine(_RefusingTransport([]))
        with self.assertRaises(TransportError):
            machine.connect(REPLAY_DEVICE)
        self.assertIs(S.ERROR, machine.state)
        self.assertEqual([(S.DISCONNECTED, S.CONNECTING), (S.CONNECTING, S.ERROR)], self.transitions)

    def test_factory_failure_parks_in_error(self) -> None:
        def unsupported(_device):
            raise TransportError("Unsupported transport")

        machine = ConnectionStateMachine(fast_settings(), transport_factory=unsupported)
        with self.assertRaises(TransportError):
            machine.connect(REPLAY_DEVICE)
        self.assertIs(S.ERROR, machine.state)
        self.assertIsInstance(machine.last_error, TransportError)
        machine.disconnect()
        self.assertIs(S.DISCONNECTED, machine.state)

    def test_unexpected_open_failure_becomes_transport_error(self) -> None:
        machine = self._machine(_CrashingTransport([]))
        with self.assertRaises(TransportError) as ctx:
            machine.connect(REPLAY_DEVICE)
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)
        self.assertIs(S.ERROR, machine.state)
        self.assertIs(ctx.exception, machine.last_error)
        self.assertTrue(self.transport.closed)
        machine.disconnect()
        self.assertIs(S.DISCONNECTED, machine.state)

    def test_link_drop_while_ready(self) -> None:
        machine = self._machine(ReplayTransport(INIT_STEPS + [{"command": "0100", "error": "disconnect"}]))
        machine.connect(REPLAY_DEVICE)

        err = machine.submit(ObdCommand("0100")).exception(timeout=2)
        self.assertIsInstance(err, DeviceDisconnectedError)
        self.assertTrue(_wait_for(lambda: machine.state is S.ERROR))
        self.assertIs(err, machine.last_error)
        self.assertTrue(_wait_for(lambda: self.transport.closed))

        machine.disconnect()
        self.assertIs(S.DISCONNECTED, machine.state)

    def test_disconnect_cancels_outstanding_commands(self) -> None:
        steps = INIT_STEPS + [{"command": "0902", "silent": True}]
        machine = self._machine(ReplayTransport(steps))
        machine.connect(REPLAY_DEVICE)

        in_flight = machine.submit(ObdCommand("0902", timeout_s=10.0))
        queued = machine.submit(ObdCommand("0100"))
        self.assertTrue(_wait_for(lambda: "0902" in self.transport.written))

        machine.disconnect()
        self.assertIsInstance(in_flight.exception(timeout=1), CommandCancelledError)
        self.assertIsInstance(queued.exception(timeout=1), CommandCancelledError)

    def test_remove_listener(self) -> None:
        machine = ConnectionStateMachine(fast_settings(), transport_factory=lambda _d: ReplayTransport(INIT_STEPS))
        seen = []
        listener = lambda old, new: seen.append(new)  # noqa: E731
        machine.add_listener(listener)
        machine.add_listener(listener)
        machine.remove_listener(listener)
        machine.connect(REPLAY_DEVICE)
        machine.disconnect()
        self.assertEqual([], seen)


if __name__ == "__main__":
    unittest.main()
