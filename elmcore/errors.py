# elmcore/errors.py
from __future__ import annotations

from typing import Optional


class ElmError(Exception):
    pass


# -----------------------------
# Link / transport
# -----------------------------
class TransportError(ElmError):
    pass


class DeviceDisconnectedError(TransportError):
    pass


class CommandTimeoutError(ElmError, TimeoutError):
    def __init__(self, message: str, command: Optional[str] = None, attempts: int = 0):
        super().__init__(message)
        self.command = command
        self.attempts = attempts


class CommandCancelledError(ElmError):
    def __init__(self, message: str = "Command cancelled", command: Optional[str] = None):
        super().__init__(message)
        self.command = command


# -----------------------------
# Reply content
# -----------------------------
class ProtocolError(ElmError):
    def __init__(self, message: str, command: Optional[str] = None, raw: Optional[str] = None):
        super().__init__(message)
        self.command = command
        self.raw = raw


class UnknownPidError(ElmError):
    def __init__(self, mode: str, pid: str):
        super().__init__(f"Unknown PID {mode}{pid}")
        self.mode = mode
        self.pid = pid


class ValidationError(ElmError):
    def __init__(self, pid: str, value: float, min_value: Optional[float], max_value: Optional[float]):
        super().__init__(f"PID {pid} value {value} outside [{min_value}, {max_value}]")
        self.pid = pid
        self.value = value
        self.min_value = min_value
        self.max_value = max_value


# -----------------------------
# Lifecycle
# -----------------------------
class ConnectionStateError(ElmError):
    pass


class InitializationError(ElmError):
    """Raised when an AT step of the adapter init sequence fails."""

    def __init__(self, command: str, reply: str, cause: Optional[BaseException] = None):
        reason = f"{type(cause).__name__}" if cause else repr(reply)
        super().__init__(f"ELM327 initialization failed at {command}: {reason}")
        self.command = command
        self.reply = reply
        self.cause = cause


__all__ = [
    "ElmError",
    "TransportError",
    "DeviceDisconnectedError",
    "CommandTimeoutError",
    "CommandCancelledError",
    "ProtocolError",
    "UnknownPidError",
    "ValidationError",
    "ConnectionStateError",
    "InitializationError",
]
