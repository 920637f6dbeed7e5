"""
ELM327 AT initialization.

The sequence runs one step at a time through the scheduler at HIGH priority.
Nothing is sent after the first failing step:

    ATZ    reset (replies with the banner)
    ATE0   echo off
    ATL0   linefeeds off
    ATS0   spaces off
    ATH1   headers on
    ATSP0  automatic protocol search
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import List, Optional, Tuple

from ..config import EngineSettings
from ..errors import ElmError, InitializationError
from ..models import CommandPriority, CommandType, ObdCommand
from ..protocol.normalize import compact, find_error_token

logger = logging.getLogger(__name__)

INIT_SEQUENCE: List[Tuple[str, str]] = [
    ("ATZ", "reset"),
    ("ATE0", "echo off"),
    ("ATL0", "linefeeds off"),
    ("ATS0", "spaces off"),
    ("ATH1", "headers on"),
    ("ATSP0", "auto protocol"),
]


def extract_version(response: str) -> Optional[str]:
    s = (response or "").strip()
    if not s:
        return None
    m = re.search(r"(ELM327\s*v?\s*[\w\.]+)", s, re.IGNORECASE)
    if m:
        return m.group(1).strip()
    return None


def step_accepted(command: str, reply: str) -> bool:
    if find_error_token(reply):
        return False
    text = compact(reply)
    if "OK" in text:
        return True
    return command == "ATZ" and "ELM" in text


def run_initializer(scheduler, settings: Optional[EngineSettings] = None) -> str:
    """
    Runs INIT_SEQUENCE and returns the adapter version from the ATZ banner
    ("unknown" when the banner has none).

    Raises InitializationError naming the first step that failed.
    """
    settings = settings or scheduler.settings
    version = "unknown"

    for command, description in INIT_SEQUENCE:
        step_timeout = settings.reset_timeout_s if command == "ATZ" else settings.init_step_timeout_s
        logger.info("Init %s (%s)", command, description)
        future = scheduler.submit(
            ObdCommand(
                command=command,
                description=description,
                priority=CommandPriority.HIGH,
                timeout_s=step_timeout,
                retry_count=0,
                command_type=CommandType.INITIALIZATION,
            )
        )
        try:
            # the scheduler enforces step_timeout; the margin covers queueing
            reply = future.result(timeout=step_timeout + 2.0)
        except FutureTimeoutError as e:
            future.cancel()
            logger.error("Init step %s never completed", command)
            raise InitializationError(command, "", e) from e
        except ElmError as e:
            logger.error("Init step %s failed: %s", command, e)
            raise InitializationError(command, getattr(e, "raw", None) or "", e) from e

        if not step_accepted(command, reply):
            logger.error("Init step %s rejected: %r", command, reply)
            raise InitializationError(command, reply)

        if command == "ATZ":
            version = extract_version(reply) or "unknown"
            logger.info("Adapter reports %s", version)

    return version
