import logging
from pathlib import Path
from typing import List, Optional, Union

from .utils import timestamp, timestamp_filename

logger = logging.getLogger(__name__)


class RawLogger:
    """
    Appends every TX/RX exchange to a text file.

    Plugs into CommandScheduler(raw_logger=...). Without a path a file named
    after the session start is created in the current directory.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        default_path = Path.cwd() / f"elm_raw_{timestamp_filename()}.log"
        self.path = Path(path) if path else default_path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def __call__(self, direction: str, command: str, lines: List[str]):
        ts = timestamp()
        with self.path.open("a", encoding="utf-8") as f:
            f.write(f"[{ts}] {direction} {command}\n")
            for ln in lines:
                f.write(f"  {ln}\n")


def log_raw(direction: str, command: str, lines: List[str]) -> None:
    """raw_logger that forwards the exchange to the module logger at DEBUG."""
    if lines:
        logger.debug("%s %s | %s", direction, command, " | ".join(lines))
    else:
        logger.debug("%s %s", direction, command)
