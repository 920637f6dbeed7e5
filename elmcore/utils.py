"""
Time helpers shared by the scheduler, the pipeline and the raw trace.
"""

import time
from datetime import datetime


def now() -> float:
    """Wall-clock timestamp in seconds since the epoch."""
    return time.time()


def elapsed_ms(start: float, end: float) -> float:
    return max(0.0, (end - start) * 1000.0)


def timestamp() -> str:
    """Formatted local timestamp for log lines."""
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def timestamp_filename() -> str:
    return datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
