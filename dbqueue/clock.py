"""
Time source used by the queue.

All queue timestamps are integer unix seconds. The clock must never go
backwards for the expiry predicate to hold.
"""

import time
from typing import Protocol


class Clock(Protocol):
    """Anything that can tell the current unix time in seconds."""

    def now(self) -> int: ...


class SystemClock:
    """Wall clock backed by time.time()."""

    def now(self) -> int:
        return int(time.time())
