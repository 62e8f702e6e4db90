"""Time source used for every expiry decision."""

import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> float:
        ...


class SystemClock:
    """Wall clock in seconds since the epoch."""

    def now(self) -> float:
        return time.time()
