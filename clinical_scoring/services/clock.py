"""
Clock sources for the resilience components.

Components take a zero-argument callable returning seconds; production code
passes ``time.monotonic``. Calendar checks take a ``Today`` callable
returning the current date. ``ManualClock`` lets tests move time without
sleeping.
"""
import threading
import time
from datetime import date
from typing import Callable

Clock = Callable[[], float]
Today = Callable[[], date]

system_clock: Clock = time.monotonic
system_today: Today = date.today


class ManualClock:
    """Mock clock for deterministic tests."""

    def __init__(self, start: float = 1_000.0):
        self._now = start
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> None:
        """Advance time by the specified number of seconds."""
        with self._lock:
            self._now += seconds

    def set(self, value: float) -> None:
        with self._lock:
            self._now = value
