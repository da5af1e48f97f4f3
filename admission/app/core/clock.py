"""Clock sources for admission limiters.

Limiters never read the wall clock themselves; they take a clock at
construction and read it only when a caller omits the timestamp.
All timestamps are milliseconds since an epoch.
"""

import threading
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Anything that can report the current time in milliseconds."""

    def now_ms(self) -> float:
        ...


class SystemClock:
    """Wall clock backed by time.time()."""

    def now_ms(self) -> float:
        return time.time() * 1000.0


class ManualClock:
    """Settable clock for tests and simulations.

    Time only moves when told to, so tests advance logical time instantly
    instead of sleeping.

    Example:
        >>> clock = ManualClock(start_ms=0)
        >>> clock.advance_seconds(1.5)
        >>> clock.now_ms()
        1500.0
    """

    def __init__(self, start_ms: float = 0.0):
        self._now = float(start_ms)
        self._lock = threading.Lock()

    def now_ms(self) -> float:
        with self._lock:
            return self._now

    def set(self, now_ms: float) -> None:
        """Jump to an absolute time. Moving backward is allowed."""
        with self._lock:
            self._now = float(now_ms)

    def advance(self, delta_ms: float) -> None:
        with self._lock:
            self._now += delta_ms

    def advance_seconds(self, seconds: float) -> None:
        self.advance(seconds * 1000.0)


def resolve_now(clock: Clock, now: float | None) -> float:
    """Return now if given, otherwise read the clock."""
    return clock.now_ms() if now is None else now
