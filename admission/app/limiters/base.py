from abc import ABC, abstractmethod
from typing import Optional

from admission.app.core.clock import Clock, SystemClock, resolve_now


class AdmissionPolicy(ABC):
    """Abstract base class for keyed admission policies.

    Policies remember the latest timestamp any evaluation has used. Sweeps
    never look past that mark, so a cleanup() called with a later ``now``
    cannot drop state that a still-earlier request would have needed.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock: Clock = clock or SystemClock()
        self._latest_seen = float("-inf")

    @property
    def clock(self) -> Clock:
        return self._clock

    def _now(self, now: Optional[float]) -> float:
        return resolve_now(self._clock, now)

    def _observe(self, now: float) -> None:
        # A lost race leaves the mark lower, which only narrows a sweep.
        if now > self._latest_seen:
            self._latest_seen = now

    def _sweep_time(self, now: Optional[float]) -> Optional[float]:
        """Timestamp a sweep may use, or None before the first evaluation."""
        if self._latest_seen == float("-inf"):
            return None
        return min(self._now(now), self._latest_seen)

    @abstractmethod
    def evaluate(self, key: str, now: Optional[float] = None) -> bool:
        """Decide whether the event for key may proceed.

        Args:
            key: Opaque admission key (message text, user id, IP, ...)
            now: Timestamp in milliseconds; read from the clock when omitted

        Returns:
            True if the event is admitted, False if it is rejected
        """

    @abstractmethod
    def cleanup(self, now: Optional[float] = None) -> int:
        """Drop state that can no longer affect a decision.

        The sweep runs as of ``min(now, latest evaluated timestamp)``.
        Evaluations at or after that mark decide exactly as if nothing had
        been removed; a clock that later regresses below it may see a
        removed key as new.

        Returns:
            Number of keys removed
        """
