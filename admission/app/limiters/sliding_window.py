"""Sliding window counter rate limiting.

Approximates a rolling 60 second limit from two fixed one-minute buckets.
The previous minute is weighted by the share of it still inside the
trailing window::

    weight   = 1 - (now mod 60s) / 60s
    estimate = current_count + previous_count * weight

Example: with 50 requests in the previous minute, 10 so far in this one and
``now`` 15s into the minute, the estimate is 10 + 50 * 0.75 = 47.5.

Memory per key is constant regardless of request volume; the price is that
the estimate can drift from an exact timestamp log in either direction.
"""

import threading
from typing import Dict, Optional

from admission.app.core.clock import Clock
from admission.app.core.logging import get_log_context, get_logger
from admission.app.exceptions import require_positive_int
from admission.app.limiters.base import AdmissionPolicy
from admission.app.limiters.models import UserStats

logger = get_logger(__name__)

WINDOW_MS = 60_000


class SlidingWindowCounter(AdmissionPolicy):
    """Per-key two-bucket weighted counter.

    Each key's state carries its own lock, so different keys never wait on
    each other. The table lock is only taken to create or drop keys.
    """

    def __init__(self, limit: int, clock: Optional[Clock] = None):
        """Initialize the counter.

        Args:
            limit: Maximum estimated requests per rolling minute

        Raises:
            InvalidConfiguration: If limit is not a positive integer
        """
        require_positive_int("limit", limit)
        super().__init__(clock)
        self.limit = limit
        self._repo: Dict[str, UserStats] = {}
        self._table_lock = threading.Lock()
        logger.debug(f"SlidingWindowCounter created: limit={limit}/min")

    def _stats_for(self, key: str, now_minute: int) -> UserStats:
        stats = self._repo.get(key)
        if stats is None:
            with self._table_lock:
                stats = self._repo.get(key)
                if stats is None:
                    stats = UserStats(window_start=now_minute)
                    self._repo[key] = stats
        return stats

    def _slide(self, key: str, stats: UserStats, now_minute: int) -> None:
        """Shift buckets so current_count belongs to now_minute."""
        diff = now_minute - stats.window_start
        if diff == 0:
            return
        if diff < 0:
            # Clock went backward; never move the window back.
            logger.debug(
                f"Clock regression of {-diff} minute(s) ignored",
                extra=get_log_context(limiter=type(self).__name__, key=key),
            )
            return
        stats.previous_count = stats.current_count if diff == 1 else 0
        stats.current_count = 0
        stats.window_start = now_minute

    @staticmethod
    def _weighted(stats: UserStats, now: float) -> float:
        weight = 1.0 - (now % WINDOW_MS) / WINDOW_MS
        return stats.current_count + stats.previous_count * weight

    def evaluate(self, key: str, now: Optional[float] = None) -> bool:
        now = self._now(now)
        now_minute = int(now // WINDOW_MS)
        self._observe(now)

        while True:
            stats = self._stats_for(key, now_minute)
            with stats.lock:
                if stats.retired:
                    continue
                self._slide(key, stats, now_minute)
                if self._weighted(stats, now) < self.limit:
                    stats.current_count += 1
                    return True
                return False

    def estimate(self, key: str, now: Optional[float] = None) -> float:
        """Return the weighted count for key without consuming anything."""
        now = self._now(now)
        now_minute = int(now // WINDOW_MS)
        stats = self._repo.get(key)
        if stats is None:
            return 0.0
        with stats.lock:
            view = stats.copy()
        self._slide(key, view, now_minute)
        return self._weighted(view, now)

    def snapshot(self, key: str) -> Optional[UserStats]:
        """Return a copy of the stored state for key, or None."""
        stats = self._repo.get(key)
        if stats is None:
            return None
        with stats.lock:
            return stats.copy()

    def cleanup(self, now: Optional[float] = None) -> int:
        """Drop keys whose window is two or more minutes old.

        Such keys would reset both counts on any request at or after the
        latest evaluated timestamp, so dropping them changes no such decision.
        """
        now = self._sweep_time(now)
        if now is None:
            return 0
        now_minute = int(now // WINDOW_MS)
        stale = []
        with self._table_lock:
            for key, stats in list(self._repo.items()):
                with stats.lock:
                    if now_minute - stats.window_start < 2:
                        continue
                    stats.retired = True
                del self._repo[key]
                stale.append(key)
        if stale:
            logger.info(
                f"Sliding window sweep removed {len(stale)} idle keys",
                extra=get_log_context(limiter=type(self).__name__),
            )
        return len(stale)

    def __len__(self) -> int:
        return len(self._repo)
