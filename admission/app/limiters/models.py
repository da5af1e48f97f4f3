"""Admission state models.

This module contains dataclasses for per-key and per-bucket limiter state.
"""

import threading
from dataclasses import dataclass, field

NIL = -1


@dataclass
class Entry:
    """Dedup cache slot; prev/next are slot indices in the recency list."""
    key: str
    last_seen_at: float
    prev: int = NIL
    next: int = NIL


@dataclass
class UserStats:
    """Two-bucket counter state for one sliding window key."""
    previous_count: int = 0
    current_count: int = 0
    window_start: int = 0
    # Set under lock when the sweep drops the key from its table
    retired: bool = field(default=False, repr=False, compare=False)
    lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def copy(self) -> "UserStats":
        return UserStats(
            previous_count=self.previous_count,
            current_count=self.current_count,
            window_start=self.window_start,
        )


@dataclass(frozen=True)
class BucketState:
    """Point-in-time view of a token bucket."""
    capacity: float
    refill_rate_per_second: float
    current_tokens: float
    last_refill_at: float
