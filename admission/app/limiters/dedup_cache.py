"""Bounded deduplication cache with a per-key cool-down window.

A message is accepted the first time it is seen and then suppressed until
``threshold_seconds`` have passed since it was last accepted. At most
``capacity`` keys are tracked; when a new key arrives at capacity, the key
least recently *refreshed* is evicted.

Recency is kept in an arena: entries live in a list of slots and are
linked through ``prev``/``next`` slot indices, with a dict from key to slot.
Rejected duplicates never move in the recency list.
"""

import threading
from typing import Iterator, List, Optional

from admission.app.core.clock import Clock
from admission.app.core.logging import get_log_context, get_logger
from admission.app.exceptions import require_positive, require_positive_int
from admission.app.limiters.base import AdmissionPolicy
from admission.app.limiters.models import NIL, Entry

logger = get_logger(__name__)


class DedupWindowCache(AdmissionPolicy):
    """Suppress repeated keys inside a cool-down window.

    Thread safety: one structural lock guards the slots, the key index and
    the recency list, since eviction and reordering touch shared state.
    """

    def __init__(
        self,
        capacity: int,
        threshold_seconds: float,
        clock: Optional[Clock] = None,
    ):
        """Initialize the cache.

        Args:
            capacity: Maximum number of tracked keys
            threshold_seconds: Cool-down before a key is accepted again

        Raises:
            InvalidConfiguration: If capacity is not a positive integer or
                threshold_seconds is not positive
        """
        require_positive_int("capacity", capacity)
        require_positive("threshold_seconds", threshold_seconds)
        super().__init__(clock)
        self.capacity = capacity
        self.threshold_seconds = threshold_seconds
        self._threshold_ms = threshold_seconds * 1000.0

        self._slots: List[Entry] = []
        self._free: List[int] = []
        self._index: dict[str, int] = {}
        self._head = NIL  # most recently refreshed
        self._tail = NIL  # least recently refreshed
        self._lock = threading.Lock()

        logger.debug(
            f"DedupWindowCache created: capacity={capacity}, "
            f"threshold={threshold_seconds}s"
        )

    def evaluate(self, key: str, now: Optional[float] = None) -> bool:
        now = self._now(now)
        with self._lock:
            self._observe(now)
            idx = self._index.get(key)
            if idx is not None:
                entry = self._slots[idx]
                if now - entry.last_seen_at < self._threshold_ms:
                    return False
                entry.last_seen_at = now
                self._unlink(idx)
                self._push_front(idx)
                return True

            if len(self._index) >= self.capacity:
                idx = self._evict_tail()
                entry = self._slots[idx]
                entry.key = key
                entry.last_seen_at = now
            elif self._free:
                idx = self._free.pop()
                entry = self._slots[idx]
                entry.key = key
                entry.last_seen_at = now
            else:
                idx = len(self._slots)
                self._slots.append(Entry(key=key, last_seen_at=now))

            self._index[key] = idx
            self._push_front(idx)
            return True

    def cleanup(self, now: Optional[float] = None) -> int:
        """Forget keys whose cool-down has already expired.

        The sweep never runs past the latest evaluated timestamp. A removed
        key would have been accepted by any later evaluation anyway; the
        freed slot spares a live key from eviction.
        """
        with self._lock:
            now = self._sweep_time(now)
            if now is None:
                return 0
            expired = [
                idx for idx in self._index.values()
                if now - self._slots[idx].last_seen_at >= self._threshold_ms
            ]
            for idx in expired:
                self._unlink(idx)
                del self._index[self._slots[idx].key]
                self._free.append(idx)
        if expired:
            logger.info(
                f"Dedup cache sweep removed {len(expired)} expired entries",
                extra=get_log_context(limiter=type(self).__name__),
            )
        return len(expired)

    def keys(self) -> List[str]:
        """Tracked keys, most recently refreshed first."""
        with self._lock:
            return list(self._iter_keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._index

    # Recency list helpers; callers hold self._lock.

    def _iter_keys(self) -> Iterator[str]:
        idx = self._head
        while idx != NIL:
            entry = self._slots[idx]
            yield entry.key
            idx = entry.next

    def _push_front(self, idx: int) -> None:
        entry = self._slots[idx]
        entry.prev = NIL
        entry.next = self._head
        if self._head != NIL:
            self._slots[self._head].prev = idx
        self._head = idx
        if self._tail == NIL:
            self._tail = idx

    def _unlink(self, idx: int) -> None:
        entry = self._slots[idx]
        if entry.prev != NIL:
            self._slots[entry.prev].next = entry.next
        else:
            self._head = entry.next
        if entry.next != NIL:
            self._slots[entry.next].prev = entry.prev
        else:
            self._tail = entry.prev
        entry.prev = entry.next = NIL

    def _evict_tail(self) -> int:
        idx = self._tail
        victim = self._slots[idx]
        self._unlink(idx)
        del self._index[victim.key]
        logger.debug(
            "Evicted least recently refreshed entry",
            extra=get_log_context(limiter=type(self).__name__, key=victim.key),
        )
        return idx
