"""Token bucket rate limiting.

A bucket holds up to ``capacity`` tokens and is refilled continuously at
``refill_rate_per_second``. Each admitted request takes one whole token;
tokens are fractional internally so slow refill rates still accumulate.

Typical scopes:
- one global bucket shared by every request (e.g. 10000 req/s overall)
- one bucket per client IP
- one bucket per user and endpoint (e.g. 1 post/s, 150 friend adds/day)

The algorithm is always single-bucket; TokenBucketTable keeps one
TokenBucket per key for the per-client scopes.
"""

import threading
from typing import Dict, Optional

from admission.app.core.clock import Clock, SystemClock, resolve_now
from admission.app.core.logging import get_log_context, get_logger
from admission.app.exceptions import require_positive
from admission.app.limiters.base import AdmissionPolicy
from admission.app.limiters.models import BucketState

logger = get_logger(__name__)


class TokenBucket:
    """Single token reservoir with continuous refill.

    The bucket starts full. All state changes happen under the bucket's own
    lock, so concurrent callers are serialized.
    """

    def __init__(
        self,
        capacity: float,
        refill_rate_per_second: float,
        clock: Optional[Clock] = None,
        now: Optional[float] = None,
    ):
        """Initialize a full bucket.

        Args:
            capacity: Maximum number of tokens
            refill_rate_per_second: Tokens added per second
            clock: Time source used when evaluate() gets no timestamp
            now: Creation time in milliseconds; read from the clock when omitted

        Raises:
            InvalidConfiguration: If capacity or refill rate is not positive
        """
        require_positive("capacity", capacity)
        require_positive("refill_rate_per_second", refill_rate_per_second)
        self._clock: Clock = clock or SystemClock()
        self.capacity = float(capacity)
        self.refill_rate_per_second = float(refill_rate_per_second)
        self._tokens = self.capacity
        self._last_refill_at = resolve_now(self._clock, now)
        self._lock = threading.Lock()
        self._retired = False

    def _refill(self, now: float) -> None:
        elapsed = now - self._last_refill_at
        if elapsed <= 0:
            # Clock regression or same instant: add nothing, keep the mark.
            if elapsed < 0:
                logger.debug(
                    f"Clock regression of {-elapsed:.0f}ms ignored",
                    extra=get_log_context(limiter=type(self).__name__),
                )
            return
        tokens_to_add = (elapsed / 1000.0) * self.refill_rate_per_second
        self._tokens = min(self.capacity, self._tokens + tokens_to_add)
        self._last_refill_at = now

    def _consume(self, now: float) -> bool:
        self._refill(now)
        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True
        return False

    def evaluate(self, now: Optional[float] = None) -> bool:
        """Refill, then take one token if a whole one is available."""
        now = resolve_now(self._clock, now)
        with self._lock:
            return self._consume(now)

    @property
    def retired(self) -> bool:
        return self._retired

    def try_consume(self, now: float) -> Optional[bool]:
        """Like evaluate(), but returns None once the bucket has been retired.

        A table that dropped this bucket has already replaced it, so the
        caller should look the key up again.
        """
        with self._lock:
            if self._retired:
                return None
            return self._consume(now)

    def retire_if_full(self, now: float) -> bool:
        """Refill and retire the bucket if it is back at capacity.

        A retired bucket rejects try_consume(); it is only safe to drop a
        bucket from a table after this returned True.
        """
        with self._lock:
            self._refill(now)
            if self._tokens < self.capacity:
                return False
            self._retired = True
            return True

    def tokens(self, now: Optional[float] = None) -> float:
        """Refill and return the current token count without consuming."""
        now = resolve_now(self._clock, now)
        with self._lock:
            self._refill(now)
            return self._tokens

    def state(self) -> BucketState:
        with self._lock:
            return BucketState(
                capacity=self.capacity,
                refill_rate_per_second=self.refill_rate_per_second,
                current_tokens=self._tokens,
                last_refill_at=self._last_refill_at,
            )


class TokenBucketTable(AdmissionPolicy):
    """One TokenBucket per key, created full on first use.

    Buckets lock independently; the table lock is only taken to create or
    drop buckets.
    """

    def __init__(
        self,
        capacity: float,
        refill_rate_per_second: float,
        clock: Optional[Clock] = None,
    ):
        require_positive("capacity", capacity)
        require_positive("refill_rate_per_second", refill_rate_per_second)
        super().__init__(clock)
        self.capacity = capacity
        self.refill_rate_per_second = refill_rate_per_second
        self._buckets: Dict[str, TokenBucket] = {}
        self._table_lock = threading.Lock()
        logger.debug(
            f"TokenBucketTable created: capacity={capacity}, "
            f"rate={refill_rate_per_second}/s"
        )

    def _bucket_for(self, key: str, now: float) -> TokenBucket:
        bucket = self._buckets.get(key)
        if bucket is None:
            with self._table_lock:
                bucket = self._buckets.get(key)
                if bucket is None:
                    bucket = TokenBucket(
                        self.capacity,
                        self.refill_rate_per_second,
                        clock=self._clock,
                        now=now,
                    )
                    self._buckets[key] = bucket
        return bucket

    def evaluate(self, key: str, now: Optional[float] = None) -> bool:
        now = self._now(now)
        self._observe(now)
        while True:
            allowed = self._bucket_for(key, now).try_consume(now)
            if allowed is not None:
                return allowed

    def get(self, key: str) -> Optional[TokenBucket]:
        return self._buckets.get(key)

    def cleanup(self, now: Optional[float] = None) -> int:
        """Drop buckets that have refilled to capacity.

        A full bucket behaves exactly like the fresh one that would replace
        it, so dropping it changes no decision at or after the latest
        evaluated timestamp.
        """
        now = self._sweep_time(now)
        if now is None:
            return 0
        removed = 0
        with self._table_lock:
            for key, bucket in list(self._buckets.items()):
                if not bucket.retire_if_full(now):
                    continue
                del self._buckets[key]
                removed += 1
        if removed:
            logger.info(
                f"Token bucket sweep removed {removed} full buckets",
                extra=get_log_context(limiter=type(self).__name__),
            )
        return removed

    def __len__(self) -> int:
        return len(self._buckets)
