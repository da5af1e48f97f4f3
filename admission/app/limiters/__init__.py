"""Admission limiters.

Three independent policies share the ``evaluate(key, now) -> bool``
contract: a dedup cache, a sliding window counter and a token bucket.
RateLimiter picks one of them from settings.
"""

from typing import Optional

from admission.app.core.clock import Clock
from admission.app.core.config import Settings, settings as default_settings
from admission.app.core.logging import get_logger
from admission.app.exceptions import UnknownAlgorithmError

# Re-export models
from admission.app.limiters.models import BucketState, Entry, UserStats

# Re-export policies
from admission.app.limiters.base import AdmissionPolicy
from admission.app.limiters.dedup_cache import DedupWindowCache
from admission.app.limiters.sliding_window import SlidingWindowCounter
from admission.app.limiters.token_bucket import TokenBucket, TokenBucketTable

logger = get_logger(__name__)

__all__ = [
    # Models
    "BucketState",
    "Entry",
    "UserStats",
    # Policies
    "AdmissionPolicy",
    "DedupWindowCache",
    "SlidingWindowCounter",
    "TokenBucket",
    "TokenBucketTable",
    # Main classes
    "RateLimiter",
    "build_policy",
]


def build_policy(
    algorithm: str,
    config: Settings,
    clock: Optional[Clock] = None,
) -> AdmissionPolicy:
    """Build a keyed admission policy from settings.

    Args:
        algorithm: dedup, sliding_window or token_bucket
        config: Settings holding the per-algorithm parameters
        clock: Time source; the wall clock when omitted

    Raises:
        UnknownAlgorithmError: If algorithm is not one of the known names
        InvalidConfiguration: If a parameter is not positive
    """
    if algorithm == "dedup":
        return DedupWindowCache(
            capacity=config.dedup_capacity,
            threshold_seconds=config.dedup_threshold_seconds,
            clock=clock,
        )
    if algorithm == "sliding_window":
        return SlidingWindowCounter(limit=config.sliding_window_limit, clock=clock)
    if algorithm == "token_bucket":
        return TokenBucketTable(
            capacity=config.token_bucket_capacity,
            refill_rate_per_second=config.token_bucket_refill_rate,
            clock=clock,
        )
    raise UnknownAlgorithmError(algorithm)


class RateLimiter:
    """Main rate limiter that selects the configured policy.

    Uses settings.default_algorithm unless an algorithm is given.
    """

    def __init__(
        self,
        algorithm: Optional[str] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ):
        config = settings or default_settings
        self.algorithm = algorithm or config.default_algorithm
        self._policy = build_policy(self.algorithm, config, clock)
        logger.debug(f"Using {type(self._policy).__name__} admission policy")

    @property
    def policy(self) -> AdmissionPolicy:
        return self._policy

    def evaluate(self, key: str, now: Optional[float] = None) -> bool:
        """Check if the event for key is allowed."""
        return self._policy.evaluate(key, now)

    def cleanup(self, now: Optional[float] = None) -> int:
        """Clean up idle keys."""
        return self._policy.cleanup(now)
