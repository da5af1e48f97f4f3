"""In-process admission control: dedup cache, sliding window, token bucket."""

from admission.app.core.clock import Clock, ManualClock, SystemClock
from admission.app.exceptions import (
    AdmissionError,
    InvalidConfiguration,
    UnknownAlgorithmError,
)
from admission.app.limiters import (
    AdmissionPolicy,
    DedupWindowCache,
    RateLimiter,
    SlidingWindowCounter,
    TokenBucket,
    TokenBucketTable,
    build_policy,
)

__all__ = [
    "Clock",
    "ManualClock",
    "SystemClock",
    "AdmissionError",
    "InvalidConfiguration",
    "UnknownAlgorithmError",
    "AdmissionPolicy",
    "DedupWindowCache",
    "RateLimiter",
    "SlidingWindowCounter",
    "TokenBucket",
    "TokenBucketTable",
    "build_policy",
]
