"""Middleware package for the admission toolkit."""

from admission.app.middleware.rate_limit import RateLimitMiddleware

__all__ = [
    "RateLimitMiddleware",
]
