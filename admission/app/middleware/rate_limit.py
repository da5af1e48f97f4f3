"""Rate limiting middleware for FastAPI applications.

Applies an admission policy per client: the API key if one is presented,
otherwise the client IP.
"""

import hashlib
from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from admission.app.core.logging import get_log_context, get_logger
from admission.app.limiters import RateLimiter

logger = get_logger(__name__)

MAX_API_KEY_LENGTH = 512


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce admission decisions on requests.

    Denied requests get a 429 JSON response and never reach the endpoint.
    """

    def __init__(
        self,
        app,
        limiter: Optional[RateLimiter] = None,
        algorithm: Optional[str] = None,
    ):
        super().__init__(app)
        self.limiter = limiter or RateLimiter(algorithm=algorithm)

    def _get_client_key(self, request: Request) -> str:
        """Get rate limit key for the request.

        Uses API key if available, otherwise falls back to IP address.
        Both are hashed using SHA-256 so raw keys and addresses are never
        stored.

        Raises:
            ValueError: If the API key is longer than MAX_API_KEY_LENGTH
        """
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            api_key = auth[7:].strip()
            if len(api_key) > MAX_API_KEY_LENGTH:
                raise ValueError(
                    f"API key too long (max {MAX_API_KEY_LENGTH} characters)"
                )
            # 32 hex chars (128 bits)
            key_hash = hashlib.sha256(api_key.encode()).hexdigest()[:32]
            return f"ratelimit:apikey:{key_hash}"

        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()
        else:
            client_ip = request.client.host if request.client else "unknown"

        ip_hash = hashlib.sha256(client_ip.encode()).hexdigest()[:32]
        return f"ratelimit:ip:{ip_hash}"

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        try:
            key = self._get_client_key(request)
        except ValueError as e:
            return JSONResponse(
                status_code=400,
                content={"error": "invalid_api_key", "message": str(e)},
            )

        if not self.limiter.evaluate(key):
            logger.info(
                "Request rejected by admission policy",
                extra=get_log_context(
                    limiter=type(self.limiter.policy).__name__,
                    key=key,
                    decision="denied",
                    request_id=getattr(request.state, "request_id", None),
                ),
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": "Rate limit exceeded. Please try again later.",
                },
            )

        return await call_next(request)
