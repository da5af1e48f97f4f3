"""Tests for the RateLimiter facade and the rate limiting middleware."""

import hashlib
from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from admission.app.core.clock import ManualClock
from admission.app.core.config import Settings
from admission.app.exceptions import InvalidConfiguration, UnknownAlgorithmError
from admission.app.limiters import (
    DedupWindowCache,
    RateLimiter,
    SlidingWindowCounter,
    TokenBucketTable,
    build_policy,
)
from admission.app.middleware.rate_limit import RateLimitMiddleware


@pytest.fixture
def config():
    return Settings(
        _env_file=None,
        dedup_capacity=2,
        dedup_threshold_seconds=2,
        sliding_window_limit=2,
        token_bucket_capacity=3,
        token_bucket_refill_rate=1,
    )


class TestRateLimiterPolicySelection:
    """Tests for policy selection logic."""

    def test_uses_default_algorithm(self, config):
        limiter = RateLimiter(settings=config)
        assert limiter.algorithm == "sliding_window"
        assert isinstance(limiter.policy, SlidingWindowCounter)

    @pytest.mark.parametrize(
        ("algorithm", "policy_type"),
        [
            ("dedup", DedupWindowCache),
            ("sliding_window", SlidingWindowCounter),
            ("token_bucket", TokenBucketTable),
        ],
    )
    def test_explicit_algorithm(self, config, algorithm, policy_type):
        limiter = RateLimiter(algorithm=algorithm, settings=config)
        assert isinstance(limiter.policy, policy_type)

    def test_settings_flow_into_policy(self, config):
        policy = build_policy("dedup", config)
        assert policy.capacity == 2
        assert policy.threshold_seconds == 2

    def test_unknown_algorithm(self, config):
        with pytest.raises(UnknownAlgorithmError) as exc_info:
            RateLimiter(algorithm="leaky_bucket", settings=config)
        assert exc_info.value.algorithm == "leaky_bucket"

    def test_invalid_values_bypassing_validation(self):
        config = Settings.model_construct(sliding_window_limit=0)
        with pytest.raises(InvalidConfiguration):
            build_policy("sliding_window", config)

    def test_clock_is_shared_with_policy(self, config):
        clock = ManualClock(start_ms=0)
        limiter = RateLimiter(algorithm="token_bucket", settings=config, clock=clock)
        assert limiter.policy.clock is clock

        assert [limiter.evaluate("k") for _ in range(4)] == [True, True, True, False]
        clock.advance_seconds(1)
        assert limiter.evaluate("k") is True

    def test_cleanup_delegates(self, config):
        limiter = RateLimiter(algorithm="dedup", settings=config, clock=ManualClock(0))
        limiter.evaluate("msg", now=0)
        limiter.evaluate("other", now=5000)
        assert limiter.cleanup(now=5000) == 1


class TestRateLimitMiddlewareKeys:
    """Tests for client key derivation."""

    @pytest.fixture
    def middleware(self, config):
        return RateLimitMiddleware(Mock(), limiter=RateLimiter(settings=config))

    def test_get_client_key_from_api_key(self, middleware):
        request = Mock()
        request.headers = {"Authorization": "Bearer test_api_key_123"}
        request.client.host = "127.0.0.1"

        key = middleware._get_client_key(request)
        assert key.startswith("ratelimit:apikey:")
        assert "test_api_key_123" not in key

    def test_get_client_key_from_ip(self, middleware):
        request = Mock()
        request.headers = {}
        request.client.host = "192.168.1.1"

        key = middleware._get_client_key(request)
        expected_hash = hashlib.sha256("192.168.1.1".encode()).hexdigest()[:32]
        assert key == f"ratelimit:ip:{expected_hash}"

    def test_get_client_key_from_x_forwarded_for(self, middleware):
        request = Mock()
        request.headers = {"X-Forwarded-For": "10.0.0.1, 192.168.1.1"}
        request.client.host = "127.0.0.1"

        key = middleware._get_client_key(request)
        expected_hash = hashlib.sha256("10.0.0.1".encode()).hexdigest()[:32]
        assert key == f"ratelimit:ip:{expected_hash}"

    def test_get_client_key_without_client(self, middleware):
        request = Mock()
        request.headers = {}
        request.client = None

        key = middleware._get_client_key(request)
        expected_hash = hashlib.sha256("unknown".encode()).hexdigest()[:32]
        assert key == f"ratelimit:ip:{expected_hash}"

    def test_overlong_api_key_rejected(self, middleware):
        request = Mock()
        request.headers = {"Authorization": "Bearer " + "x" * 513}

        with pytest.raises(ValueError):
            middleware._get_client_key(request)


class TestRateLimitMiddleware:
    """End-to-end tests through a FastAPI app."""

    @pytest.fixture
    def client(self, config):
        limiter = RateLimiter(
            algorithm="sliding_window", settings=config, clock=ManualClock(0)
        )
        app = FastAPI()
        app.add_middleware(RateLimitMiddleware, limiter=limiter)

        @app.get("/ping")
        async def ping():
            return {"ok": True}

        return TestClient(app)

    def test_requests_over_limit_get_429(self, client):
        assert client.get("/ping").status_code == 200
        assert client.get("/ping").status_code == 200

        response = client.get("/ping")
        assert response.status_code == 429
        assert response.json()["error"] == "rate_limit_exceeded"

    def test_api_keys_limited_independently(self, client):
        first = {"Authorization": "Bearer key-one"}
        second = {"Authorization": "Bearer key-two"}

        for _ in range(2):
            assert client.get("/ping", headers=first).status_code == 200
        assert client.get("/ping", headers=first).status_code == 429
        assert client.get("/ping", headers=second).status_code == 200

    def test_overlong_api_key_gets_400(self, client):
        headers = {"Authorization": "Bearer " + "x" * 600}
        response = client.get("/ping", headers=headers)
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_api_key"
