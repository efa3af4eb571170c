"""
Tests for rate limiting functionality.

Tests cover:
- Request counting per key
- Limit exceeded behavior and window expiry
- Failed login tracking and lockouts
- IP extraction from proxy headers
- enforce_rate_limit raising 429
"""

from unittest.mock import Mock, patch

import pytest
from fastapi import HTTPException, status

from inkwell.core.rate_limit import RateLimiter, enforce_rate_limit, get_client_ip, rate_limiter


def make_request(headers=None, host="10.0.0.1"):
    request = Mock()
    request.headers = headers or {}
    request.client = Mock(host=host) if host else None
    return request


class TestRequestCounting:
    """Tests for request counting and tracking."""

    def test_under_limit(self):
        limiter = RateLimiter()
        for _ in range(4):
            limiter.record_request("login:1.1.1.1")

        assert limiter.is_rate_limited("login:1.1.1.1", max_requests=5) == (False, 0)

    def test_at_limit(self):
        limiter = RateLimiter()
        for _ in range(5):
            limiter.record_request("login:1.1.1.1")

        is_limited, retry_after = limiter.is_rate_limited("login:1.1.1.1", max_requests=5, window_seconds=60)
        assert is_limited is True
        assert retry_after == 60

    def test_keys_are_independent(self):
        limiter = RateLimiter()
        for _ in range(5):
            limiter.record_request("login:1.1.1.1")

        assert limiter.is_rate_limited("login:2.2.2.2", max_requests=5)[0] is False
        assert limiter.is_rate_limited("register:1.1.1.1", max_requests=5)[0] is False

    def test_window_expiry(self):
        """Requests older than the window no longer count."""
        limiter = RateLimiter()
        with patch("inkwell.core.rate_limit.time.time", return_value=1000.0):
            for _ in range(5):
                limiter.record_request("k")

        with patch("inkwell.core.rate_limit.time.time", return_value=1061.0):
            assert limiter.is_rate_limited("k", max_requests=5, window_seconds=60)[0] is False

    def test_clear(self):
        limiter = RateLimiter()
        limiter.record_request("k")
        limiter.record_failed_login("k")
        limiter.clear()

        assert len(limiter._requests) == 0
        assert len(limiter._failed_attempts) == 0


class TestLockout:
    def test_locks_on_threshold(self):
        limiter = RateLimiter()
        for remaining in (4, 3, 2, 1):
            assert limiter.record_failed_login("k") == (False, remaining)

        assert limiter.record_failed_login("k") == (True, 300)
        assert limiter.is_rate_limited("k")[0] is True

    def test_lockout_expires(self):
        limiter = RateLimiter()
        with patch("inkwell.core.rate_limit.time.time", return_value=1000.0):
            for _ in range(5):
                limiter.record_failed_login("k")

        with patch("inkwell.core.rate_limit.time.time", return_value=1301.0):
            assert limiter.is_rate_limited("k")[0] is False
        assert limiter._failed_attempts["k"] == 0

    def test_success_resets_failures(self):
        limiter = RateLimiter()
        for _ in range(3):
            limiter.record_failed_login("k")
        limiter.record_successful_login("k")

        assert limiter.record_failed_login("k") == (False, 4)


class TestClientIp:
    def test_forwarded_for_first_hop(self):
        request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.2"})
        assert get_client_ip(request) == "203.0.113.7"

    def test_real_ip(self):
        assert get_client_ip(make_request({"X-Real-IP": "198.51.100.1"})) == "198.51.100.1"

    def test_socket_peer(self):
        assert get_client_ip(make_request()) == "10.0.0.1"

    def test_unknown(self):
        assert get_client_ip(make_request(host=None)) == "unknown"


class TestEnforceRateLimit:
    def test_raises_429_with_retry_after(self):
        request = make_request()
        for _ in range(2):
            enforce_rate_limit(request, "test", max_requests=2, window_seconds=30, message="Slow down")

        with pytest.raises(HTTPException) as exc:
            enforce_rate_limit(request, "test", max_requests=2, window_seconds=30, message="Slow down")

        assert exc.value.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert exc.value.detail == "Slow down"
        assert exc.value.headers == {"Retry-After": "30"}

    def test_returns_scoped_key(self):
        assert enforce_rate_limit(make_request(), "login", 5, 60, "x") == "login:10.0.0.1"
        assert "login:10.0.0.1" in rate_limiter._requests
