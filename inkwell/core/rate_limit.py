"""
In-memory rate limiter for the login and registration endpoints.

Sliding window per client IP plus a lockout after repeated failed logins.
State is per process; run behind a shared store if you scale out workers.
"""
import time
from collections import defaultdict
from typing import Dict, List, Tuple

from fastapi import HTTPException, Request, status


class RateLimiter:
    def __init__(self):
        # {ip: [timestamp, ...]}
        self._requests: Dict[str, List[float]] = defaultdict(list)
        # {ip: lockout_until_timestamp}
        self._lockouts: Dict[str, float] = {}
        # {ip: failed_attempts}
        self._failed_attempts: Dict[str, int] = defaultdict(int)

    def _cleanup_old_requests(self, key: str, window_seconds: int):
        cutoff = time.time() - window_seconds
        self._requests[key] = [ts for ts in self._requests[key] if ts > cutoff]

    def is_rate_limited(self, key: str, max_requests: int = 10, window_seconds: int = 60) -> Tuple[bool, int]:
        """
        Check whether ``key`` is over its budget.
        Returns (is_limited, retry_after_seconds).
        """
        now = time.time()

        if key in self._lockouts:
            lockout_until = self._lockouts[key]
            if now < lockout_until:
                return True, int(lockout_until - now)
            del self._lockouts[key]
            self._failed_attempts[key] = 0

        self._cleanup_old_requests(key, window_seconds)

        if len(self._requests[key]) >= max_requests:
            return True, window_seconds

        return False, 0

    def record_request(self, key: str):
        self._requests[key].append(time.time())

    def record_failed_login(self, key: str, lockout_threshold: int = 5, lockout_seconds: int = 300) -> Tuple[bool, int]:
        """
        Count a failed login. Returns (is_locked, seconds_or_attempts_remaining).
        """
        self._failed_attempts[key] += 1

        if self._failed_attempts[key] >= lockout_threshold:
            self._lockouts[key] = time.time() + lockout_seconds
            return True, lockout_seconds

        return False, lockout_threshold - self._failed_attempts[key]

    def record_successful_login(self, key: str):
        self._failed_attempts.pop(key, None)
        self._lockouts.pop(key, None)

    def clear(self):
        self._requests.clear()
        self._lockouts.clear()
        self._failed_attempts.clear()


rate_limiter = RateLimiter()


def get_client_ip(request: Request) -> str:
    """Client IP, honouring proxy headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


def enforce_rate_limit(request: Request, scope: str, max_requests: int, window_seconds: int, message: str) -> str:
    """Raise 429 when the caller is over budget for ``scope``; otherwise record the hit."""
    key = f"{scope}:{get_client_ip(request)}"
    is_limited, retry_after = rate_limiter.is_rate_limited(key, max_requests=max_requests, window_seconds=window_seconds)

    if is_limited:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=message,
            headers={"Retry-After": str(retry_after)},
        )

    rate_limiter.record_request(key)
    return key
