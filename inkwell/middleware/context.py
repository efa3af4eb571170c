"""
Request context middleware for log correlation.

Every request gets a request id, taken from a valid ``X-Request-ID`` header
or generated, bound into structlog's contextvars so each log line emitted
while handling it carries ``request_id``, ``path`` and ``method``. The id is
echoed back in the ``X-Request-ID`` response header.
"""

import re
import time
from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from inkwell.core.context import clear_context, generate_request_id, set_request_id

logger = structlog.get_logger(__name__)

# Request ID validation to prevent log injection attacks
MAX_ID_LENGTH = 64
SAFE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_\-]+$")

# Requests slower than this are logged at warning level
SLOW_REQUEST_THRESHOLD_MS = 500.0


def _validate_id(value: Optional[str]) -> Optional[str]:
    """Return ``value`` if it is a safe request id, else None."""
    if not value:
        return None
    if len(value) > MAX_ID_LENGTH:
        return None
    if not SAFE_ID_PATTERN.match(value):
        return None
    return value


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = _validate_id(request.headers.get("X-Request-ID")) or generate_request_id()
        set_request_id(request_id)
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=request.url.path,
            method=request.method,
        )

        start_time = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            if not request.url.path.startswith("/health"):
                log = logger.warning if duration_ms >= SLOW_REQUEST_THRESHOLD_MS else logger.info
                log("request completed", status_code=status_code, duration_ms=round(duration_ms, 1))

            clear_context()
            structlog.contextvars.clear_contextvars()
