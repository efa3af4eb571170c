"""
Error taxonomy and centralized error responses.

Services raise ``InkwellError`` subclasses for expected conditions (bad input,
missing entity, forbidden action, conflict). The handlers registered by
``register_exception_handlers`` render every failure in the same envelope:

    {"success": false, "message": "...", "errors": [...]}

Unexpected exceptions are captured (structlog always, Sentry when a DSN is
configured) and answered with a generic 500 so internals never leak.

Usage:
    raise NotFoundError("Post not found")

    with ErrorHandler("seed_posts", reraise=True):
        seed(...)
"""

from typing import Optional, Any, Dict, List
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from inkwell.core.context import get_request_id, get_user_id, get_context_dict

logger = structlog.get_logger(__name__)

__all__ = [
    "InkwellError",
    "ValidationFailedError",
    "NotAuthenticatedError",
    "PermissionDeniedError",
    "NotFoundError",
    "ConflictError",
    "error_body",
    "register_exception_handlers",
    "init_sentry",
    "capture_exception",
    "ErrorHandler",
]

_sentry_initialized: bool = False


# ============== ERROR TAXONOMY ==============


class InkwellError(Exception):
    """Base class for expected, user-facing failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.errors = errors
        if status_code is not None:
            self.status_code = status_code


class ValidationFailedError(InkwellError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotAuthenticatedError(InkwellError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDeniedError(InkwellError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(InkwellError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(InkwellError):
    status_code = status.HTTP_409_CONFLICT


def error_body(message: str, errors: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


# ============== HANDLERS ==============


def _validation_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    errors = []
    for err in exc.errors():
        # loc is ("body", "title") / ("query", "page"); drop the source segment
        loc = [str(part) for part in err.get("loc", ())[1:]]
        errors.append({"field": ".".join(loc) or None, "message": err.get("msg", "Invalid value")})
    return errors


async def inkwell_error_handler(request: Request, exc: InkwellError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.errors))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation failed", _validation_errors(exc)),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    capture_exception(exc, context={"path": request.url.path, "method": request.method})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InkwellError, inkwell_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)


# ============== SENTRY ==============


def init_sentry(
    dsn: str,
    environment: str = "production",
    traces_sample_rate: float = 0.1,
) -> bool:
    """
    Initialize Sentry error tracking.

    Returns True when Sentry is active. An empty DSN disables it; the
    structlog side of ``capture_exception`` keeps working either way.
    """
    global _sentry_initialized

    if not dsn:
        logger.info("Sentry disabled (no DSN provided)")
        return False

    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            traces_sample_rate=traces_sample_rate,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
            ],
            before_send=_before_send,
        )
    except Exception as e:
        logger.error("Failed to initialize Sentry", error=str(e))
        return False

    _sentry_initialized = True
    logger.info("Sentry initialized", environment=environment, traces_sample_rate=traces_sample_rate)
    return True


def _before_send(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Tag Sentry events with the request and user ids."""
    if "/health" in event.get("request", {}).get("url", ""):
        return None

    request_id = get_request_id()
    if request_id:
        event.setdefault("tags", {})["request_id"] = request_id

    user_id = get_user_id()
    if user_id:
        event.setdefault("user", {})["id"] = str(user_id)

    return event


def capture_exception(
    exc: BaseException,
    context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """
    Log an exception with request context and forward it to Sentry if enabled.

    Returns the Sentry event id, or None when nothing was sent.
    """
    enriched_context = {
        **get_context_dict(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "error_type": type(exc).__name__,
        **(context or {}),
    }

    logger.error("Exception captured", exc_info=exc, **enriched_context)

    if _sentry_initialized:
        import sentry_sdk

        with sentry_sdk.push_scope() as scope:
            for key, value in enriched_context.items():
                if value is not None:
                    scope.set_extra(key, value)
            return sentry_sdk.capture_exception(exc)

    return None


class ErrorHandler:
    """
    Context manager that captures an exception for an operation.

    Suppresses the exception unless ``reraise=True``. Used by the maintenance
    scripts, where one bad record must not abort the whole run.

        with ErrorHandler("seed_post", context={"title": title}):
            create_post(...)
    """

    def __init__(
        self,
        operation: str,
        context: Optional[Dict[str, Any]] = None,
        reraise: bool = False,
    ):
        self.operation = operation
        self.context = context or {}
        self.reraise = reraise
        self.event_id: Optional[str] = None

    def __enter__(self) -> "ErrorHandler":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_val is None:
            return False

        self.event_id = capture_exception(
            exc_val,
            context={"operation": self.operation, **self.context},
        )
        return not self.reraise
