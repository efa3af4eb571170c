"""
Request context for log correlation and error reports.

Holds the request id and the authenticated user id in contextvars so they can
be attached to captured exceptions. Handlers never read the user from here:
the authenticated user is passed into services explicitly.
"""

from contextvars import ContextVar
from typing import Optional
import uuid

__all__ = [
    "generate_request_id",
    "set_request_id",
    "get_request_id",
    "set_user_id",
    "get_user_id",
    "clear_context",
    "get_context_dict",
]

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_user_id: ContextVar[Optional[int]] = ContextVar("user_id", default=None)


def generate_request_id() -> str:
    """New request id of the form ``req_<16 hex chars>``."""
    return f"req_{uuid.uuid4().hex[:16]}"


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id.get()


def set_user_id(user_id: Optional[int]) -> None:
    """Record the authenticated user for error reports."""
    _user_id.set(user_id)


def get_user_id() -> Optional[int]:
    return _user_id.get()


def clear_context() -> None:
    """Reset all context at the end of a request."""
    _request_id.set(None)
    _user_id.set(None)


def get_context_dict() -> dict:
    return {
        "request_id": get_request_id(),
        "user_id": get_user_id(),
    }
