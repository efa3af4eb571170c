"""
Small helpers shared by models and queries.

SQLModel fields are annotated with plain Python types, but on the class they
are SQLAlchemy instrumented attributes. ``col()`` tells type checkers so, which
keeps ``.desc()``, ``.ilike()`` and ``.in_()`` calls free of ignore comments.
"""

from typing import TYPE_CHECKING, TypeVar
from datetime import datetime, timezone

if TYPE_CHECKING:
    from sqlalchemy.orm.attributes import InstrumentedAttribute

T = TypeVar("T")


def col(attr: T) -> "InstrumentedAttribute[T]":
    """Treat a SQLModel field as a column in query expressions (no-op at runtime)."""
    return attr  # type: ignore[return-value]


def utc_now() -> datetime:
    """Timezone-aware current UTC time, for ``default_factory``."""
    return datetime.now(timezone.utc)
