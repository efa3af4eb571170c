"""
Paginated list queries shared by the post, user, comment and admin listings.

Every list endpoint takes the same knobs:

    page    1-based page number (default 1)
    limit   page size (default DEFAULT_PAGE_LIMIT, capped at MAX_PAGE_LIMIT)
    search  optional free text, case-insensitive substring match OR-ed over
            a fixed set of text columns
    sort    "-createdAt" style key: leading "-" for descending

The total comes from a second COUNT query. Nothing ties the count to the
window, so a concurrent write can make them disagree by a row or two.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Mapping, Sequence, TypeVar

from sqlalchemy import or_
from sqlmodel import Session, select, func

from inkwell.core.config import settings
from inkwell.core.errors import ValidationFailedError
from inkwell.core.typing import col

T = TypeVar("T")

LIKE_ESCAPE = "\\"


@dataclass
class PageParams:
    page: int = 1
    limit: int = settings.DEFAULT_PAGE_LIMIT

    def __post_init__(self):
        errors = []
        if self.page < 1:
            errors.append({"field": "page", "message": "Page must be at least 1"})
        if self.limit < 1 or self.limit > settings.MAX_PAGE_LIMIT:
            errors.append({"field": "limit", "message": f"Limit must be between 1 and {settings.MAX_PAGE_LIMIT}"})
        if errors:
            raise ValidationFailedError("Validation failed", errors=errors)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class Page(Generic[T]):
    items: List[T]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def pagination(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }

    @classmethod
    def empty(cls, params: PageParams) -> "Page[T]":
        return cls(items=[], page=params.page, limit=params.limit, total=0)


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the search term matches literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )


def search_filter(term: str, *columns: Any):
    """Case-insensitive substring match of ``term`` against any of ``columns``."""
    pattern = f"%{escape_like(term.strip())}%"
    return or_(*(col(c).ilike(pattern, escape=LIKE_ESCAPE) for c in columns))


def parse_sort(sort: str, allowed: Mapping[str, Any], tiebreaker: Any) -> List[Any]:
    """
    Turn ``"-createdAt"`` into ORDER BY clauses.

    ``allowed`` maps the accepted field names to columns. ``tiebreaker`` (the
    primary key) follows in the same direction so pages never overlap.
    """
    descending = sort.startswith("-")
    key = sort.lstrip("-+")
    column = allowed.get(key)
    if column is None:
        raise ValidationFailedError(
            "Validation failed",
            errors=[{"field": "sort", "message": f"Cannot sort by '{key}'. Allowed: {', '.join(sorted(allowed))}"}],
        )

    if descending:
        return [col(column).desc(), col(tiebreaker).desc()]
    return [col(column).asc(), col(tiebreaker).asc()]


def paginate(session: Session, statement: Any, params: PageParams, order_by: Sequence[Any]) -> Page:
    """Run ``statement`` windowed to ``params`` plus a COUNT over the same filter."""
    count_query = select(func.count()).select_from(statement.order_by(None).subquery())
    total = session.exec(count_query).one()

    items = session.exec(statement.order_by(*order_by).offset(params.skip).limit(params.limit)).all()
    return Page(items=list(items), page=params.page, limit=params.limit, total=total)
