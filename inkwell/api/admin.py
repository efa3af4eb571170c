"""
Admin API endpoints: dashboard stats, user/post/comment moderation.
Every route requires the admin role.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select, func

from inkwell.api import deps
from inkwell.core.logging_config import get_logger
from inkwell.core.typing import col, utc_now
from inkwell.db import get_session
from inkwell.models.comment import Comment
from inkwell.models.post import Post
from inkwell.models.user import User
from inkwell.schemas import AdminStats, AdminUserOut, RoleUpdate, UserOut, envelope
from inkwell.services import comments as comment_service
from inkwell.services import posts as post_service
from inkwell.services import users as user_service
from inkwell.services.listing import PageParams, paginate, parse_sort, search_filter

router = APIRouter(dependencies=[Depends(deps.get_current_admin)])
logger = get_logger(__name__)


def _count(session: Session, model: Any, *where: Any) -> int:
    return session.exec(select(func.count()).select_from(model).where(*where)).one()


@router.get("/stats")
def get_stats(session: Session = Depends(get_session)) -> Any:
    month_start = utc_now().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    total_views = session.exec(select(func.coalesce(func.sum(Post.views), 0))).one()

    stats = AdminStats(
        total_users=_count(session, User),
        total_posts=_count(session, Post),
        total_comments=_count(session, Comment),
        total_views=total_views,
        new_users_this_month=_count(session, User, col(User.created_at) >= month_start),
        new_posts_this_month=_count(session, Post, col(Post.created_at) >= month_start),
        new_comments_this_month=_count(session, Comment, col(Comment.created_at) >= month_start),
    )
    return envelope(data=stats)


# ============== USERS ==============


@router.get("/users")
def list_users(
    params: PageParams = Depends(deps.get_page_params),
    search: Optional[str] = Query(default=None),
    sort: str = Query(default="-createdAt"),
    session: Session = Depends(get_session),
) -> Any:
    page = user_service.list_users(session, params, search=search, sort=sort)
    counts = user_service.post_counts(session, [u.id for u in page.items])
    data = [
        AdminUserOut.model_validate(u).model_copy(update={"posts": counts.get(u.id, 0)})
        for u in page.items
    ]
    return envelope(data=data, pagination=page.pagination())


@router.put("/users/{user_id}/role")
def update_user_role(
    user_id: int,
    role_in: RoleUpdate,
    session: Session = Depends(get_session),
    admin: User = Depends(deps.get_current_admin),
) -> Any:
    user = user_service.get_user(session, user_id)
    user = user_service.set_role(session, user, role_in.role)
    logger.info("admin changed role", admin_id=admin.id, user_id=user.id, role=user.role)
    return envelope(data=UserOut.model_validate(user), message="User role updated successfully")


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    session: Session = Depends(get_session),
    admin: User = Depends(deps.get_current_admin),
) -> Any:
    user = user_service.get_user(session, user_id)
    removed = user_service.delete_user(session, user)
    logger.info("admin deleted user", admin_id=admin.id, user_id=user_id, **removed)
    return envelope(data=removed, message="User deleted successfully")


# ============== POSTS ==============


POST_SORT_FIELDS = {
    **post_service.SORTABLE_FIELDS,
    "status": Post.status,
}


@router.get("/posts")
def list_posts(
    params: PageParams = Depends(deps.get_page_params),
    search: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    sort: str = Query(default="-createdAt"),
    session: Session = Depends(get_session),
    admin: User = Depends(deps.get_current_admin),
) -> Any:
    """Every post in every state."""
    order_by = parse_sort(sort, POST_SORT_FIELDS, Post.id)
    statement = select(Post)
    if status_filter:
        statement = statement.where(col(Post.status) == status_filter)
    if search and search.strip():
        statement = statement.where(search_filter(search, Post.title, Post.content))

    page = paginate(session, statement, params, order_by)
    return envelope(
        data=post_service.present_posts(session, page.items, admin),
        pagination=page.pagination(),
    )


@router.delete("/posts/{post_id}")
def delete_post(
    post_id: int,
    session: Session = Depends(get_session),
    admin: User = Depends(deps.get_current_admin),
) -> Any:
    post = post_service.get_post(session, post_id)
    post_service.delete_post(session, post, admin)
    return envelope(message="Post deleted successfully")


# ============== COMMENTS ==============


@router.get("/comments")
def list_comments(
    params: PageParams = Depends(deps.get_page_params),
    search: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    sort: str = Query(default="-createdAt"),
    session: Session = Depends(get_session),
) -> Any:
    """Every comment, including pending, spam and orphaned replies."""
    page = comment_service.list_comments(session, params, search=search, status=status_filter, sort=sort)
    return envelope(
        data=comment_service.present_comments(session, page.items),
        pagination=page.pagination(),
    )


@router.delete("/comments/{comment_id}")
def delete_comment(
    comment_id: int,
    session: Session = Depends(get_session),
    admin: User = Depends(deps.get_current_admin),
) -> Any:
    comment = comment_service.get_comment(session, comment_id)
    removed = comment_service.delete_comment(session, comment, admin)
    return envelope(data={"deleted": removed}, message="Comment deleted successfully")
