"""
User accounts: profiles, the follow graph, bookmarks and account removal.

A follow is a single ``Follow`` row, so "A follows B" and "B has follower A"
are the same fact and cannot disagree.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, delete, select, func

from inkwell.core.config import settings
from inkwell.core.errors import NotFoundError, ValidationFailedError
from inkwell.core.logging_config import get_logger
from inkwell.core.typing import col, utc_now
from inkwell.models.comment import Comment, CommentLike
from inkwell.models.post import Post, PostLike
from inkwell.models.user import Bookmark, Follow, User
from inkwell.schemas import ProfileUpdate, UserStats
from inkwell.services.comments import purge_comments, sync_comment_likes
from inkwell.services.listing import Page, PageParams, paginate, parse_sort, search_filter
from inkwell.services.posts import purge_posts, sync_post_likes

logger = get_logger(__name__)

SORTABLE_FIELDS = {
    "createdAt": User.created_at,
    "username": User.username,
    "lastLogin": User.last_login,
}


def get_user(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def get_user_by_username(session: Session, username: str) -> User:
    user = session.exec(select(User).where(col(User.username) == username)).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def update_profile(session: Session, user: User, data: ProfileUpdate) -> User:
    changes = data.model_dump(exclude_unset=True)
    if "avatar" in changes and not changes["avatar"]:
        changes["avatar"] = settings.DEFAULT_AVATAR
    for key, value in changes.items():
        setattr(user, key, value)
    user.updated_at = utc_now()
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def user_stats(session: Session, user: User) -> UserStats:
    post_totals = session.exec(
        select(
            func.count(col(Post.id)),
            func.coalesce(func.sum(Post.likes), 0),
            func.coalesce(func.sum(Post.views), 0),
        ).where(col(Post.author_id) == user.id)
    ).one()
    followers = session.exec(
        select(func.count()).select_from(Follow).where(col(Follow.following_id) == user.id)
    ).one()
    following = session.exec(
        select(func.count()).select_from(Follow).where(col(Follow.follower_id) == user.id)
    ).one()
    comments = session.exec(
        select(func.count()).select_from(Comment).where(col(Comment.author_id) == user.id)
    ).one()

    posts, likes, views = post_totals
    return UserStats(
        posts=posts,
        followers=followers,
        following=following,
        likes=likes,
        views=views,
        comments=comments,
    )


# ============== FOLLOW GRAPH ==============


def is_following(session: Session, follower_id: int, following_id: int) -> bool:
    edge = session.exec(
        select(Follow.id).where(col(Follow.follower_id) == follower_id, col(Follow.following_id) == following_id)
    ).first()
    return edge is not None


def followers_count(session: Session, user_id: int) -> int:
    return session.exec(select(func.count()).select_from(Follow).where(col(Follow.following_id) == user_id)).one()


def toggle_follow(session: Session, actor: User, target_id: int) -> Tuple[bool, int]:
    """Follow or unfollow ``target_id``. Returns ``(is_following, followers_count)``."""
    target = get_user(session, target_id)
    if target.id == actor.id:
        raise ValidationFailedError("You cannot follow yourself")

    actor_id, target_id = actor.id, target.id
    edge = session.exec(
        select(Follow).where(col(Follow.follower_id) == actor_id, col(Follow.following_id) == target_id)
    ).first()
    if edge:
        session.delete(edge)
        now_following = False
    else:
        session.add(Follow(follower_id=actor_id, following_id=target_id))
        now_following = True

    try:
        session.commit()
    except IntegrityError:
        # A concurrent request already added the same edge
        session.rollback()
        now_following = True

    logger.info("follow toggled", follower_id=actor_id, following_id=target_id, following=now_following)
    return now_following, followers_count(session, target_id)


def followers_of(session: Session, user_id: int) -> List[User]:
    get_user(session, user_id)
    statement = (
        select(User)
        .join(Follow, col(Follow.follower_id) == col(User.id))
        .where(col(Follow.following_id) == user_id)
        .order_by(col(Follow.created_at).desc(), col(Follow.id).desc())
    )
    return list(session.exec(statement).all())


def following_of(session: Session, user_id: int) -> List[User]:
    get_user(session, user_id)
    statement = (
        select(User)
        .join(Follow, col(Follow.following_id) == col(User.id))
        .where(col(Follow.follower_id) == user_id)
        .order_by(col(Follow.created_at).desc(), col(Follow.id).desc())
    )
    return list(session.exec(statement).all())


def bookmarks_of(session: Session, user: User) -> List[Post]:
    """The user's bookmarked posts, most recently bookmarked first."""
    statement = (
        select(Post)
        .join(Bookmark, col(Bookmark.post_id) == col(Post.id))
        .where(col(Bookmark.user_id) == user.id)
        .order_by(col(Bookmark.created_at).desc(), col(Bookmark.id).desc())
    )
    return list(session.exec(statement).all())


# ============== LISTING ==============


def search_users(session: Session, query: Optional[str], params: PageParams) -> Page[User]:
    if not query or not query.strip():
        raise ValidationFailedError("Search query is required")

    statement = select(User).where(
        col(User.is_active).is_(True),
        search_filter(query, User.username, User.bio),
    )
    return paginate(session, statement, params, [col(User.username).asc(), col(User.id).asc()])


def list_users(
    session: Session,
    params: PageParams,
    search: Optional[str] = None,
    sort: str = "-createdAt",
) -> Page[User]:
    order_by = parse_sort(sort, SORTABLE_FIELDS, User.id)
    statement = select(User)
    if search and search.strip():
        statement = statement.where(search_filter(search, User.username, User.email))
    return paginate(session, statement, params, order_by)


def post_counts(session: Session, user_ids: Sequence[int]) -> Dict[int, int]:
    if not user_ids:
        return {}
    rows = session.exec(
        select(Post.author_id, func.count()).where(col(Post.author_id).in_(user_ids)).group_by(Post.author_id)
    ).all()
    return {author_id: count for author_id, count in rows}


# ============== ADMIN ==============


def admin_count(session: Session) -> int:
    return session.exec(select(func.count()).select_from(User).where(col(User.role) == "admin")).one()


def set_role(session: Session, user: User, role: str) -> User:
    if user.role == role:
        return user
    if user.is_admin and admin_count(session) <= 1:
        raise ValidationFailedError("Cannot demote the last admin user")

    previous = user.role
    user.role = role
    user.updated_at = utc_now()
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("user role changed", user_id=user.id, previous_role=previous, role=role)
    return user


def delete_user(session: Session, user: User) -> Dict[str, int]:
    """
    Remove a user and everything they own.

    Posts go with their full cascade; the user's comments on other posts go
    with one level of replies. The user's likes are withdrawn and the
    affected counters rewritten. Returns per-kind removal counts.
    """
    if user.is_admin and admin_count(session) <= 1:
        raise ValidationFailedError("Cannot delete the last admin user")

    user_id = user.id

    liked_posts = list(session.exec(select(PostLike.post_id).where(col(PostLike.user_id) == user_id)).all())
    liked_comments = list(
        session.exec(select(CommentLike.comment_id).where(col(CommentLike.user_id) == user_id)).all()
    )
    session.execute(delete(PostLike).where(col(PostLike.user_id) == user_id))
    session.execute(delete(CommentLike).where(col(CommentLike.user_id) == user_id))

    post_ids = list(session.exec(select(Post.id).where(col(Post.author_id) == user_id)).all())
    posts_removed = purge_posts(session, post_ids)

    comment_ids = list(session.exec(select(Comment.id).where(col(Comment.author_id) == user_id)).all())
    comments_removed = purge_comments(session, comment_ids)

    sync_post_likes(session, liked_posts)
    sync_comment_likes(session, liked_comments)

    session.execute(
        delete(Follow).where(or_(col(Follow.follower_id) == user_id, col(Follow.following_id) == user_id))
    )
    session.execute(delete(Bookmark).where(col(Bookmark.user_id) == user_id))
    session.execute(delete(User).where(col(User.id) == user_id))
    session.commit()

    logger.info(
        "user deleted",
        user_id=user_id,
        posts_removed=posts_removed,
        comments_removed=comments_removed,
    )
    return {"posts": posts_removed, "comments": comments_removed}
