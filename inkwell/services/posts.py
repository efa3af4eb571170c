"""
Post Entity Manager.

Owns every write to ``post`` and the tables hanging off it (tags, likes,
bookmarks, comments). Derived fields are computed here, at the call sites that
change their inputs:

    title changed   -> slug re-derived (excluding the post itself)
    content changed -> reading_time re-derived

Like counters are never incremented in place. After each toggle the counter is
rewritten from the size of the like set in the same commit, so ``likes`` and
``likedBy`` cannot drift apart.
"""

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, delete, select, func

from inkwell.core.config import settings
from inkwell.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationFailedError
from inkwell.core.logging_config import get_logger
from inkwell.core.typing import col, utc_now
from inkwell.models.comment import Comment, CommentLike
from inkwell.models.post import POST_STATUSES, Post, PostLike, PostTag
from inkwell.models.user import Bookmark, User
from inkwell.schemas import AuthorOut, PostCreate, PostOut, PostUpdate
from inkwell.services.listing import Page, PageParams, paginate, parse_sort, search_filter
from inkwell.services.reading_time import estimate_reading_time
from inkwell.services.slugs import generate_unique_slug

logger = get_logger(__name__)

SORTABLE_FIELDS = {
    "createdAt": Post.created_at,
    "updatedAt": Post.updated_at,
    "title": Post.title,
    "likes": Post.likes,
    "views": Post.views,
    "readingTime": Post.reading_time,
}

# Non-nullable columns: an explicit null in an update means "leave unchanged"
REQUIRED_FIELDS = ("title", "content", "status", "featured", "comments_enabled")


def can_manage(post: Post, actor: User) -> bool:
    return post.author_id == actor.id or actor.is_admin


def is_visible_to(post: Post, viewer: Optional[User]) -> bool:
    """Published posts are public; drafts and archived posts only to owner or admin."""
    if post.status == "published":
        return True
    return viewer is not None and can_manage(post, viewer)


def get_post(session: Session, post_id: int) -> Post:
    post = session.get(Post, post_id)
    if not post:
        raise NotFoundError("Post not found")
    return post


def _replace_tags(session: Session, post_id: int, tags: Iterable[str]) -> None:
    session.execute(delete(PostTag).where(col(PostTag.post_id) == post_id))
    for name in tags:
        session.add(PostTag(post_id=post_id, name=name))


def sync_post_likes(session: Session, post_ids: Iterable[int]) -> None:
    """Rewrite ``post.likes`` from the like set for each post. Does not commit."""
    for post_id in set(post_ids):
        like_count = select(func.count()).select_from(PostLike).where(col(PostLike.post_id) == post_id)
        session.execute(update(Post).where(col(Post.id) == post_id).values(likes=like_count.scalar_subquery()))


# ============== CREATE / UPDATE / DELETE ==============


def create_post(session: Session, author: User, data: PostCreate) -> Post:
    """
    Create a post, deriving its slug and reading time.

    The slug lookup and the insert are not atomic; if another request took the
    slug in between, the unique index rejects the insert and the slug is
    resolved again, up to ``SLUG_MAX_ATTEMPTS`` times.
    """
    author_id = author.id
    reading_time = estimate_reading_time(data.content)

    for attempt in range(1, settings.SLUG_MAX_ATTEMPTS + 1):
        slug = generate_unique_slug(session, data.title)
        post = Post(
            title=data.title,
            slug=slug,
            excerpt=data.excerpt,
            content=data.content,
            image=data.image or settings.DEFAULT_POST_IMAGE,
            author_id=author_id,
            status=data.status,
            reading_time=reading_time,
            featured=data.featured,
            comments_enabled=data.comments_enabled,
        )
        session.add(post)
        try:
            session.flush()
        except IntegrityError:
            session.rollback()
            logger.warning("slug collision on create", slug=slug, attempt=attempt)
            continue

        _replace_tags(session, post.id, data.tags)
        session.commit()
        session.refresh(post)
        logger.info("post created", post_id=post.id, slug=post.slug, author_id=author_id, status=post.status)
        return post

    raise ConflictError("Could not assign a unique slug, please try again")


def update_post(session: Session, post: Post, actor: User, data: PostUpdate) -> Post:
    if not can_manage(post, actor):
        raise PermissionDeniedError("Not authorized to update this post")

    changes = data.model_dump(exclude_unset=True)
    tags = changes.pop("tags", None)
    if "image" in changes and not changes["image"]:
        changes["image"] = settings.DEFAULT_POST_IMAGE
    for key in REQUIRED_FIELDS:
        if key in changes and changes[key] is None:
            del changes[key]

    # Derived fields only move when their source actually changed
    title_changed = "title" in changes and changes["title"] != post.title
    if "content" in changes and changes["content"] != post.content:
        changes["reading_time"] = estimate_reading_time(changes["content"])

    post_id = post.id
    for attempt in range(1, settings.SLUG_MAX_ATTEMPTS + 1):
        for key, value in changes.items():
            setattr(post, key, value)
        if title_changed:
            post.slug = generate_unique_slug(session, post.title, exclude_post_id=post_id)
        post.updated_at = utc_now()
        session.add(post)
        try:
            session.flush()
        except IntegrityError:
            session.rollback()
            logger.warning("slug collision on update", post_id=post_id, attempt=attempt)
            continue

        if tags is not None:
            _replace_tags(session, post_id, tags)
        session.commit()
        session.refresh(post)
        logger.info(
            "post updated",
            post_id=post_id,
            fields=sorted(set(changes) | ({"tags"} if tags is not None else set())),
            slug_changed=title_changed,
        )
        return post

    raise ConflictError("Could not assign a unique slug, please try again")


def purge_posts(session: Session, post_ids: Sequence[int]) -> int:
    """
    Remove posts and everything that references them: comment likes,
    comments, post likes, tags and every user's bookmark. Does not commit.
    """
    if not post_ids:
        return 0
    comment_ids = select(Comment.id).where(col(Comment.post_id).in_(post_ids))
    session.execute(delete(CommentLike).where(col(CommentLike.comment_id).in_(comment_ids)))
    session.execute(delete(Comment).where(col(Comment.post_id).in_(post_ids)))
    session.execute(delete(PostLike).where(col(PostLike.post_id).in_(post_ids)))
    session.execute(delete(PostTag).where(col(PostTag.post_id).in_(post_ids)))
    session.execute(delete(Bookmark).where(col(Bookmark.post_id).in_(post_ids)))
    result = session.execute(delete(Post).where(col(Post.id).in_(post_ids)))
    return result.rowcount


def delete_post(session: Session, post: Post, actor: User) -> None:
    if not can_manage(post, actor):
        raise PermissionDeniedError("Not authorized to delete this post")

    post_id = post.id
    comments = session.exec(select(func.count()).select_from(Comment).where(col(Comment.post_id) == post_id)).one()
    purge_posts(session, [post_id])
    session.commit()
    logger.info("post deleted", post_id=post_id, actor_id=actor.id, comments_removed=comments)


# ============== READ ==============


def get_post_by_slug(session: Session, slug: str, viewer: Optional[User] = None) -> Post:
    """Fetch a post for display and count the view."""
    post = session.exec(select(Post).where(col(Post.slug) == slug)).first()
    if not post or not is_visible_to(post, viewer):
        raise NotFoundError("Post not found")

    session.execute(update(Post).where(col(Post.id) == post.id).values(views=col(Post.views) + 1))
    session.commit()
    session.refresh(post)
    return post


def list_posts(
    session: Session,
    params: PageParams,
    viewer: Optional[User] = None,
    search: Optional[str] = None,
    tag: Optional[str] = None,
    author: Optional[str] = None,
    status: str = "published",
    sort: str = "-createdAt",
) -> Page[Post]:
    if status not in POST_STATUSES:
        raise ValidationFailedError(
            "Validation failed",
            errors=[{"field": "status", "message": f"Status must be one of: {', '.join(POST_STATUSES)}"}],
        )
    order_by = parse_sort(sort, SORTABLE_FIELDS, Post.id)

    statement = select(Post).where(col(Post.status) == status)

    if status != "published":
        if viewer is None:
            return Page.empty(params)
        if not viewer.is_admin:
            statement = statement.where(col(Post.author_id) == viewer.id)

    if search and search.strip():
        statement = statement.where(search_filter(search, Post.title, Post.excerpt, Post.content))

    if tag and tag.strip():
        tagged = select(PostTag.post_id).where(col(PostTag.name) == tag.strip().lower())
        statement = statement.where(col(Post.id).in_(tagged))

    if author:
        author_id = session.exec(select(User.id).where(col(User.username) == author)).first()
        if author_id is None:
            return Page.empty(params)
        statement = statement.where(col(Post.author_id) == author_id)

    return paginate(session, statement, params, order_by)


def list_user_posts(session: Session, username: str) -> List[Post]:
    user = session.exec(select(User).where(col(User.username) == username)).first()
    if not user:
        raise NotFoundError("User not found")

    statement = (
        select(Post)
        .where(col(Post.author_id) == user.id, col(Post.status) == "published")
        .order_by(col(Post.created_at).desc(), col(Post.id).desc())
    )
    return list(session.exec(statement).all())


# ============== LIKES / BOOKMARKS ==============


def toggle_like(session: Session, post: Post, user: User) -> Tuple[bool, int]:
    """Flip ``user`` in the post's like set. Returns ``(is_liked, likes)``."""
    existing = session.exec(
        select(PostLike).where(col(PostLike.post_id) == post.id, col(PostLike.user_id) == user.id)
    ).first()

    if existing:
        session.delete(existing)
        is_liked = False
    else:
        session.add(PostLike(post_id=post.id, user_id=user.id))
        is_liked = True

    try:
        session.flush()
    except IntegrityError:
        # The same user liked concurrently; the set already holds the pair
        session.rollback()
        is_liked = True

    sync_post_likes(session, [post.id])
    session.commit()
    session.refresh(post)
    return is_liked, post.likes


def toggle_bookmark(session: Session, post: Post, user: User) -> bool:
    """Flip the post in ``user``'s bookmarks. Returns the new state."""
    existing = session.exec(
        select(Bookmark).where(col(Bookmark.user_id) == user.id, col(Bookmark.post_id) == post.id)
    ).first()

    if existing:
        session.delete(existing)
        session.commit()
        return False

    session.add(Bookmark(user_id=user.id, post_id=post.id))
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
    return True


# ============== PRESENTATION ==============


def present_posts(session: Session, posts: Sequence[Post], viewer: Optional[User] = None) -> List[PostOut]:
    """
    Attach author, tags, like set and comment count to each post.

    Related rows are loaded with one query per relation for the whole batch.
    ``isLiked`` / ``isBookmarked`` are only filled in for a signed-in viewer.
    """
    if not posts:
        return []

    post_ids = [p.id for p in posts]
    author_ids = {p.author_id for p in posts}

    authors = {u.id: u for u in session.exec(select(User).where(col(User.id).in_(author_ids))).all()}

    tags: Dict[int, List[str]] = defaultdict(list)
    for row in session.exec(select(PostTag).where(col(PostTag.post_id).in_(post_ids)).order_by(col(PostTag.id))):
        tags[row.post_id].append(row.name)

    liked_by: Dict[int, List[int]] = defaultdict(list)
    for row in session.exec(select(PostLike).where(col(PostLike.post_id).in_(post_ids)).order_by(col(PostLike.id))):
        liked_by[row.post_id].append(row.user_id)

    comment_counts: Dict[int, int] = {
        post_id: count
        for post_id, count in session.exec(
            select(Comment.post_id, func.count()).where(col(Comment.post_id).in_(post_ids)).group_by(Comment.post_id)
        ).all()
    }

    bookmarked: set = set()
    if viewer is not None:
        bookmarked = set(
            session.exec(
                select(Bookmark.post_id).where(col(Bookmark.user_id) == viewer.id, col(Bookmark.post_id).in_(post_ids))
            ).all()
        )

    presented = []
    for post in posts:
        author = authors.get(post.author_id)
        extra: Dict[str, Any] = {
            "author": AuthorOut.model_validate(author) if author else None,
            "tags": tags.get(post.id, []),
            "liked_by": liked_by.get(post.id, []),
            "comment_count": comment_counts.get(post.id, 0),
        }
        if viewer is not None:
            extra["is_liked"] = viewer.id in liked_by.get(post.id, [])
            extra["is_bookmarked"] = post.id in bookmarked
        presented.append(PostOut.model_validate(post).model_copy(update=extra))
    return presented


def present_post(session: Session, post: Post, viewer: Optional[User] = None) -> PostOut:
    return present_posts(session, [post], viewer)[0]
