"""
Comment Thread Model.

Comments are stored flat; a reply only knows its parent. Thread views are
rebuilt per request:

    1. a page of approved top-level comments, newest first
    2. their approved replies, newest first, one level per query
       (breadth-first by parent id, ``depth`` levels deep)
    3. ``build_tree`` folds the flat rows into nested ``replies`` lists

Deleting a comment removes its direct replies only. Deeper replies are left
in place with a dangling ``parent_id``; since step 2 only walks down from
live parents, such orphans never show up in a thread view. The admin comment
list still shows them.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, delete, select, func

from inkwell.core.config import settings
from inkwell.core.errors import (
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from inkwell.core.logging_config import get_logger
from inkwell.core.typing import col, utc_now
from inkwell.models.comment import COMMENT_STATUSES, Comment, CommentLike
from inkwell.models.post import Post
from inkwell.models.user import User
from inkwell.schemas import AdminCommentOut, AuthorOut, CommentOut
from inkwell.services.listing import Page, PageParams, paginate, parse_sort, search_filter
from inkwell.services.posts import is_visible_to

logger = get_logger(__name__)

NEWEST_FIRST = (col(Comment.created_at).desc(), col(Comment.id).desc())

SORTABLE_FIELDS = {
    "createdAt": Comment.created_at,
    "likes": Comment.likes,
}


def get_comment(session: Session, comment_id: int) -> Comment:
    comment = session.get(Comment, comment_id)
    if not comment:
        raise NotFoundError("Comment not found")
    return comment


def sync_comment_likes(session: Session, comment_ids: Iterable[int]) -> None:
    """Rewrite ``comment.likes`` from the like set for each comment. Does not commit."""
    for comment_id in set(comment_ids):
        like_count = select(func.count()).select_from(CommentLike).where(col(CommentLike.comment_id) == comment_id)
        session.execute(
            update(Comment).where(col(Comment.id) == comment_id).values(likes=like_count.scalar_subquery())
        )


# ============== THREAD VIEW ==============


def build_tree(
    roots: Sequence[Comment],
    replies: Sequence[Comment],
    authors: Optional[Mapping[int, User]] = None,
    liked_by: Optional[Mapping[int, List[int]]] = None,
) -> List[CommentOut]:
    """
    Fold flat comment rows into nested ``CommentOut`` trees.

    ``replies`` may hold several levels; each is attached under the comment
    whose id equals its ``parent_id``, keeping the order it arrived in. Replies
    whose parent is not in the batch are dropped.
    """
    authors = authors or {}
    liked_by = liked_by or {}

    children: Dict[int, List[Comment]] = defaultdict(list)
    for reply in replies:
        if reply.parent_id is not None:
            children[reply.parent_id].append(reply)

    def fold(comment: Comment, seen: frozenset) -> CommentOut:
        author = authors.get(comment.author_id)
        nested = [fold(child, seen | {child.id}) for child in children.get(comment.id, []) if child.id not in seen]
        return CommentOut.model_validate(comment).model_copy(
            update={
                "author": AuthorOut.model_validate(author) if author else None,
                "liked_by": list(liked_by.get(comment.id, [])),
                "replies": nested,
            }
        )

    return [fold(root, frozenset({root.id})) for root in roots]


def _load_authors(session: Session, comments: Iterable[Comment]) -> Dict[int, User]:
    author_ids = {c.author_id for c in comments}
    if not author_ids:
        return {}
    return {u.id: u for u in session.exec(select(User).where(col(User.id).in_(author_ids))).all()}


def _load_likes(session: Session, comment_ids: Sequence[int]) -> Dict[int, List[int]]:
    liked_by: Dict[int, List[int]] = defaultdict(list)
    if not comment_ids:
        return liked_by
    rows = session.exec(
        select(CommentLike).where(col(CommentLike.comment_id).in_(comment_ids)).order_by(col(CommentLike.id))
    )
    for row in rows:
        liked_by[row.comment_id].append(row.user_id)
    return liked_by


def list_thread(
    session: Session,
    post_id: int,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_LIMIT,
    depth: int = 1,
    viewer: Optional[User] = None,
) -> Page[CommentOut]:
    """
    Page of approved top-level comments for a post, each with its approved
    replies expanded ``depth`` levels down (1 = direct replies only).

    Comments on drafts and archived posts are only shown to the owner or an
    admin, like the post itself.
    """
    if depth < 1 or depth > settings.MAX_THREAD_DEPTH:
        raise ValidationFailedError(
            "Validation failed",
            errors=[{"field": "depth", "message": f"Depth must be between 1 and {settings.MAX_THREAD_DEPTH}"}],
        )
    params = PageParams(page=page, limit=limit)

    post = session.get(Post, post_id)
    if not post or not is_visible_to(post, viewer):
        raise NotFoundError("Post not found")

    statement = select(Comment).where(
        col(Comment.post_id) == post_id,
        col(Comment.parent_id).is_(None),
        col(Comment.status) == "approved",
    )
    roots_page = paginate(session, statement, params, NEWEST_FIRST)
    roots: List[Comment] = roots_page.items

    replies: List[Comment] = []
    frontier = [c.id for c in roots]
    for _ in range(depth):
        if not frontier:
            break
        level = session.exec(
            select(Comment)
            .where(col(Comment.parent_id).in_(frontier), col(Comment.status) == "approved")
            .order_by(*NEWEST_FIRST)
        ).all()
        replies.extend(level)
        frontier = [c.id for c in level]

    everything = list(roots) + replies
    tree = build_tree(
        roots,
        replies,
        authors=_load_authors(session, everything),
        liked_by=_load_likes(session, [c.id for c in everything]),
    )
    return Page(items=tree, page=roots_page.page, limit=roots_page.limit, total=roots_page.total)


# ============== WRITES ==============


def create_comment(
    session: Session,
    author: User,
    post_id: int,
    content: str,
    parent_id: Optional[int] = None,
) -> Comment:
    post = session.get(Post, post_id)
    if not post or not is_visible_to(post, author):
        raise NotFoundError("Post not found")
    if not post.comments_enabled:
        raise ValidationFailedError("Comments are disabled for this post")

    if parent_id is not None:
        parent = session.get(Comment, parent_id)
        if not parent:
            raise NotFoundError("Parent comment not found")
        if parent.post_id != post_id:
            raise ValidationFailedError("Parent comment belongs to a different post")

    comment = Comment(content=content, author_id=author.id, post_id=post_id, parent_id=parent_id)
    session.add(comment)
    session.commit()
    session.refresh(comment)
    logger.info("comment created", comment_id=comment.id, post_id=post_id, parent_id=parent_id, author_id=author.id)
    return comment


def update_comment(session: Session, comment: Comment, actor: User, content: str) -> Comment:
    if comment.author_id != actor.id:
        raise PermissionDeniedError("Not authorized to update this comment")

    now = utc_now()
    comment.content = content
    comment.is_edited = True
    comment.edited_at = now
    comment.updated_at = now
    session.add(comment)
    session.commit()
    session.refresh(comment)
    return comment


def purge_comments(session: Session, comment_ids: Sequence[int]) -> int:
    """
    Delete the given comments and their direct replies (one level only),
    together with their likes. Does not commit. Returns comments removed.
    """
    if not comment_ids:
        return 0
    doomed = select(Comment.id).where(
        or_(col(Comment.id).in_(comment_ids), col(Comment.parent_id).in_(comment_ids))
    )
    doomed_ids = list(session.exec(doomed).all())
    session.execute(delete(CommentLike).where(col(CommentLike.comment_id).in_(doomed_ids)))
    session.execute(delete(Comment).where(col(Comment.id).in_(doomed_ids)))
    return len(doomed_ids)


def delete_comment(session: Session, comment: Comment, actor: User) -> int:
    """Delete a comment and its direct replies. Returns the number of comments removed."""
    if comment.author_id != actor.id and not actor.is_admin:
        raise PermissionDeniedError("Not authorized to delete this comment")

    comment_id = comment.id
    removed = purge_comments(session, [comment_id])
    session.commit()
    logger.info("comment deleted", comment_id=comment_id, actor_id=actor.id, removed=removed)
    return removed


def toggle_comment_like(session: Session, comment: Comment, user: User) -> Tuple[bool, int]:
    """Flip ``user`` in the comment's like set. Returns ``(is_liked, likes)``."""
    existing = session.exec(
        select(CommentLike).where(col(CommentLike.comment_id) == comment.id, col(CommentLike.user_id) == user.id)
    ).first()

    if existing:
        session.delete(existing)
        is_liked = False
    else:
        session.add(CommentLike(comment_id=comment.id, user_id=user.id))
        is_liked = True

    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        is_liked = True

    sync_comment_likes(session, [comment.id])
    session.commit()
    session.refresh(comment)
    return is_liked, comment.likes


# ============== ADMIN LISTING ==============


def list_comments(
    session: Session,
    params: PageParams,
    search: Optional[str] = None,
    status: Optional[str] = None,
    sort: str = "-createdAt",
) -> Page[Comment]:
    """Every comment regardless of status or thread position, orphans included."""
    order_by = parse_sort(sort, SORTABLE_FIELDS, Comment.id)
    statement = select(Comment)
    if status:
        if status not in COMMENT_STATUSES:
            raise ValidationFailedError(
                "Validation failed",
                errors=[{"field": "status", "message": f"Status must be one of: {', '.join(COMMENT_STATUSES)}"}],
            )
        statement = statement.where(col(Comment.status) == status)
    if search and search.strip():
        statement = statement.where(search_filter(search, Comment.content))
    return paginate(session, statement, params, order_by)


def present_comments(session: Session, comments: Sequence[Comment]) -> List[AdminCommentOut]:
    authors = _load_authors(session, comments)
    liked_by = _load_likes(session, [c.id for c in comments])
    post_ids = {c.post_id for c in comments}
    titles: Dict[int, str] = {}
    if post_ids:
        titles = dict(session.exec(select(Post.id, Post.title).where(col(Post.id).in_(post_ids))).all())

    presented = []
    for comment in comments:
        author = authors.get(comment.author_id)
        presented.append(
            AdminCommentOut.model_validate(comment).model_copy(
                update={
                    "author": AuthorOut.model_validate(author) if author else None,
                    "liked_by": liked_by.get(comment.id, []),
                    "post_title": titles.get(comment.post_id),
                }
            )
        )
    return presented


def present_comment(session: Session, comment: Comment) -> CommentOut:
    return build_tree(
        [comment],
        [],
        authors=_load_authors(session, [comment]),
        liked_by=_load_likes(session, [comment.id]),
    )[0]
