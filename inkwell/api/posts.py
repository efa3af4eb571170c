from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from inkwell.api import deps
from inkwell.db import get_session
from inkwell.models.user import User
from inkwell.schemas import BookmarkState, LikeState, PostCreate, PostUpdate, envelope
from inkwell.services import posts as post_service
from inkwell.services.listing import PageParams

router = APIRouter()


@router.get("")
def list_posts(
    params: PageParams = Depends(deps.get_page_params),
    search: Optional[str] = Query(default=None),
    tag: Optional[str] = Query(default=None),
    author: Optional[str] = Query(default=None, description="Author username"),
    status_filter: str = Query(default="published", alias="status"),
    sort: str = Query(default="-createdAt"),
    session: Session = Depends(get_session),
    viewer: Optional[User] = Depends(deps.get_current_user_optional),
) -> Any:
    """
    Paginated posts. Defaults to published posts, newest first.

    ``status=draft|archived`` lists the caller's own posts in that state
    (every author's for admins).
    """
    page = post_service.list_posts(
        session,
        params,
        viewer=viewer,
        search=search,
        tag=tag,
        author=author,
        status=status_filter,
        sort=sort,
    )
    return envelope(
        data=post_service.present_posts(session, page.items, viewer),
        pagination=page.pagination(),
    )


@router.get("/user/{username}")
def list_user_posts(
    username: str,
    session: Session = Depends(get_session),
    viewer: Optional[User] = Depends(deps.get_current_user_optional),
) -> Any:
    posts = post_service.list_user_posts(session, username)
    return envelope(data=post_service.present_posts(session, posts, viewer))


@router.get("/{slug}")
def get_post(
    slug: str,
    session: Session = Depends(get_session),
    viewer: Optional[User] = Depends(deps.get_current_user_optional),
) -> Any:
    """Single post by slug. Counts a view."""
    post = post_service.get_post_by_slug(session, slug, viewer)
    return envelope(data=post_service.present_post(session, post, viewer))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_post(
    post_in: PostCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    post = post_service.create_post(session, current_user, post_in)
    return envelope(
        data=post_service.present_post(session, post, current_user),
        message="Post created successfully",
    )


@router.put("/{post_id}")
def update_post(
    post_id: int,
    post_in: PostUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    post = post_service.get_post(session, post_id)
    post = post_service.update_post(session, post, current_user, post_in)
    return envelope(
        data=post_service.present_post(session, post, current_user),
        message="Post updated successfully",
    )


@router.delete("/{post_id}")
def delete_post(
    post_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    post = post_service.get_post(session, post_id)
    post_service.delete_post(session, post, current_user)
    return envelope(message="Post deleted successfully")


@router.post("/{post_id}/like")
def like_post(
    post_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    post = post_service.get_post(session, post_id)
    is_liked, likes = post_service.toggle_like(session, post, current_user)
    return envelope(
        data=LikeState(likes=likes, is_liked=is_liked),
        message="Post liked" if is_liked else "Post unliked",
    )


@router.post("/{post_id}/bookmark")
def bookmark_post(
    post_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    post = post_service.get_post(session, post_id)
    is_bookmarked = post_service.toggle_bookmark(session, post, current_user)
    return envelope(
        data=BookmarkState(is_bookmarked=is_bookmarked),
        message="Post bookmarked" if is_bookmarked else "Bookmark removed",
    )
