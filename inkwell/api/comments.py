from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from inkwell.api import deps
from inkwell.core.config import settings
from inkwell.db import get_session
from inkwell.models.user import User
from inkwell.schemas import CommentCreate, CommentUpdate, LikeState, envelope
from inkwell.services import comments as comment_service

router = APIRouter()


@router.get("/post/{post_id}")
def list_post_comments(
    post_id: int,
    page: int = Query(default=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_LIMIT),
    depth: int = Query(default=1, description="Reply levels to expand under each top-level comment"),
    viewer: Optional[User] = Depends(deps.get_current_user_optional),
    session: Session = Depends(get_session),
) -> Any:
    """Approved top-level comments, newest first, with their approved replies."""
    thread = comment_service.list_thread(session, post_id, page=page, limit=limit, depth=depth, viewer=viewer)
    return envelope(data=thread.items, pagination=thread.pagination())


@router.post("", status_code=status.HTTP_201_CREATED)
def create_comment(
    comment_in: CommentCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    comment = comment_service.create_comment(
        session,
        current_user,
        post_id=comment_in.post_id,
        content=comment_in.content,
        parent_id=comment_in.parent_id,
    )
    return envelope(
        data=comment_service.present_comment(session, comment),
        message="Comment created successfully",
    )


@router.put("/{comment_id}")
def update_comment(
    comment_id: int,
    comment_in: CommentUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    comment = comment_service.get_comment(session, comment_id)
    comment = comment_service.update_comment(session, comment, current_user, comment_in.content)
    return envelope(
        data=comment_service.present_comment(session, comment),
        message="Comment updated successfully",
    )


@router.delete("/{comment_id}")
def delete_comment(
    comment_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    comment = comment_service.get_comment(session, comment_id)
    removed = comment_service.delete_comment(session, comment, current_user)
    return envelope(data={"deleted": removed}, message="Comment deleted successfully")


@router.post("/{comment_id}/like")
def like_comment(
    comment_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    comment = comment_service.get_comment(session, comment_id)
    is_liked, likes = comment_service.toggle_comment_like(session, comment, current_user)
    return envelope(
        data=LikeState(likes=likes, is_liked=is_liked),
        message="Comment liked" if is_liked else "Comment unliked",
    )
