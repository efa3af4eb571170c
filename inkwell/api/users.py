from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from inkwell.api import deps
from inkwell.db import get_session
from inkwell.models.user import User
from inkwell.schemas import FollowerOut, FollowState, ProfileUpdate, PublicUserOut, UserOut, UserProfileOut, envelope
from inkwell.services import posts as post_service
from inkwell.services import users as user_service
from inkwell.services.listing import PageParams

router = APIRouter()

# Fixed paths first so "search" and "me" are never read as usernames


@router.get("/search")
def search_users(
    q: Optional[str] = Query(default=None),
    params: PageParams = Depends(deps.get_page_params),
    session: Session = Depends(get_session),
) -> Any:
    """Active users whose username or bio contains ``q``."""
    page = user_service.search_users(session, q, params)
    return envelope(
        data=[PublicUserOut.model_validate(u) for u in page.items],
        pagination=page.pagination(),
    )


@router.get("/me/bookmarks")
def my_bookmarks(
    session: Session = Depends(get_session),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    posts = user_service.bookmarks_of(session, current_user)
    return envelope(data=post_service.present_posts(session, posts, current_user))


@router.put("/me")
def update_me(
    profile_in: ProfileUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    user = user_service.update_profile(session, current_user, profile_in)
    return envelope(data=UserOut.model_validate(user), message="Profile updated successfully")


@router.get("/{username}")
def get_profile(
    username: str,
    session: Session = Depends(get_session),
    viewer: Optional[User] = Depends(deps.get_current_user_optional),
) -> Any:
    user = user_service.get_user_by_username(session, username)
    profile = UserProfileOut.model_validate(
        {
            **PublicUserOut.model_validate(user).model_dump(),
            "stats": user_service.user_stats(session, user),
            "is_following": user_service.is_following(session, viewer.id, user.id) if viewer else None,
        }
    )
    return envelope(data=profile)


@router.post("/{user_id}/follow")
def follow_user(
    user_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    is_following, followers_count = user_service.toggle_follow(session, current_user, user_id)
    return envelope(
        data=FollowState(is_following=is_following, followers_count=followers_count),
        message="User followed" if is_following else "User unfollowed",
    )


@router.get("/{user_id}/followers")
def list_followers(
    user_id: int,
    session: Session = Depends(get_session),
) -> Any:
    users = user_service.followers_of(session, user_id)
    return envelope(data=[FollowerOut.model_validate(u) for u in users])


@router.get("/{user_id}/following")
def list_following(
    user_id: int,
    session: Session = Depends(get_session),
) -> Any:
    users = user_service.following_of(session, user_id)
    return envelope(data=[FollowerOut.model_validate(u) for u in users])
