from typing import Optional

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session, select

from inkwell.core.config import settings
from inkwell.core.context import set_user_id
from inkwell.core.jwt import get_token_subject
from inkwell.db import get_session
from inkwell.models.user import User
from inkwell.services.listing import PageParams

# Cookie name for auth token
COOKIE_NAME = "access_token"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/login", auto_error=False)


def get_token_from_request(request: Request, header_token: Optional[str] = None) -> Optional[str]:
    """
    Extract token from Authorization header or cookie.
    Priority: Header > Cookie
    """
    if header_token:
        return header_token
    return request.cookies.get(COOKIE_NAME) or None


def _user_for_token(session: Session, token: str) -> Optional[User]:
    email = get_token_subject(token)
    if email is None:
        return None
    user = session.exec(select(User).where(User.email == email)).first()
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(
    request: Request, header_token: Optional[str] = Depends(oauth2_scheme), session: Session = Depends(get_session)
) -> User:
    """
    Get current user from JWT token (header or cookie).
    """
    token = get_token_from_request(request, header_token)

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, no token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = _user_for_token(session, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, token failed",
            headers={"WWW-Authenticate": "Bearer"},
        )

    set_user_id(user.id)
    return user


def get_current_user_optional(
    request: Request, header_token: Optional[str] = Depends(oauth2_scheme), session: Session = Depends(get_session)
) -> Optional[User]:
    """
    Get current user if authenticated, otherwise return None.
    Useful for endpoints that work for both authenticated and anonymous users.
    """
    token = get_token_from_request(request, header_token)
    if not token:
        return None

    user = _user_for_token(session, token)
    if user is not None:
        set_user_id(user.id)
    return user


def get_current_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Get current user and verify they have the admin role.
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User role user is not authorized to access this route",
        )
    return current_user


def get_page_params(
    page: int = Query(default=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_LIMIT),
) -> PageParams:
    """``?page=&limit=``; out-of-range values are a 400 from ``PageParams``."""
    return PageParams(page=page, limit=limit)
