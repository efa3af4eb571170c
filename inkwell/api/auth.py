from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from inkwell.api import deps
from inkwell.core import security
from inkwell.core.config import settings
from inkwell.core.errors import NotAuthenticatedError, ValidationFailedError
from inkwell.core.jwt import create_access_token
from inkwell.core.logging_config import get_logger
from inkwell.core.rate_limit import enforce_rate_limit, rate_limiter
from inkwell.core.typing import utc_now
from inkwell.db import get_session
from inkwell.models.user import User
from inkwell.schemas import LoginRequest, RegisterRequest, UserOut, envelope

router = APIRouter()
logger = get_logger(__name__)

# Cookie settings
COOKIE_NAME = deps.COOKIE_NAME
COOKIE_SAMESITE = "lax"


def set_auth_cookie(response: Response, token: str):
    """Set httpOnly auth cookie."""
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=COOKIE_SAMESITE,
        path="/",
    )


def clear_auth_cookie(response: Response):
    """Clear auth cookie."""
    response.delete_cookie(key=COOKIE_NAME, path="/")


def _token_response(user: User, message: str, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    token = create_access_token(
        user.email, expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    body = envelope(
        data={"token": token, "tokenType": "bearer", "user": UserOut.model_validate(user)},
        message=message,
    )
    # Return token AND set cookie for persistence
    response = JSONResponse(content=jsonable_encoder(body), status_code=status_code)
    set_auth_cookie(response, token)
    return response


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register_user(
    request: Request,
    user_in: RegisterRequest,
    session: Session = Depends(get_session),
) -> Any:
    # 3 registrations per hour per IP
    enforce_rate_limit(
        request,
        "register",
        max_requests=3,
        window_seconds=3600,
        message="Too many registration attempts. Please try again later.",
    )

    existing = session.exec(
        select(User).where(or_(User.email == user_in.email, User.username == user_in.username))
    ).first()
    if existing:
        raise ValidationFailedError("User already exists with this email or username")

    user = User(
        username=user_in.username,
        email=user_in.email,
        hashed_password=security.get_password_hash(user_in.password),
        last_login=utc_now(),
    )
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email or username
        session.rollback()
        raise ValidationFailedError("User already exists with this email or username")
    session.refresh(user)

    logger.info("user registered", user_id=user.id, username=user.username)
    return _token_response(user, "User registered successfully", status_code=status.HTTP_201_CREATED)


@router.post("/login")
def login(
    request: Request,
    credentials: LoginRequest,
    session: Session = Depends(get_session),
) -> Any:
    # 5 attempts per minute, lockout after 5 failures
    key = enforce_rate_limit(
        request,
        "login",
        max_requests=5,
        window_seconds=60,
        message="Too many login attempts. Please try again in a minute.",
    )

    user = session.exec(select(User).where(User.email == credentials.email)).first()
    if not user or not security.verify_password(credentials.password, user.hashed_password):
        is_locked, remaining = rate_limiter.record_failed_login(key)
        logger.warning("login failed", email=credentials.email, locked=is_locked)
        if is_locked:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Account locked due to too many failed attempts. Try again in {remaining} seconds.",
                headers={"Retry-After": str(remaining)},
            )
        raise NotAuthenticatedError("Invalid credentials")

    if not user.is_active:
        raise NotAuthenticatedError("Account is deactivated")

    rate_limiter.record_successful_login(key)

    user.last_login = utc_now()
    session.add(user)
    session.commit()
    session.refresh(user)

    logger.info("user logged in", user_id=user.id)
    return _token_response(user, "Login successful")


@router.post("/logout")
def logout() -> Any:
    """Clear auth cookie."""
    resp = JSONResponse(content=envelope(message="Logged out successfully"))
    clear_auth_cookie(resp)
    return resp


@router.get("/me")
def get_current_user_info(
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """Get current user info from token (header or cookie)."""
    return envelope(data=UserOut.model_validate(current_user))
