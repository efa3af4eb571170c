"""
Request and response models.

Responses use camelCase field names (``readingTime``, ``isLiked``) and every
endpoint wraps its payload in the same envelope:

    {"success": true, "message": "...", "data": ..., "pagination": {...}}

Request bodies accept either camelCase or snake_case keys.
"""

import re
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from inkwell.core.config import settings

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
URL_PATTERN = re.compile(r"^https?://.+")

PostStatus = Literal["draft", "published", "archived"]
Role = Literal["user", "admin"]


def envelope(
    data: Any = None,
    message: Optional[str] = None,
    pagination: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    body["data"] = data
    if pagination is not None:
        body["pagination"] = pagination
    return body


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ============== AUTH / USERS ==============


class RegisterRequest(RequestModel):
    username: str = Field(min_length=3, max_length=30)
    email: str
    password: str

    @field_validator("username")
    @classmethod
    def username_charset(cls, v: str) -> str:
        if not USERNAME_PATTERN.match(v):
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return v

    @field_validator("email")
    @classmethod
    def email_shape(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Please provide a valid email")
        return v.lower()

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        if len(v) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long")
        return v


class LoginRequest(RequestModel):
    email: str
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class ProfileUpdate(RequestModel):
    avatar: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=500)
    location: Optional[str] = Field(default=None, max_length=100)
    website: Optional[str] = None
    twitter: Optional[str] = None
    github: Optional[str] = None

    @field_validator("website")
    @classmethod
    def website_url(cls, v: Optional[str]) -> Optional[str]:
        if v and not URL_PATTERN.match(v):
            raise ValueError("Please provide a valid URL")
        return v


class RoleUpdate(RequestModel):
    role: Role


class AuthorOut(ResponseModel):
    id: int
    username: str
    avatar: str


class FollowerOut(AuthorOut):
    bio: Optional[str] = None


class PublicUserOut(ResponseModel):
    id: int
    username: str
    role: str
    avatar: str
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    twitter: Optional[str] = None
    github: Optional[str] = None
    created_at: datetime


class UserOut(PublicUserOut):
    email: str
    is_active: bool
    email_verified: bool
    last_login: Optional[datetime] = None


class UserStats(ResponseModel):
    posts: int = 0
    followers: int = 0
    following: int = 0
    likes: int = 0
    views: int = 0
    comments: int = 0


class UserProfileOut(PublicUserOut):
    stats: UserStats
    is_following: Optional[bool] = None


class AdminUserOut(UserOut):
    posts: int = 0


# ============== POSTS ==============


def _normalize_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return None
    seen: List[str] = []
    for tag in tags:
        name = tag.strip().lower()
        if name and name not in seen:
            seen.append(name)
    return seen


class PostCreate(RequestModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    excerpt: Optional[str] = Field(default=None, max_length=500)
    tags: List[str] = Field(default_factory=list)
    status: PostStatus = "published"
    image: Optional[str] = None
    featured: bool = False
    comments_enabled: bool = True

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v):
        return _normalize_tags(v)


class PostUpdate(RequestModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1)
    excerpt: Optional[str] = Field(default=None, max_length=500)
    tags: Optional[List[str]] = None
    status: Optional[PostStatus] = None
    image: Optional[str] = None
    featured: Optional[bool] = None
    comments_enabled: Optional[bool] = None

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v):
        return _normalize_tags(v)


class PostOut(ResponseModel):
    id: int
    title: str
    slug: str
    excerpt: Optional[str] = None
    content: str
    image: str
    author: Optional[AuthorOut] = None
    tags: List[str] = Field(default_factory=list)
    status: str
    likes: int
    liked_by: List[int] = Field(default_factory=list)
    views: int
    reading_time: int
    featured: bool
    comments_enabled: bool
    comment_count: int = 0
    created_at: datetime
    updated_at: datetime
    is_liked: Optional[bool] = None
    is_bookmarked: Optional[bool] = None


class LikeState(ResponseModel):
    likes: int
    is_liked: bool


class BookmarkState(ResponseModel):
    is_bookmarked: bool


class FollowState(ResponseModel):
    is_following: bool
    followers_count: int


# ============== COMMENTS ==============


class CommentCreate(RequestModel):
    content: str = Field(min_length=1, max_length=1000)
    post_id: int
    parent_id: Optional[int] = None


class CommentUpdate(RequestModel):
    content: str = Field(min_length=1, max_length=1000)


class CommentOut(ResponseModel):
    id: int
    content: str
    author: Optional[AuthorOut] = None
    post_id: int
    parent_id: Optional[int] = None
    likes: int
    liked_by: List[int] = Field(default_factory=list)
    status: str
    is_edited: bool
    edited_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    replies: List["CommentOut"] = Field(default_factory=list)


class AdminCommentOut(CommentOut):
    post_title: Optional[str] = None


# ============== ADMIN ==============


class AdminStats(ResponseModel):
    total_users: int
    total_posts: int
    total_comments: int
    total_views: int
    new_users_this_month: int
    new_posts_this_month: int
    new_comments_this_month: int
