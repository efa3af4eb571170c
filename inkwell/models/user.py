from typing import Optional
from datetime import datetime

from sqlmodel import Field, SQLModel, UniqueConstraint

from inkwell.core.config import settings
from inkwell.core.typing import utc_now

ROLES = ("user", "admin")


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True, max_length=30)
    email: str = Field(unique=True, index=True)
    hashed_password: str
    role: str = Field(default="user", index=True)  # "user" or "admin"
    is_active: bool = Field(default=True)
    email_verified: bool = Field(default=False)
    last_login: Optional[datetime] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)

    # Profile Fields
    avatar: str = Field(default=settings.DEFAULT_AVATAR)
    bio: Optional[str] = Field(default=None, max_length=500)
    location: Optional[str] = Field(default=None, max_length=100)
    website: Optional[str] = Field(default=None)
    twitter: Optional[str] = Field(default=None)
    github: Optional[str] = Field(default=None)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Follow(SQLModel, table=True):
    """
    A follow edge. One row is both sides of the relationship: it puts
    ``following_id`` in the follower's following set and ``follower_id`` in
    the followed user's followers set.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    follower_id: int = Field(foreign_key="user.id", index=True)
    following_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=utc_now)

    __table_args__ = (UniqueConstraint("follower_id", "following_id", name="unique_follow_edge"),)


class Bookmark(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    post_id: int = Field(foreign_key="post.id", index=True)
    created_at: datetime = Field(default_factory=utc_now)

    __table_args__ = (UniqueConstraint("user_id", "post_id", name="unique_user_bookmark"),)
