"""
Blog post tables.

``Post`` carries two derived fields: ``slug`` (from the title) and
``reading_time`` (from the content). Both are computed by the post service at
the call sites that change title or content, never on read.

Tags and likes are stored as link rows so membership is unique per pair and
can be filtered on. ``Post.likes`` caches the size of the like set and is
rewritten in the same commit as every like/unlike.
"""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel, Column, UniqueConstraint
from sqlalchemy import Text, Index

from inkwell.core.config import settings
from inkwell.core.typing import utc_now

POST_STATUSES = ("draft", "published", "archived")


class Post(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=200)
    slug: str = Field(unique=True, index=True, max_length=255)
    excerpt: Optional[str] = Field(default=None, max_length=500)
    content: str = Field(sa_column=Column(Text, nullable=False))
    image: str = Field(default=settings.DEFAULT_POST_IMAGE)
    author_id: int = Field(foreign_key="user.id", index=True)
    status: str = Field(default="published", index=True)
    likes: int = Field(default=0, index=True)
    views: int = Field(default=0, index=True)
    reading_time: int = Field(default=1)  # minutes
    featured: bool = Field(default=False)
    comments_enabled: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)

    __table_args__ = (
        # Public listing: published posts newest-first
        Index("ix_post_status_created", "status", "created_at"),
    )


class PostTag(SQLModel, table=True):
    __tablename__ = "post_tag"

    id: Optional[int] = Field(default=None, primary_key=True)
    post_id: int = Field(foreign_key="post.id", index=True)
    name: str = Field(index=True, max_length=50)

    __table_args__ = (UniqueConstraint("post_id", "name", name="unique_post_tag"),)


class PostLike(SQLModel, table=True):
    __tablename__ = "post_like"

    id: Optional[int] = Field(default=None, primary_key=True)
    post_id: int = Field(foreign_key="post.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=utc_now)

    __table_args__ = (UniqueConstraint("post_id", "user_id", name="unique_post_like"),)
