"""
Comment tables.

Comments are stored flat. A reply points at its parent through ``parent_id``;
parents keep no list of children, and threads are rebuilt at query time.
``parent_id`` deliberately has no foreign key: deleting a comment removes
only its direct replies, so deeper replies may outlive their parent.
"""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel, UniqueConstraint
from sqlalchemy import Index

from inkwell.core.typing import utc_now

COMMENT_STATUSES = ("approved", "pending", "spam")


class Comment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    content: str = Field(max_length=1000)
    author_id: int = Field(foreign_key="user.id", index=True)
    post_id: int = Field(foreign_key="post.id", index=True)
    parent_id: Optional[int] = Field(default=None, index=True)
    likes: int = Field(default=0)
    status: str = Field(default="approved", index=True)
    is_edited: bool = Field(default=False)
    edited_at: Optional[datetime] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)

    __table_args__ = (Index("ix_comment_post_created", "post_id", "created_at"),)


class CommentLike(SQLModel, table=True):
    __tablename__ = "comment_like"

    id: Optional[int] = Field(default=None, primary_key=True)
    comment_id: int = Field(foreign_key="comment.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=utc_now)

    __table_args__ = (UniqueConstraint("comment_id", "user_id", name="unique_comment_like"),)
