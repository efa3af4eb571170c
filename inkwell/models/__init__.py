from .user import User, Follow, Bookmark
from .post import Post, PostTag, PostLike
from .comment import Comment, CommentLike

__all__ = [
    "User",
    "Follow",
    "Bookmark",
    "Post",
    "PostTag",
    "PostLike",
    "Comment",
    "CommentLike",
]
