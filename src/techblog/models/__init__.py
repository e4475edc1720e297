# src/techblog/models/__init__.py
"""SQLAlchemy models for the TechBlog application."""

from .comment import Comment
from .like import Like
from .post import Post, PostTag
from .user import ROLE_ADMIN, ROLE_MEMBER, User

__all__ = [
    "Comment",
    "Like",
    "Post", "PostTag",
    "User", "ROLE_ADMIN", "ROLE_MEMBER",
]
