# src/techblog/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
JSON keys are camelCase; Python attributes stay snake_case.
"""

from .comment import (
    CommentCreate,
    CommentMutationResponse,
    CommentNode,
    CommentOut,
    CommentTreeResponse,
)
from .common import CamelModel, MessageResponse
from .post import (
    LikeResponse,
    Pagination,
    PostCreate,
    PostDetail,
    PostDetailResponse,
    PostListQuery,
    PostListResponse,
    PostMutationResponse,
    PostOut,
    PostSummary,
    PostUpdate,
    SortOrder,
)
from .user import AuthorDetail, UserProfile, UserSummary

__all__ = [
    "CamelModel", "MessageResponse",
    "CommentCreate", "CommentMutationResponse", "CommentNode", "CommentOut",
    "CommentTreeResponse",
    "LikeResponse", "Pagination", "PostCreate", "PostDetail", "PostDetailResponse",
    "PostListQuery", "PostListResponse", "PostMutationResponse", "PostOut",
    "PostSummary", "PostUpdate", "SortOrder",
    "AuthorDetail", "UserProfile", "UserSummary",
]
