"""Comment-related Pydantic schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import Field

from .common import CamelModel
from .user import UserSummary


class CommentCreate(CamelModel):
    """Schema for creating a comment or a reply."""

    content: str = Field(..., min_length=1, max_length=5000)
    parent_id: int | None = Field(None, description="Comment being replied to")


class CommentOut(CamelModel):
    """Comment as returned by the API."""

    id: int
    post_id: int
    parent_id: int | None = None
    content: str
    created_at: datetime
    author: UserSummary


class CommentNode(CommentOut):
    """Comment with its nested replies."""

    replies: list[CommentNode] = Field(default_factory=list)


class CommentTreeResponse(CamelModel):
    comments: list[CommentNode]


class CommentMutationResponse(CamelModel):
    message: str
    comment: CommentOut
