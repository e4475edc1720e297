"""Post-related Pydantic schemas."""
from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import ConfigDict, Field, field_validator

from .comment import CommentOut
from .common import CamelModel
from .user import AuthorDetail, UserSummary

MAX_TAG_LENGTH = 50

SortField = Literal[
    "createdAt",
    "updatedAt",
    "publishedAt",
    "title",
    "viewCount",
    "likeCount",
    "commentCount",
    "id",
]


class SortOrder(str, Enum):
    """Sort direction accepted by the listing endpoint."""

    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def _missing_(cls, value: object) -> SortOrder | None:
        if isinstance(value, str):
            return cls.__members__.get(value.upper())
        return None


def normalize_tags(values: Iterable[str] | str | None) -> list[str]:
    """Trim tags, drop empty ones and remove duplicates keeping first occurrence."""
    if values is None:
        return []
    if isinstance(values, str):
        values = values.split(",")
    seen: dict[str, None] = {}
    for raw in values:
        tag = str(raw).strip()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(f"Tags must be at most {MAX_TAG_LENGTH} characters")
        seen.setdefault(tag, None)
    return list(seen)


class PostCreate(CamelModel):
    """Schema for creating a new post."""

    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    excerpt: str | None = Field(None, max_length=500)
    image_url: str | None = None
    tags: list[str] | None = Field(None, description="Tags; omitted means none")

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> list[str] | None:
        if value is None:
            return None
        return normalize_tags(value)


class PostUpdate(CamelModel):
    """Schema for updating a post; only supplied fields are changed."""

    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1)
    excerpt: str | None = Field(None, max_length=500)
    image_url: str | None = None
    tags: list[str] | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> list[str] | None:
        if value is None:
            return None
        return normalize_tags(value)


class PostListQuery(CamelModel):
    """Filter, sort and pagination parameters for listing posts.

    Instances are immutable and hashable so the client cache can use them
    directly as part of a cache key.
    """

    model_config = ConfigDict(frozen=True)

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)
    sort_by: SortField = "createdAt"
    sort_order: SortOrder = SortOrder.DESC
    search: str | None = None
    tags: tuple[str, ...] | None = None
    author_id: int | None = None

    @field_validator("search", mode="before")
    @classmethod
    def _blank_search_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> tuple[str, ...] | None:
        if value is None:
            return None
        tags = normalize_tags(value)
        return tuple(tags) or None

    def to_query_params(self) -> dict[str, str | int]:
        """Render the query as HTTP query parameters."""
        params: dict[str, str | int] = {
            "page": self.page,
            "limit": self.limit,
            "sortBy": self.sort_by,
            "sortOrder": self.sort_order.value,
        }
        if self.search is not None:
            params["search"] = self.search
        if self.tags:
            params["tags"] = ",".join(self.tags)
        if self.author_id is not None:
            params["authorId"] = self.author_id
        return params


class PostOut(CamelModel):
    """Stored post fields plus a minimal author block."""

    id: int
    title: str
    content: str
    excerpt: str | None = None
    image_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    author_id: int
    is_published: bool
    published_at: datetime | None = None
    view_count: int = 0
    created_at: datetime
    updated_at: datetime
    author: UserSummary

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_as_list(cls, value: Any) -> list[str]:
        # ORM instances expose an association proxy, not a list.
        if value is None:
            return []
        return list(value)


class PostSummary(PostOut):
    """Post as it appears in a listing, with per-read derived fields."""

    comment_count: int = 0
    like_count: int = 0
    is_liked: bool = False


class PostDetail(PostSummary):
    """Post detail view with top-level comments."""

    author: AuthorDetail
    comments: list[CommentOut] = Field(default_factory=list)


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, *, page: int, limit: int, total_items: int) -> Pagination:
        """Derive page metadata from the filtered item count."""
        total_pages = math.ceil(total_items / limit)
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_items=total_items,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class PostListResponse(CamelModel):
    posts: list[PostSummary]
    pagination: Pagination


class PostDetailResponse(CamelModel):
    post: PostDetail


class PostMutationResponse(CamelModel):
    message: str
    post: PostOut


class LikeResponse(CamelModel):
    message: str
    liked: bool
