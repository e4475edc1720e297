"""User-related Pydantic schemas."""

from datetime import datetime

from pydantic import Field

from .common import CamelModel


class UserSummary(CamelModel):
    """Minimal author block embedded in posts and comments."""

    id: int
    username: str
    avatar: str | None = None


class AuthorDetail(UserSummary):
    """Author block used by the post detail view."""

    first_name: str | None = None
    last_name: str | None = None


class UserProfile(AuthorDetail):
    """Public profile of a user."""

    role: str
    created_at: datetime
    post_count: int | None = Field(None, description="Published posts by this user")
