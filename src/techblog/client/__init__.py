"""Async client for the TechBlog API with a query cache."""

from .api import BlogApi
from .cache import OptimisticUpdate, QueryCache
from .config import ClientSettings
from .errors import (
    ApiError,
    ClientError,
    ForbiddenError,
    NotAuthenticatedError,
    NotFoundError,
    QueryRemovedError,
    TransportError,
    UnauthorizedError,
)
from .keys import POST_PREFIX, POSTS_PREFIX, drafts_key, post_key, posts_key
from .posts import Actor, PostsClient

__all__ = [
    "Actor",
    "ApiError",
    "BlogApi",
    "ClientError",
    "ClientSettings",
    "ForbiddenError",
    "NotAuthenticatedError",
    "NotFoundError",
    "OptimisticUpdate",
    "POSTS_PREFIX",
    "POST_PREFIX",
    "PostsClient",
    "QueryCache",
    "QueryRemovedError",
    "TransportError",
    "UnauthorizedError",
    "drafts_key",
    "post_key",
    "posts_key",
]
