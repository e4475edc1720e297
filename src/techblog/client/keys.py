"""Cache keys used by the post client.

Keys are tuples; invalidation matches on a key prefix, so `POSTS_PREFIX`
covers every listing entry, including the author listing.
"""
from __future__ import annotations

from collections.abc import Hashable

from techblog.schemas.post import PostListQuery

QueryKey = tuple[Hashable, ...]

POSTS_PREFIX: QueryKey = ("posts",)
POST_PREFIX: QueryKey = ("post",)


def posts_key(query: PostListQuery) -> QueryKey:
    return (*POSTS_PREFIX, query)


def drafts_key(user_id: int) -> QueryKey:
    return (*POSTS_PREFIX, "drafts", user_id)


def post_key(post_id: int) -> QueryKey:
    return (*POST_PREFIX, post_id)


def matches(key: QueryKey, prefix: QueryKey) -> bool:
    """Return True when `key` starts with `prefix`."""
    return key[: len(prefix)] == prefix
