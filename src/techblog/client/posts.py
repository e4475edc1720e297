"""Cached post operations for API consumers.

`PostsClient` keeps listing and detail responses in a `QueryCache` and
keeps the two views consistent after mutations:

- create: invalidate every listing, seed the new post's detail entry
- update: overwrite the detail entry, invalidate every listing
- delete: remove the detail entry, invalidate every listing
- like: optimistic flip in the detail entry and every listing that shows
  the post, rolled back if the request fails, then everything touched is
  invalidated so the next read comes from the server
"""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from techblog.core.roles import ROLE_ADMIN
from techblog.schemas.post import (
    PostCreate,
    PostDetail,
    PostDetailResponse,
    PostListQuery,
    PostListResponse,
    PostOut,
    PostSummary,
    PostUpdate,
)
from techblog.schemas.user import AuthorDetail

from .api import BlogApi
from .cache import QueryCache
from .config import ClientSettings
from .errors import NotAuthenticatedError
from .keys import POSTS_PREFIX, drafts_key, post_key, posts_key

logger = logging.getLogger(__name__)

RELATED_TAG_COUNT = 3
RELATED_POSTS_LIMIT = 5
RELATED_STALE_SECONDS = 10 * 60
DRAFTS_LIMIT = 50
DRAFTS_STALE_SECONDS = 2 * 60


@dataclass(frozen=True)
class Actor:
    """The logged-in user as far as the client needs to know."""

    id: int
    role: str


def _toggled(post: PostSummary) -> PostSummary:
    liked = not post.is_liked
    like_count = post.like_count + 1 if liked else max(post.like_count - 1, 0)
    return post.model_copy(update={"is_liked": liked, "like_count": like_count})


def _toggle_in_detail(post_id: int) -> Any:
    def update(old: PostDetailResponse) -> PostDetailResponse:
        if old.post.id != post_id:
            return old
        return old.model_copy(update={"post": _toggled(old.post)})

    return update


def _toggle_in_listing(post_id: int) -> Any:
    def update(old: PostListResponse) -> PostListResponse:
        posts = [_toggled(post) if post.id == post_id else post for post in old.posts]
        return old.model_copy(update={"posts": posts})

    return update


def _lists_post(data: Any, post_id: int) -> bool:
    return isinstance(data, PostListResponse) and any(post.id == post_id for post in data.posts)


def _detail_from(post: PostOut, previous: PostDetailResponse | None) -> PostDetailResponse:
    """Build a detail entry from a mutation response.

    Stored fields come from `post`; derived fields (counts, like state,
    comments, full author) are carried over from `previous` when present.
    """
    fields = post.model_dump(exclude={"author"})
    if previous is not None:
        author = previous.post.author.model_copy(update=post.author.model_dump())
        return PostDetailResponse(post=previous.post.model_copy(update={**fields, "author": author}))
    author = AuthorDetail.model_validate(post.author.model_dump())
    return PostDetailResponse(post=PostDetail.model_validate({**fields, "author": author}))


class PostsClient:
    """Post reads and writes backed by a query cache.

    The cache belongs to this client: it is created with it, emptied on
    `logout` and dropped on `close`.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        api: BlogApi | None = None,
        cache: QueryCache | None = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self.api = api or BlogApi(self.settings)
        self.cache = cache or QueryCache(
            stale_time=self.settings.stale_seconds,
            cache_time=self.settings.cache_seconds,
        )
        self.actor: Actor | None = None
        self._like_locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    # -- session -----------------------------------------------------------

    def login(self, actor: Actor, token: str) -> None:
        self.actor = actor
        self.api.token = token

    def logout(self) -> None:
        """Forget the actor and everything cached on their behalf."""
        self.actor = None
        self.api.token = None
        self.cache.clear()
        self._like_locks.clear()

    async def close(self) -> None:
        self.cache.clear()
        await self.api.aclose()

    def _require_actor(self, action: str) -> Actor:
        if self.actor is None:
            raise NotAuthenticatedError(f"Must be logged in to {action}")
        return self.actor

    # -- reads -------------------------------------------------------------

    async def list_posts(self, query: PostListQuery | None = None) -> PostListResponse:
        """Return a listing page, from cache while it is fresh."""
        query = query or PostListQuery()
        return await self.cache.fetch_query(
            posts_key(query),
            lambda: self.api.get_posts(query),
        )

    async def get_post(self, post_id: int) -> PostDetail:
        """Return a post detail and warm the cache with related posts.

        Raises:
            QueryRemovedError: If the post is deleted or the client logs out
                before the detail arrives.
        """
        response: PostDetailResponse = await self.cache.fetch_query(
            post_key(post_id),
            lambda: self.api.get_post(post_id),
        )
        post = response.post
        if post.tags:
            related = PostListQuery(
                tags=post.tags[:RELATED_TAG_COUNT],
                limit=RELATED_POSTS_LIMIT,
            )
            await self.cache.prefetch_query(
                posts_key(related),
                lambda: self.api.get_posts(related),
                stale_time=RELATED_STALE_SECONDS,
            )
        return post

    async def drafts(self) -> PostListResponse:
        """Return the logged-in user's own posts."""
        actor = self._require_actor("view your posts")
        query = PostListQuery(author_id=actor.id, limit=DRAFTS_LIMIT)
        return await self.cache.fetch_query(
            drafts_key(actor.id),
            lambda: self.api.get_posts(query),
            stale_time=DRAFTS_STALE_SECONDS,
        )

    async def search(self, search: str = "", tags: list[str] | None = None) -> list[PostSummary]:
        """Search posts; with neither text nor tags nothing is requested."""
        if not search.strip() and not tags:
            return []
        page = await self.list_posts(PostListQuery(search=search, tags=tags))
        return page.posts

    # -- writes ------------------------------------------------------------

    async def create_post(self, data: PostCreate) -> PostOut:
        self._require_actor("create posts")
        response = await self.api.create_post(data)
        self.cache.invalidate_queries(POSTS_PREFIX)
        self.cache.set_query_data(post_key(response.post.id), _detail_from(response.post, None))
        return response.post

    async def update_post(self, post_id: int, data: PostUpdate) -> PostOut:
        self._require_actor("edit posts")
        response = await self.api.update_post(post_id, data)
        key = post_key(response.post.id)
        self.cache.set_query_data(key, lambda previous: _detail_from(response.post, previous))
        self.cache.invalidate_queries(POSTS_PREFIX)
        return response.post

    async def delete_post(self, post_id: int) -> None:
        self._require_actor("delete posts")
        await self.api.delete_post(post_id)
        self.cache.remove_queries(post_key(post_id))
        self.cache.invalidate_queries(POSTS_PREFIX)

    async def like_post(self, post_id: int) -> bool:
        """Toggle a like with an optimistic cache update.

        Toggles on the same post run one at a time, so each snapshot is
        taken after the previous toggle has committed or rolled back.

        Returns:
            The server's `liked` state.
        """
        self._require_actor("like posts")
        async with self._like_locks[post_id]:
            detail = post_key(post_id)
            listings = self.cache.find_keys(POSTS_PREFIX)
            async with self.cache.optimistic(
                [detail, *listings], invalidate=[POSTS_PREFIX]
            ) as update:
                update.apply(detail, _toggle_in_detail(post_id))
                for key in listings:
                    if _lists_post(self.cache.get_query_data(key), post_id):
                        update.apply(key, _toggle_in_listing(post_id))
                response = await self.api.like_post(post_id)
            logger.debug("Post %s liked=%s", post_id, response.liked)
            return response.liked

    # -- permissions ---------------------------------------------------------

    def can_edit(self, post: PostOut) -> bool:
        """Authors and admins may edit; evaluated against the current actor."""
        actor = self.actor
        return actor is not None and (actor.id == post.author_id or actor.role == ROLE_ADMIN)

    def can_delete(self, post: PostOut) -> bool:
        """Same rule as `can_edit`."""
        return self.can_edit(post)
