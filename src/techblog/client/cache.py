"""Keyed query cache with staleness, retention and optimistic updates.

A `QueryCache` is an explicit object owned by whoever builds it (normally
`PostsClient`); there is no process-wide instance. Everything runs on one
asyncio event loop, so entries are never written from two threads.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from types import TracebackType
from typing import Any

from .errors import ClientError, QueryRemovedError
from .keys import QueryKey, matches

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]
Updater = Callable[[Any], Any]


def _retrieve_exception(task: asyncio.Task[Any]) -> None:
    # Marks the error as seen when every waiter has gone away.
    if not task.cancelled():
        task.exception()


@dataclass
class CacheEntry:
    """State kept for one cache key."""

    data: Any = None
    updated_at: float | None = None
    last_used: float = 0.0
    invalidated: bool = False
    fetch_task: asyncio.Task[Any] | None = None

    @property
    def has_data(self) -> bool:
        return self.updated_at is not None

    @property
    def is_fetching(self) -> bool:
        return self.fetch_task is not None and not self.fetch_task.done()


class QueryCache:
    """In-memory cache of query results keyed by tuples.

    Args:
        stale_time: Seconds during which cached data is served without a refetch.
        cache_time: Seconds an unused entry is retained before eviction.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        *,
        stale_time: float = 300.0,
        cache_time: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.stale_time = stale_time
        self.cache_time = cache_time
        self._clock = clock
        self._entries: dict[QueryKey, CacheEntry] = {}
        # Bumped by clear(); optimistic updates from before a clear are dropped.
        self.generation = 0

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _touch(self, key: QueryKey, *, create: bool = False) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None and create:
            entry = self._entries[key] = CacheEntry()
        if entry is not None:
            entry.last_used = self._clock()
        return entry

    def find_keys(self, prefix: QueryKey) -> list[QueryKey]:
        """Return every cached key starting with `prefix`."""
        return [key for key in self._entries if matches(key, prefix)]

    def get_query_data(self, key: QueryKey) -> Any:
        """Return cached data for `key`, or None."""
        entry = self._touch(key)
        return entry.data if entry is not None else None

    def set_query_data(self, key: QueryKey, value: Any) -> Any:
        """Store `value` under `key` and mark it fresh.

        `value` may be a callable, in which case it receives the current data
        (or None) and its return value is stored.
        """
        entry = self._touch(key, create=True)
        assert entry is not None
        if callable(value):
            value = value(entry.data)
        entry.data = value
        entry.updated_at = self._clock()
        entry.invalidated = False
        return value

    def is_stale(self, key: QueryKey, stale_time: float | None = None) -> bool:
        """Return True when `key` has no data, was invalidated or has aged out."""
        entry = self._entries.get(key)
        if entry is None or entry.updated_at is None or entry.invalidated:
            return True
        window = self.stale_time if stale_time is None else stale_time
        return self._clock() - entry.updated_at >= window

    async def fetch_query(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        *,
        stale_time: float | None = None,
    ) -> Any:
        """Return fresh data for `key`, calling `fetcher` only when needed.

        Concurrent calls for the same key share one in-flight fetch. If that
        fetch is cancelled through `cancel_queries`, callers get the data
        the cache already holds, or a new fetch when it holds none.

        Raises:
            QueryRemovedError: If the entry was removed or the cache cleared
                before any data arrived.
        """
        self.collect_garbage()
        while True:
            entry = self._touch(key, create=True)
            assert entry is not None
            if not self.is_stale(key, stale_time):
                return entry.data

            if not entry.is_fetching:
                entry.fetch_task = asyncio.create_task(self._run_fetch(key, fetcher))
                entry.fetch_task.add_done_callback(_retrieve_exception)
            task = entry.fetch_task
            assert task is not None
            try:
                return await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise

            entry = self._entries.get(key)
            if entry is None:
                raise QueryRemovedError(f"Query {key!r} was removed while loading")
            if entry.has_data:
                logger.debug("Fetch for %r was cancelled; serving cached data", key)
                return entry.data
            logger.debug("Fetch for %r was cancelled before any data arrived; refetching", key)

    async def _run_fetch(self, key: QueryKey, fetcher: Fetcher) -> Any:
        try:
            data = await fetcher()
        finally:
            entry = self._entries.get(key)
            if entry is not None and entry.fetch_task is asyncio.current_task():
                entry.fetch_task = None
        entry = self._entries.get(key)
        # An entry removed mid-flight stays removed.
        if entry is not None:
            entry.data = data
            entry.updated_at = self._clock()
            entry.invalidated = False
        return data

    async def prefetch_query(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        *,
        stale_time: float | None = None,
    ) -> None:
        """Warm `key`; failures are logged and otherwise ignored."""
        try:
            await self.fetch_query(key, fetcher, stale_time=stale_time)
        except ClientError as exc:
            logger.info("Prefetch of %r failed: %s", key, exc)

    def invalidate_queries(self, prefix: QueryKey) -> int:
        """Mark every entry under `prefix` stale so the next access refetches."""
        keys = self.find_keys(prefix)
        for key in keys:
            self._entries[key].invalidated = True
        return len(keys)

    def remove_queries(self, prefix: QueryKey) -> int:
        """Drop every entry under `prefix`, cancelling their fetches."""
        keys = self.find_keys(prefix)
        for key in keys:
            entry = self._entries.pop(key)
            if entry.is_fetching:
                assert entry.fetch_task is not None
                entry.fetch_task.cancel()
        return len(keys)

    async def cancel_keys(self, keys: Iterable[QueryKey]) -> None:
        """Cancel in-flight fetches for `keys` and wait until they stop."""
        tasks = []
        for key in keys:
            entry = self._entries.get(key)
            if entry is not None and entry.is_fetching:
                assert entry.fetch_task is not None
                entry.fetch_task.cancel()
                tasks.append(entry.fetch_task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def cancel_queries(self, prefix: QueryKey) -> None:
        await self.cancel_keys(self.find_keys(prefix))

    def collect_garbage(self) -> int:
        """Evict idle entries not used within `cache_time`."""
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if not entry.is_fetching and now - entry.last_used >= self.cache_time
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Evicted %d idle cache entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        """Drop everything, cancelling in-flight fetches."""
        for entry in self._entries.values():
            if entry.is_fetching:
                assert entry.fetch_task is not None
                entry.fetch_task.cancel()
        self._entries.clear()
        self.generation += 1

    def optimistic(
        self,
        keys: Iterable[QueryKey],
        *,
        invalidate: Iterable[QueryKey] = (),
    ) -> OptimisticUpdate:
        """Start an optimistic update over `keys`; see `OptimisticUpdate`."""
        return OptimisticUpdate(self, keys, invalidate=invalidate)


_MISSING = object()


class OptimisticUpdate:
    """Snapshot, apply, then commit or roll back a set of cache entries.

    Used as an async context manager::

        async with cache.optimistic([key], invalidate=[prefix]) as tx:
            tx.apply(key, updater)
            await send_request()

    Entering cancels in-flight fetches for the keys and snapshots them.
    If the block raises, every key still cached is restored to its
    snapshot. In all cases the keys and the `invalidate` prefixes are
    marked stale on exit so the next read comes from the server. If the
    cache was cleared in the meantime, exiting leaves it untouched.
    """

    def __init__(
        self,
        cache: QueryCache,
        keys: Iterable[QueryKey],
        *,
        invalidate: Iterable[QueryKey] = (),
    ) -> None:
        self._cache = cache
        self._keys = list(dict.fromkeys(keys))
        self._invalidate = list(invalidate)
        self._snapshot: dict[QueryKey, Any] = {}
        self._generation = cache.generation

    async def begin(self) -> None:
        await self._cache.cancel_keys(self._keys)
        self._generation = self._cache.generation
        for key in self._keys:
            entry = self._cache._entries.get(key)
            if entry is None:
                self._snapshot[key] = _MISSING
            else:
                self._snapshot[key] = (entry.data, entry.updated_at, entry.invalidated)

    def apply(self, key: QueryKey, updater: Updater) -> bool:
        """Replace cached data for `key` with `updater(data)` if data exists."""
        if key not in self._snapshot:
            raise KeyError(f"{key!r} is not part of this update")
        if self._cache.get_query_data(key) is None:
            return False
        self._cache.set_query_data(key, updater)
        return True

    @property
    def is_current(self) -> bool:
        """False once the cache has been cleared since the update began."""
        return self._cache.generation == self._generation

    def rollback(self) -> None:
        """Put every key still cached back exactly as it was when the update began."""
        if not self.is_current:
            return
        for key, saved in self._snapshot.items():
            entry = self._cache._entries.get(key)
            # Keys that were empty were never modified; removed keys stay removed.
            if saved is _MISSING or entry is None:
                continue
            data, updated_at, invalidated = saved
            entry.data = data
            entry.updated_at = updated_at
            entry.invalidated = invalidated

    def settle(self) -> None:
        if not self.is_current:
            return
        for key in self._keys:
            entry = self._cache._entries.get(key)
            if entry is not None:
                entry.invalidated = True
        for prefix in self._invalidate:
            self._cache.invalidate_queries(prefix)

    async def __aenter__(self) -> OptimisticUpdate:
        await self.begin()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self.is_current:
            logger.debug("Cache was cleared during an optimistic update; leaving it alone")
            return
        if exc is not None:
            logger.debug("Rolling back optimistic update of %d keys", len(self._keys))
            self.rollback()
        self.settle()
