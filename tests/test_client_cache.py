# mypy: ignore-errors
"""Tests for the client query cache."""

from __future__ import annotations

import asyncio
import gc

import pytest

from techblog.client.cache import QueryCache
from techblog.client.errors import ApiError, QueryRemovedError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingFetcher:
    def __init__(self, *values) -> None:
        self.values = list(values)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        value = self.values[min(self.calls, len(self.values)) - 1]
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> QueryCache:
    return QueryCache(stale_time=300, cache_time=600, clock=clock)


@pytest.mark.asyncio
async def test_fresh_data_is_served_from_cache(cache, clock) -> None:
    fetch = CountingFetcher("a", "b")
    assert await cache.fetch_query(("posts", 1), fetch) == "a"
    clock.advance(299)
    assert await cache.fetch_query(("posts", 1), fetch) == "a"
    assert fetch.calls == 1


@pytest.mark.asyncio
async def test_stale_data_is_refetched(cache, clock) -> None:
    fetch = CountingFetcher("a", "b")
    await cache.fetch_query(("posts", 1), fetch)
    clock.advance(300)
    assert cache.is_stale(("posts", 1))
    assert await cache.fetch_query(("posts", 1), fetch) == "b"
    assert fetch.calls == 2


@pytest.mark.asyncio
async def test_per_call_stale_time(cache, clock) -> None:
    fetch = CountingFetcher("a", "b")
    await cache.fetch_query(("post", 1), fetch, stale_time=600)
    clock.advance(500)
    assert await cache.fetch_query(("post", 1), fetch, stale_time=600) == "a"


@pytest.mark.asyncio
async def test_idle_entries_are_evicted(cache, clock) -> None:
    await cache.fetch_query(("posts", 1), CountingFetcher("a"))
    clock.advance(599)
    assert cache.collect_garbage() == 0
    clock.advance(1)
    assert cache.collect_garbage() == 1
    assert ("posts", 1) not in cache


@pytest.mark.asyncio
async def test_reads_keep_entries_alive(cache, clock) -> None:
    await cache.fetch_query(("posts", 1), CountingFetcher("a"))
    clock.advance(500)
    assert cache.get_query_data(("posts", 1)) == "a"
    clock.advance(500)
    assert cache.collect_garbage() == 0


@pytest.mark.asyncio
async def test_concurrent_fetches_share_one_request(cache) -> None:
    started = asyncio.Event()
    release = asyncio.Event()
    calls = 0

    async def slow_fetch():
        nonlocal calls
        calls += 1
        started.set()
        await release.wait()
        return "done"

    first = asyncio.create_task(cache.fetch_query(("posts", 1), slow_fetch))
    second = asyncio.create_task(cache.fetch_query(("posts", 1), slow_fetch))
    await started.wait()
    release.set()
    assert await asyncio.gather(first, second) == ["done", "done"]
    assert calls == 1


@pytest.mark.asyncio
async def test_fetch_errors_propagate_and_keep_old_data(cache, clock) -> None:
    fetch = CountingFetcher("a", ApiError("boom", status_code=500))
    await cache.fetch_query(("posts", 1), fetch)
    cache.invalidate_queries(("posts",))
    with pytest.raises(ApiError):
        await cache.fetch_query(("posts", 1), fetch)
    assert cache.get_query_data(("posts", 1)) == "a"


@pytest.mark.asyncio
async def test_prefetch_swallows_client_errors(cache) -> None:
    await cache.prefetch_query(("posts", 2), CountingFetcher(ApiError("down")))
    assert cache.get_query_data(("posts", 2)) is None


@pytest.mark.asyncio
async def test_invalidate_by_prefix(cache) -> None:
    await cache.fetch_query(("posts", 1), CountingFetcher("a"))
    await cache.fetch_query(("posts", "drafts", 7), CountingFetcher("d"))
    await cache.fetch_query(("post", 1), CountingFetcher("p"))

    assert cache.invalidate_queries(("posts",)) == 2
    assert cache.is_stale(("posts", 1))
    assert cache.is_stale(("posts", "drafts", 7))
    assert not cache.is_stale(("post", 1))
    # Invalidated data stays readable until the refetch lands.
    assert cache.get_query_data(("posts", 1)) == "a"


@pytest.mark.asyncio
async def test_cancelled_fetch_serves_cached_data(cache) -> None:
    started = asyncio.Event()

    async def hanging_fetch():
        started.set()
        await asyncio.Event().wait()

    cache.set_query_data(("post", 1), "cached")
    cache.invalidate_queries(("post",))
    waiter = asyncio.create_task(cache.fetch_query(("post", 1), hanging_fetch))
    await started.wait()
    await cache.cancel_queries(("post",))
    assert await waiter == "cached"


def test_set_query_data_with_updater(cache) -> None:
    cache.set_query_data(("post", 1), 1)
    assert cache.set_query_data(("post", 1), lambda old: old + 1) == 2
    assert cache.set_query_data(("post", 2), lambda old: old) is None


@pytest.mark.asyncio
async def test_optimistic_update_rolls_back_on_error(cache) -> None:
    cache.set_query_data(("post", 1), {"likes": 3})

    with pytest.raises(ApiError):
        async with cache.optimistic([("post", 1), ("post", 2)]) as update:
            assert update.apply(("post", 1), lambda old: {"likes": old["likes"] + 1})
            # No data cached, so nothing to update.
            assert not update.apply(("post", 2), lambda old: old)
            assert cache.get_query_data(("post", 1)) == {"likes": 4}
            raise ApiError("rejected", status_code=500)

    assert cache.get_query_data(("post", 1)) == {"likes": 3}
    assert ("post", 2) not in cache
    assert cache.is_stale(("post", 1))


@pytest.mark.asyncio
async def test_optimistic_update_commits_and_invalidates(cache) -> None:
    cache.set_query_data(("post", 1), 1)
    cache.set_query_data(("posts", "a"), "listing")

    async with cache.optimistic([("post", 1)], invalidate=[("posts",)]) as update:
        update.apply(("post", 1), lambda old: old + 1)

    assert cache.get_query_data(("post", 1)) == 2
    assert cache.is_stale(("post", 1))
    assert cache.is_stale(("posts", "a"))


@pytest.mark.asyncio
async def test_optimistic_apply_outside_snapshot(cache) -> None:
    async with cache.optimistic([("post", 1)]) as update:
        with pytest.raises(KeyError):
            update.apply(("post", 9), lambda old: old)


def test_clear_drops_everything(cache) -> None:
    cache.set_query_data(("post", 1), "x")
    cache.set_query_data(("posts", 1), "y")
    cache.clear()
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_cancelled_first_load_fetches_again(cache) -> None:
    started = asyncio.Event()
    calls = 0

    async def fetch():
        nonlocal calls
        calls += 1
        if calls == 1:
            started.set()
            await asyncio.Event().wait()
        return "fresh"

    waiter = asyncio.create_task(cache.fetch_query(("post", 1), fetch))
    await started.wait()
    await cache.cancel_queries(("post",))

    assert await waiter == "fresh"
    assert calls == 2
    assert cache.get_query_data(("post", 1)) == "fresh"


@pytest.mark.asyncio
async def test_clear_while_loading_raises_query_removed(cache) -> None:
    started = asyncio.Event()

    async def hanging_fetch():
        started.set()
        await asyncio.Event().wait()

    waiter = asyncio.create_task(cache.fetch_query(("post", 1), hanging_fetch))
    await started.wait()
    cache.clear()

    with pytest.raises(QueryRemovedError):
        await waiter
    assert ("post", 1) not in cache


@pytest.mark.asyncio
async def test_remove_while_loading_raises_query_removed(cache) -> None:
    started = asyncio.Event()

    async def hanging_fetch():
        started.set()
        await asyncio.Event().wait()

    waiter = asyncio.create_task(cache.fetch_query(("posts", 1), hanging_fetch))
    await started.wait()
    assert cache.remove_queries(("posts",)) == 1

    with pytest.raises(QueryRemovedError):
        await waiter


@pytest.mark.asyncio
async def test_abandoned_fetch_error_is_not_reported(cache) -> None:
    loop = asyncio.get_running_loop()
    reported = []
    loop.set_exception_handler(lambda _loop, context: reported.append(context))
    try:
        release = asyncio.Event()

        async def failing_fetch():
            await release.wait()
            raise ApiError("boom", status_code=500)

        waiter = asyncio.create_task(cache.fetch_query(("post", 1), failing_fetch))
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        release.set()
        for _ in range(5):
            await asyncio.sleep(0)
        del waiter
        gc.collect()

        assert reported == []
    finally:
        loop.set_exception_handler(None)


@pytest.mark.asyncio
async def test_optimistic_update_after_clear_restores_nothing(cache) -> None:
    cache.set_query_data(("post", 1), {"likes": 3})

    with pytest.raises(ApiError):
        async with cache.optimistic([("post", 1)], invalidate=[("posts",)]) as update:
            update.apply(("post", 1), lambda old: {"likes": old["likes"] + 1})
            cache.clear()
            raise ApiError("rejected", status_code=500)

    assert len(cache) == 0


@pytest.mark.asyncio
async def test_optimistic_rollback_keeps_removed_keys_removed(cache) -> None:
    cache.set_query_data(("post", 1), 1)
    cache.set_query_data(("post", 2), 10)

    with pytest.raises(ApiError):
        async with cache.optimistic([("post", 1), ("post", 2)]) as update:
            update.apply(("post", 1), lambda old: old + 1)
            update.apply(("post", 2), lambda old: old + 1)
            cache.remove_queries(("post", 1))
            raise ApiError("rejected", status_code=500)

    assert ("post", 1) not in cache
    assert cache.get_query_data(("post", 2)) == 10
