"""Tests for view batching and likes (postcache/services/engagement.py)."""

import asyncio
import time

import pytest

from postcache.errors import AlreadyLiked, NotFound, NotLiked
from postcache.services.engagement import LIKE_MARKER_VALUE


@pytest.fixture
def counter(service):
    return service.counter


# ==================== Views ====================


@pytest.mark.asyncio
@pytest.mark.unit
async def test_views_flush_once_per_batch(counter, store, post):
    for _ in range(19):
        await counter.record_view(post.id)

    assert store.increments == [(post.id, "view_count", 10)]
    persisted = store.rows[post.id].view_count
    unflushed = await counter.unflushed_views(post.id)
    assert persisted == 10
    assert persisted + unflushed == 19


@pytest.mark.asyncio
@pytest.mark.unit
async def test_flush_invalidates_snapshot(service, counter, cache, keys, post):
    await service.reader.populate(post)

    for _ in range(10):
        await counter.record_view(post.id)

    assert not cache.has(keys.post(post.id))
    assert not cache.has(keys.post_slug(post.slug))


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_views_flush_exactly_once(counter, store, post):
    await asyncio.gather(*(counter.record_view(post.id) for _ in range(10)))

    assert store.increments == [(post.id, "view_count", 10)]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_evicted_counter_loses_unflushed_views(counter, store, cache, keys, post):
    for _ in range(5):
        await counter.record_view(post.id)
    cache.evict(keys.view_counter(post.id))
    for _ in range(5):
        await counter.record_view(post.id)

    # Counter restarted at 0, so the boundary was never reached
    assert store.increments == []
    assert await counter.unflushed_views(post.id) == 5


@pytest.mark.asyncio
@pytest.mark.unit
async def test_view_not_counted_when_cache_down(counter, store, cache, post):
    cache.fail = True

    assert await counter.record_view(post.id) == 0
    assert await counter.unflushed_views(post.id) == 0
    assert store.increments == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_corrupt_view_counter_reads_as_zero(counter, cache, keys, post):
    cache.data[keys.view_counter(post.id)] = "many"
    assert await counter.unflushed_views(post.id) == 0


# ==================== Likes ====================


@pytest.mark.asyncio
@pytest.mark.unit
async def test_like_once_per_user(counter, store, cache, keys, post):
    ack = await counter.like(post.id, "user-2")

    assert ack.liked is True
    assert store.rows[post.id].like_count == 1
    assert cache.data[keys.like_marker("user-2", post.id)] == LIKE_MARKER_VALUE
    assert cache.data[keys.like_counter(post.id)] == "1"

    with pytest.raises(AlreadyLiked):
        await counter.like(post.id, "user-2")
    assert store.rows[post.id].like_count == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_likes_from_same_user(counter, store, post):
    results = await asyncio.gather(
        counter.like(post.id, "user-2"),
        counter.like(post.id, "user-2"),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, AlreadyLiked)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert store.rows[post.id].like_count == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_different_users_each_count(counter, store, post):
    await counter.like(post.id, "user-2")
    await counter.like(post.id, "user-3")

    assert store.rows[post.id].like_count == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_like_marker_has_long_ttl(counter, cache, keys, settings, post):

    await counter.like(post.id, "user-2")

    remaining = cache.expires_at[keys.like_marker("user-2", post.id)] - time.monotonic()
    assert settings.like_marker_ttl - 5 < remaining <= settings.like_marker_ttl


@pytest.mark.asyncio
@pytest.mark.unit
async def test_like_missing_post_removes_marker(counter, cache, keys):
    with pytest.raises(NotFound):
        await counter.like("ghost", "user-2")

    assert not cache.has(keys.like_marker("user-2", "ghost"))


@pytest.mark.asyncio
@pytest.mark.unit
async def test_marker_survives_failed_durable_increment(counter, store, cache, keys, post):
    async def broken(*args, **kwargs):
        raise ConnectionRefusedError("database down")

    store.increment_column = broken

    with pytest.raises(ConnectionRefusedError):
        await counter.like(post.id, "user-2")

    # Known gap: marker written, count not incremented
    assert cache.has(keys.like_marker("user-2", post.id))
    assert store.rows[post.id].like_count == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_likes_without_cache_skip_duplicate_guard(counter, store, cache, post):
    cache.fail = True

    await counter.like(post.id, "user-2")
    await counter.like(post.id, "user-2")

    assert store.rows[post.id].like_count == 2


# ==================== Unlikes ====================


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unlike_after_like(counter, store, cache, keys, post):
    await counter.like(post.id, "user-2")

    ack = await counter.unlike(post.id, "user-2")

    assert ack.liked is False
    assert store.rows[post.id].like_count == 0
    assert not cache.has(keys.like_marker("user-2", post.id))
    assert cache.data[keys.like_counter(post.id)] == "0"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unlike_without_like_raises(counter, store, post):
    with pytest.raises(NotLiked):
        await counter.unlike(post.id, "user-2")

    assert store.increments == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_double_unlike_decrements_once(counter, store, post):
    await counter.like(post.id, "user-2")
    await counter.like(post.id, "user-3")

    results = await asyncio.gather(
        counter.unlike(post.id, "user-2"),
        counter.unlike(post.id, "user-2"),
        return_exceptions=True,
    )

    assert sum(isinstance(r, NotLiked) for r in results) == 1
    assert store.rows[post.id].like_count == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_like_count_never_negative(counter, store, cache, keys):
    seeded = store.seed(like_count=0)
    cache.data[keys.like_marker("user-2", seeded.id)] = LIKE_MARKER_VALUE

    await counter.unlike(seeded.id, "user-2")

    assert store.rows[seeded.id].like_count == 0


# ==================== Deleted Posts ====================


@pytest.mark.asyncio
@pytest.mark.unit
async def test_like_soft_deleted_post_is_not_found(service, counter, store, cache, keys, post):
    await service.delete_post(post.id)

    with pytest.raises(NotFound):
        await counter.like(post.id, "user-2")

    assert store.rows[post.id].like_count == 0
    assert not cache.has(keys.like_marker("user-2", post.id))


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unlike_soft_deleted_post_is_not_found(service, counter, store, post):
    await counter.like(post.id, "user-2")
    await service.delete_post(post.id)

    with pytest.raises(NotFound):
        await counter.unlike(post.id, "user-2")

    assert store.rows[post.id].like_count == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_view_counter_expires_when_idle(counter, cache, keys, settings, post):
    await counter.record_view(post.id)

    remaining = cache.expires_at[keys.view_counter(post.id)] - time.monotonic()
    assert settings.view_counter_ttl - 5 < remaining <= settings.view_counter_ttl


@pytest.mark.asyncio
@pytest.mark.unit
async def test_view_after_delete_recreates_expiring_counter(service, counter, cache, keys, post):
    await counter.record_view(post.id)
    await service.delete_post(post.id)
    assert not cache.has(keys.view_counter(post.id))

    # A view racing the delete lands after drop_counters
    await counter.record_view(post.id)

    assert keys.view_counter(post.id) in cache.expires_at


@pytest.mark.asyncio
@pytest.mark.unit
async def test_flush_for_deleted_post_is_dropped(service, counter, store, cache, keys, post):
    await service.delete_post(post.id)
    cache.data[keys.view_counter(post.id)] = "9"

    assert await counter.record_view(post.id) == 10
    assert store.rows[post.id].view_count == 0
