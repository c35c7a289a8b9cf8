"""Cache invalidation for post mutations.

After any mutation of a post, every cache entry that could now be stale is
removed: the post's primary snapshot, its slug snapshot(s), and all
aggregate views (listing pages, per-owner listings, trending snapshots and
tag searches). Aggregate invalidation is deliberately coarse: their TTLs
are short, so precise per-page tracking buys nothing.

Invalidation never fails the caller. A cache outage is logged and the
mutation of the durable store stands.
"""

import logging
from typing import List, Optional

from postcache.cache.decorator import read_cached, write_cached, forget_cached
from postcache.cache.keys import CacheKeys
from postcache.errors import CacheUnavailable

logger = logging.getLogger(__name__)


class Invalidator:
    """
    Removes stale cache entries after a post mutation.

    Args:
        cache: Fast Cache client (AsyncRedisClient or a compatible double)
        keys: Key builder shared with the other components
        deleted_ttl: Lifetime of the deleted marker; at least the post
            snapshot TTL
    """

    def __init__(self, cache, keys: CacheKeys, deleted_ttl: int = 3600):
        self.cache = cache
        self.keys = keys
        self.deleted_ttl = deleted_ttl

    async def invalidate_post(
        self,
        post_id: str,
        slug: Optional[str] = None,
        previous_slug: Optional[str] = None,
    ) -> int:
        """
        Delete every cache entry made stale by a mutation of ``post_id``.

        Args:
            post_id: Primary key of the mutated post
            slug: Current slug; looked up from the cached snapshot if omitted
            previous_slug: Old slug when an update changed it

        Returns:
            Number of keys deleted (0 when the cache is unavailable)
        """
        post_key = self.keys.post(post_id)

        if slug is None:
            slug = await self._cached_slug(post_key)

        targets = [post_key]
        for candidate in (slug, previous_slug):
            if candidate:
                slug_key = self.keys.post_slug(candidate)
                if slug_key not in targets:
                    targets.append(slug_key)

        targets.extend(await self._aggregate_keys())

        deleted = await forget_cached(self.cache, *targets)
        logger.debug(f"Cache invalidated for post={post_id} (deleted={deleted})")
        return deleted

    async def drop_counters(self, post_id: str) -> int:
        """Delete the post's view and like counters (used when the post is deleted)."""
        return await forget_cached(
            self.cache,
            self.keys.view_counter(post_id),
            self.keys.like_counter(post_id),
        )

    async def mark_deleted(self, post_id: str) -> bool:
        """Record that ``post_id`` was deleted. Call before ``invalidate_post``."""
        return await write_cached(self.cache, self.keys.deleted_marker(post_id), True, self.deleted_ttl)

    async def was_deleted(self, post_id: str) -> bool:
        """True if a delete of ``post_id`` was recorded (False when the cache is down)."""
        return bool(await read_cached(self.cache, self.keys.deleted_marker(post_id), bool))

    async def _cached_slug(self, post_key: str) -> Optional[str]:
        snapshot = await read_cached(self.cache, post_key, lambda data: data)
        if isinstance(snapshot, dict):
            return snapshot.get("slug")
        return None

    async def _aggregate_keys(self) -> List[str]:
        found: List[str] = []
        for pattern in self.keys.aggregate_patterns():
            try:
                found.extend(await self.cache.keys_matching(pattern))
            except CacheUnavailable as e:
                logger.warning(f"Failed to enumerate {pattern} for invalidation: {e}")
        return found
