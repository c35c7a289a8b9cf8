"""Engagement counters: views and likes.

Views are counted in Redis and flushed to PostgreSQL in batches: every time
the post's view counter reaches a multiple of ``view_flush_batch`` the batch
is added to ``posts.view_count`` with one atomic UPDATE and the post's cache
entries are invalidated. This caps database writes at one per batch.

The counter is monotonic, so the views not yet flushed are always
``counter % batch`` and the true view count is
``persisted view_count + counter % batch``.

Known gaps:
    - If Redis loses the counter (eviction, restart) before a boundary,
      up to ``batch - 1`` views are lost. Acceptable for a display metric.
    - Counters expire after ``view_counter_ttl`` without views, so a counter
      recreated by a view racing a delete does not outlive the post.
    - A like marker can be written without the matching durable increment
      if the process dies in between; reconciling that is a separate job.

Likes are guarded by a per-(user, post) marker written with SET NX, so two
concurrent likes from the same user cannot both succeed.
"""

import logging

from postcache.cache.decorator import forget_cached
from postcache.cache.keys import CacheKeys
from postcache.config import CacheSettings
from postcache.errors import AlreadyLiked, CacheUnavailable, NotFound, NotLiked
from postcache.models import LikeAck
from postcache.services.invalidator import Invalidator

logger = logging.getLogger(__name__)

LIKE_MARKER_VALUE = "1"


class EngagementCounter:
    """
    View counting and like/unlike handling for posts.

    Args:
        cache: Fast Cache client
        store: Durable post store
        keys: Key builder
        invalidator: Used after flushes and like changes
        settings: Batch size and marker TTL
    """

    def __init__(self, cache, store, keys: CacheKeys, invalidator: Invalidator, settings: CacheSettings):
        self.cache = cache
        self.store = store
        self.keys = keys
        self.invalidator = invalidator
        self.settings = settings

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    async def record_view(self, post_id: str) -> int:
        """
        Count one view of ``post_id``.

        Returns:
            The counter's new value, or 0 if the cache was unavailable
            (the view is then not counted)

        Raises:
            Database errors from the flush; callers running this in the
            background log them
        """
        batch = self.settings.view_flush_batch
        try:
            views = await self.cache.increment(
                self.keys.view_counter(post_id), ttl=self.settings.view_counter_ttl
            )
        except CacheUnavailable as e:
            logger.warning(f"View not counted for post={post_id}: {e}")
            return 0

        if views % batch == 0:
            try:
                post = await self.store.increment_column(post_id, "view_count", batch)
            except NotFound:
                logger.info(f"View batch dropped, post={post_id} no longer exists")
                return views
            logger.info(f"View batch flushed: post={post_id} views={views} persisted={post.view_count}")
            await self.invalidator.invalidate_post(post_id, post.slug)

        return views

    async def unflushed_views(self, post_id: str) -> int:
        """Views counted in Redis but not yet flushed (0 if unknown)."""
        try:
            raw = await self.cache.get(self.keys.view_counter(post_id))
        except CacheUnavailable as e:
            logger.warning(f"Could not read view counter for post={post_id}: {e}")
            return 0

        if raw is None:
            return 0
        try:
            return int(raw) % self.settings.view_flush_batch
        except ValueError:
            logger.error(f"Corrupt view counter for post={post_id}: {raw!r}")
            return 0

    # ------------------------------------------------------------------
    # Likes
    # ------------------------------------------------------------------

    async def like(self, post_id: str, user_id: str) -> LikeAck:
        """
        Like a post once per user.

        Raises:
            AlreadyLiked: If the user's like marker already exists
            NotFound: If the post does not exist
        """
        marker = self.keys.like_marker(user_id, post_id)
        try:
            created = await self.cache.set_if_absent_with_expiry(
                marker, LIKE_MARKER_VALUE, self.settings.like_marker_ttl
            )
        except CacheUnavailable as e:
            logger.warning(f"Like guard unavailable for post={post_id} user={user_id}: {e}")
            created = None

        if created is False:
            raise AlreadyLiked()

        try:
            post = await self.store.increment_column(post_id, "like_count", 1)
        except NotFound:
            if created:
                await forget_cached(self.cache, marker)
            raise

        await self._adjust_like_counter(post_id, 1)
        await self.invalidator.invalidate_post(post_id, post.slug)
        logger.info(f"Post liked: post={post_id} user={user_id} likes={post.like_count}")
        return LikeAck(post_id=post_id, user_id=user_id, liked=True, message="Post liked successfully")

    async def unlike(self, post_id: str, user_id: str) -> LikeAck:
        """
        Remove a user's like.

        The marker is removed with a single DEL whose result decides the
        outcome, so a double unlike cannot decrement twice.

        Raises:
            NotLiked: If no like marker exists for the user
            NotFound: If the post does not exist
        """
        marker = self.keys.like_marker(user_id, post_id)
        try:
            removed = await self.cache.delete(marker)
        except CacheUnavailable as e:
            logger.warning(f"Like guard unavailable for post={post_id} user={user_id}: {e}")
            removed = None

        if removed == 0:
            raise NotLiked()

        post = await self.store.increment_column(post_id, "like_count", -1)
        await self._adjust_like_counter(post_id, -1)
        await self.invalidator.invalidate_post(post_id, post.slug)
        logger.info(f"Post unliked: post={post_id} user={user_id} likes={post.like_count}")
        return LikeAck(post_id=post_id, user_id=user_id, liked=False, message="Post unliked successfully")

    async def _adjust_like_counter(self, post_id: str, delta: int) -> None:
        key = self.keys.like_counter(post_id)
        try:
            if delta > 0:
                await self.cache.increment(key)
            else:
                await self.cache.decrement(key)
        except CacheUnavailable as e:
            logger.warning(f"Like counter not updated for post={post_id}: {e}")
