"""Post operations exposed to the routing layer.

``PostService`` is the single entry point for reads and writes of posts.
Authentication happens before these calls; a missing user id is reported
as ``Unauthenticated``. Every write goes to PostgreSQL first, then the
invalidator clears the affected cache entries. A cache failure never fails
a write that the database accepted.
"""

import logging
from typing import Iterable, List, Optional

from postcache.background import BackgroundRunner
from postcache.cache.keys import CacheKeys
from postcache.config import CacheSettings
from postcache.errors import NotFound, Unauthenticated
from postcache.models import LikeAck, Post, PostCreate, PostPage, PostUpdate
from postcache.services.engagement import EngagementCounter
from postcache.services.invalidator import Invalidator
from postcache.services.listings import ListingAssembler
from postcache.services.post_reader import PostReader

logger = logging.getLogger(__name__)


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise Unauthenticated()
    return user_id


class PostService:
    """
    Facade over the reader, the engagement counter, the invalidator and the
    listing assembler.
    """

    def __init__(
        self,
        store,
        reader: PostReader,
        counter: EngagementCounter,
        invalidator: Invalidator,
        listings: ListingAssembler,
        background: BackgroundRunner,
    ):
        self.store = store
        self.reader = reader
        self.counter = counter
        self.invalidator = invalidator
        self.listings = listings
        self.background = background

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_post(self, post_id: str) -> Post:
        return await self.reader.get_by_id(post_id)

    async def get_post_by_slug(self, slug: str) -> Post:
        return await self.reader.get_by_slug(slug)

    async def list_published(self, page: int = 1, page_size: int = 10) -> PostPage:
        return await self.listings.list_published(page, page_size)

    async def list_my_posts(self, user_id: Optional[str]) -> List[Post]:
        return await self.listings.list_by_owner(_require_user(user_id))

    async def trending(self, limit: Optional[int] = None) -> List[Post]:
        return await self.listings.trending(limit)

    async def search_by_tags(self, tags: Iterable[str]) -> List[Post]:
        return await self.listings.search_by_tags(tags)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_post(self, payload: PostCreate, user_id: Optional[str]) -> Post:
        """
        Create a post and cache its snapshot.

        Raises:
            Unauthenticated: If ``user_id`` is missing
            Conflict: If the slug is taken
        """
        owner_id = _require_user(user_id)
        post = await self.store.create(payload, owner_id)
        await self.invalidator.invalidate_post(post.id, post.slug)
        await self.reader.populate(post)
        return post

    async def update_post(self, post_id: str, patch: PostUpdate) -> Post:
        """
        Apply a partial update.

        The old and new slug snapshots are both removed; the next read
        caches the fresh row.

        Raises:
            NotFound: If the post is absent or soft-deleted
            Conflict: If the new slug is taken
        """
        existing = await self.store.find_by_id(post_id)
        if existing.is_deleted:
            raise NotFound()

        updated = await self.store.update(post_id, patch.changes())
        await self.invalidator.invalidate_post(post_id, updated.slug, previous_slug=existing.slug)
        return updated

    async def delete_post(self, post_id: str, soft: bool = True) -> Post:
        """
        Soft delete (flag the row) or hard delete (remove the row).

        Returns:
            The post as it was left in (soft) or removed from (hard) the store

        Raises:
            NotFound: If the post is absent, or already soft-deleted on a soft delete
        """
        if soft:
            existing = await self.store.find_by_id(post_id)
            if existing.is_deleted:
                raise NotFound()
            post = await self.store.update(post_id, {"is_deleted": True})
        else:
            post = await self.store.delete(post_id)

        await self.invalidator.mark_deleted(post.id)
        await self.invalidator.invalidate_post(post.id, post.slug)
        await self.invalidator.drop_counters(post.id)
        logger.info(f"Post removed: id={post.id} soft={soft}")
        return post

    async def like(self, post_id: str, user_id: Optional[str]) -> LikeAck:
        return await self.counter.like(post_id, _require_user(user_id))

    async def unlike(self, post_id: str, user_id: Optional[str]) -> LikeAck:
        return await self.counter.unlike(post_id, _require_user(user_id))

    async def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        """Wait for in-flight view counting before the pools close."""
        await self.background.drain(timeout=timeout)


def build_post_service(cache, store, settings: Optional[CacheSettings] = None) -> PostService:
    """
    Wire the post components around one cache client and one store.

    Args:
        cache: Fast Cache client (AsyncRedisClient)
        store: Durable post store (PostStore)
        settings: Cache policy; read from the environment if omitted
    """
    settings = settings or CacheSettings()
    keys = CacheKeys(settings.key_prefix)
    background = BackgroundRunner()

    invalidator = Invalidator(cache, keys, deleted_ttl=settings.post_ttl)
    counter = EngagementCounter(cache, store, keys, invalidator, settings)
    reader = PostReader(cache, store, keys, settings, counter, invalidator, background)
    listings = ListingAssembler(cache, store, keys, settings)

    return PostService(store, reader, counter, invalidator, listings, background)
