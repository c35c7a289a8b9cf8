"""Cache-aside reads of single posts by id or slug."""

import logging

from postcache.background import BackgroundRunner
from postcache.cache.decorator import read_cached, write_cached, forget_cached
from postcache.cache.keys import CacheKeys
from postcache.config import CacheSettings
from postcache.errors import NotFound
from postcache.models import Post
from postcache.services.engagement import EngagementCounter
from postcache.services.invalidator import Invalidator

logger = logging.getLogger(__name__)


class PostReader:
    """
    Resolves a post through Redis before PostgreSQL.

    A read that loaded the row just before a delete would otherwise cache
    the pre-delete snapshot after the delete's invalidation ran. After
    caching, the reader checks the deleted marker and drops the snapshot.

    Every successful read counts as a view. The view is recorded in the
    background, so the caller never waits for it and may see a count one
    view behind its own request.
    """

    def __init__(
        self,
        cache,
        store,
        keys: CacheKeys,
        settings: CacheSettings,
        counter: EngagementCounter,
        invalidator: Invalidator,
        background: BackgroundRunner,
    ):
        self.cache = cache
        self.store = store
        self.keys = keys
        self.settings = settings
        self.counter = counter
        self.invalidator = invalidator
        self.background = background

    async def get(self, identifier: str, by_slug: bool = False) -> Post:
        """
        Return the post identified by id (default) or slug.

        Raises:
            NotFound: If the post is absent or soft-deleted
        """
        key = self.keys.post_slug(identifier) if by_slug else self.keys.post(identifier)

        post = await read_cached(self.cache, key, Post.model_validate)
        if post is None:
            if by_slug:
                post = await self.store.find_by_slug(identifier)
            else:
                post = await self.store.find_by_id(identifier)
            if post.is_deleted:
                raise NotFound()
            await write_cached(self.cache, key, post, self.settings.post_ttl)
            if await self.invalidator.was_deleted(post.id):
                await forget_cached(self.cache, key)
                raise NotFound()
        elif post.is_deleted:
            raise NotFound()

        self.background.spawn(
            self.counter.record_view(post.id),
            context=f"record_view post={post.id}",
        )
        return await self._with_unflushed_views(post)

    async def get_by_id(self, post_id: str) -> Post:
        return await self.get(post_id)

    async def get_by_slug(self, slug: str) -> Post:
        return await self.get(slug, by_slug=True)

    async def populate(self, post: Post) -> None:
        """Cache a fresh snapshot under both the id and the slug key."""
        await write_cached(self.cache, self.keys.post(post.id), post, self.settings.post_ttl)
        await write_cached(self.cache, self.keys.post_slug(post.slug), post, self.settings.post_ttl)

    async def _with_unflushed_views(self, post: Post) -> Post:
        delta = await self.counter.unflushed_views(post.id)
        if not delta:
            return post
        return post.model_copy(update={"view_count": post.view_count + delta})
