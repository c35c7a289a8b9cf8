"""Cached aggregate views: published listings, owner listings, trending, tag search.

These views are derived from many rows and tolerate staleness, so they are
cached with short TTLs and invalidated coarsely on any post mutation.
"""

import logging
from typing import Iterable, List, Optional

from postcache.cache.decorator import cached
from postcache.cache.keys import CacheKeys, normalize_tags
from postcache.config import CacheSettings
from postcache.models import Post, PostPage

logger = logging.getLogger(__name__)


def decode_posts(data) -> List[Post]:
    return [Post.model_validate(item) for item in data]


class ListingAssembler:
    """
    Builds and caches listing, trending and search results.

    Trending ranks by persisted ``view_count`` then ``like_count``; views
    still sitting in Redis counters are not taken into account.
    """

    def __init__(self, cache, store, keys: CacheKeys, settings: CacheSettings):
        self.cache = cache
        self.store = store
        self.keys = keys
        self.settings = settings

    async def list_published(self, page: int = 1, page_size: int = 10) -> PostPage:
        """
        One page of published posts, newest first.

        ``page`` below 1 becomes 1; ``page_size`` is clamped to
        ``[1, list_max_page_size]``.
        """
        page = max(1, int(page))
        page_size = min(max(1, int(page_size)), self.settings.list_max_page_size)
        return await self._published_page(page, page_size)

    @cached(
        key_builder=lambda self, page, page_size: self.keys.posts_page(page, page_size),
        ttl=lambda self: self.settings.list_ttl,
        decode=PostPage.model_validate,
    )
    async def _published_page(self, page: int, page_size: int) -> PostPage:
        items = await self.store.list_published((page - 1) * page_size, page_size)
        total = await self.store.count_published()
        return PostPage.build(items, total, page, page_size)

    @cached(
        key_builder=lambda self, owner_id: self.keys.owner_posts(owner_id),
        ttl=lambda self: self.settings.post_ttl,
        decode=decode_posts,
    )
    async def list_by_owner(self, owner_id: str) -> List[Post]:
        """An owner's non-deleted posts, drafts included."""
        return await self.store.list_by_owner(owner_id)

    async def trending(self, limit: Optional[int] = None) -> List[Post]:
        """Top ``limit`` published posts by views, then likes."""
        if limit is None:
            limit = self.settings.trending_default_limit
        limit = min(max(1, int(limit)), self.settings.list_max_page_size)
        return await self._trending(limit)

    @cached(
        key_builder=lambda self, limit: self.keys.trending(limit),
        ttl=lambda self: self.settings.trending_ttl,
        decode=decode_posts,
    )
    async def _trending(self, limit: int) -> List[Post]:
        return await self.store.trending(limit)

    async def search_by_tags(self, tags: Iterable[str]) -> List[Post]:
        """
        Published posts carrying any of ``tags``.

        The tag set is sorted and deduplicated before building the cache
        key, so ["a", "b"] and ["b", "a"] share one entry. An empty tag set
        returns an empty list without touching either store.
        """
        normalized = normalize_tags(tags)
        if not normalized:
            return []
        return await self._search(tuple(normalized))

    @cached(
        key_builder=lambda self, tags: self.keys.tag_search(tags),
        ttl=lambda self: self.settings.search_ttl,
        decode=decode_posts,
    )
    async def _search(self, tags: tuple) -> List[Post]:
        logger.debug(f"Searching posts by tags {list(tags)}")
        return await self.store.search_by_tags(list(tags))
