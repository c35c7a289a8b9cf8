"""Cache-aside helpers and the @cached decorator for component methods.

Features:
    - Cache-aside pattern (try cache, fall back to the loader, repopulate)
    - Keys built from the method arguments by a key builder
    - TTL resolved per instance, so it follows the injected CacheSettings
    - Graceful degradation: any CacheUnavailable is logged and the loader's
      result is returned as if the cache were empty
    - Corrupt cache entries are deleted and treated as a miss

Usage:
    class Listings:
        def __init__(self, cache, settings):
            self.cache = cache
            self.settings = settings

        @cached(
            key_builder=lambda self, owner_id: f"posts:user:{owner_id}",
            ttl=lambda self: self.settings.post_ttl,
            decode=decode_posts,
        )
        async def list_by_owner(self, owner_id):
            return await self.store.list_by_owner(owner_id)

The decorated method's instance must expose the Fast Cache as ``self.cache``.
"""

import functools
import logging
from typing import Any, Callable, Optional, TypeVar

from postcache.cache.serializer import serialize, deserialize
from postcache.errors import CacheUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def read_cached(cache, key: str, decode: Callable[[Any], T]) -> Optional[T]:
    """
    Read and decode one cache entry.

    Returns:
        The decoded value, or None on a miss, a cache failure or a
        corrupt entry (the corrupt entry is deleted)
    """
    try:
        raw = await cache.get(key)
    except CacheUnavailable as e:
        logger.warning(f"Cache read failed for {key}, falling back to database: {e}")
        return None

    if raw is None:
        logger.debug(f"Cache MISS: {key}")
        return None

    try:
        value = decode(deserialize(raw))
    except ValueError as e:
        # pydantic.ValidationError subclasses ValueError
        logger.error(f"Failed to decode cached value for {key}: {e}. Treating as miss.")
        await forget_cached(cache, key)
        return None

    logger.debug(f"Cache HIT: {key}")
    return value


async def write_cached(cache, key: str, value: Any, ttl: int) -> bool:
    """
    Serialize and store one cache entry with a TTL.

    Returns:
        True if stored, False if the cache was unavailable
    """
    try:
        await cache.set_with_expiry(key, serialize(value), ttl)
        logger.debug(f"Cache SET: {key} (ttl={ttl})")
        return True
    except CacheUnavailable as e:
        logger.warning(f"Failed to cache {key}: {e}")
        return False


async def forget_cached(cache, *keys: str) -> int:
    """Delete cache entries, logging instead of raising on cache failure."""
    try:
        return await cache.delete(*keys)
    except CacheUnavailable as e:
        logger.warning(f"Failed to delete cache keys {keys}: {e}")
        return 0


def cached(
    key_builder: Callable[..., str],
    ttl: Callable[[Any], int],
    decode: Callable[[Any], Any],
):
    """
    Decorator for cache-aside caching of async component methods.

    Args:
        key_builder: Called with (self, *args, **kwargs) to build the key
        ttl: Called with self to get the TTL in seconds
        decode: Turns the deserialized JSON back into the method's result type

    Returns:
        Decorated coroutine function

    Notes:
        - Loader exceptions propagate unchanged and nothing is cached
        - Cache errors are logged but never break the call
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs) -> Any:
            key = key_builder(self, *args, **kwargs)

            hit = await read_cached(self.cache, key, decode)
            if hit is not None:
                return hit

            result = await func(self, *args, **kwargs)
            await write_cached(self.cache, key, result, ttl(self))
            return result

        return wrapper

    return decorator
