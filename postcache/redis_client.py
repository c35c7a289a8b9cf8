"""Async Redis client wrapper with connection pooling and bounded calls.

This module provides the Fast Cache used by the post layer: a thin wrapper
over ``redis.asyncio`` exposing exactly the primitives the layer needs
(get, set with expiry, delete, atomic increment/decrement, pattern
enumeration and an atomic set-if-absent).

Architecture:
    - AsyncRedisClient: wraps one redis.asyncio client backed by a pool
    - Every call is bounded by ``operation_timeout`` (asyncio.wait_for)
    - Every backend failure is re-raised as CacheUnavailable
    - No global singleton: the process entry point creates the client,
      injects it into the components and closes it on shutdown

Usage:
    # In the FastAPI lifespan
    cache = await create_redis_client(RedisConfig())

    # In application code (injected)
    await cache.set_with_expiry("key", "value", ttl=3600)
    value = await cache.get("key")

    # On shutdown
    await close_redis_client(cache)
"""

import os
import asyncio
import logging
from typing import Any, Awaitable, List, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError
from dotenv import load_dotenv

from postcache.errors import CacheUnavailable

load_dotenv()

logger = logging.getLogger(__name__)


class RedisConfig:
    """Configuration for Redis connection pool.

    Loads settings from environment variables with sensible defaults.
    """

    def __init__(self):
        """Initialize Redis configuration from environment variables."""
        self.url = os.getenv("REDIS_URL")
        self.host = os.getenv("REDIS_HOST", "localhost")
        self.port = int(os.getenv("REDIS_PORT", "6379"))
        self.db = int(os.getenv("REDIS_DB", "0"))
        self.password = os.getenv("REDIS_PASSWORD", None)
        self.max_connections = int(os.getenv("REDIS_MAX_CONNECTIONS", "10"))
        self.socket_timeout = float(os.getenv("REDIS_SOCKET_TIMEOUT", "5"))
        self.socket_connect_timeout = float(os.getenv("REDIS_SOCKET_CONNECT_TIMEOUT", "5"))
        self.retry_on_timeout = os.getenv("REDIS_RETRY_ON_TIMEOUT", "true").lower() == "true"
        self.operation_timeout = float(os.getenv("REDIS_OPERATION_TIMEOUT", "2.0"))

    def get_url(self) -> str:
        """Return REDIS_URL if set, otherwise build it from the components."""
        if self.url:
            return self.url

        redis_url = "redis://"
        if self.password:
            redis_url += f":{self.password}@"
        redis_url += f"{self.host}:{self.port}/{self.db}"
        return redis_url

    def __repr__(self) -> str:
        """String representation (safe - no password)."""
        return (
            f"RedisConfig("
            f"host={self.host}, "
            f"port={self.port}, "
            f"db={self.db}, "
            f"max_connections={self.max_connections}, "
            f"operation_timeout={self.operation_timeout})"
        )


class AsyncRedisClient:
    """Async Redis client wrapper used as the post layer's Fast Cache.

    Safe for concurrent use: every call borrows a connection from the
    underlying pool.

    Example:
        client = AsyncRedisClient(aioredis.from_url("redis://localhost"))

        await client.set_with_expiry("key", "value", ttl=3600)
        value = await client.get("key")
        created = await client.set_if_absent_with_expiry("lock", "1", ttl=60)
        await client.delete("key", "lock")

    Raises:
        CacheUnavailable: from every operation when Redis errors or the
            call exceeds ``operation_timeout``
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        operation_timeout: float = 2.0,
        scan_count: int = 500,
    ):
        """Initialize async Redis client.

        Args:
            redis_client: Async Redis client instance with connection pool
            operation_timeout: Upper bound in seconds for any single call
            scan_count: COUNT hint used when enumerating keys with SCAN
        """
        self.client = redis_client
        self.operation_timeout = operation_timeout
        self.scan_count = scan_count

    async def _call(self, command: str, target: Any, awaitable: Awaitable) -> Any:
        """Run one Redis command with the timeout bound and error mapping."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.operation_timeout)
        except asyncio.TimeoutError as e:
            raise CacheUnavailable(
                f"Redis {command} timed out after {self.operation_timeout}s for {target!r}"
            ) from e
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"Redis {command} failed for {target!r}: {e}") from e

    async def ping(self) -> bool:
        """Check if Redis server is reachable.

        Returns:
            True if server responds to ping, False otherwise
        """
        try:
            result = await self._call("PING", None, self.client.ping())
            logger.debug("Redis ping successful")
            return bool(result)
        except CacheUnavailable as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    async def get(self, key: str) -> Optional[str]:
        """Get value from Redis.

        Returns:
            Value if found, None otherwise
        """
        value = await self._call("GET", key, self.client.get(key))
        if value is not None:
            logger.debug(f"Cache HIT: {key}")
        else:
            logger.debug(f"Cache MISS: {key}")
        return value

    async def set_with_expiry(self, key: str, value: str, ttl: int) -> bool:
        """Set value in Redis with a TTL in seconds (SETEX)."""
        await self._call("SETEX", key, self.client.setex(key, ttl, value))
        logger.debug(f"Cache SET: {key} (ttl={ttl})")
        return True

    async def set_if_absent_with_expiry(self, key: str, value: str, ttl: int) -> bool:
        """Atomically set a key only if it does not exist (SET NX EX).

        Returns:
            True if the key was created, False if it already existed
        """
        created = await self._call("SET NX", key, self.client.set(key, value, ex=ttl, nx=True))
        logger.debug(f"Cache SETNX: {key} (ttl={ttl}, created={bool(created)})")
        return bool(created)

    async def delete(self, *keys: str) -> int:
        """Delete one or more keys from Redis.

        Returns:
            Number of keys deleted
        """
        if not keys:
            return 0
        count = await self._call("DEL", keys, self.client.delete(*keys))
        logger.debug(f"Cache DELETE: {keys} (count={count})")
        return int(count)

    async def increment(self, key: str, ttl: Optional[int] = None) -> int:
        """Atomically increment an integer counter (INCR) and return the new value.

        Args:
            key: Counter key
            ttl: When given, the expiry is refreshed in the same MULTI/EXEC
                transaction, so a counter recreated after a delete still expires
        """
        if ttl is None:
            return int(await self._call("INCR", key, self.client.incr(key)))

        pipe = self.client.pipeline(transaction=True)
        pipe.incr(key)
        pipe.expire(key, ttl)
        value, _ = await self._call("INCR+EXPIRE", key, pipe.execute())
        return int(value)

    async def decrement(self, key: str) -> int:
        """Atomically decrement an integer counter (DECR) and return the new value."""
        return int(await self._call("DECR", key, self.client.decr(key)))

    async def keys_matching(self, pattern: str) -> List[str]:
        """Find keys matching a glob pattern.

        Uses SCAN rather than KEYS so large keyspaces do not block the server.

        Returns:
            List of matching keys
        """
        async def collect() -> List[str]:
            return [
                key async for key in self.client.scan_iter(match=pattern, count=self.scan_count)
            ]

        keys = await self._call("SCAN", pattern, collect())
        return keys


async def create_redis_client(config: Optional[RedisConfig] = None) -> AsyncRedisClient:
    """Create the async Redis client for the process.

    Should be called once from the application lifespan. An unreachable
    server does not abort start-up: the post layer degrades to the durable
    store until Redis comes back.

    Returns:
        AsyncRedisClient: Client wrapping a pooled redis.asyncio connection
    """
    config = config or RedisConfig()
    logger.info(f"Initializing Redis pool with config: {config}")

    redis = aioredis.from_url(
        config.get_url(),
        max_connections=config.max_connections,
        socket_timeout=config.socket_timeout,
        socket_connect_timeout=config.socket_connect_timeout,
        retry_on_timeout=config.retry_on_timeout,
        decode_responses=True,  # Return strings instead of bytes
    )
    client = AsyncRedisClient(redis, operation_timeout=config.operation_timeout)

    if await client.ping():
        logger.info(f"✓ Redis pool initialized ({config.host}:{config.port})")
    else:
        logger.warning("✗ Redis unreachable at startup, serving from the database only")

    return client


async def close_redis_client(client: Optional[AsyncRedisClient]) -> None:
    """Close the Redis client and release all pooled connections."""
    if client is None:
        logger.info("Redis client is not initialized, nothing to close")
        return

    try:
        await client.client.aclose()
        logger.info("✓ Redis pool closed successfully")
    except (RedisError, OSError) as e:
        logger.error(f"Error closing Redis pool: {e}", exc_info=True)


async def check_redis_health(client: Optional[AsyncRedisClient], config: Optional[RedisConfig] = None) -> dict:
    """
    Check the health of the Redis connection.

    Returns:
        dict: Redis health status including:
            - status: "healthy", "degraded", or "unavailable"
            - host / port / db when a config is supplied
    """
    if client is None:
        return {
            "status": "unavailable",
            "error": "Client not initialized"
        }

    details = {}
    if config is not None:
        details = {"host": config.host, "port": config.port, "db": config.db}

    if await client.ping():
        return {"status": "healthy", **details}
    return {"status": "degraded", "error": "ping failed", **details}
