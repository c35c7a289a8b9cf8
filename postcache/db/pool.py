"""asyncpg pool for the durable post store.

The FastAPI lifespan (and the CLI `status` command) create the pool, hand
it to ``PostStore`` and close it on shutdown. Nothing here is global.

    pool = await create_pool(DatabaseConfig())
    store = PostStore(pool, timeout=config.command_timeout)
    ...
    await close_pool(pool)

Settings come from DATABASE_URL, or from DATABASE_NAME (postcache),
DATABASE_USER (postgres), DATABASE_HOST, DATABASE_PORT and
DATABASE_PASSWORD. Pool sizing uses DB_MIN_POOL_SIZE (5),
DB_MAX_POOL_SIZE (20), DB_COMMAND_TIMEOUT (5s) and
DB_MAX_INACTIVE_CONNECTION_LIFETIME (300s).
"""

import os
import logging
from typing import Optional
import asyncpg
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


class DatabaseConfig:
    """Configuration for PostgreSQL connection pool.

    Loads settings from environment variables with sensible defaults.
    Supports both DATABASE_URL connection string and individual parameters.
    """

    def __init__(self):
        """Initialize database configuration from environment variables."""
        self.database_url = os.getenv("DATABASE_URL")

        # Individual connection components (used if DATABASE_URL not provided)
        self.database_name = os.getenv("DATABASE_NAME", "postcache")
        self.database_user = os.getenv("DATABASE_USER", "postgres")
        self.database_host = os.getenv("DATABASE_HOST", "localhost")
        self.database_port = int(os.getenv("DATABASE_PORT", "5432"))
        self.database_password = os.getenv("DATABASE_PASSWORD")

        # Pool configuration
        self.min_pool_size = int(os.getenv("DB_MIN_POOL_SIZE", "5"))
        self.max_pool_size = int(os.getenv("DB_MAX_POOL_SIZE", "20"))
        self.command_timeout = float(os.getenv("DB_COMMAND_TIMEOUT", "5.0"))
        self.max_inactive_connection_lifetime = float(
            os.getenv("DB_MAX_INACTIVE_CONNECTION_LIFETIME", "300.0")
        )

    def get_dsn(self) -> str:
        """DATABASE_URL when set, otherwise a DSN built from the components."""
        if self.database_url:
            return self.database_url

        credentials = self.database_user
        if self.database_password:
            credentials += f":{self.database_password}"

        return (
            f"postgresql://{credentials}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    def __repr__(self) -> str:
        """String representation (safe - no password)."""
        return (
            f"DatabaseConfig("
            f"host={self.database_host}, "
            f"port={self.database_port}, "
            f"database={self.database_name}, "
            f"user={self.database_user}, "
            f"pool_size={self.min_pool_size}-{self.max_pool_size})"
        )


async def create_pool(config: Optional[DatabaseConfig] = None) -> asyncpg.Pool:
    """
    Create the async connection pool.

    Should be called once from the application lifespan.

    Raises:
        asyncpg.PostgresError / OSError: If the database is unreachable
    """
    config = config or DatabaseConfig()
    logger.info(f"Initializing connection pool with config: {config}")

    try:
        pool = await asyncpg.create_pool(
            dsn=config.get_dsn(),
            min_size=config.min_pool_size,
            max_size=config.max_pool_size,
            command_timeout=config.command_timeout,
            max_inactive_connection_lifetime=config.max_inactive_connection_lifetime,
        )

        async with pool.acquire() as conn:
            version = await conn.fetchval("SELECT version()")
            logger.info("✓ Database pool initialized successfully")
            logger.info(f"  PostgreSQL version: {version.split(',')[0]}")

        return pool

    except Exception as e:
        logger.error(f"✗ Failed to initialize database pool: {e}", exc_info=True)
        raise


async def close_pool(pool: Optional[asyncpg.Pool]) -> None:
    """
    Close the connection pool and release all connections.

    Notes:
        - No-op when the pool was never created
        - Waits for active connections to finish (graceful shutdown)
    """
    if pool is None:
        logger.info("Connection pool already closed or not initialized")
        return

    try:
        logger.info("Closing database connection pool...")
        await pool.close()
        logger.info("✓ Database pool closed successfully")
    except Exception as e:
        logger.error(f"Error closing database pool: {e}", exc_info=True)


async def check_pool_health(pool: Optional[asyncpg.Pool]) -> dict:
    """
    Probe the pool with SELECT 1.

    Returns:
        dict with "status" ("healthy", "degraded" or "unavailable"), the
        pool size and idle connection count, and "error" when unhealthy
    """
    if pool is None:
        return {
            "status": "unavailable",
            "error": "Pool not initialized"
        }

    try:
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")

        return {
            "status": "healthy",
            "pool_size": pool.get_size(),
            "free_connections": pool.get_idle_size(),
        }

    except Exception as e:
        logger.error(f"Pool health check failed: {e}", exc_info=True)
        return {
            "status": "degraded",
            "error": str(e),
            "pool_size": pool.get_size(),
        }
