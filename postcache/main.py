"""FastAPI process entry point for the post cache layer.

The lifespan owns every shared resource: it creates the Redis client and
the PostgreSQL pool, wires the PostService, and tears everything down in
reverse order on shutdown. Routing for posts lives with the collaborating
API layer, which reaches the service through
``postcache.dependencies.get_post_service``.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from postcache.config import CacheSettings, LOG_LEVEL
from postcache.db.pool import DatabaseConfig, create_pool, close_pool, check_pool_health
from postcache.db.post_store import PostStore
from postcache.redis_client import (
    RedisConfig,
    create_redis_client,
    close_redis_client,
    check_redis_health,
)
from postcache.services.post_service import build_post_service

logger = logging.getLogger(__name__)


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()

    redis_config = RedisConfig()
    db_config = DatabaseConfig()
    settings = CacheSettings()
    logger.info(f"Starting with {settings}")

    cache = await create_redis_client(redis_config)
    try:
        pool = await create_pool(db_config)
    except Exception:
        await close_redis_client(cache)
        raise

    store = PostStore(pool, timeout=db_config.command_timeout)
    service = build_post_service(cache, store, settings)

    app.state.redis_config = redis_config
    app.state.redis = cache
    app.state.db_pool = pool
    app.state.post_service = service

    try:
        yield
    finally:
        await service.shutdown()
        await close_redis_client(cache)
        await close_pool(pool)
        app.state.post_service = None
        logger.info("Post cache layer stopped")


def create_app() -> FastAPI:
    app = FastAPI(title="Post Cache API", lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """Report Redis and database status."""
        state = request.app.state
        redis_status = await check_redis_health(
            getattr(state, "redis", None), getattr(state, "redis_config", None)
        )
        db_status = await check_pool_health(getattr(state, "db_pool", None))

        # Redis is optional for serving, the database is not
        if db_status["status"] != "healthy":
            overall = "unavailable"
        elif redis_status["status"] != "healthy":
            overall = "degraded"
        else:
            overall = "healthy"

        return {"status": overall, "redis": redis_status, "database": db_status}

    return app


app = create_app()
