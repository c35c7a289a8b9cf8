#!/usr/bin/env python
"""CLI entry point for the post cache layer."""

import asyncio
from typing import Optional

import click
from dotenv import load_dotenv

from postcache.config import CacheSettings, SERVER_HOST, SERVER_PORT
from postcache.cache.keys import CacheKeys
from postcache.db.pool import DatabaseConfig, create_pool, close_pool, check_pool_health
from postcache.redis_client import (
    RedisConfig,
    create_redis_client,
    close_redis_client,
    check_redis_health,
)
from postcache.services.invalidator import Invalidator

load_dotenv()


@click.group()
def cli():
    """Post cache layer - cache-aside reads and engagement counters for posts."""
    pass


@cli.command()
@click.option("--host", type=str, default=SERVER_HOST, show_default=True)
@click.option("--port", type=int, default=SERVER_PORT, show_default=True)
@click.option("--reload", is_flag=True, help="Reload on code changes (development)")
def serve(host: str, port: int, reload: bool):
    """Run the API process (uvicorn)."""
    import uvicorn

    uvicorn.run("postcache.main:app", host=host, port=port, reload=reload)


@cli.command("init-db")
@click.option("--database-url", type=str, default=None, help="Override DATABASE_URL")
def init_db(database_url: Optional[str]):
    """Create the posts table."""
    from storage.schema import create_engine_with_url, create_tables

    engine = create_engine_with_url(database_url)
    try:
        create_tables(engine)
        click.echo("✅ posts table ready")
    except Exception as e:
        click.echo(f"❌ Error creating tables: {e}")
        raise SystemExit(1)
    finally:
        engine.dispose()


@cli.command()
@click.argument("post_id")
@click.option("--slug", type=str, default=None, help="Slug whose snapshot should also be dropped")
def invalidate(post_id: str, slug: Optional[str]):
    """Drop every cache entry that could be stale for POST_ID."""

    async def run():
        settings = CacheSettings()
        cache = await create_redis_client(RedisConfig())
        try:
            invalidator = Invalidator(cache, CacheKeys(settings.key_prefix))
            deleted = await invalidator.invalidate_post(post_id, slug)
        finally:
            await close_redis_client(cache)
        click.echo(f"Deleted {deleted} cache key(s) for post {post_id}")

    asyncio.run(run())


@cli.command()
def status():
    """Show Redis and database status."""

    async def run():
        redis_config = RedisConfig()
        cache = await create_redis_client(redis_config)
        try:
            redis_status = await check_redis_health(cache, redis_config)
        finally:
            await close_redis_client(cache)

        try:
            pool = await create_pool(DatabaseConfig())
        except Exception as e:
            db_status = {"status": "unavailable", "error": str(e)}
        else:
            try:
                db_status = await check_pool_health(pool)
            finally:
                await close_pool(pool)

        return redis_status, db_status

    redis_status, db_status = asyncio.run(run())

    click.echo("Post Cache Status")
    click.echo("=" * 40)
    click.echo(f"Settings: {CacheSettings()}")
    for name, result in (("Redis", redis_status), ("Database", db_status)):
        mark = "✓" if result["status"] == "healthy" else "✗"
        detail = f" ({result['error']})" if result.get("error") else ""
        click.echo(f"{mark} {name}: {result['status']}{detail}")


if __name__ == "__main__":
    cli()
