"""Async query helpers over an injected asyncpg pool.

Architecture:
    - Every helper takes the pool explicitly (no global pool)
    - Connection acquisition/release is automatic via context managers
    - Results are returned as dicts
    - Every query carries a timeout so a degraded database cannot stall
      request handling

Usage Examples:
    row = await fetch_one(pool, "SELECT * FROM posts WHERE id = $1", post_id, timeout=5)
    rows = await fetch_all(pool, "SELECT * FROM posts WHERE published", timeout=5)
    total = await fetch_val(pool, "SELECT COUNT(*) FROM posts", timeout=5)

Notes:
    - Uses $1, $2, $3 parameter placeholders (asyncpg format)
    - Errors are logged with the query and re-raised unchanged
"""

import logging
from typing import Any, Dict, List, Optional

import asyncpg

logger = logging.getLogger(__name__)


def _log_failure(helper: str, error: Exception, query: str, args: tuple) -> None:
    logger.error(f"Error in {helper}: {error}")
    logger.debug(f"Query: {query}")
    logger.debug(f"Args: {args}")


async def fetch_one(
    pool: asyncpg.Pool, query: str, *args, timeout: Optional[float] = None
) -> Optional[Dict[str, Any]]:
    """
    Fetch a single row.

    Returns:
        Dict with column names as keys, or None if no row found
    """
    try:
        async with pool.acquire() as conn:
            row = await conn.fetchrow(query, *args, timeout=timeout)
            return dict(row) if row else None

    except Exception as e:
        _log_failure("fetch_one", e, query, args)
        raise


async def fetch_all(
    pool: asyncpg.Pool, query: str, *args, timeout: Optional[float] = None
) -> List[Dict[str, Any]]:
    """
    Fetch all rows.

    Returns:
        List of dicts with column names as keys (empty list if no rows)
    """
    try:
        async with pool.acquire() as conn:
            rows = await conn.fetch(query, *args, timeout=timeout)
            return [dict(row) for row in rows]

    except Exception as e:
        _log_failure("fetch_all", e, query, args)
        raise


async def fetch_val(
    pool: asyncpg.Pool, query: str, *args, timeout: Optional[float] = None
) -> Any:
    """
    Fetch a single value (first column of the first row).

    Useful for COUNT and other aggregate queries.
    """
    try:
        async with pool.acquire() as conn:
            return await conn.fetchval(query, *args, timeout=timeout)

    except Exception as e:
        _log_failure("fetch_val", e, query, args)
        raise
