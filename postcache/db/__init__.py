"""Database access layer for posts.

Main exports:
- DatabaseConfig: Pool configuration
- create_pool / close_pool: Pool lifecycle (owned by the process entry point)
- check_pool_health: Health check for monitoring
- PostStore: Durable post storage
"""

from .pool import (
    DatabaseConfig,
    create_pool,
    close_pool,
    check_pool_health,
)
from .post_store import PostStore

__all__ = [
    "DatabaseConfig",
    "create_pool",
    "close_pool",
    "check_pool_health",
    "PostStore",
]
