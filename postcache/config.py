"""Configuration for the post cache layer."""

import os
import logging
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ============================================================================
# Environment helpers
# ============================================================================

def get_int(env_var: str, default: int) -> int:
    """Get integer from environment or return default."""
    try:
        return int(os.getenv(env_var, default))
    except ValueError:
        logger.warning(f"Invalid {env_var}, using default {default}")
        return default


# ============================================================================
# Server Configuration
# ============================================================================

# API server bind address
SERVER_HOST = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT = get_int("PORT_BACKEND", 8200)

# Root log level for the process entry point
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


# ============================================================================
# Cache Policy
# ============================================================================

class CacheSettings:
    """TTLs, batch sizes and limits for the cache-aside layer.

    Loads settings from environment variables with sensible defaults.
    Attributes may be overridden after construction (tests do this).

    Environment Variables:
        CACHE_POST_TTL: Post snapshot TTL in seconds (default: 3600)
        CACHE_LIST_TTL: Listing page TTL in seconds (default: 600)
        CACHE_TRENDING_TTL: Trending snapshot TTL in seconds (default: 300)
        CACHE_SEARCH_TTL: Tag search TTL in seconds (default: 600)
        CACHE_LIKE_MARKER_TTL: Like marker TTL in seconds (default: 30 days)
        CACHE_KEY_PREFIX: Namespace prepended to every key (default: "")
        VIEW_FLUSH_BATCH: Views accumulated before a durable flush (default: 10)
        CACHE_VIEW_COUNTER_TTL: Idle lifetime of a view counter in seconds (default: 7 days)
        LIST_MAX_PAGE_SIZE: Upper bound for listing page size (default: 100)
        TRENDING_DEFAULT_LIMIT: Trending size when none requested (default: 10)
    """

    def __init__(self):
        """Initialize cache settings from environment variables."""
        self.post_ttl = get_int("CACHE_POST_TTL", 3600)
        self.list_ttl = get_int("CACHE_LIST_TTL", 600)
        self.trending_ttl = get_int("CACHE_TRENDING_TTL", 300)
        self.search_ttl = get_int("CACHE_SEARCH_TTL", 600)
        self.like_marker_ttl = get_int("CACHE_LIKE_MARKER_TTL", 86400 * 30)
        self.key_prefix = os.getenv("CACHE_KEY_PREFIX", "")
        self.view_flush_batch = get_int("VIEW_FLUSH_BATCH", 10)
        self.view_counter_ttl = get_int("CACHE_VIEW_COUNTER_TTL", 86400 * 7)
        self.list_max_page_size = get_int("LIST_MAX_PAGE_SIZE", 100)
        self.trending_default_limit = get_int("TRENDING_DEFAULT_LIMIT", 10)

        if self.view_flush_batch < 1:
            logger.warning("VIEW_FLUSH_BATCH must be positive, using 10")
            self.view_flush_batch = 10

    def __repr__(self) -> str:
        return (
            f"CacheSettings("
            f"post_ttl={self.post_ttl}, "
            f"list_ttl={self.list_ttl}, "
            f"trending_ttl={self.trending_ttl}, "
            f"view_flush_batch={self.view_flush_batch}, "
            f"key_prefix={self.key_prefix!r})"
        )
