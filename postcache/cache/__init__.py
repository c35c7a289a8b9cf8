"""Cache layer utilities for Redis caching.

This package provides the key builder, JSON serialization and cache-aside
helpers shared by the post reader, the engagement counter, the invalidator
and the listing assembler.

Key Modules:
    - keys: CacheKeys, one builder method per key kind
    - serializer: JSON serialization with datetime/UUID/model support
    - decorator: @cached decorator and read/write/forget helpers
"""

from .keys import CacheKeys, normalize_tags
from .decorator import cached, read_cached, write_cached, forget_cached

__all__ = [
    "CacheKeys",
    "normalize_tags",
    "cached",
    "read_cached",
    "write_cached",
    "forget_cached",
]
