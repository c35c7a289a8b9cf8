"""Cache key builders for posts, listings and engagement counters.

All Redis keys used by the post layer are built here, so the reader, the
engagement counter, the invalidator and the listing assembler can never
disagree on a key's shape.

Key Naming Convention:
    - Use colons (:) to separate namespaces
    - Single-post keys live under "post:", aggregate views under "posts:"
    - The second segment names the key kind, so no two kinds can collide
    - Examples:
        - post:id:7f1c...
        - post:slug:my-first-post
        - posts:all:1:10
        - posts:trending:10

Benefits:
    - Pattern-based invalidation of aggregate views ("posts:all:*")
    - Per-post keys are never matched by an aggregate pattern

Usage:
    from postcache.cache.keys import CacheKeys

    keys = CacheKeys()
    keys.post("7f1c")             # "post:id:7f1c"
    keys.tag_search(["b", "a"])   # "posts:search:tags:a,b"
"""

from typing import Iterable, List
from urllib.parse import quote
import logging

logger = logging.getLogger(__name__)

# Cache key prefixes for the two families of keys
PREFIX_POST = "post"
PREFIX_POSTS = "posts"


def normalize_tags(tags: Iterable[str]) -> List[str]:
    """
    Sort and deduplicate a tag collection.

    Surrounding whitespace is stripped and empty tags are dropped.

    Example:
        >>> normalize_tags(["ts", "cache", "ts"])
        ['cache', 'ts']
    """
    return sorted({tag.strip() for tag in tags if tag and tag.strip()})


class CacheKeys:
    """
    Builder for every cache key kind used by the post layer.

    Args:
        prefix: Optional namespace prepended to all keys (e.g. "staging")

    Example:
        >>> CacheKeys().post_slug("hello-world")
        'post:slug:hello-world'
        >>> CacheKeys("staging").trending(10)
        'staging:posts:trending:10'
    """

    def __init__(self, prefix: str = ""):
        self.prefix = prefix.rstrip(":")

    def _build(self, *parts: object) -> str:
        key = ":".join(str(part) for part in parts)
        if self.prefix:
            return f"{self.prefix}:{key}"
        return key

    @staticmethod
    def _require(name: str, value: object) -> None:
        if value is None or value == "":
            raise ValueError(f"{name} is required")

    # ------------------------------------------------------------------
    # Single post snapshots
    # ------------------------------------------------------------------

    def post(self, post_id: str) -> str:
        """
        Build cache key for a post snapshot by primary key.

        Returns:
            Cache key in format: "post:id:{post_id}"
        """
        self._require("post_id", post_id)
        return self._build(PREFIX_POST, "id", post_id)

    def post_slug(self, slug: str) -> str:
        """
        Build cache key for a post snapshot by slug.

        Returns:
            Cache key in format: "post:slug:{slug}"
        """
        self._require("slug", slug)
        return self._build(PREFIX_POST, "slug", slug)

    def deleted_marker(self, post_id: str) -> str:
        """
        Build the key recording that a post was deleted.

        Returns:
            Cache key in format: "post:deleted:{post_id}"

        Note:
            A read that loaded the row before the delete checks this key
            after caching its snapshot and drops the snapshot again.
        """
        self._require("post_id", post_id)
        return self._build(PREFIX_POST, "deleted", post_id)

    # ------------------------------------------------------------------
    # Engagement
    # ------------------------------------------------------------------

    def view_counter(self, post_id: str) -> str:
        """Unflushed view counter: "post:views:{post_id}"."""
        self._require("post_id", post_id)
        return self._build(PREFIX_POST, "views", post_id)

    def like_counter(self, post_id: str) -> str:
        """Like counter mirror: "post:likes:{post_id}"."""
        self._require("post_id", post_id)
        return self._build(PREFIX_POST, "likes", post_id)

    def like_marker(self, user_id: str, post_id: str) -> str:
        """
        Build the per-(user, post) like marker key.

        Returns:
            Cache key in format: "post:userlike:{user_id}:{post_id}"

        Note:
            The marker is an idempotency guard only. The durable like
            count stays the authority for display.
        """
        self._require("user_id", user_id)
        self._require("post_id", post_id)
        return self._build(PREFIX_POST, "userlike", user_id, post_id)

    # ------------------------------------------------------------------
    # Aggregate views (listings, trending, search)
    # ------------------------------------------------------------------

    def posts_page(self, page: int, page_size: int) -> str:
        """
        Build cache key for one page of published posts.

        Returns:
            Cache key in format: "posts:all:{page}:{page_size}"
        """
        return self._build(PREFIX_POSTS, "all", int(page), int(page_size))

    def posts_page_pattern(self) -> str:
        """Pattern matching every listing page."""
        return self._build(PREFIX_POSTS, "all", "*")

    def owner_posts(self, owner_id: str) -> str:
        """
        Build cache key for an owner's "my posts" listing.

        Returns:
            Cache key in format: "posts:user:{owner_id}"
        """
        self._require("owner_id", owner_id)
        return self._build(PREFIX_POSTS, "user", owner_id)

    def owner_posts_pattern(self) -> str:
        """Pattern matching every per-owner listing."""
        return self._build(PREFIX_POSTS, "user", "*")

    def trending(self, limit: int) -> str:
        """
        Build cache key for the trending snapshot of a given size.

        Returns:
            Cache key in format: "posts:trending:{limit}"
        """
        return self._build(PREFIX_POSTS, "trending", int(limit))

    def trending_pattern(self) -> str:
        """Pattern matching every trending snapshot."""
        return self._build(PREFIX_POSTS, "trending", "*")

    def tag_search(self, tags: Iterable[str]) -> str:
        """
        Build cache key for a tag search.

        The tag set is sorted and deduplicated first, so the order in which
        tags are requested never produces a different key. Each tag is
        percent-encoded so a tag containing "," cannot alias two tags.

        Returns:
            Cache key in format: "posts:search:tags:{tag1},{tag2},..."

        Example:
            >>> CacheKeys().tag_search(["ts", "cache"])
            'posts:search:tags:cache,ts'
        """
        normalized = normalize_tags(tags)
        if not normalized:
            raise ValueError("at least one tag is required")
        encoded = ",".join(quote(tag, safe="") for tag in normalized)
        return self._build(PREFIX_POSTS, "search", "tags", encoded)

    def tag_search_pattern(self) -> str:
        """Pattern matching every tag search result."""
        return self._build(PREFIX_POSTS, "search", "*")

    def aggregate_patterns(self) -> List[str]:
        """All patterns that a post mutation makes stale."""
        return [
            self.posts_page_pattern(),
            self.owner_posts_pattern(),
            self.trending_pattern(),
            self.tag_search_pattern(),
        ]
