"""Durable post storage on PostgreSQL.

``PostStore`` is the source of truth for posts and their engagement
counters. It is never bypassed on a cache miss.

Database Tables:
    - posts: id, slug (unique), title, body, tags (text[]), published,
      is_deleted, owner_id, view_count, like_count, created_at, updated_at
      (see storage/schema.py)
"""

import logging
from typing import Any, Dict, List, Sequence

import asyncpg

from postcache.db.helpers import fetch_one, fetch_all, fetch_val
from postcache.errors import Conflict, NotFound
from postcache.models import Post, PostCreate

logger = logging.getLogger(__name__)

POST_COLUMNS = (
    "id, slug, title, body, tags, published, is_deleted, owner_id, "
    "view_count, like_count, created_at, updated_at"
)

# Columns a partial update may touch
UPDATABLE_COLUMNS = frozenset({"slug", "title", "body", "tags", "published", "is_deleted"})

# Columns that support atomic increments
COUNTER_COLUMNS = frozenset({"view_count", "like_count"})

VISIBLE = "published = TRUE AND is_deleted = FALSE"


def _to_post(row: Dict[str, Any]) -> Post:
    row = dict(row)
    row["id"] = str(row["id"])
    row["tags"] = list(row.get("tags") or [])
    return Post.model_validate(row)


class PostStore:
    """
    asyncpg implementation of the durable post store.

    Every lookup either returns the canonical ``Post`` or raises
    ``NotFound``; unique slug violations raise ``Conflict``.

    Args:
        pool: asyncpg connection pool (owned by the process entry point)
        timeout: Upper bound in seconds for each query
    """

    def __init__(self, pool: asyncpg.Pool, timeout: float = 5.0):
        self.pool = pool
        self.timeout = timeout

    async def _one(self, query: str, *args) -> Dict[str, Any]:
        try:
            row = await fetch_one(self.pool, query, *args, timeout=self.timeout)
        except asyncpg.UniqueViolationError as e:
            raise Conflict() from e
        if row is None:
            raise NotFound()
        return row

    async def _many(self, query: str, *args) -> List[Post]:
        rows = await fetch_all(self.pool, query, *args, timeout=self.timeout)
        return [_to_post(row) for row in rows]

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def find_by_id(self, post_id: str) -> Post:
        """Return the post (soft-deleted included) or raise NotFound."""
        row = await self._one(f"SELECT {POST_COLUMNS} FROM posts WHERE id = $1", post_id)
        return _to_post(row)

    async def find_by_slug(self, slug: str) -> Post:
        """Return the post with this slug (soft-deleted included) or raise NotFound."""
        row = await self._one(f"SELECT {POST_COLUMNS} FROM posts WHERE slug = $1", slug)
        return _to_post(row)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, payload: PostCreate, owner_id: str) -> Post:
        """
        Insert a new post.

        Raises:
            Conflict: If the slug is already taken
        """
        row = await self._one(
            f"""
            INSERT INTO posts (slug, title, body, tags, published, owner_id)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING {POST_COLUMNS}
            """,
            payload.slug,
            payload.title,
            payload.body,
            list(payload.tags),
            payload.published,
            owner_id,
        )
        post = _to_post(row)
        logger.info(f"Post created: id={post.id} slug={post.slug}")
        return post

    async def update(self, post_id: str, changes: Dict[str, Any]) -> Post:
        """
        Apply a partial update and return the new canonical row.

        Raises:
            ValueError: If a column outside UPDATABLE_COLUMNS is given
            NotFound: If the post does not exist
            Conflict: If the new slug is already taken
        """
        unknown = set(changes) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update columns: {sorted(unknown)}")
        if not changes:
            return await self.find_by_id(post_id)

        columns = sorted(changes)
        assignments = ", ".join(f"{column} = ${i}" for i, column in enumerate(columns, start=2))
        row = await self._one(
            f"""
            UPDATE posts SET {assignments}, updated_at = NOW()
            WHERE id = $1
            RETURNING {POST_COLUMNS}
            """,
            post_id,
            *[changes[column] for column in columns],
        )
        return _to_post(row)

    async def delete(self, post_id: str) -> Post:
        """Hard delete. Returns the removed row or raises NotFound."""
        row = await self._one(f"DELETE FROM posts WHERE id = $1 RETURNING {POST_COLUMNS}", post_id)
        logger.info(f"Post deleted: id={post_id}")
        return _to_post(row)

    async def increment_column(self, post_id: str, column: str, amount: int) -> Post:
        """
        Atomically add ``amount`` to a counter column.

        The increment happens inside a single UPDATE, so concurrent callers
        never lose each other's writes. Counters never drop below zero.

        Raises:
            ValueError: If ``column`` is not a counter column
            NotFound: If the post does not exist or is soft-deleted
        """
        if column not in COUNTER_COLUMNS:
            raise ValueError(f"Not a counter column: {column}")

        row = await self._one(
            f"""
            UPDATE posts SET {column} = GREATEST({column} + $2, 0)
            WHERE id = $1 AND is_deleted = FALSE
            RETURNING {POST_COLUMNS}
            """,
            post_id,
            amount,
        )
        return _to_post(row)

    # ------------------------------------------------------------------
    # Aggregate queries
    # ------------------------------------------------------------------

    async def list_published(self, offset: int, limit: int) -> List[Post]:
        """Published, non-deleted posts, newest first."""
        return await self._many(
            f"""
            SELECT {POST_COLUMNS} FROM posts
            WHERE {VISIBLE}
            ORDER BY created_at DESC
            OFFSET $1 LIMIT $2
            """,
            offset,
            limit,
        )

    async def count_published(self) -> int:
        total = await fetch_val(
            self.pool, f"SELECT COUNT(*) FROM posts WHERE {VISIBLE}", timeout=self.timeout
        )
        return int(total or 0)

    async def list_by_owner(self, owner_id: str) -> List[Post]:
        """All non-deleted posts of an owner (drafts included), newest first."""
        return await self._many(
            f"""
            SELECT {POST_COLUMNS} FROM posts
            WHERE owner_id = $1 AND is_deleted = FALSE
            ORDER BY created_at DESC
            """,
            owner_id,
        )

    async def trending(self, limit: int) -> List[Post]:
        """
        Most viewed published posts, then most liked.

        Only persisted counters are ranked; unflushed view deltas are not.
        """
        return await self._many(
            f"""
            SELECT {POST_COLUMNS} FROM posts
            WHERE {VISIBLE}
            ORDER BY view_count DESC, like_count DESC, created_at ASC
            LIMIT $1
            """,
            limit,
        )

    async def search_by_tags(self, tags: Sequence[str]) -> List[Post]:
        """Published posts carrying any of ``tags``, newest first."""
        return await self._many(
            f"""
            SELECT {POST_COLUMNS} FROM posts
            WHERE tags && $1::text[] AND {VISIBLE}
            ORDER BY created_at DESC
            """,
            list(tags),
        )
