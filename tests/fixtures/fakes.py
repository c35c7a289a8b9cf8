"""In-memory doubles for the Fast Cache and the durable post store.

Both doubles yield to the event loop at the start of every call, as the
real network clients do, so concurrent tests actually interleave.
"""

import asyncio
import time
from collections import Counter
from datetime import datetime, timedelta, timezone
from fnmatch import fnmatchcase
from typing import Any, Dict, List, Optional, Sequence, Tuple

from postcache.errors import CacheUnavailable, Conflict, NotFound
from postcache.models import Post, PostCreate

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeCache:
    """Dict-backed stand-in for AsyncRedisClient.

    Attributes:
        fail: When True every operation raises CacheUnavailable
        fail_ops: Names of operations that raise CacheUnavailable
        calls: Counter of operation names
    """

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.expires_at: Dict[str, float] = {}
        self.calls: Counter = Counter()
        self.fail = False
        self.fail_ops: set = set()

    async def _enter(self, op: str) -> None:
        await asyncio.sleep(0)
        self.calls[op] += 1
        if self.fail or op in self.fail_ops:
            raise CacheUnavailable(f"fake {op} failure")

    def _purge(self, key: str) -> None:
        deadline = self.expires_at.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self.data.pop(key, None)
            self.expires_at.pop(key, None)

    def has(self, key: str) -> bool:
        self._purge(key)
        return key in self.data

    def evict(self, key: str) -> None:
        """Drop a key as Redis would under memory pressure."""
        self.data.pop(key, None)
        self.expires_at.pop(key, None)

    def expire_now(self, key: str) -> None:
        self.expires_at[key] = time.monotonic() - 1

    def live_keys(self) -> List[str]:
        for key in list(self.data):
            self._purge(key)
        return sorted(self.data)

    async def ping(self) -> bool:
        try:
            await self._enter("ping")
        except CacheUnavailable:
            return False
        return True

    async def get(self, key: str) -> Optional[str]:
        await self._enter("get")
        self._purge(key)
        return self.data.get(key)

    async def set_with_expiry(self, key: str, value: str, ttl: int) -> bool:
        await self._enter("set_with_expiry")
        self.data[key] = value
        self.expires_at[key] = time.monotonic() + ttl
        return True

    async def set_if_absent_with_expiry(self, key: str, value: str, ttl: int) -> bool:
        await self._enter("set_if_absent_with_expiry")
        self._purge(key)
        if key in self.data:
            return False
        self.data[key] = value
        self.expires_at[key] = time.monotonic() + ttl
        return True

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        await self._enter("delete")
        deleted = 0
        for key in keys:
            self._purge(key)
            if key in self.data:
                self.evict(key)
                deleted += 1
        return deleted

    async def increment(self, key: str, ttl: Optional[int] = None) -> int:
        await self._enter("increment")
        self._purge(key)
        value = int(self.data.get(key, "0")) + 1
        self.data[key] = str(value)
        if ttl is not None:
            self.expires_at[key] = time.monotonic() + ttl
        return value

    async def decrement(self, key: str) -> int:
        await self._enter("decrement")
        self._purge(key)
        value = int(self.data.get(key, "0")) - 1
        self.data[key] = str(value)
        return value

    async def keys_matching(self, pattern: str) -> List[str]:
        await self._enter("keys_matching")
        return [key for key in self.live_keys() if fnmatchcase(key, pattern)]


class FakePostStore:
    """Dict-backed stand-in for PostStore with call accounting.

    Attributes:
        calls: Counter of method names
        increments: (post_id, column, amount) for every increment_column call
    """

    def __init__(self):
        self.rows: Dict[str, Post] = {}
        self.calls: Counter = Counter()
        self.increments: List[Tuple[str, str, int]] = []
        self._sequence = 0

    async def _enter(self, op: str) -> None:
        await asyncio.sleep(0)
        self.calls[op] += 1

    def _get(self, post_id: str) -> Post:
        post = self.rows.get(post_id)
        if post is None:
            raise NotFound()
        return post

    def _slug_taken(self, slug: str, exclude: Optional[str] = None) -> bool:
        return any(p.slug == slug and p.id != exclude for p in self.rows.values())

    def seed(self, **fields: Any) -> Post:
        """Insert a row synchronously (test setup)."""
        self._sequence += 1
        stamp = BASE_TIME + timedelta(minutes=self._sequence)
        values = {
            "id": f"post-{self._sequence}",
            "slug": f"post-{self._sequence}",
            "title": f"Post {self._sequence}",
            "owner_id": "user-1",
            "published": True,
            "created_at": stamp,
            "updated_at": stamp,
        }
        values.update(fields)
        post = Post(**values)
        self.rows[post.id] = post
        return post

    async def find_by_id(self, post_id: str) -> Post:
        await self._enter("find_by_id")
        return self._get(post_id)

    async def find_by_slug(self, slug: str) -> Post:
        await self._enter("find_by_slug")
        for post in self.rows.values():
            if post.slug == slug:
                return post
        raise NotFound()

    async def create(self, payload: PostCreate, owner_id: str) -> Post:
        await self._enter("create")
        if self._slug_taken(payload.slug):
            raise Conflict()
        return self.seed(owner_id=owner_id, **payload.model_dump())

    async def update(self, post_id: str, changes: Dict[str, Any]) -> Post:
        await self._enter("update")
        post = self._get(post_id)
        if "slug" in changes and self._slug_taken(changes["slug"], exclude=post_id):
            raise Conflict()
        updated = post.model_copy(update={**changes, "updated_at": post.updated_at + timedelta(seconds=1)})
        self.rows[post_id] = updated
        return updated

    async def delete(self, post_id: str) -> Post:
        await self._enter("delete")
        return self.rows.pop(self._get(post_id).id)

    async def increment_column(self, post_id: str, column: str, amount: int) -> Post:
        await self._enter("increment_column")
        self.increments.append((post_id, column, amount))
        post = self._get(post_id)
        if post.is_deleted:
            raise NotFound()
        updated = post.model_copy(update={column: max(getattr(post, column) + amount, 0)})
        self.rows[post_id] = updated
        return updated

    def _visible(self) -> List[Post]:
        return [p for p in self.rows.values() if p.published and not p.is_deleted]

    async def list_published(self, offset: int, limit: int) -> List[Post]:
        await self._enter("list_published")
        ordered = sorted(self._visible(), key=lambda p: p.created_at, reverse=True)
        return ordered[offset:offset + limit]

    async def count_published(self) -> int:
        await self._enter("count_published")
        return len(self._visible())

    async def list_by_owner(self, owner_id: str) -> List[Post]:
        await self._enter("list_by_owner")
        owned = [p for p in self.rows.values() if p.owner_id == owner_id and not p.is_deleted]
        return sorted(owned, key=lambda p: p.created_at, reverse=True)

    async def trending(self, limit: int) -> List[Post]:
        await self._enter("trending")
        # Stable sort: ties keep insertion order
        ordered = sorted(self._visible(), key=lambda p: (-p.view_count, -p.like_count))
        return ordered[:limit]

    async def search_by_tags(self, tags: Sequence[str]) -> List[Post]:
        await self._enter("search_by_tags")
        wanted = set(tags)
        matches = [p for p in self._visible() if wanted & set(p.tags)]
        return sorted(matches, key=lambda p: p.created_at, reverse=True)
