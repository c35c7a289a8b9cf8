"""Pydantic models for posts and the results of post operations."""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Post(BaseModel):
    """Canonical post record.

    The durable store owns this record. Cached snapshots may lag
    ``view_count`` by up to one flush batch.
    """

    id: str
    slug: str
    title: str
    body: str = ""
    tags: List[str] = Field(default_factory=list)
    published: bool = False
    is_deleted: bool = False
    owner_id: str
    view_count: int = 0
    like_count: int = 0
    created_at: datetime
    updated_at: datetime


class PostCreate(BaseModel):
    """Payload for creating a post."""

    slug: str = Field(..., min_length=1, description="Unique URL slug")
    title: str = Field(..., min_length=1)
    body: str = ""
    tags: List[str] = Field(default_factory=list)
    published: bool = False


class PostUpdate(BaseModel):
    """Partial update of a post. Only fields explicitly set are applied."""

    slug: Optional[str] = Field(default=None, min_length=1)
    title: Optional[str] = Field(default=None, min_length=1)
    body: Optional[str] = None
    tags: Optional[List[str]] = None
    published: Optional[bool] = None

    def changes(self) -> Dict[str, Any]:
        """Return the explicitly set, non-null fields."""
        return {
            field: value
            for field, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class PostPage(BaseModel):
    """One page of published posts."""

    items: List[Post]
    total_count: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def build(cls, items: List[Post], total_count: int, page: int, page_size: int) -> "PostPage":
        return cls(
            items=items,
            total_count=total_count,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total_count / page_size) if page_size else 0,
        )


class LikeAck(BaseModel):
    """Acknowledgement of a like or unlike."""

    post_id: str
    user_id: str
    liked: bool
    message: str
