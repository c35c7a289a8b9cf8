"""Post services: cache-aside reader, engagement counter, invalidator, listings."""

from .engagement import EngagementCounter
from .invalidator import Invalidator
from .listings import ListingAssembler
from .post_reader import PostReader
from .post_service import PostService, build_post_service

__all__ = [
    "EngagementCounter",
    "Invalidator",
    "ListingAssembler",
    "PostReader",
    "PostService",
    "build_post_service",
]
