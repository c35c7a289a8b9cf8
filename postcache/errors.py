"""Error kinds raised by the post cache layer.

Every error carries an HTTP-style ``status_code`` so the routing layer that
consumes ``PostService`` can translate failures without its own lookup table.

Propagation rules:
    - NotFound / Conflict come from the durable store and always reach the caller
    - AlreadyLiked / NotLiked come from the like marker checks
    - CacheUnavailable is raised by the Redis client and is recovered by the
      components (fall through to the store on reads, log and continue on writes)
"""


class PostCacheError(Exception):
    """Base class for all post cache layer errors."""

    status_code = 500
    default_message = "Post cache error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(PostCacheError):
    """Post is absent or soft-deleted."""

    status_code = 404
    default_message = "Post not found"


class Conflict(PostCacheError):
    """Unique constraint violated (duplicate slug)."""

    status_code = 409
    default_message = "Post with this slug already exists"


class AlreadyLiked(PostCacheError):
    status_code = 400
    default_message = "You have already liked this post"


class NotLiked(PostCacheError):
    status_code = 400
    default_message = "You haven't liked this post"


class Unauthenticated(PostCacheError):
    """Caller context (user id) is missing."""

    status_code = 401
    default_message = "User not authenticated"


class CacheUnavailable(PostCacheError):
    """Redis could not serve the request (connection error, timeout).

    Never surfaced to end users: readers fall back to the durable store and
    writers log the failure.
    """

    status_code = 503
    default_message = "Cache backend unavailable"
