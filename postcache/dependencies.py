"""FastAPI dependency injection utilities.

Route handlers in the API layer receive the PostService built by the
application lifespan through ``Depends(get_post_service)``.
"""

import logging

from fastapi import HTTPException, Request, status

from postcache.services.post_service import PostService

logger = logging.getLogger(__name__)


def get_post_service(request: Request) -> PostService:
    """
    FastAPI dependency for the post service.

    Raises:
        HTTPException: 503 Service Unavailable if the lifespan has not
            finished wiring the service (or is shutting down)

    Example:
        @router.get("/api/posts/{post_id}")
        async def read_post(post_id: str, service = Depends(get_post_service)):
            return await service.get_post(post_id)
    """
    service = getattr(request.app.state, "post_service", None)
    if service is None:
        logger.error("Post service requested before startup completed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Post service not initialized",
        )
    return service
