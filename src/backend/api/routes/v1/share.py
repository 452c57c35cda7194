"""
Public share page endpoint (v1).

Serves the read-only projection of public threads. No authentication.
"""

from __future__ import annotations

from fastapi import APIRouter

from api.dependencies import Share
from api.middleware.exception_handlers import SharedThreadNotFoundError
from api.routes.v1.threads import ThreadIdPath
from models.schemas.share import PublicThreadResponse

router = APIRouter()


@router.get(
    "/{thread_id}",
    response_model=PublicThreadResponse,
    summary="Get shared thread",
    description="Read a public thread with its messages and the owner's display identity.",
    responses={
        404: {
            "description": "Thread missing or not public",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "SHR_6001",
                            "message": "This chat is either private or does not exist.",
                        }
                    }
                }
            },
        }
    },
)
async def get_shared_thread(thread_id: ThreadIdPath, share: Share) -> PublicThreadResponse:
    """Public projection of a shared thread."""
    data = await share.get_public_thread_data(thread_id)
    if data is None:
        raise SharedThreadNotFoundError(thread_id)
    return PublicThreadResponse(**data)
