"""
Thread management endpoints (v1).

Provides CRUD operations for the current user's chat threads. Threads owned
by someone else are reported as not found.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path

from api.dependencies import AppSettings, Threads
from api.middleware.auth import get_current_user
from api.middleware.exception_handlers import ThreadNotFoundError
from api.middleware.request_context import update_request_context
from api.services.thread_store import ThreadStore
from core.constants import Settings
from models.schemas.auth import UserInfo
from models.schemas.threads import (
    DeleteThreadResponse,
    ThreadListResponse,
    ThreadResponse,
    UpdateThreadRequest,
)

router = APIRouter()

# Type alias for authenticated user dependency
CurrentUser = Annotated[UserInfo, Depends(get_current_user)]

ThreadIdPath = Annotated[
    str,
    Path(
        ...,
        description="Thread UUID",
        examples=["6f1c2b9e-1d4a-4c1e-9a53-2b0f6f2d7c11"],
    ),
]

_THREAD_EXAMPLE = {
    "id": "6f1c2b9e-1d4a-4c1e-9a53-2b0f6f2d7c11",
    "user_id": "550e8400-e29b-41d4-a716-446655440000",
    "thread_title": "New Chat",
    "is_public": False,
    "created_at": "2025-01-15T10:30:00+00:00",
    "updated_at": "2025-01-15T10:30:00+00:00",
    "share_url": None,
}


async def get_owned_thread(threads: ThreadStore, thread_id: str, user: UserInfo) -> dict[str, Any]:
    """Load a thread and check it belongs to ``user``.

    Raises:
        ThreadNotFoundError: Thread id is malformed, missing, or owned by another user
    """
    try:
        thread = await threads.get_thread(thread_id)
    except ValueError as exc:
        raise ThreadNotFoundError(thread_id) from exc
    if thread is None or thread["user_id"] != user.id:
        raise ThreadNotFoundError(thread_id)
    update_request_context(thread_id=thread["id"])
    return thread


def to_thread_response(thread: dict[str, Any], settings: Settings) -> ThreadResponse:
    share_url = settings.share_url(thread["id"]) if thread["is_public"] else None
    return ThreadResponse(**thread, share_url=share_url)


@router.get(
    "",
    response_model=ThreadListResponse,
    summary="List threads",
    description="Retrieve the current user's threads, most recently active first.",
    responses={
        200: {
            "description": "Threads retrieved successfully",
            "content": {"application/json": {"example": {"threads": [_THREAD_EXAMPLE], "total_count": 1}}},
        }
    },
)
async def list_threads(user: CurrentUser, threads: Threads, settings: AppSettings) -> ThreadListResponse:
    """List all threads of the current user."""
    data = await threads.list_threads_for_user(user.id)
    return ThreadListResponse(
        threads=[to_thread_response(t, settings) for t in data],
        total_count=len(data),
    )


@router.post(
    "",
    response_model=ThreadResponse,
    status_code=201,
    summary="Create thread",
    description="Create an empty private thread titled 'New Chat'.",
    responses={
        201: {
            "description": "Thread created successfully",
            "content": {"application/json": {"example": _THREAD_EXAMPLE}},
        }
    },
)
async def create_thread(user: CurrentUser, threads: Threads, settings: AppSettings) -> ThreadResponse:
    """Create a new thread."""
    thread = await threads.create_thread(user.id)
    update_request_context(thread_id=thread["id"])
    return to_thread_response(thread, settings)


@router.get(
    "/{thread_id}",
    response_model=ThreadResponse,
    summary="Get thread",
    description="Retrieve a single thread owned by the current user.",
    responses={404: {"description": "Thread not found"}},
)
async def get_thread(
    thread_id: ThreadIdPath,
    user: CurrentUser,
    threads: Threads,
    settings: AppSettings,
) -> ThreadResponse:
    """Get thread by id."""
    thread = await get_owned_thread(threads, thread_id, user)
    return to_thread_response(thread, settings)


@router.patch(
    "/{thread_id}",
    response_model=ThreadResponse,
    summary="Update thread",
    description="Rename a thread or toggle its public share page. Always refreshes the last-activity time.",
    responses={
        200: {
            "description": "Thread updated",
            "content": {
                "application/json": {
                    "example": {
                        **_THREAD_EXAMPLE,
                        "is_public": True,
                        "share_url": "http://localhost:3000/share/6f1c2b9e-1d4a-4c1e-9a53-2b0f6f2d7c11",
                    }
                }
            },
        },
        404: {"description": "Thread not found"},
    },
)
async def update_thread(
    thread_id: ThreadIdPath,
    body: UpdateThreadRequest,
    user: CurrentUser,
    threads: Threads,
    settings: AppSettings,
) -> ThreadResponse:
    """Merge title and visibility into the thread."""
    thread = await get_owned_thread(threads, thread_id, user)
    updated = await threads.update_thread(thread["id"], **body.model_dump(exclude_none=True))
    if updated is None:
        raise ThreadNotFoundError(thread_id)
    return to_thread_response(updated, settings)


@router.delete(
    "/{thread_id}",
    response_model=DeleteThreadResponse,
    summary="Delete thread",
    description="Delete a thread and all of its messages.",
    responses={404: {"description": "Thread not found"}},
)
async def delete_thread(thread_id: ThreadIdPath, user: CurrentUser, threads: Threads) -> DeleteThreadResponse:
    """Delete thread and its messages."""
    thread = await get_owned_thread(threads, thread_id, user)
    deleted = await threads.delete_thread_and_messages(thread["id"])
    if not deleted:
        raise ThreadNotFoundError(thread_id)
    return DeleteThreadResponse(
        success=True,
        message="Thread deleted successfully",
        thread_id=thread["id"],
    )
