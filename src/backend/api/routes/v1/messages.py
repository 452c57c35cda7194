"""
Message endpoints (v1), nested under threads.

Provides listing, the recent-context window, send/retry through the chat
orchestrator, content edits and truncation.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from api.dependencies import Chat, Messages, Threads
from api.middleware.auth import get_current_user
from api.middleware.exception_handlers import MessageNotFoundError
from api.routes.v1.threads import ThreadIdPath, get_owned_thread
from core.constants import CONTEXT_MESSAGE_LIMIT, MAX_RECENT_MESSAGES
from models.schemas.auth import UserInfo
from models.schemas.messages import (
    DeleteMessagesResponse,
    EditMessageRequest,
    MessageListResponse,
    MessageResponse,
    SendMessageRequest,
    SendMessageResponse,
    SendNotification,
)

router = APIRouter()

CurrentUser = Annotated[UserInfo, Depends(get_current_user)]

MessageIdPath = Annotated[
    str,
    Path(
        ...,
        description="Message UUID",
        examples=["0b7e4a7c-3f3e-4f7a-8a6d-0e3f4b5c6d7e"],
    ),
]


@router.get(
    "/{thread_id}/messages",
    response_model=MessageListResponse,
    summary="List messages",
    description="Retrieve every message of a thread in chronological order.",
    responses={404: {"description": "Thread not found"}},
)
async def list_messages(
    thread_id: ThreadIdPath,
    user: CurrentUser,
    threads: Threads,
    messages: Messages,
) -> MessageListResponse:
    """List thread messages, oldest first."""
    thread = await get_owned_thread(threads, thread_id, user)
    data = await messages.list_messages(thread["id"])
    return MessageListResponse(
        messages=[MessageResponse(**m) for m in data],
        total_count=len(data),
    )


@router.get(
    "/{thread_id}/messages/recent",
    response_model=MessageListResponse,
    summary="Recent messages",
    description="Retrieve the newest messages of a thread in chronological order (the model's context window).",
    responses={404: {"description": "Thread not found"}},
)
async def recent_messages(
    thread_id: ThreadIdPath,
    user: CurrentUser,
    threads: Threads,
    messages: Messages,
    limit: Annotated[
        int,
        Query(ge=1, le=MAX_RECENT_MESSAGES, description="Maximum messages to return", examples=[10]),
    ] = CONTEXT_MESSAGE_LIMIT,
) -> MessageListResponse:
    """Return the last ``limit`` messages, oldest first."""
    thread = await get_owned_thread(threads, thread_id, user)
    data = await messages.get_recent_messages(thread["id"], limit)
    return MessageListResponse(
        messages=[MessageResponse(**m) for m in data],
        total_count=len(data),
    )


@router.post(
    "/{thread_id}/messages",
    response_model=SendMessageResponse,
    summary="Send message",
    description=(
        "Append a user message and generate the assistant reply. With is_retry the target message is "
        "rewritten, every later message is removed and a new reply is generated. A failed reply is "
        "reported with status 'failed' and the user message is flagged."
    ),
    responses={
        200: {
            "description": "Send finished",
            "content": {
                "application/json": {
                    "example": {
                        "status": "failed",
                        "thread_id": "6f1c2b9e-1d4a-4c1e-9a53-2b0f6f2d7c11",
                        "user_message_id": "0b7e4a7c-3f3e-4f7a-8a6d-0e3f4b5c6d7e",
                        "assistant_message_id": None,
                        "notification": {
                            "title": "Message failed to send",
                            "description": "Could not get a response from the AI. Please try again.",
                        },
                    }
                }
            },
        },
        404: {"description": "Thread or retry target not found"},
    },
)
async def send_message(
    thread_id: ThreadIdPath,
    body: SendMessageRequest,
    user: CurrentUser,
    threads: Threads,
    chat: Chat,
) -> SendMessageResponse:
    """Send (or retry) a message and wait for the reply."""
    thread = await get_owned_thread(threads, thread_id, user)
    result = await chat.send_message(
        thread["id"],
        user.id,
        body.content,
        is_retry=body.is_retry,
        target_message_id=body.target_message_id,
    )
    notification = result.notification
    return SendMessageResponse(
        status=result.status,
        thread_id=result.thread_id,
        user_message_id=result.user_message_id,
        assistant_message_id=result.assistant_message_id,
        notification=SendNotification(**notification) if notification else None,
    )


@router.patch(
    "/{thread_id}/messages/{message_id}",
    response_model=MessageResponse,
    summary="Edit message",
    description="Replace a message's content without regenerating the reply.",
    responses={404: {"description": "Thread or message not found"}},
)
async def edit_message(
    thread_id: ThreadIdPath,
    message_id: MessageIdPath,
    body: EditMessageRequest,
    user: CurrentUser,
    threads: Threads,
    messages: Messages,
) -> MessageResponse:
    """Update message content."""
    thread = await get_owned_thread(threads, thread_id, user)
    try:
        updated = await messages.update_message_content(thread["id"], message_id, body.content)
    except ValueError as exc:
        raise MessageNotFoundError(message_id) from exc
    if not updated:
        raise MessageNotFoundError(message_id)

    message = await messages.get_message(thread["id"], message_id)
    if message is None:
        raise MessageNotFoundError(message_id)
    return MessageResponse(**message)


@router.delete(
    "/{thread_id}/messages/{message_id}",
    response_model=DeleteMessagesResponse,
    summary="Delete from message",
    description="Delete the message and every message after it.",
    responses={404: {"description": "Thread or message not found"}},
)
async def delete_from_message(
    thread_id: ThreadIdPath,
    message_id: MessageIdPath,
    user: CurrentUser,
    threads: Threads,
    messages: Messages,
) -> DeleteMessagesResponse:
    """Truncate the thread starting at ``message_id``."""
    thread = await get_owned_thread(threads, thread_id, user)
    try:
        deleted = await messages.delete_messages_from(thread["id"], message_id)
    except ValueError as exc:
        raise MessageNotFoundError(message_id) from exc
    if not deleted:
        raise MessageNotFoundError(message_id)

    return DeleteMessagesResponse(
        success=True,
        thread_id=thread["id"],
        message_id=message_id,
        deleted_count=deleted,
    )
