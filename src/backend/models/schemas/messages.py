"""
Message-related API schemas.

Provides request/response models for listing, sending, editing
and truncating messages of a thread.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.constants import MAX_MESSAGE_LENGTH

MessageRole = Literal["user", "assistant", "system"]


# =============================================================================
# Request Models
# =============================================================================


class SendMessageRequest(BaseModel):
    """Send a new message, or retry an edited one.

    With ``is_retry`` the content replaces ``target_message_id`` and every
    later message is discarded before a fresh reply is requested.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "content": "What is the capital of France?",
                "is_retry": False,
                "target_message_id": None,
            }
        }
    )

    content: str = Field(
        ...,
        min_length=1,
        max_length=MAX_MESSAGE_LENGTH,
        description="Message text",
        json_schema_extra={"example": "What is the capital of France?"},
    )
    is_retry: bool = Field(default=False, description="Replace an existing user message and regenerate")
    target_message_id: str | None = Field(default=None, description="Message to replace when retrying")

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content cannot be blank")
        return v

    @model_validator(mode="after")
    def retry_requires_target(self) -> SendMessageRequest:
        if self.is_retry and not self.target_message_id:
            raise ValueError("target_message_id is required when is_retry is true")
        return self


class EditMessageRequest(BaseModel):
    """Replace a message's content without regenerating."""

    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH, description="New message text")


# =============================================================================
# Response Models
# =============================================================================


class MessageResponse(BaseModel):
    """Message entity."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "0b7e4a7c-3f3e-4f7a-8a6d-0e3f4b5c6d7e",
                "thread_id": "6f1c2b9e-1d4a-4c1e-9a53-2b0f6f2d7c11",
                "user_id": "550e8400-e29b-41d4-a716-446655440000",
                "role": "user",
                "content": "What is the capital of France?",
                "is_failed": False,
                "created_at": "2025-01-15T10:30:00+00:00",
            }
        }
    )

    id: str = Field(..., description="Message UUID")
    thread_id: str = Field(..., description="Parent thread UUID")
    user_id: str = Field(..., description="Author id ('ai-assistant' for replies)")
    role: MessageRole = Field(..., description="Message role")
    content: str = Field(..., description="Message text")
    is_failed: bool = Field(default=False, description="True when the reply to this message failed")
    created_at: str | None = Field(default=None, description="Creation timestamp (ISO 8601)")


class MessageListResponse(BaseModel):
    """Messages of a thread in chronological order."""

    messages: list[MessageResponse] = Field(default_factory=list, description="Messages, oldest first")
    total_count: int = Field(default=0, ge=0, description="Number of messages returned")


class SendNotification(BaseModel):
    """User-facing toast describing a failed send."""

    title: str = Field(..., description="Notification title")
    description: str = Field(..., description="Notification body")


class SendMessageResponse(BaseModel):
    """Outcome of a send or retry.

    Failures after the user message was stored are reported here with
    ``status="failed"`` rather than as an HTTP error, since the message
    itself persisted and is now flagged ``is_failed``.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "succeeded",
                "thread_id": "6f1c2b9e-1d4a-4c1e-9a53-2b0f6f2d7c11",
                "user_message_id": "0b7e4a7c-3f3e-4f7a-8a6d-0e3f4b5c6d7e",
                "assistant_message_id": "9a8b7c6d-5e4f-4a3b-2c1d-0e9f8a7b6c5d",
                "notification": None,
            }
        }
    )

    status: Literal["succeeded", "failed"] = Field(..., description="Final state of the send")
    thread_id: str = Field(..., description="Thread UUID")
    user_message_id: str = Field(..., description="Stored user message id")
    assistant_message_id: str | None = Field(default=None, description="Stored reply id on success")
    notification: SendNotification | None = Field(default=None, description="Toast to show on failure")


class DeleteMessagesResponse(BaseModel):
    """Response for truncating a thread from a message onwards."""

    success: bool = Field(..., description="Truncation succeeded")
    thread_id: str = Field(..., description="Thread UUID")
    message_id: str = Field(..., description="First removed message")
    deleted_count: int = Field(default=0, ge=0, description="Number of messages removed")
