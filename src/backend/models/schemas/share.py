"""
Public share page schemas.

The projection deliberately omits author ids and failure flags.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from models.schemas.messages import MessageRole


class PublicUser(BaseModel):
    """Owner identity shown on a shared thread."""

    full_name: str = Field(..., description="Owner display name")
    avatar_url: str = Field(..., description="Owner avatar URL")


class PublicMessage(BaseModel):
    """Message as rendered on a share page."""

    id: str = Field(..., description="Message UUID")
    role: MessageRole = Field(..., description="Message role")
    content: str = Field(..., description="Message text")
    created_at: str | None = Field(default=None, description="Creation timestamp (ISO 8601)")


class PublicThreadResponse(BaseModel):
    """Read-only projection of a public thread."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "6f1c2b9e-1d4a-4c1e-9a53-2b0f6f2d7c11",
                "thread_title": "Capital Cities",
                "created_at": "2025-01-15T10:30:00+00:00",
                "messages": [
                    {
                        "id": "0b7e4a7c-3f3e-4f7a-8a6d-0e3f4b5c6d7e",
                        "role": "user",
                        "content": "What is the capital of France?",
                        "created_at": "2025-01-15T10:30:00+00:00",
                    }
                ],
                "user": {
                    "full_name": "A User",
                    "avatar_url": "https://www.gravatar.com/avatar/550e8400?d=identicon",
                },
            }
        }
    )

    id: str = Field(..., description="Thread UUID")
    thread_title: str = Field(..., description="Thread title")
    created_at: str | None = Field(default=None, description="Creation timestamp (ISO 8601)")
    messages: list[PublicMessage] = Field(default_factory=list, description="Messages, oldest first")
    user: PublicUser = Field(..., description="Owner identity or placeholder")
