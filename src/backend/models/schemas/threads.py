"""
Thread-related API schemas.

Provides request/response models for thread CRUD operations
with comprehensive OpenAPI documentation.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.constants import THREAD_TITLE_MAX_LENGTH

# =============================================================================
# Request Models
# =============================================================================


class UpdateThreadRequest(BaseModel):
    """Request body for updating a thread.

    Only provided fields are merged; ``updated_at`` is refreshed either way.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "thread_title": "Trip Planning",
                "is_public": True,
            }
        }
    )

    thread_title: str | None = Field(
        default=None,
        min_length=1,
        max_length=THREAD_TITLE_MAX_LENGTH,
        description="New thread title",
        json_schema_extra={"example": "Trip Planning"},
    )
    is_public: bool | None = Field(
        default=None,
        description="Publish or unpublish the thread's read-only share page",
        json_schema_extra={"example": True},
    )

    @field_validator("thread_title")
    @classmethod
    def strip_title(cls, v: str | None) -> str | None:
        if v is None:
            return None
        stripped = v.strip()
        if not stripped:
            raise ValueError("thread_title cannot be blank")
        return stripped


# =============================================================================
# Response Models
# =============================================================================


class ThreadResponse(BaseModel):
    """Thread entity."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "6f1c2b9e-1d4a-4c1e-9a53-2b0f6f2d7c11",
                "user_id": "550e8400-e29b-41d4-a716-446655440000",
                "thread_title": "New Chat",
                "is_public": False,
                "created_at": "2025-01-15T10:30:00+00:00",
                "updated_at": "2025-01-15T10:31:12+00:00",
                "share_url": None,
            }
        }
    )

    id: str = Field(..., description="Thread UUID")
    user_id: str = Field(..., description="Owner's user UUID")
    thread_title: str = Field(..., description="Thread title")
    is_public: bool = Field(default=False, description="Whether the share page is readable")
    created_at: str | None = Field(default=None, description="Creation timestamp (ISO 8601)")
    updated_at: str | None = Field(default=None, description="Last activity timestamp (ISO 8601)")
    share_url: str | None = Field(default=None, description="Public page URL when the thread is public")


class ThreadListResponse(BaseModel):
    """Threads of the current user, most recently active first."""

    threads: list[ThreadResponse] = Field(default_factory=list, description="Threads")
    total_count: int = Field(default=0, ge=0, description="Number of threads returned")


class DeleteThreadResponse(BaseModel):
    """Response for thread deletion."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "message": "Thread deleted successfully",
                "thread_id": "6f1c2b9e-1d4a-4c1e-9a53-2b0f6f2d7c11",
            }
        }
    )

    success: bool = Field(..., description="Deletion succeeded")
    message: str = Field(..., description="Human-readable result")
    thread_id: str = Field(..., description="Deleted thread UUID")
