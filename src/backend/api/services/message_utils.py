"""Shared row utilities for API services.

Provides common functions for converting database rows to API response formats.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol
from uuid import UUID


class Row(Protocol):
    """Protocol for database row access (asyncpg.Record or dict)."""

    def get(self, key: str) -> Any: ...

    def __getitem__(self, key: str) -> Any: ...


def as_uuid(value: UUID | str) -> UUID:
    """Normalize an id to UUID, raising ValueError for malformed input."""
    return value if isinstance(value, UUID) else UUID(str(value))


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def row_to_thread(row: Row) -> dict[str, Any]:
    """Convert database row to thread dict."""
    return {
        "id": str(row["id"]),
        "user_id": str(row["user_id"]),
        "thread_title": row["thread_title"],
        "is_public": bool(row["is_public"]),
        "created_at": iso(row["created_at"]),
        "updated_at": iso(row["updated_at"]),
    }


def row_to_message(row: Row) -> dict[str, Any]:
    """Convert database row to message dict.

    ``user_id`` is the author's uid for user messages and the assistant
    marker for replies.
    """
    return {
        "id": str(row["id"]),
        "thread_id": str(row["thread_id"]),
        "user_id": row["user_id"],
        "role": row["role"],
        "content": row["content"],
        "is_failed": bool(row.get("is_failed")),
        "created_at": iso(row["created_at"]),
    }


def to_history(messages: list[dict[str, Any]]) -> list[dict[str, str]]:
    """Reduce stored messages to the ``{role, content}`` pairs sent to the model."""
    return [{"role": m["role"], "content": m["content"]} for m in messages]
