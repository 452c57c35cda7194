from __future__ import annotations

from typing import Any
from uuid import UUID

import asyncpg

from api.services.message_utils import as_uuid, iso, row_to_thread
from core.constants import DEFAULT_AVATAR_URL_TEMPLATE, PLACEHOLDER_USER_NAME
from utils.logger import logger


def placeholder_user(user_id: str) -> dict[str, str]:
    """Identity shown when the owner's profile cannot be read."""
    return {
        "full_name": PLACEHOLDER_USER_NAME,
        "avatar_url": DEFAULT_AVATAR_URL_TEMPLATE.format(user_id=user_id),
    }


class ShareService:
    """Read-only projection of public threads for unauthenticated viewers."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def get_public_thread_data(self, thread_id: UUID | str) -> dict[str, Any] | None:
        """Return the public view of a thread, or None if it is missing or private.

        Messages are chronological and carry only id, role, content and
        timestamp. Read failures are logged and reported as None.
        """
        try:
            thread_uuid = as_uuid(thread_id)
        except ValueError:
            return None

        try:
            async with self.pool.acquire() as conn:
                thread_row = await conn.fetchrow("SELECT * FROM threads WHERE id = $1", thread_uuid)
                if not thread_row or not thread_row["is_public"]:
                    return None

                message_rows = await conn.fetch(
                    """
                    SELECT id, role, content, created_at FROM messages
                    WHERE thread_id = $1
                    ORDER BY created_at ASC, seq ASC
                    """,
                    thread_uuid,
                )
                user_row = await conn.fetchrow(
                    "SELECT full_name, avatar_url FROM users WHERE id = $1",
                    thread_row["user_id"],
                )
        except Exception as e:
            logger.error(f"Failed to load shared thread {thread_id}: {e}", thread_id=str(thread_id))
            return None

        thread = row_to_thread(thread_row)
        return {
            "id": thread["id"],
            "thread_title": thread["thread_title"],
            "created_at": thread["created_at"],
            "messages": [
                {
                    "id": str(r["id"]),
                    "role": r["role"],
                    "content": r["content"],
                    "created_at": iso(r["created_at"]),
                }
                for r in message_rows
            ],
            "user": self._public_user(thread["user_id"], user_row),
        }

    def _public_user(self, user_id: str, row: asyncpg.Record | None) -> dict[str, str]:
        fallback = placeholder_user(user_id)
        if not row:
            return fallback
        return {
            "full_name": row["full_name"] or fallback["full_name"],
            "avatar_url": row["avatar_url"] or fallback["avatar_url"],
        }
