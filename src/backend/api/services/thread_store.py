from __future__ import annotations

from typing import Any
from uuid import UUID

import asyncpg

from api.realtime.subscriptions import SnapshotCallback, Subscription, SubscriptionHub
from api.services.message_utils import as_uuid, row_to_thread
from core.constants import DEFAULT_THREAD_TITLE
from utils.logger import logger


class ThreadStore:
    """Thread persistence and live thread-list subscriptions backed by PostgreSQL."""

    ALLOWED_FIELDS = ("thread_title", "is_public")

    def __init__(self, pool: asyncpg.Pool, hub: SubscriptionHub | None = None):
        self.pool = pool
        self.hub = hub

    async def list_threads_for_user(self, user_id: UUID | str) -> list[dict[str, Any]]:
        """All threads owned by ``user_id``, most recently updated first."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM threads
                WHERE user_id = $1
                ORDER BY updated_at DESC, created_at DESC
                """,
                as_uuid(user_id),
            )
        return [row_to_thread(r) for r in rows]

    def subscribe_threads_for_user(self, user_id: UUID | str, callback: SnapshotCallback) -> Subscription:
        """Stream thread-list snapshots for ``user_id`` until the handle is cancelled.

        The first snapshot is delivered right away. Read failures deliver ``[]``.
        """
        if self.hub is None:
            raise RuntimeError("ThreadStore was created without a subscription hub")
        key = str(user_id)
        return self.hub.subscribe("threads", key, lambda: self.list_threads_for_user(key), callback)

    async def get_thread(self, thread_id: UUID | str) -> dict[str, Any] | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM threads WHERE id = $1", as_uuid(thread_id))
        if not row:
            return None
        return row_to_thread(row)

    async def create_thread(self, user_id: UUID | str) -> dict[str, Any]:
        """Create an empty private thread titled with the default title."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO threads (user_id, thread_title, is_public, created_at, updated_at)
                VALUES ($1, $2, FALSE, NOW(), NOW())
                RETURNING *
                """,
                as_uuid(user_id),
                DEFAULT_THREAD_TITLE,
            )
        thread = row_to_thread(row)
        logger.info(f"Created thread {thread['id']}", thread_id=thread["id"], user_id=thread["user_id"])
        return thread

    async def update_thread(self, thread_id: UUID | str, **fields: Any) -> dict[str, Any] | None:
        """Merge the given fields into the thread and refresh ``updated_at``.

        Unknown or ``None`` fields are ignored; ``updated_at`` is refreshed even
        when nothing else changes. Returns the updated thread or None if missing.
        """
        set_clauses = []
        values: list[Any] = [as_uuid(thread_id)]
        idx = 2

        for field, val in fields.items():
            if field in self.ALLOWED_FIELDS and val is not None:
                set_clauses.append(f"{field} = ${idx}")
                values.append(val)
                idx += 1

        set_clauses.append("updated_at = NOW()")

        query = f"""
            UPDATE threads
            SET {', '.join(set_clauses)}
            WHERE id = $1
            RETURNING *
        """

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, *values)
        if not row:
            return None
        return row_to_thread(row)

    async def delete_thread_and_messages(self, thread_id: UUID | str) -> bool:
        """Delete all messages of the thread, then the thread itself.

        The two deletes run as separate statements. If the second fails the
        thread survives with no messages.
        """
        thread_uuid = as_uuid(thread_id)
        async with self.pool.acquire() as conn:
            messages_result: str = await conn.execute("DELETE FROM messages WHERE thread_id = $1", thread_uuid)
            thread_result: str = await conn.execute("DELETE FROM threads WHERE id = $1", thread_uuid)

        deleted = thread_result == "DELETE 1"
        if deleted:
            logger.info(
                f"Deleted thread {thread_uuid} ({messages_result.split()[-1]} messages)",
                thread_id=str(thread_uuid),
            )
        return deleted
