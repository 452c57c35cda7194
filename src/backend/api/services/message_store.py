from __future__ import annotations

from typing import Any
from uuid import UUID

import asyncpg

from api.realtime.subscriptions import EventCallback, SnapshotCallback, Subscription, SubscriptionHub
from api.services.message_utils import as_uuid, row_to_message
from core.constants import MESSAGE_ROLES
from utils.logger import logger

# Every message mutation refreshes the parent thread's last-activity time
_TOUCH_THREAD = "UPDATE threads SET updated_at = NOW() WHERE id = $1"


def _affected(result: str) -> int:
    """Row count from an asyncpg status string such as ``'DELETE 3'``."""
    try:
        return int(result.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class MessageStore:
    """Message persistence, ordering and live message-list subscriptions.

    Messages are ordered by ``created_at`` with the ``seq`` identity column
    breaking ties between rows written in the same instant.
    """

    def __init__(self, pool: asyncpg.Pool, hub: SubscriptionHub | None = None):
        self.pool = pool
        self.hub = hub

    async def list_messages(self, thread_id: UUID | str) -> list[dict[str, Any]]:
        """All messages of the thread, oldest first."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM messages
                WHERE thread_id = $1
                ORDER BY created_at ASC, seq ASC
                """,
                as_uuid(thread_id),
            )
        return [row_to_message(r) for r in rows]

    def subscribe_messages_for_thread(
        self,
        thread_id: UUID | str,
        callback: SnapshotCallback,
        on_event: EventCallback | None = None,
    ) -> Subscription:
        """Stream chronological message snapshots until the handle is cancelled.

        ``on_event`` additionally receives one-off notifications such as a
        failed send for this thread.
        """
        if self.hub is None:
            raise RuntimeError("MessageStore was created without a subscription hub")
        key = str(thread_id)
        return self.hub.subscribe("messages", key, lambda: self.list_messages(key), callback, on_event)

    async def get_message(self, thread_id: UUID | str, message_id: UUID | str) -> dict[str, Any] | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM messages WHERE id = $1 AND thread_id = $2",
                as_uuid(message_id),
                as_uuid(thread_id),
            )
        if not row:
            return None
        return row_to_message(row)

    async def get_recent_messages(self, thread_id: UUID | str, limit: int) -> list[dict[str, Any]]:
        """The newest ``limit`` messages in chronological order.

        Read failures are logged and yield an empty list.
        """
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT * FROM messages
                    WHERE thread_id = $1
                    ORDER BY created_at DESC, seq DESC
                    LIMIT $2
                    """,
                    as_uuid(thread_id),
                    limit,
                )
        except Exception as e:
            logger.error(f"Failed to load recent messages for thread {thread_id}: {e}", thread_id=str(thread_id))
            return []
        return [row_to_message(r) for r in reversed(rows)]

    async def count_messages(self, thread_id: UUID | str) -> int:
        async with self.pool.acquire() as conn:
            total = await conn.fetchval("SELECT COUNT(*) FROM messages WHERE thread_id = $1", as_uuid(thread_id))
        return int(total or 0)

    async def add_message(
        self,
        thread_id: UUID | str,
        role: str,
        content: str,
        user_id: str,
    ) -> str:
        """Append a message with a server-assigned timestamp and return its id."""
        if role not in MESSAGE_ROLES:
            raise ValueError(f"Invalid message role: {role}")

        thread_uuid = as_uuid(thread_id)
        async with self.pool.acquire() as conn, conn.transaction():
            message_id = await conn.fetchval(
                """
                INSERT INTO messages (thread_id, role, content, user_id)
                VALUES ($1, $2, $3, $4)
                RETURNING id
                """,
                thread_uuid,
                role,
                content,
                user_id,
            )
            await conn.execute(_TOUCH_THREAD, thread_uuid)
        return str(message_id)

    async def update_message_content(self, thread_id: UUID | str, message_id: UUID | str, content: str) -> bool:
        """Replace a message's content. Returns False when the message is not in the thread."""
        thread_uuid = as_uuid(thread_id)
        async with self.pool.acquire() as conn, conn.transaction():
            result: str = await conn.execute(
                "UPDATE messages SET content = $3 WHERE id = $2 AND thread_id = $1",
                thread_uuid,
                as_uuid(message_id),
                content,
            )
            await conn.execute(_TOUCH_THREAD, thread_uuid)
        return _affected(result) > 0

    async def set_message_failed_status(self, thread_id: UUID | str, message_id: UUID | str, failed: bool) -> None:
        thread_uuid = as_uuid(thread_id)
        async with self.pool.acquire() as conn, conn.transaction():
            await conn.execute(
                "UPDATE messages SET is_failed = $3 WHERE id = $2 AND thread_id = $1",
                thread_uuid,
                as_uuid(message_id),
                failed,
            )
            await conn.execute(_TOUCH_THREAD, thread_uuid)

    async def delete_messages_from(self, thread_id: UUID | str, start_message_id: UUID | str) -> int:
        """Delete ``start_message_id`` and every message at or after it.

        Returns the number of deleted messages (0 when the start message is
        not part of the thread).
        """
        return await self._truncate(thread_id, start_message_id, inclusive=True)

    async def delete_messages_after(self, thread_id: UUID | str, message_id: UUID | str) -> int:
        """Delete every message strictly after ``message_id``, keeping it."""
        return await self._truncate(thread_id, message_id, inclusive=False)

    async def _truncate(self, thread_id: UUID | str, pivot_id: UUID | str, *, inclusive: bool) -> int:
        op = ">=" if inclusive else ">"
        thread_uuid = as_uuid(thread_id)
        async with self.pool.acquire() as conn, conn.transaction():
            result: str = await conn.execute(
                f"""
                DELETE FROM messages m
                USING messages pivot
                WHERE pivot.id = $2
                  AND pivot.thread_id = $1
                  AND m.thread_id = $1
                  AND (m.created_at, m.seq) {op} (pivot.created_at, pivot.seq)
                """,
                thread_uuid,
                as_uuid(pivot_id),
            )
            deleted = _affected(result)
            if deleted:
                await conn.execute(_TOUCH_THREAD, thread_uuid)
        return deleted
