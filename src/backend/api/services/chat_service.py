from __future__ import annotations

import asyncio
import time

from dataclasses import dataclass
from typing import Any, Literal
from uuid import UUID

from api.middleware.exception_handlers import MessageNotFoundError, ValidationException
from api.realtime.subscriptions import SubscriptionHub
from api.services.llm_service import LLMService
from api.services.message_store import MessageStore
from api.services.message_utils import to_history
from api.services.thread_store import ThreadStore
from core.constants import (
    ASSISTANT_USER_ID,
    CONTEXT_MESSAGE_LIMIT,
    EVENT_SEND_FAILED,
    SEND_FAILED_DESCRIPTION,
    SEND_FAILED_TITLE,
)
from utils.logger import logger
from utils.metrics import messages_sent_total, title_generation_total

SendStatus = Literal["succeeded", "failed"]


@dataclass
class SendResult:
    """Terminal state of one send or retry."""

    status: SendStatus
    thread_id: str
    user_message_id: str
    assistant_message_id: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    @property
    def notification(self) -> dict[str, str] | None:
        if self.succeeded:
            return None
        return {"title": SEND_FAILED_TITLE, "description": SEND_FAILED_DESCRIPTION}


class ChatService:
    """Orchestrates sending, editing and retrying messages in a thread.

    A send appends the user message, asks the model for a reply using the
    most recent messages as context, and appends the reply. A retry rewrites
    an existing user message, discards everything after it and asks again.

    Once the user message is stored, any failure marks it ``is_failed`` and
    the call returns a failed ``SendResult`` instead of raising. Nothing is
    retried automatically.
    """

    def __init__(
        self,
        threads: ThreadStore,
        messages: MessageStore,
        llm: LLMService,
        hub: SubscriptionHub | None = None,
    ):
        self.threads = threads
        self.messages = messages
        self.llm = llm
        self.hub = hub
        # Background tasks set to prevent garbage collection of fire-and-forget work
        self._background_tasks: set[asyncio.Task[Any]] = set()

    async def send_message(
        self,
        thread_id: UUID | str,
        user_id: str,
        content: str,
        is_retry: bool = False,
        target_message_id: UUID | str | None = None,
    ) -> SendResult:
        """Run one send (or retry) to completion.

        Args:
            thread_id: Thread receiving the message
            user_id: Author's user id
            content: Message text
            is_retry: Replace ``target_message_id`` instead of appending
            target_message_id: Existing user message to rewrite on retry

        Raises:
            MessageNotFoundError: Retry target is not in the thread
            ValidationException: Retry target is not a user message
        """
        thread_key = str(thread_id)
        start = time.monotonic()

        if is_retry:
            user_message_id = await self._resolve_retry_target(thread_key, target_message_id)
            is_first_message = False
        else:
            prior_count = await self.messages.count_messages(thread_key)
            user_message_id = await self.messages.add_message(thread_key, "user", content, user_id)
            is_first_message = prior_count == 0

        try:
            if is_retry:
                await self.messages.update_message_content(thread_key, user_message_id, content)
                await self.messages.set_message_failed_status(thread_key, user_message_id, False)
                await self.messages.delete_messages_after(thread_key, user_message_id)
            elif is_first_message:
                self._spawn_title_generation(thread_key, content)

            recent = await self.messages.get_recent_messages(thread_key, CONTEXT_MESSAGE_LIMIT)
            if not recent:
                raise RuntimeError("No conversation context available")

            reply = await self.llm.generate_chat_response(to_history(recent))
            assistant_message_id = await self.messages.add_message(thread_key, "assistant", reply, ASSISTANT_USER_ID)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._mark_failed(thread_key, user_message_id, exc)
            messages_sent_total.labels(status="failed", kind="retry" if is_retry else "send").inc()
            return SendResult(
                status="failed",
                thread_id=thread_key,
                user_message_id=user_message_id,
                error=str(exc),
            )

        messages_sent_total.labels(status="succeeded", kind="retry" if is_retry else "send").inc()
        logger.log_chat_turn(
            thread_id=thread_key,
            user_input=content,
            response=reply,
            duration_ms=(time.monotonic() - start) * 1000,
            is_retry=is_retry,
        )
        return SendResult(
            status="succeeded",
            thread_id=thread_key,
            user_message_id=user_message_id,
            assistant_message_id=assistant_message_id,
        )

    async def _resolve_retry_target(self, thread_id: str, target_message_id: UUID | str | None) -> str:
        if target_message_id is None:
            raise ValidationException("target_message_id is required when retrying")
        try:
            target = await self.messages.get_message(thread_id, target_message_id)
        except ValueError as exc:
            raise MessageNotFoundError(str(target_message_id)) from exc
        if target is None:
            raise MessageNotFoundError(str(target_message_id))
        if target["role"] != "user":
            raise ValidationException("Only user messages can be edited and retried")
        return str(target["id"])

    async def _mark_failed(self, thread_id: str, message_id: str, exc: Exception) -> None:
        """Flag the user message as failed and tell the thread's subscribers."""
        logger.error(f"Send failed for thread {thread_id}: {exc}", exc_info=True, thread_id=thread_id)
        try:
            await self.messages.set_message_failed_status(thread_id, message_id, True)
        except Exception as mark_exc:
            logger.error(f"Could not flag message {message_id} as failed: {mark_exc}", thread_id=thread_id)

        if self.hub is not None:
            await self.hub.publish_event(
                "messages",
                thread_id,
                {
                    "type": EVENT_SEND_FAILED,
                    "thread_id": thread_id,
                    "message_id": message_id,
                    "title": SEND_FAILED_TITLE,
                    "description": SEND_FAILED_DESCRIPTION,
                },
            )

    def _spawn_title_generation(self, thread_id: str, first_message: str) -> None:
        task = asyncio.create_task(self._generate_title(thread_id, first_message))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _generate_title(self, thread_id: str, first_message: str) -> None:
        """Name the thread from its first message. Failures are logged and dropped."""
        try:
            title = await self.llm.generate_thread_title(first_message)
            if not title:
                title_generation_total.labels(status="error").inc()
                return
            await self.threads.update_thread(thread_id, thread_title=title)
            title_generation_total.labels(status="success").inc()
            logger.info(f"Generated title for thread {thread_id}: {title}", thread_id=thread_id)
        except Exception as e:
            title_generation_total.labels(status="error").inc()
            logger.warning(f"Could not generate thread title for {thread_id}: {e}", thread_id=thread_id)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Wait briefly for in-flight title generations, then cancel the rest."""
        if not self._background_tasks:
            return
        pending = list(self._background_tasks)
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
