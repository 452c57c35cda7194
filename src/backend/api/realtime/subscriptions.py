"""Real-time snapshot subscriptions over PostgreSQL LISTEN/NOTIFY.

Row triggers on ``threads`` and ``messages`` publish small JSON payloads on
two channels. The hub keeps one listener connection, maps each notification
to the affected subscription key (a user id for thread lists, a thread id for
message lists), reloads the full snapshot and hands it to every registered
callback.

Every subscription emits once immediately after registration and again after
each relevant change. A failed reload delivers ``[]`` and is logged; errors
never reach the subscriber.
"""

from __future__ import annotations

import asyncio
import inspect
import json

from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any, Literal

import asyncpg

from core.constants import LISTENER_RECONNECT_DELAY, MESSAGE_CHANGES_CHANNEL, THREAD_CHANGES_CHANNEL
from utils.logger import logger
from utils.metrics import snapshot_errors_total, subscriptions_active

SubscriptionKind = Literal["threads", "messages"]
Snapshot = list[dict[str, Any]]
SnapshotLoader = Callable[[], Awaitable[Snapshot]]
SnapshotCallback = Callable[[Snapshot], Awaitable[None] | None]
EventCallback = Callable[[dict[str, Any]], Awaitable[None] | None]


async def _invoke(callback: Callable[[Any], Awaitable[None] | None], value: Any) -> None:
    result = callback(value)
    if inspect.isawaitable(result):
        await result


class Subscription:
    """Handle returned to subscribers; call ``cancel()`` to stop updates."""

    def __init__(
        self,
        hub: SubscriptionHub,
        kind: SubscriptionKind,
        key: str,
        loader: SnapshotLoader,
        callback: SnapshotCallback,
        on_event: EventCallback | None = None,
    ):
        self.hub = hub
        self.kind = kind
        self.key = key
        self.loader = loader
        self.callback = callback
        self.on_event = on_event
        self.active = True
        # Serializes reloads so snapshots are delivered in the order they were read
        self._lock = asyncio.Lock()

    def cancel(self) -> None:
        """Stop delivering snapshots. Safe to call more than once."""
        if self.active:
            self.active = False
            self.hub._remove(self)

    async def refresh(self) -> None:
        """Reload the snapshot and deliver it, degrading to ``[]`` on read errors."""
        async with self._lock:
            if not self.active:
                return
            try:
                snapshot = await self.loader()
            except Exception as e:
                snapshot_errors_total.labels(kind=self.kind).inc()
                logger.error(
                    f"Snapshot read failed for {self.kind} subscription {self.key}: {e}",
                    exc_info=True,
                )
                snapshot = []
            if not self.active:
                return
            try:
                await _invoke(self.callback, snapshot)
            except Exception as e:
                logger.warning(f"Subscriber callback failed for {self.kind}:{self.key}: {e}")

    async def deliver_event(self, event: dict[str, Any]) -> None:
        if not self.active or self.on_event is None:
            return
        try:
            await _invoke(self.on_event, event)
        except Exception as e:
            logger.warning(f"Event delivery failed for {self.kind}:{self.key}: {e}")


ListenerFactory = Callable[[], Awaitable[asyncpg.Connection]]


class SubscriptionHub:
    """In-process fan-out of database change notifications to subscribers."""

    def __init__(self) -> None:
        self._subscriptions: dict[tuple[str, str], set[Subscription]] = defaultdict(set)
        self._connection: asyncpg.Connection | None = None
        self._reconnect: ListenerFactory | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._stopping = False
        self._background_tasks: set[asyncio.Task[None]] = set()

    @property
    def listening(self) -> bool:
        return self._connection is not None and not self._connection.is_closed()

    async def start(self, connection: asyncpg.Connection, reconnect: ListenerFactory | None = None) -> None:
        """Attach a dedicated connection and LISTEN on both change channels.

        When ``reconnect`` is given, a dropped connection is replaced by
        calling it until it succeeds or the hub is stopped.
        """
        self._reconnect = reconnect
        self._stopping = False
        await self._attach(connection)
        logger.info("Subscription hub listening for thread/message changes")

    async def stop(self) -> None:
        """Detach the listener, cancel subscriptions and wait for in-flight reloads."""
        self._stopping = True
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            await asyncio.gather(self._reconnect_task, return_exceptions=True)
            self._reconnect_task = None

        connection, self._connection = self._connection, None
        if connection is not None:
            connection.remove_termination_listener(self._on_termination)
            try:
                await connection.remove_listener(THREAD_CHANGES_CHANNEL, self._on_notification)
                await connection.remove_listener(MESSAGE_CHANGES_CHANNEL, self._on_notification)
            finally:
                await connection.close()

        for subs in list(self._subscriptions.values()):
            for sub in list(subs):
                sub.cancel()

        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    def subscribe(
        self,
        kind: SubscriptionKind,
        key: str,
        loader: SnapshotLoader,
        callback: SnapshotCallback,
        on_event: EventCallback | None = None,
    ) -> Subscription:
        """Register a subscriber and schedule its initial snapshot."""
        sub = Subscription(self, kind, key, loader, callback, on_event)
        self._subscriptions[(kind, key)].add(sub)
        subscriptions_active.labels(kind=kind).inc()
        self._spawn(sub.refresh())
        return sub

    def count(self, kind: SubscriptionKind) -> int:
        return sum(len(subs) for (k, _), subs in self._subscriptions.items() if k == kind)

    def notify_changed(self, kind: SubscriptionKind, key: str) -> None:
        """Schedule a snapshot reload for every subscriber of ``(kind, key)``."""
        for sub in list(self._subscriptions.get((kind, key), ())):
            self._spawn(sub.refresh())

    async def publish_event(self, kind: SubscriptionKind, key: str, event: dict[str, Any]) -> None:
        """Push a one-off event (not a snapshot) to subscribers of ``(kind, key)``."""
        subs = list(self._subscriptions.get((kind, key), ()))
        if subs:
            await asyncio.gather(*(sub.deliver_event(event) for sub in subs))

    def handle_notification(self, channel: str, payload: str) -> None:
        """Route a NOTIFY payload to the affected subscriptions."""
        try:
            data = json.loads(payload) if payload else {}
        except json.JSONDecodeError:
            logger.warning(f"Ignoring malformed notification on {channel}: {payload!r}")
            return

        if channel == THREAD_CHANGES_CHANNEL:
            if user_id := data.get("user_id"):
                self.notify_changed("threads", str(user_id))
        elif channel == MESSAGE_CHANGES_CHANNEL:
            if thread_id := data.get("thread_id"):
                self.notify_changed("messages", str(thread_id))

    def _on_notification(self, connection: Any, pid: int, channel: str, payload: str) -> None:
        self.handle_notification(channel, payload)

    async def _attach(self, connection: asyncpg.Connection) -> None:
        await connection.add_listener(THREAD_CHANGES_CHANNEL, self._on_notification)
        await connection.add_listener(MESSAGE_CHANGES_CHANNEL, self._on_notification)
        connection.add_termination_listener(self._on_termination)
        self._connection = connection

    def _on_termination(self, connection: Any) -> None:
        """Called by asyncpg when the listener connection is closed or lost."""
        if self._stopping or connection is not self._connection:
            return
        self._connection = None
        logger.error("Change-notification connection lost; live updates are paused")
        if self._reconnect is not None and self._reconnect_task is None:
            self._reconnect_task = asyncio.ensure_future(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        reconnect = self._reconnect
        if reconnect is None:
            return
        try:
            while not self._stopping:
                connection: asyncpg.Connection | None = None
                try:
                    connection = await reconnect()
                    await self._attach(connection)
                except Exception as e:
                    logger.error(f"Reconnecting change-notification listener failed: {e}")
                    if connection is not None:
                        connection.terminate()
                    await asyncio.sleep(LISTENER_RECONNECT_DELAY)
                    continue
                logger.info("Change-notification listener reconnected")
                # Changes made while disconnected were never notified
                for kind, key in list(self._subscriptions):
                    self.notify_changed(kind, key)  # type: ignore[arg-type]
                return
        finally:
            self._reconnect_task = None

    def _remove(self, sub: Subscription) -> None:
        subs = self._subscriptions.get((sub.kind, sub.key))
        if subs is not None and sub in subs:
            subs.discard(sub)
            subscriptions_active.labels(kind=sub.kind).dec()
            if not subs:
                del self._subscriptions[(sub.kind, sub.key)]

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)


__all__ = [
    "EventCallback",
    "Snapshot",
    "SnapshotCallback",
    "Subscription",
    "SubscriptionHub",
    "SubscriptionKind",
]
