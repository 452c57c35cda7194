"""
Live snapshot streams over WebSocket.

Each connection authenticates with ``?token=<access JWT>``, registers one
subscription and forwards every snapshot as a JSON frame until the client
disconnects. Client frames are read only to detect disconnects.
"""

from __future__ import annotations

import asyncio
import contextlib

from collections.abc import Callable
from enum import IntEnum
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from api.middleware.auth import get_current_user_from_token
from api.middleware.exception_handlers import AuthenticationError
from api.middleware.request_context import create_websocket_context
from api.realtime.subscriptions import Snapshot, Subscription
from api.services.message_store import MessageStore
from api.services.thread_store import ThreadStore
from core.constants import EVENT_MESSAGES_SNAPSHOT, EVENT_THREADS_SNAPSHOT, get_settings
from models.schemas.auth import UserInfo
from utils.logger import logger
from utils.metrics import ws_connections_active

router = APIRouter()


class WSCloseCode(IntEnum):
    """Application close codes (4000-4999 range)."""

    AUTH_REQUIRED = 4401
    NOT_FOUND = 4404


async def _authenticate(websocket: WebSocket, token: str | None) -> UserInfo | None:
    """Resolve the user or close the socket with ``AUTH_REQUIRED``."""
    if token:
        try:
            return await get_current_user_from_token(token, websocket.app.state.db_pool)
        except AuthenticationError as exc:
            logger.info(f"WebSocket auth rejected: {exc.message}")
    await websocket.close(code=WSCloseCode.AUTH_REQUIRED)
    return None


@router.websocket("/threads")
async def threads_websocket(websocket: WebSocket, token: str | None = Query(default=None)) -> None:
    """Stream the current user's thread list."""
    client_ip = websocket.client.host if websocket.client else None
    user = await _authenticate(websocket, token)
    if user is None:
        return
    create_websocket_context(path=websocket.url.path, user_id=user.id, client_ip=client_ip)

    await websocket.accept()
    store = ThreadStore(websocket.app.state.db_pool, websocket.app.state.subscription_hub)

    async def forward(snapshot: Snapshot) -> None:
        await websocket.send_json({"type": EVENT_THREADS_SNAPSHOT, "threads": snapshot})

    await _serve(websocket, "threads", lambda: store.subscribe_threads_for_user(user.id, forward))


@router.websocket("/threads/{thread_id}/messages")
async def messages_websocket(
    websocket: WebSocket,
    thread_id: str,
    token: str | None = Query(default=None),
) -> None:
    """Stream one thread's messages plus send-failure notifications."""
    client_ip = websocket.client.host if websocket.client else None
    user = await _authenticate(websocket, token)
    if user is None:
        return
    create_websocket_context(path=websocket.url.path, user_id=user.id, thread_id=thread_id, client_ip=client_ip)

    db = websocket.app.state.db_pool
    hub = websocket.app.state.subscription_hub
    try:
        thread = await ThreadStore(db, hub).get_thread(thread_id)
    except ValueError:
        thread = None
    if thread is None or thread["user_id"] != user.id:
        await websocket.close(code=WSCloseCode.NOT_FOUND, reason="Thread not found")
        return

    await websocket.accept()
    store = MessageStore(db, hub)

    async def forward(snapshot: Snapshot) -> None:
        await websocket.send_json({"type": EVENT_MESSAGES_SNAPSHOT, "messages": snapshot})

    async def forward_event(event: dict[str, Any]) -> None:
        await websocket.send_json(event)

    await _serve(
        websocket,
        "messages",
        lambda: store.subscribe_messages_for_thread(thread["id"], forward, on_event=forward_event),
    )


async def _serve(websocket: WebSocket, stream: str, subscribe: Callable[[], Subscription]) -> None:
    """Hold the subscription open until the client goes away."""
    ws_connections_active.labels(stream=stream).inc()
    subscription: Subscription | None = None
    keepalive_task = asyncio.create_task(_keepalive(websocket))
    try:
        subscription = subscribe()
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass  # Normal client disconnect
    except RuntimeError as e:
        # Handle "WebSocket is not connected" errors gracefully
        if "not connected" not in str(e).lower():
            raise
    finally:
        keepalive_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await keepalive_task
        if subscription is not None:
            subscription.cancel()
        ws_connections_active.labels(stream=stream).dec()


async def _keepalive(websocket: WebSocket) -> None:
    """Send periodic ping frames."""
    interval = get_settings().ws_heartbeat_interval
    while True:
        await asyncio.sleep(interval)
        try:
            await websocket.send_json({"type": "ping"})
        except Exception:
            break
