from __future__ import annotations

from typing import Annotated

import asyncpg

from fastapi import Depends, Request

from api.realtime.subscriptions import SubscriptionHub
from api.services.auth_service import AuthService
from api.services.chat_service import ChatService
from api.services.message_store import MessageStore
from api.services.share_service import ShareService
from api.services.thread_store import ThreadStore
from core.constants import Settings, get_settings


def get_app_settings() -> Settings:
    """Provide application settings via dependency injection.

    Settings are validated at startup and cached for performance.

    Usage in routes:
        @router.get("/example")
        async def example(settings: AppSettings):
            return {"debug": settings.debug}
    """
    return get_settings()


async def get_db(request: Request) -> asyncpg.Pool:
    """Get database connection pool from application state."""
    return request.app.state.db_pool


def get_subscription_hub(request: Request) -> SubscriptionHub:
    """Get the change-notification hub from application state."""
    return request.app.state.subscription_hub


def get_thread_store(
    db: Annotated[asyncpg.Pool, Depends(get_db)],
    hub: Annotated[SubscriptionHub, Depends(get_subscription_hub)],
) -> ThreadStore:
    return ThreadStore(db, hub)


def get_message_store(
    db: Annotated[asyncpg.Pool, Depends(get_db)],
    hub: Annotated[SubscriptionHub, Depends(get_subscription_hub)],
) -> MessageStore:
    return MessageStore(db, hub)


def get_chat_service(request: Request) -> ChatService:
    """Get the application-wide chat orchestrator.

    A single instance owns the background title tasks so shutdown can
    drain them.
    """
    return request.app.state.chat_service


def get_share_service(db: Annotated[asyncpg.Pool, Depends(get_db)]) -> ShareService:
    return ShareService(db)


def get_auth_service(db: Annotated[asyncpg.Pool, Depends(get_db)]) -> AuthService:
    return AuthService(db)


# Type aliases for cleaner route signatures
DB = Annotated[asyncpg.Pool, Depends(get_db)]
Hub = Annotated[SubscriptionHub, Depends(get_subscription_hub)]
Threads = Annotated[ThreadStore, Depends(get_thread_store)]
Messages = Annotated[MessageStore, Depends(get_message_store)]
Chat = Annotated[ChatService, Depends(get_chat_service)]
Share = Annotated[ShareService, Depends(get_share_service)]
Auth = Annotated[AuthService, Depends(get_auth_service)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
