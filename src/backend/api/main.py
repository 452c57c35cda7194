from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable
from contextlib import asynccontextmanager

import asyncpg

from agents import set_default_openai_client, set_tracing_disabled
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from api.middleware.exception_handlers import register_exception_handlers
from api.middleware.request_context import RequestContextMiddleware
from api.realtime.subscriptions import SubscriptionHub
from api.routes import live
from api.routes.v1 import router as v1_router
from api.services.chat_service import ChatService
from api.services.llm_service import LLMService
from api.services.message_store import MessageStore
from api.services.thread_store import ThreadStore
from core.constants import get_settings
from utils.client_factory import create_http_client, create_openai_client
from utils.db_utils import (
    check_pool_health,
    create_database_pool,
    create_listener_connection,
    graceful_pool_close,
)
from utils.logger import configure_uvicorn_logging, logger

# Settings are loaded via Pydantic Settings with environment-specific file support
# (.env, .env.{APP_ENV}, .env.local) - no manual dotenv loading needed
settings = get_settings()

# Log loaded settings in debug mode
if settings.debug:
    from core.constants import _get_env_files

    logger.info(f"Env files: {[f.name for f in _get_env_files()]}")
    logger.info(
        f"Settings: app_env={settings.app_env}, " f"db_pool=[{settings.db_pool_min_size},{settings.db_pool_max_size}]"
    )

# Configure uvicorn logging at module level to ensure workers use it
configure_uvicorn_logging()


def _setup_openai_client() -> None:
    """Configure OpenAI/Azure client and register with agents SDK."""
    http_client = create_http_client(read_timeout=settings.http_read_timeout)
    if settings.api_provider == "azure":
        endpoint = settings.azure_endpoint_str
        logger.info(f"Configuring Azure OpenAI client (endpoint: {endpoint})")
        client = create_openai_client(settings.azure_openai_api_key, base_url=endpoint, http_client=http_client)
    else:
        logger.info("Configuring OpenAI client")
        client = create_openai_client(settings.openai_api_key, http_client=http_client)

    # Register as default client for agents SDK
    set_default_openai_client(client)

    # Disable tracing to avoid 401 errors with Azure
    set_tracing_disabled(True)

    logger.info("OpenAI client registered with agents SDK")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown with graceful handling."""
    # Initialize OpenAI client for agents SDK
    _setup_openai_client()

    # Create database pool with production configuration
    app.state.db_pool = await create_database_pool(
        dsn=settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        command_timeout=settings.db_command_timeout,
        connection_timeout=settings.db_connection_timeout,
        statement_cache_size=settings.db_statement_cache_size,
        max_inactive_connection_lifetime=settings.db_max_inactive_connection_lifetime,
    )

    # Verify database connectivity
    health = await check_pool_health(app.state.db_pool)
    if not health["healthy"]:
        logger.error("Database health check failed during startup")
        raise RuntimeError("Database connection failed")
    logger.info(f"Database pool healthy: {health}")

    # Change notifications arrive on a dedicated connection outside the pool
    def open_listener() -> Awaitable[asyncpg.Connection]:
        return create_listener_connection(
            settings.database_url,
            connection_timeout=settings.db_connection_timeout,
        )

    hub = SubscriptionHub()
    await hub.start(await open_listener(), reconnect=open_listener)
    app.state.subscription_hub = hub

    app.state.chat_service = ChatService(
        threads=ThreadStore(app.state.db_pool, hub),
        messages=MessageStore(app.state.db_pool, hub),
        llm=LLMService(settings),
        hub=hub,
    )

    try:
        yield
    finally:
        logger.info("Initiating graceful shutdown sequence")

        # Phase 1: Let in-flight title generations finish
        await app.state.chat_service.shutdown(timeout=settings.shutdown_connection_drain_timeout)

        # Phase 2: Detach listener and cancel live subscriptions
        await hub.stop()
        logger.info("Subscription hub stopped")

        # Phase 3: Gracefully close database pool
        await graceful_pool_close(app.state.db_pool, timeout=settings.shutdown_timeout)


app = FastAPI(
    title="EchoFlow API",
    description="""
## EchoFlow API

Conversational assistant backend: persistent chat threads, AI replies and
read-only public share pages.

### Features
- **Threads**: Create, rename, publish and delete chat threads
- **Messages**: Send, edit and retry messages with AI replies
- **Live updates**: WebSocket snapshot streams for thread and message lists
- **Sharing**: Public read-only view of threads marked public

### Authentication
All endpoints except registration, login, token refresh, share pages and
health checks require a JWT Bearer token. Use `/api/v1/auth/login` to obtain
tokens. WebSocket streams take the access token as `?token=`.

### Versioning
API uses URL path versioning: `/api/v1/...`
Breaking changes will increment the version number.
""",
    version=settings.app_version,
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Health",
            "description": "Health check endpoints for monitoring and orchestration",
        },
        {
            "name": "Authentication",
            "description": "Registration, login, token refresh and profile",
        },
        {
            "name": "Threads",
            "description": "Chat thread CRUD operations",
        },
        {
            "name": "Messages",
            "description": "Message history, sending, editing and retry",
        },
        {
            "name": "Sharing",
            "description": "Public read-only thread pages",
        },
        {
            "name": "WebSocket",
            "description": "Live thread and message snapshots",
        },
    ],
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
)

# Register global exception handlers for consistent error responses
register_exception_handlers(app)

# Request context middleware (adds request ID tracking)
# Note: Middleware is executed in reverse order of registration
app.add_middleware(RequestContextMiddleware)

# CORS configuration (uses Settings for origin control)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes - API v1
app.include_router(v1_router, prefix="/api/v1")

# WebSocket routes (not versioned - protocol-level)
app.include_router(live.router, prefix="/ws", tags=["WebSocket"])

# Prometheus scrape endpoint
app.mount("/metrics", make_asgi_app())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        reload_dirs=["src"],
        log_config=None,
    )
