"""
API v1 Router - Aggregates all v1 endpoints.

Usage in main.py:
    from api.routes.v1 import router as v1_router
    app.include_router(v1_router, prefix="/api/v1")
"""

from fastapi import APIRouter

from api.routes.v1 import auth, health, messages, share, threads

# Create the v1 API router
router = APIRouter()

# Health endpoints (no auth required)
router.include_router(
    health.router,
    tags=["Health"],
)

# Authentication endpoints
router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"],
)

# Thread management
router.include_router(
    threads.router,
    prefix="/threads",
    tags=["Threads"],
)

# Messages (nested under threads)
router.include_router(
    messages.router,
    prefix="/threads",
    tags=["Messages"],
)

# Public share pages (no auth required)
router.include_router(
    share.router,
    prefix="/share",
    tags=["Sharing"],
)

__all__ = ["router"]
