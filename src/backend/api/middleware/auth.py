from __future__ import annotations

from typing import Annotated
from uuid import UUID

import asyncpg

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.dependencies import get_db
from api.middleware.exception_handlers import AuthenticationError
from api.middleware.request_context import update_request_context
from api.services.auth_service import AuthService
from models.error_models import ErrorCode
from models.schemas.auth import UserInfo

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[asyncpg.Pool, Depends(get_db)],
) -> UserInfo:
    """Authenticate incoming REST requests."""
    if credentials is None:
        raise AuthenticationError(
            message="Authentication required",
            code=ErrorCode.AUTH_REQUIRED,
        )

    user = await get_current_user_from_token(credentials.credentials, db)
    update_request_context(user_id=user.id)
    return user


async def get_current_user_from_token(token: str, db: asyncpg.Pool) -> UserInfo:
    """Authenticate WebSocket connections via query token."""
    auth = AuthService(db)
    try:
        payload = auth.decode_access_token(token)
        user = await auth.get_user_by_id(UUID(payload["sub"]))
    except (KeyError, ValueError) as exc:
        raise AuthenticationError(
            message="Invalid token",
            code=ErrorCode.AUTH_INVALID_TOKEN,
        ) from exc

    if not user:
        raise AuthenticationError(
            message="User not found",
            code=ErrorCode.AUTH_USER_NOT_FOUND,
        )

    return UserInfo(**auth.user_payload(user))
