"""
Authentication endpoints (v1).

Provides registration, login, token refresh and profile endpoints with
consistent response patterns and OpenAPI documentation.
"""

from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends

from api.dependencies import Auth
from api.middleware.auth import get_current_user
from api.middleware.exception_handlers import AppException, AuthenticationError
from models.error_models import ErrorCode
from models.schemas.auth import (
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UpdateProfileRequest,
    UserInfo,
)

router = APIRouter()

CurrentUser = Annotated[UserInfo, Depends(get_current_user)]

_TOKEN_EXAMPLE = {
    "access_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
    "refresh_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
    "token_type": "bearer",
    "expires_in": 900,
    "user": {
        "id": "550e8400-e29b-41d4-a716-446655440000",
        "email": "user@example.com",
        "full_name": "Ada Lovelace",
        "avatar_url": "https://www.gravatar.com/avatar/550e8400-e29b-41d4-a716-446655440000?d=identicon",
    },
}


def _token_response(result: dict[str, Any]) -> TokenResponse:
    return TokenResponse(
        access_token=result["access_token"],
        refresh_token=result["refresh_token"],
        expires_in=result.get("expires_in", 900),
        user=UserInfo(**result["user"]) if "user" in result else None,
    )


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=201,
    summary="Register",
    description="Create a new user account and receive access tokens.",
    responses={
        201: {
            "description": "Registration successful",
            "content": {"application/json": {"example": _TOKEN_EXAMPLE}},
        },
        409: {"description": "Email already registered"},
    },
)
async def register(body: RegisterRequest, auth: Auth) -> TokenResponse:
    """Register new user and issue tokens."""
    try:
        result = await auth.register(body.email, body.password, body.full_name, body.avatar_url)
    except ValueError as exc:
        raise AppException(
            code=ErrorCode.RESOURCE_ALREADY_EXISTS,
            message=str(exc),
        ) from exc
    return _token_response(result)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login",
    description="Authenticate with email and password to receive access tokens.",
    responses={
        200: {
            "description": "Login successful",
            "content": {"application/json": {"example": _TOKEN_EXAMPLE}},
        },
        401: {"description": "Invalid credentials"},
    },
)
async def login(body: LoginRequest, auth: Auth) -> TokenResponse:
    """Login and issue tokens."""
    try:
        result = await auth.login(body.email, body.password)
    except ValueError as exc:
        raise AuthenticationError(
            message=str(exc),
            code=ErrorCode.AUTH_INVALID_CREDENTIALS,
        ) from exc
    return _token_response(result)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh token",
    description="Exchange a refresh token for a new token pair.",
    responses={
        200: {
            "description": "Token refreshed",
            "content": {"application/json": {"example": _TOKEN_EXAMPLE}},
        },
        401: {"description": "Invalid or expired refresh token"},
    },
)
async def refresh(body: RefreshRequest, auth: Auth) -> TokenResponse:
    """Refresh access token."""
    try:
        result = await auth.refresh(body.refresh_token)
    except ValueError as exc:
        raise AuthenticationError(
            message=str(exc),
            code=ErrorCode.AUTH_EXPIRED_TOKEN,
        ) from exc
    return _token_response(result)


@router.get(
    "/me",
    response_model=UserInfo,
    summary="Get current user",
    description="Get information about the currently authenticated user.",
    responses={
        200: {
            "description": "User information",
            "content": {"application/json": {"example": _TOKEN_EXAMPLE["user"]}},
        },
        401: {"description": "Not authenticated"},
    },
)
async def me(user: CurrentUser) -> UserInfo:
    """Get current user information."""
    return user


@router.patch(
    "/me",
    response_model=UserInfo,
    summary="Update profile",
    description="Merge display name and avatar into the current user's profile. Null fields are left unchanged.",
    responses={401: {"description": "Not authenticated"}},
)
async def update_me(body: UpdateProfileRequest, user: CurrentUser, auth: Auth) -> UserInfo:
    """Update current user's profile."""
    updated = await auth.update_profile(UUID(user.id), full_name=body.full_name, avatar_url=body.avatar_url)
    if updated is None:
        raise AuthenticationError(message="User not found", code=ErrorCode.AUTH_USER_NOT_FOUND)
    return UserInfo(**updated)
