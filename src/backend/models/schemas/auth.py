"""
Authentication-related API schemas.

Provides request/response models for auth operations
with comprehensive OpenAPI documentation.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

EMAIL_PATTERN = r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$"


class LoginRequest(BaseModel):
    """Login credentials."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "user@example.com",
                "password": "secure_password_123",
            }
        }
    )

    email: str = Field(
        ...,
        description="User email address",
        json_schema_extra={"example": "user@example.com"},
    )
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="User password",
        json_schema_extra={"example": "secure_password_123"},
    )


class RegisterRequest(BaseModel):
    """User registration request."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "user@example.com",
                "password": "secure_password_123",
                "full_name": "Ada Lovelace",
            }
        }
    )

    email: str = Field(
        ...,
        description="User email address",
        pattern=EMAIL_PATTERN,
        json_schema_extra={"example": "user@example.com"},
    )
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="User password (minimum 8 characters)",
        json_schema_extra={"example": "secure_password_123"},
    )
    full_name: str | None = Field(
        default=None,
        max_length=100,
        description="Optional display name",
        json_schema_extra={"example": "Ada Lovelace"},
    )
    avatar_url: str | None = Field(
        default=None,
        max_length=500,
        description="Optional avatar URL (defaults to a Gravatar identicon)",
    )


class UpdateProfileRequest(BaseModel):
    """Profile merge request. Omitted or null fields keep their stored value."""

    model_config = ConfigDict(json_schema_extra={"example": {"full_name": "Ada King"}})

    full_name: str | None = Field(default=None, max_length=100, description="New display name")
    avatar_url: str | None = Field(default=None, max_length=500, description="New avatar URL")


class RefreshRequest(BaseModel):
    """Token refresh request."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "refresh_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
            }
        }
    )

    refresh_token: str = Field(
        ...,
        description="Refresh token from login response",
        json_schema_extra={"example": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9..."},
    )


class UserInfo(BaseModel):
    """Authenticated user as seen by the API."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "email": "user@example.com",
                "full_name": "Ada Lovelace",
                "avatar_url": "https://www.gravatar.com/avatar/550e8400-e29b-41d4-a716-446655440000?d=identicon",
            }
        }
    )

    id: str = Field(
        ...,
        description="User UUID",
        json_schema_extra={"example": "550e8400-e29b-41d4-a716-446655440000"},
    )
    email: str = Field(
        ...,
        description="User email address",
        json_schema_extra={"example": "user@example.com"},
    )
    full_name: str | None = Field(default=None, description="User display name")
    avatar_url: str | None = Field(default=None, description="User avatar URL")


class TokenResponse(BaseModel):
    """Authentication token response."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "access_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "refresh_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "token_type": "bearer",
                "expires_in": 900,
                "user": {
                    "id": "550e8400-e29b-41d4-a716-446655440000",
                    "email": "user@example.com",
                },
            }
        }
    )

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str | None = Field(default=None, description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type (always 'bearer')")
    expires_in: int = Field(default=900, ge=0, description="Access token expiry in seconds")
    user: UserInfo | None = Field(default=None, description="Authenticated user")
