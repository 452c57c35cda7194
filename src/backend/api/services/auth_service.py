from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import asyncpg
import bcrypt

from jose import JWTError, jwt

from core.constants import DEFAULT_AVATAR_URL_TEMPLATE, Settings, get_settings
from utils.logger import logger


class AuthService:
    """User records, password verification and JWT issuance.

    Users are created on registration, merged on every later login and
    never deleted.
    """

    def __init__(self, pool: asyncpg.Pool, settings: Settings | None = None):
        self.pool = pool
        self.settings = settings or get_settings()

    async def register(
        self,
        email: str,
        password: str,
        full_name: str | None = None,
        avatar_url: str | None = None,
    ) -> dict[str, Any]:
        """Create a user and return access/refresh tokens."""
        email = email.strip().lower()
        if await self.get_user_by_email(email):
            raise ValueError("Email already registered")

        password_hash = bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()

        async with self.pool.acquire() as conn:
            try:
                user = await conn.fetchrow(
                    """
                    INSERT INTO users (email, password_hash, full_name, avatar_url, last_login_at)
                    VALUES ($1, $2, $3, $4, NOW())
                    RETURNING *
                    """,
                    email,
                    password_hash,
                    full_name,
                    avatar_url,
                )
            except asyncpg.UniqueViolationError as e:
                # A concurrent registration claimed the email after the lookup
                raise ValueError("Email already registered") from e
            if user and not user["avatar_url"]:
                user = await conn.fetchrow(
                    "UPDATE users SET avatar_url = $2 WHERE id = $1 RETURNING *",
                    user["id"],
                    DEFAULT_AVATAR_URL_TEMPLATE.format(user_id=user["id"]),
                )

        if not user:
            raise ValueError("Failed to create user")

        logger.info(f"Registered user {user['id']}", user_id=str(user["id"]))
        return self._token_payload(user)

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Validate credentials, merge the profile and return access/refresh tokens."""
        user = await self.get_user_by_email(email.strip().lower())
        if not user or not bcrypt.checkpw(password.encode(), user["password_hash"].encode()):
            raise ValueError("Invalid credentials")

        merged = await self._merge_profile(user["id"], touch_login=True)
        return self._token_payload(merged or user)

    async def refresh(self, refresh_token: str) -> dict[str, Any]:
        """Validate refresh token and return new access and refresh tokens (rotation)."""
        payload = self._decode_token(refresh_token, "refresh")
        user = await self.get_user_by_id(UUID(payload["sub"]))
        if not user:
            raise ValueError("Invalid refresh token")
        return self._token_payload(user)

    async def update_profile(
        self,
        user_id: UUID,
        full_name: str | None = None,
        avatar_url: str | None = None,
    ) -> dict[str, Any] | None:
        """Merge non-null profile fields into the user record."""
        user = await self._merge_profile(user_id, full_name=full_name, avatar_url=avatar_url)
        return self.user_payload(user) if user else None

    def decode_access_token(self, token: str) -> dict[str, Any]:
        """Decode and validate an access token."""
        return self._decode_token(token, "access")

    async def get_user_by_email(self, email: str) -> asyncpg.Record | None:
        async with self.pool.acquire() as conn:
            return await conn.fetchrow("SELECT * FROM users WHERE email = $1", email)

    async def get_user_by_id(self, user_id: UUID) -> asyncpg.Record | None:
        async with self.pool.acquire() as conn:
            return await conn.fetchrow("SELECT * FROM users WHERE id = $1", user_id)

    async def _merge_profile(
        self,
        user_id: UUID,
        *,
        full_name: str | None = None,
        avatar_url: str | None = None,
        touch_login: bool = False,
    ) -> asyncpg.Record | None:
        # COALESCE keeps stored values for null inputs; a missing avatar gets the identicon
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(
                """
                UPDATE users
                SET full_name = COALESCE($2, full_name),
                    avatar_url = COALESCE($3, avatar_url, $4),
                    last_login_at = CASE WHEN $5 THEN NOW() ELSE last_login_at END
                WHERE id = $1
                RETURNING *
                """,
                user_id,
                full_name,
                avatar_url,
                DEFAULT_AVATAR_URL_TEMPLATE.format(user_id=user_id),
                touch_login,
            )

    def _token_payload(self, user: asyncpg.Record) -> dict[str, Any]:
        tokens = self._issue_tokens(user)
        return {
            "access_token": tokens["access"],
            "refresh_token": tokens["refresh"],
            "expires_in": self.settings.access_token_expires_minutes * 60,
            "user": self.user_payload(user),
        }

    def _issue_tokens(self, user: asyncpg.Record) -> dict[str, str]:
        now = datetime.now(UTC)
        access_exp = now + timedelta(minutes=self.settings.access_token_expires_minutes)
        refresh_exp = now + timedelta(days=self.settings.refresh_token_expires_days)
        return {
            "access": self._encode_token(user, "access", access_exp),
            "refresh": self._encode_token(user, "refresh", refresh_exp),
        }

    def _encode_token(self, user: asyncpg.Record, token_type: str, expires_at: datetime) -> str:
        payload = {
            "sub": str(user["id"]),
            "email": user["email"],
            "type": token_type,
            "exp": expires_at,
        }
        token: str = jwt.encode(payload, self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm)
        return token

    def _decode_token(self, token: str, token_type: str) -> dict[str, Any]:
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[self.settings.jwt_algorithm],
            )
        except JWTError as exc:
            raise ValueError("Invalid token") from exc

        if payload.get("type") != token_type:
            raise ValueError("Invalid token type")
        return payload

    def user_payload(self, user: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": str(user["id"]),
            "email": user["email"],
            "full_name": user.get("full_name"),
            "avatar_url": user.get("avatar_url"),
        }
