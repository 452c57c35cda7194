from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import asyncpg
import pytest

from jose import jwt

from api.services.auth_service import AuthService
from core.constants import Settings

# Constants
TEST_SECRET = "test_secret_key"
TEST_ALGO = "HS256"
USER_ID = uuid4()
EMAIL = "user@test.com"
PASSWORD = "password123"
HASHED_PASSWORD = "$2b$12$EixZaYVK1fsbw1ZfbX3OXePaWxwKc.6q.1M.m4oJ8cKrj5/0oj.G."


def make_user(**overrides: object) -> dict[str, object]:
    user: dict[str, object] = {
        "id": USER_ID,
        "email": EMAIL,
        "password_hash": HASHED_PASSWORD,
        "full_name": "Test User",
        "avatar_url": "https://img.test/u.png",
    }
    user.update(overrides)
    return user


@pytest.fixture
def mock_settings() -> MagicMock:
    settings = MagicMock(spec=Settings)
    settings.jwt_secret = TEST_SECRET
    settings.jwt_algorithm = TEST_ALGO
    settings.access_token_expires_minutes = 15
    settings.refresh_token_expires_days = 7
    return settings


@pytest.fixture
def auth_service(mock_db_pool: MagicMock, mock_settings: MagicMock) -> AuthService:
    return AuthService(pool=mock_db_pool, settings=mock_settings)


@pytest.mark.asyncio
async def test_login_success_merges_profile(auth_service: AuthService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.side_effect = [make_user(), make_user(full_name="Merged Name")]

    with patch("bcrypt.checkpw", return_value=True) as mock_checkpw:
        result = await auth_service.login("  USER@test.com ", PASSWORD)

    assert mock_checkpw.called
    lookup, merge = mock_conn.fetchrow.call_args_list
    assert lookup.args[1] == EMAIL
    assert "COALESCE($2, full_name)" in merge.args[0]
    assert merge.args[-1] is True
    assert result["user"]["full_name"] == "Merged Name"
    assert result["expires_in"] == 15 * 60
    assert {"access_token", "refresh_token"} <= result.keys()


@pytest.mark.asyncio
async def test_login_invalid_credentials(auth_service: AuthService, mock_conn: AsyncMock) -> None:
    # User not found
    mock_conn.fetchrow.return_value = None
    with pytest.raises(ValueError, match="Invalid credentials"):
        await auth_service.login(EMAIL, PASSWORD)

    # Wrong password
    mock_conn.fetchrow.return_value = make_user()
    with (
        patch("bcrypt.checkpw", return_value=False),
        pytest.raises(ValueError, match="Invalid credentials"),
    ):
        await auth_service.login(EMAIL, PASSWORD)


@pytest.mark.asyncio
async def test_register_duplicate_email(auth_service: AuthService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = make_user()

    with pytest.raises(ValueError, match="Email already registered"):
        await auth_service.register(EMAIL, PASSWORD)


@pytest.mark.asyncio
async def test_register_concurrent_duplicate_email(auth_service: AuthService, mock_conn: AsyncMock) -> None:
    # Lookup finds nothing, but another registration wins the insert
    mock_conn.fetchrow.side_effect = [None, asyncpg.UniqueViolationError("duplicate key value")]

    with (
        patch("bcrypt.hashpw", return_value=b"hashed"),
        patch("bcrypt.gensalt", return_value=b"salt"),
        pytest.raises(ValueError, match="Email already registered"),
    ):
        await auth_service.register(EMAIL, PASSWORD)


@pytest.mark.asyncio
async def test_register_assigns_default_avatar(auth_service: AuthService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.side_effect = [
        None,
        make_user(avatar_url=None),
        make_user(avatar_url=f"https://www.gravatar.com/avatar/{USER_ID}?d=identicon"),
    ]

    with patch("bcrypt.hashpw", return_value=b"hashed"), patch("bcrypt.gensalt", return_value=b"salt"):
        result = await auth_service.register("New@Test.com", PASSWORD, full_name="New User")

    insert = mock_conn.fetchrow.call_args_list[1]
    assert insert.args[1:] == ("new@test.com", "hashed", "New User", None)
    assert result["user"]["avatar_url"].startswith("https://www.gravatar.com/avatar/")


@pytest.mark.asyncio
async def test_update_profile_returns_user(auth_service: AuthService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = make_user(full_name="Renamed")

    user = await auth_service.update_profile(USER_ID, full_name="Renamed")

    assert user == {
        "id": str(USER_ID),
        "email": EMAIL,
        "full_name": "Renamed",
        "avatar_url": "https://img.test/u.png",
    }
    args = mock_conn.fetchrow.call_args.args
    assert args[1:4] == (USER_ID, "Renamed", None)
    assert args[-1] is False


@pytest.mark.asyncio
async def test_update_profile_unknown_user(auth_service: AuthService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = None

    assert await auth_service.update_profile(USER_ID, avatar_url="https://img.test/x.png") is None


def test_issue_tokens(auth_service: AuthService) -> None:
    tokens = auth_service._issue_tokens(make_user())

    payload = jwt.decode(tokens["access"], TEST_SECRET, algorithms=[TEST_ALGO])
    assert payload["sub"] == str(USER_ID)
    assert payload["type"] == "access"

    payload_refresh = jwt.decode(tokens["refresh"], TEST_SECRET, algorithms=[TEST_ALGO])
    assert payload_refresh["sub"] == str(USER_ID)
    assert payload_refresh["type"] == "refresh"


def test_decode_access_token_valid(auth_service: AuthService) -> None:
    exp = datetime.now(UTC) + timedelta(minutes=15)
    token = jwt.encode({"sub": str(USER_ID), "type": "access", "exp": exp}, TEST_SECRET, algorithm=TEST_ALGO)

    payload = auth_service.decode_access_token(token)
    assert payload["sub"] == str(USER_ID)


def test_decode_token_invalid_type(auth_service: AuthService) -> None:
    exp = datetime.now(UTC) + timedelta(minutes=15)
    token = jwt.encode({"sub": str(USER_ID), "type": "access", "exp": exp}, TEST_SECRET, algorithm=TEST_ALGO)

    with pytest.raises(ValueError, match="Invalid token type"):
        auth_service._decode_token(token, "refresh")


def test_decode_expired_token(auth_service: AuthService) -> None:
    exp = datetime.now(UTC) - timedelta(minutes=1)
    token = jwt.encode({"sub": str(USER_ID), "type": "access", "exp": exp}, TEST_SECRET, algorithm=TEST_ALGO)

    with pytest.raises(ValueError, match="Invalid token"):
        auth_service.decode_access_token(token)


@pytest.mark.asyncio
async def test_refresh_rotates_tokens(auth_service: AuthService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = make_user()
    exp = datetime.now(UTC) + timedelta(days=7)
    refresh_token = jwt.encode({"sub": str(USER_ID), "type": "refresh", "exp": exp}, TEST_SECRET, algorithm=TEST_ALGO)

    result = await auth_service.refresh(refresh_token)

    assert result["refresh_token"] != refresh_token
    assert jwt.decode(result["access_token"], TEST_SECRET, algorithms=[TEST_ALGO])["type"] == "access"


@pytest.mark.asyncio
async def test_refresh_for_deleted_user(auth_service: AuthService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = None
    exp = datetime.now(UTC) + timedelta(days=7)
    refresh_token = jwt.encode({"sub": str(USER_ID), "type": "refresh", "exp": exp}, TEST_SECRET, algorithm=TEST_ALGO)

    with pytest.raises(ValueError, match="Invalid refresh token"):
        await auth_service.refresh(refresh_token)
