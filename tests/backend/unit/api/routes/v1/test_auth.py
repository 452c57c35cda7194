from unittest.mock import AsyncMock, MagicMock

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.dependencies import get_auth_service, get_db
from api.middleware.auth import get_current_user
from api.middleware.exception_handlers import register_exception_handlers
from api.routes.v1.auth import router
from models.error_models import ErrorCode
from models.schemas.auth import UserInfo

# Mock data
USER_ID = "550e8400-e29b-41d4-a716-446655440000"
EMAIL = "user@example.com"
ACCESS_TOKEN = "access_token_123"
REFRESH_TOKEN = "refresh_token_123"
USER = {"id": USER_ID, "email": EMAIL, "full_name": "Test User", "avatar_url": None}
TOKENS = {"access_token": ACCESS_TOKEN, "refresh_token": REFRESH_TOKEN, "expires_in": 900, "user": USER}


@pytest.fixture
def mock_auth_service() -> MagicMock:
    return MagicMock()


@pytest.fixture
def app(mock_db_pool: MagicMock, mock_auth_service: MagicMock) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(router, prefix="/api/v1/auth")

    app.dependency_overrides[get_db] = lambda: mock_db_pool
    app.dependency_overrides[get_auth_service] = lambda: mock_auth_service
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


def test_register_success(client: TestClient, mock_auth_service: MagicMock) -> None:
    mock_auth_service.register = AsyncMock(return_value=TOKENS)

    response = client.post(
        "/api/v1/auth/register",
        json={"email": EMAIL, "password": "password123", "full_name": "Test User"},
    )

    assert response.status_code == 201
    assert response.json()["user"]["full_name"] == "Test User"
    mock_auth_service.register.assert_awaited_once_with(EMAIL, "password123", "Test User", None)


def test_register_duplicate(client: TestClient, mock_auth_service: MagicMock) -> None:
    mock_auth_service.register = AsyncMock(side_effect=ValueError("Email already registered"))

    response = client.post("/api/v1/auth/register", json={"email": EMAIL, "password": "password123"})

    assert response.status_code == 409
    assert response.json()["error"]["code"] == ErrorCode.RESOURCE_ALREADY_EXISTS


def test_register_rejects_bad_email(client: TestClient) -> None:
    response = client.post("/api/v1/auth/register", json={"email": "not-an-email", "password": "password123"})

    assert response.status_code == 422


def test_login_success(client: TestClient, mock_auth_service: MagicMock) -> None:
    mock_auth_service.login = AsyncMock(return_value=TOKENS)

    response = client.post("/api/v1/auth/login", json={"email": EMAIL, "password": "password"})

    assert response.status_code == 200
    data = response.json()
    assert data["access_token"] == ACCESS_TOKEN
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == EMAIL


def test_login_invalid_credentials(client: TestClient, mock_auth_service: MagicMock) -> None:
    mock_auth_service.login = AsyncMock(side_effect=ValueError("Invalid credentials"))

    response = client.post("/api/v1/auth/login", json={"email": EMAIL, "password": "wrongpassword"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == ErrorCode.AUTH_INVALID_CREDENTIALS


def test_refresh_success(client: TestClient, mock_auth_service: MagicMock) -> None:
    mock_auth_service.refresh = AsyncMock(return_value={**TOKENS, "access_token": "new_access_token"})

    response = client.post("/api/v1/auth/refresh", json={"refresh_token": REFRESH_TOKEN})

    assert response.status_code == 200
    assert response.json()["access_token"] == "new_access_token"


def test_refresh_invalid_token(client: TestClient, mock_auth_service: MagicMock) -> None:
    mock_auth_service.refresh = AsyncMock(side_effect=ValueError("Invalid token"))

    response = client.post("/api/v1/auth/refresh", json={"refresh_token": "invalid"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == ErrorCode.AUTH_EXPIRED_TOKEN


def test_me_authenticated(client: TestClient, app: FastAPI) -> None:
    app.dependency_overrides[get_current_user] = lambda: UserInfo(**USER)

    response = client.get("/api/v1/auth/me")

    assert response.status_code == 200
    assert response.json()["email"] == EMAIL


def test_me_unauthenticated(client: TestClient) -> None:
    response = client.get("/api/v1/auth/me")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == ErrorCode.AUTH_REQUIRED


def test_update_profile(client: TestClient, app: FastAPI, mock_auth_service: MagicMock) -> None:
    app.dependency_overrides[get_current_user] = lambda: UserInfo(**USER)
    mock_auth_service.update_profile = AsyncMock(return_value={**USER, "full_name": "Renamed"})

    response = client.patch("/api/v1/auth/me", json={"full_name": "Renamed"})

    assert response.status_code == 200
    assert response.json()["full_name"] == "Renamed"
    kwargs = mock_auth_service.update_profile.call_args.kwargs
    assert kwargs == {"full_name": "Renamed", "avatar_url": None}


def test_update_profile_user_gone(client: TestClient, app: FastAPI, mock_auth_service: MagicMock) -> None:
    app.dependency_overrides[get_current_user] = lambda: UserInfo(**USER)
    mock_auth_service.update_profile = AsyncMock(return_value=None)

    response = client.patch("/api/v1/auth/me", json={"full_name": "Renamed"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == ErrorCode.AUTH_USER_NOT_FOUND
