from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.dependencies import get_db, get_thread_store
from api.middleware.auth import get_current_user
from api.middleware.exception_handlers import register_exception_handlers
from api.routes.v1.threads import router
from models.error_models import ErrorCode
from models.schemas.auth import UserInfo

USER_ID = str(uuid4())
OTHER_USER_ID = str(uuid4())
THREAD_ID = str(uuid4())
NOW = "2025-01-15T10:30:00+00:00"


def make_thread(**overrides: Any) -> dict[str, Any]:
    thread = {
        "id": THREAD_ID,
        "user_id": USER_ID,
        "thread_title": "New Chat",
        "is_public": False,
        "created_at": NOW,
        "updated_at": NOW,
    }
    thread.update(overrides)
    return thread


@pytest.fixture
def mock_threads() -> MagicMock:
    store = MagicMock()
    store.get_thread = AsyncMock(return_value=make_thread())
    return store


@pytest.fixture
def app(mock_db_pool: MagicMock, mock_threads: MagicMock) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(router, prefix="/api/v1/threads")

    app.dependency_overrides[get_db] = lambda: mock_db_pool
    app.dependency_overrides[get_thread_store] = lambda: mock_threads
    app.dependency_overrides[get_current_user] = lambda: UserInfo(id=USER_ID, email="user@example.com")
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


def test_list_threads(client: TestClient, mock_threads: MagicMock) -> None:
    second = make_thread(id=str(uuid4()), is_public=True)
    mock_threads.list_threads_for_user = AsyncMock(return_value=[make_thread(), second])

    response = client.get("/api/v1/threads")

    assert response.status_code == 200
    data = response.json()
    assert data["total_count"] == 2
    assert data["threads"][0]["share_url"] is None
    assert data["threads"][1]["share_url"] == f"https://echoflow.test/share/{second['id']}"
    mock_threads.list_threads_for_user.assert_awaited_once_with(USER_ID)


def test_create_thread(client: TestClient, mock_threads: MagicMock) -> None:
    mock_threads.create_thread = AsyncMock(return_value=make_thread())

    response = client.post("/api/v1/threads")

    assert response.status_code == 201
    data = response.json()
    assert data["thread_title"] == "New Chat"
    assert data["is_public"] is False
    mock_threads.create_thread.assert_awaited_once_with(USER_ID)


def test_get_thread(client: TestClient) -> None:
    response = client.get(f"/api/v1/threads/{THREAD_ID}")

    assert response.status_code == 200
    assert response.json()["id"] == THREAD_ID


def test_get_thread_missing(client: TestClient, mock_threads: MagicMock) -> None:
    mock_threads.get_thread = AsyncMock(return_value=None)

    response = client.get(f"/api/v1/threads/{THREAD_ID}")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == ErrorCode.THREAD_NOT_FOUND


def test_get_thread_owned_by_someone_else(client: TestClient, mock_threads: MagicMock) -> None:
    mock_threads.get_thread = AsyncMock(return_value=make_thread(user_id=OTHER_USER_ID))

    response = client.get(f"/api/v1/threads/{THREAD_ID}")

    assert response.status_code == 404


def test_get_thread_malformed_id(client: TestClient, mock_threads: MagicMock) -> None:
    mock_threads.get_thread = AsyncMock(side_effect=ValueError("badly formed hexadecimal UUID string"))

    response = client.get("/api/v1/threads/not-a-uuid")

    assert response.status_code == 404


def test_update_thread_publishes(client: TestClient, mock_threads: MagicMock) -> None:
    mock_threads.update_thread = AsyncMock(return_value=make_thread(is_public=True, thread_title="Trip"))

    response = client.patch(f"/api/v1/threads/{THREAD_ID}", json={"is_public": True, "thread_title": " Trip "})

    assert response.status_code == 200
    assert response.json()["share_url"] == f"https://echoflow.test/share/{THREAD_ID}"
    mock_threads.update_thread.assert_awaited_once_with(THREAD_ID, thread_title="Trip", is_public=True)


def test_update_thread_omits_null_fields(client: TestClient, mock_threads: MagicMock) -> None:
    mock_threads.update_thread = AsyncMock(return_value=make_thread())

    response = client.patch(f"/api/v1/threads/{THREAD_ID}", json={})

    assert response.status_code == 200
    mock_threads.update_thread.assert_awaited_once_with(THREAD_ID)


def test_update_thread_rejects_blank_title(client: TestClient) -> None:
    response = client.patch(f"/api/v1/threads/{THREAD_ID}", json={"thread_title": "   "})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == ErrorCode.VALIDATION_ERROR


def test_delete_thread(client: TestClient, mock_threads: MagicMock) -> None:
    mock_threads.delete_thread_and_messages = AsyncMock(return_value=True)

    response = client.delete(f"/api/v1/threads/{THREAD_ID}")

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Thread deleted successfully", "thread_id": THREAD_ID}


def test_delete_thread_of_other_user_is_not_attempted(client: TestClient, mock_threads: MagicMock) -> None:
    mock_threads.get_thread = AsyncMock(return_value=make_thread(user_id=OTHER_USER_ID))
    mock_threads.delete_thread_and_messages = AsyncMock()

    response = client.delete(f"/api/v1/threads/{THREAD_ID}")

    assert response.status_code == 404
    mock_threads.delete_thread_and_messages.assert_not_awaited()
