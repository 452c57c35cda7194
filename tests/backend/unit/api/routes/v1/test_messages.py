from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.dependencies import get_chat_service, get_db, get_message_store, get_thread_store
from api.middleware.auth import get_current_user
from api.middleware.exception_handlers import MessageNotFoundError, register_exception_handlers
from api.routes.v1.messages import router
from api.services.chat_service import SendResult
from core.constants import CONTEXT_MESSAGE_LIMIT, SEND_FAILED_TITLE
from models.error_models import ErrorCode
from models.schemas.auth import UserInfo

USER_ID = str(uuid4())
THREAD_ID = str(uuid4())
MESSAGE_ID = str(uuid4())
NOW = "2025-01-15T10:30:00+00:00"


def make_message(role: str = "user", content: str = "Hello", **overrides: Any) -> dict[str, Any]:
    message = {
        "id": str(uuid4()),
        "thread_id": THREAD_ID,
        "user_id": USER_ID if role == "user" else "ai-assistant",
        "role": role,
        "content": content,
        "is_failed": False,
        "created_at": NOW,
    }
    message.update(overrides)
    return message


@pytest.fixture
def mock_threads() -> MagicMock:
    store = MagicMock()
    store.get_thread = AsyncMock(
        return_value={
            "id": THREAD_ID,
            "user_id": USER_ID,
            "thread_title": "New Chat",
            "is_public": False,
            "created_at": NOW,
            "updated_at": NOW,
        }
    )
    return store


@pytest.fixture
def mock_messages() -> MagicMock:
    return MagicMock()


@pytest.fixture
def mock_chat() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(
    mock_db_pool: MagicMock,
    mock_threads: MagicMock,
    mock_messages: MagicMock,
    mock_chat: MagicMock,
) -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(router, prefix="/api/v1/threads")

    app.dependency_overrides[get_db] = lambda: mock_db_pool
    app.dependency_overrides[get_thread_store] = lambda: mock_threads
    app.dependency_overrides[get_message_store] = lambda: mock_messages
    app.dependency_overrides[get_chat_service] = lambda: mock_chat
    app.dependency_overrides[get_current_user] = lambda: UserInfo(id=USER_ID, email="user@example.com")
    return TestClient(app, raise_server_exceptions=False)


def test_list_messages(client: TestClient, mock_messages: MagicMock) -> None:
    mock_messages.list_messages = AsyncMock(return_value=[make_message(), make_message("assistant", "Hi!")])

    response = client.get(f"/api/v1/threads/{THREAD_ID}/messages")

    assert response.status_code == 200
    data = response.json()
    assert data["total_count"] == 2
    assert [m["role"] for m in data["messages"]] == ["user", "assistant"]


def test_list_messages_for_foreign_thread(client: TestClient, mock_threads: MagicMock) -> None:
    mock_threads.get_thread.return_value = {**mock_threads.get_thread.return_value, "user_id": str(uuid4())}

    response = client.get(f"/api/v1/threads/{THREAD_ID}/messages")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == ErrorCode.THREAD_NOT_FOUND


def test_recent_messages_default_limit(client: TestClient, mock_messages: MagicMock) -> None:
    mock_messages.get_recent_messages = AsyncMock(return_value=[make_message()])

    response = client.get(f"/api/v1/threads/{THREAD_ID}/messages/recent")

    assert response.status_code == 200
    mock_messages.get_recent_messages.assert_awaited_once_with(THREAD_ID, CONTEXT_MESSAGE_LIMIT)


def test_recent_messages_limit_bounds(client: TestClient) -> None:
    assert client.get(f"/api/v1/threads/{THREAD_ID}/messages/recent?limit=0").status_code == 422
    assert client.get(f"/api/v1/threads/{THREAD_ID}/messages/recent?limit=1000").status_code == 422


def test_send_message_success(client: TestClient, mock_chat: MagicMock) -> None:
    mock_chat.send_message = AsyncMock(
        return_value=SendResult(
            status="succeeded",
            thread_id=THREAD_ID,
            user_message_id=MESSAGE_ID,
            assistant_message_id="reply-id",
        )
    )

    response = client.post(f"/api/v1/threads/{THREAD_ID}/messages", json={"content": "What is 2+2?"})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "succeeded"
    assert data["assistant_message_id"] == "reply-id"
    assert data["notification"] is None
    mock_chat.send_message.assert_awaited_once_with(
        THREAD_ID, USER_ID, "What is 2+2?", is_retry=False, target_message_id=None
    )


def test_send_message_failure_is_reported_in_body(client: TestClient, mock_chat: MagicMock) -> None:
    mock_chat.send_message = AsyncMock(
        return_value=SendResult(status="failed", thread_id=THREAD_ID, user_message_id=MESSAGE_ID, error="boom")
    )

    response = client.post(f"/api/v1/threads/{THREAD_ID}/messages", json={"content": "Hello"})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "failed"
    assert data["notification"]["title"] == SEND_FAILED_TITLE
    assert "error" not in data


def test_retry_forwards_target(client: TestClient, mock_chat: MagicMock) -> None:
    mock_chat.send_message = AsyncMock(
        return_value=SendResult(status="succeeded", thread_id=THREAD_ID, user_message_id=MESSAGE_ID)
    )

    response = client.post(
        f"/api/v1/threads/{THREAD_ID}/messages",
        json={"content": "Edited", "is_retry": True, "target_message_id": MESSAGE_ID},
    )

    assert response.status_code == 200
    assert mock_chat.send_message.call_args.kwargs == {"is_retry": True, "target_message_id": MESSAGE_ID}


def test_retry_without_target_is_rejected(client: TestClient, mock_chat: MagicMock) -> None:
    mock_chat.send_message = AsyncMock()

    response = client.post(f"/api/v1/threads/{THREAD_ID}/messages", json={"content": "x", "is_retry": True})

    assert response.status_code == 422
    mock_chat.send_message.assert_not_awaited()


def test_blank_message_is_rejected(client: TestClient) -> None:
    response = client.post(f"/api/v1/threads/{THREAD_ID}/messages", json={"content": "   "})

    assert response.status_code == 422


def test_retry_of_unknown_message(client: TestClient, mock_chat: MagicMock) -> None:
    mock_chat.send_message = AsyncMock(side_effect=MessageNotFoundError(MESSAGE_ID))

    response = client.post(
        f"/api/v1/threads/{THREAD_ID}/messages",
        json={"content": "Edited", "is_retry": True, "target_message_id": MESSAGE_ID},
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == ErrorCode.MESSAGE_NOT_FOUND


def test_edit_message(client: TestClient, mock_messages: MagicMock) -> None:
    mock_messages.update_message_content = AsyncMock(return_value=True)
    mock_messages.get_message = AsyncMock(return_value=make_message(content="Edited", id=MESSAGE_ID))

    response = client.patch(f"/api/v1/threads/{THREAD_ID}/messages/{MESSAGE_ID}", json={"content": "Edited"})

    assert response.status_code == 200
    assert response.json()["content"] == "Edited"
    mock_messages.update_message_content.assert_awaited_once_with(THREAD_ID, MESSAGE_ID, "Edited")


@pytest.mark.parametrize("outcome", [False, ValueError("badly formed")])
def test_edit_missing_message(client: TestClient, mock_messages: MagicMock, outcome: object) -> None:
    if isinstance(outcome, Exception):
        mock_messages.update_message_content = AsyncMock(side_effect=outcome)
    else:
        mock_messages.update_message_content = AsyncMock(return_value=outcome)

    response = client.patch(f"/api/v1/threads/{THREAD_ID}/messages/{MESSAGE_ID}", json={"content": "Edited"})

    assert response.status_code == 404


def test_delete_from_message(client: TestClient, mock_messages: MagicMock) -> None:
    mock_messages.delete_messages_from = AsyncMock(return_value=3)

    response = client.delete(f"/api/v1/threads/{THREAD_ID}/messages/{MESSAGE_ID}")

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "thread_id": THREAD_ID,
        "message_id": MESSAGE_ID,
        "deleted_count": 3,
    }


def test_delete_from_unknown_message(client: TestClient, mock_messages: MagicMock) -> None:
    mock_messages.delete_messages_from = AsyncMock(return_value=0)

    response = client.delete(f"/api/v1/threads/{THREAD_ID}/messages/{MESSAGE_ID}")

    assert response.status_code == 404
