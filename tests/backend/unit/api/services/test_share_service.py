from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from api.services.share_service import ShareService, placeholder_user
from core.constants import PLACEHOLDER_USER_NAME

THREAD_ID = uuid4()
OWNER_ID = uuid4()
NOW = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


def thread_row(is_public: bool = True) -> dict[str, object]:
    return {
        "id": THREAD_ID,
        "user_id": OWNER_ID,
        "thread_title": "Sourdough Tips",
        "is_public": is_public,
        "created_at": NOW,
        "updated_at": NOW,
    }


@pytest.fixture
def service(mock_db_pool: MagicMock) -> ShareService:
    return ShareService(mock_db_pool)


@pytest.mark.asyncio
async def test_public_thread_projection(service: ShareService, mock_conn: AsyncMock) -> None:
    first, second = uuid4(), uuid4()
    mock_conn.fetchrow.side_effect = [
        thread_row(),
        {"full_name": "Ada Baker", "avatar_url": "https://img.test/ada.png"},
    ]
    mock_conn.fetch.return_value = [
        {"id": first, "role": "user", "content": "How long to proof?", "created_at": NOW},
        {"id": second, "role": "assistant", "content": "About 4 hours.", "created_at": NOW},
    ]

    data = await service.get_public_thread_data(str(THREAD_ID))

    assert data is not None
    assert data["id"] == str(THREAD_ID)
    assert data["thread_title"] == "Sourdough Tips"
    assert [m["id"] for m in data["messages"]] == [str(first), str(second)]
    assert set(data["messages"][0]) == {"id", "role", "content", "created_at"}
    assert data["user"] == {"full_name": "Ada Baker", "avatar_url": "https://img.test/ada.png"}
    assert "ORDER BY created_at ASC, seq ASC" in mock_conn.fetch.call_args.args[0]


@pytest.mark.asyncio
async def test_private_thread_is_hidden(service: ShareService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = thread_row(is_public=False)

    assert await service.get_public_thread_data(THREAD_ID) is None
    mock_conn.fetch.assert_not_called()


@pytest.mark.asyncio
async def test_missing_thread(service: ShareService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = None

    assert await service.get_public_thread_data(THREAD_ID) is None


@pytest.mark.asyncio
async def test_malformed_id_skips_database(service: ShareService, mock_db_pool: MagicMock) -> None:
    assert await service.get_public_thread_data("not-a-uuid") is None
    mock_db_pool.acquire.assert_not_called()


@pytest.mark.asyncio
async def test_read_failure_is_reported_as_missing(service: ShareService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.side_effect = OSError("connection reset")

    assert await service.get_public_thread_data(THREAD_ID) is None


@pytest.mark.asyncio
async def test_unknown_owner_gets_placeholder(service: ShareService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.side_effect = [thread_row(), None]
    mock_conn.fetch.return_value = []

    data = await service.get_public_thread_data(THREAD_ID)

    assert data is not None
    assert data["messages"] == []
    assert data["user"] == placeholder_user(str(OWNER_ID))
    assert data["user"]["full_name"] == PLACEHOLDER_USER_NAME


@pytest.mark.asyncio
async def test_partial_profile_falls_back_per_field(service: ShareService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.side_effect = [thread_row(), {"full_name": None, "avatar_url": "https://img.test/a.png"}]
    mock_conn.fetch.return_value = []

    data = await service.get_public_thread_data(THREAD_ID)

    assert data is not None
    assert data["user"] == {"full_name": PLACEHOLDER_USER_NAME, "avatar_url": "https://img.test/a.png"}
