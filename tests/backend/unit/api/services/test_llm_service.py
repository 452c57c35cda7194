from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from api.services.llm_service import LLMService, clean_title
from core.constants import THREAD_TITLE_MAX_LENGTH, Settings
from core.prompts import SYSTEM_INSTRUCTIONS


@pytest.fixture
def settings() -> Settings:
    return Settings(api_provider="openai", openai_api_key="sk-test-key-123456", chat_model="gpt-4o-mini")


@pytest.fixture
def service(settings: Settings) -> LLMService:
    return LLMService(settings)


def run_result(output: object) -> MagicMock:
    result = MagicMock()
    result.final_output = output
    return result


class TestCleanTitle:
    def test_strips_quotes_and_trailing_punctuation(self) -> None:
        assert clean_title('  "Trip to Rome."  ') == "Trip to Rome"

    def test_too_short_is_unusable(self) -> None:
        assert clean_title("Hi") is None
        assert clean_title(None) is None
        assert clean_title("   ") is None

    def test_long_title_is_truncated(self) -> None:
        title = clean_title("x" * (THREAD_TITLE_MAX_LENGTH + 50))
        assert title is not None
        assert len(title) == THREAD_TITLE_MAX_LENGTH
        assert title.endswith("...")


class TestGenerateChatResponse:
    @pytest.mark.asyncio
    async def test_returns_model_reply(self, service: LLMService) -> None:
        history = [{"role": "user", "content": "What is 2+2?"}]
        with patch("api.services.llm_service.Runner.run", new_callable=AsyncMock) as run:
            run.return_value = run_result("4")
            reply = await service.generate_chat_response(history)

        assert reply == "4"
        agent = run.call_args.args[0]
        assert agent.instructions == SYSTEM_INSTRUCTIONS
        assert agent.model == "gpt-4o-mini"
        assert run.call_args.kwargs["input"] == history

    @pytest.mark.asyncio
    async def test_empty_history_is_rejected(self, service: LLMService) -> None:
        with patch("api.services.llm_service.Runner.run", new_callable=AsyncMock) as run:
            with pytest.raises(ValueError, match="empty"):
                await service.generate_chat_response([])
        run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blank_reply_is_an_error(self, service: LLMService) -> None:
        with patch("api.services.llm_service.Runner.run", new_callable=AsyncMock) as run:
            run.return_value = run_result("   ")
            with pytest.raises(ValueError):
                await service.generate_chat_response([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_sdk_errors_propagate(self, service: LLMService) -> None:
        with patch("api.services.llm_service.Runner.run", new_callable=AsyncMock) as run:
            run.side_effect = RuntimeError("rate limited")
            with pytest.raises(RuntimeError):
                await service.generate_chat_response([{"role": "user", "content": "hi"}])


class TestGenerateThreadTitle:
    @pytest.mark.asyncio
    async def test_uses_title_model_and_cleans_output(self, settings: Settings) -> None:
        settings.title_model = "gpt-4.1-nano"
        service = LLMService(settings)
        with patch("api.services.llm_service.Runner.run", new_callable=AsyncMock) as run:
            run.return_value = run_result('"Weekend Hiking Plans."')
            title = await service.generate_thread_title("Where should I hike this weekend?")

        assert title == "Weekend Hiking Plans"
        assert run.call_args.args[0].model == "gpt-4.1-nano"
        assert "Where should I hike this weekend?" in run.call_args.kwargs["input"]

    @pytest.mark.asyncio
    async def test_unusable_output_returns_none(self, service: LLMService) -> None:
        with patch("api.services.llm_service.Runner.run", new_callable=AsyncMock) as run:
            run.return_value = run_result("ok")
            assert await service.generate_thread_title("hello") is None
