"""Language-model operations used by the chat orchestrator.

Both calls go through the OpenAI Agents SDK against the client registered
at startup (``set_default_openai_client``).
"""

from __future__ import annotations

import time

from typing import Any

from agents import Agent, ModelSettings, Runner

from core.constants import (
    THREAD_TITLE_MAX_LENGTH,
    THREAD_TITLE_MIN_LENGTH,
    Settings,
    get_settings,
)
from core.prompts import SYSTEM_INSTRUCTIONS, THREAD_TITLE_GENERATION_PROMPT, build_title_request
from utils.metrics import completion_duration_seconds


def clean_title(raw: str | None) -> str | None:
    """Normalize a generated title, or None when it is unusable."""
    title = (raw or "").strip().strip('"').strip("'").rstrip(".!?").strip()
    if len(title) < THREAD_TITLE_MIN_LENGTH:
        return None
    if len(title) > THREAD_TITLE_MAX_LENGTH:
        title = title[: THREAD_TITLE_MAX_LENGTH - 3] + "..."
    return title


class LLMService:
    """Title generation and chat completion via the Agents SDK."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def _chat_agent(self) -> Agent[Any]:
        return Agent(
            name="EchoFlow",
            model=self.settings.chat_model,
            instructions=SYSTEM_INSTRUCTIONS,
            model_settings=ModelSettings(temperature=self.settings.chat_temperature),
        )

    def _title_agent(self) -> Agent[Any]:
        return Agent(
            name="TitleGenerator",
            model=self.settings.effective_title_model,
            instructions=THREAD_TITLE_GENERATION_PROMPT,
        )

    async def generate_thread_title(self, first_message: str) -> str | None:
        """Produce a short title from a thread's first message.

        Returns None when the model output is too short to use.
        """
        start = time.monotonic()
        try:
            result = await Runner.run(self._title_agent(), input=build_title_request(first_message))
        finally:
            completion_duration_seconds.labels(operation="title").observe(time.monotonic() - start)
        return clean_title(result.final_output)

    async def generate_chat_response(self, history: list[dict[str, str]]) -> str:
        """Generate the assistant reply for a chronological ``{role, content}`` history.

        Raises:
            ValueError: If the history is empty or the model returns no text.
        """
        if not history:
            raise ValueError("Conversation history is empty")

        start = time.monotonic()
        try:
            result = await Runner.run(self._chat_agent(), input=history)  # type: ignore[arg-type]
        finally:
            completion_duration_seconds.labels(operation="chat").observe(time.monotonic() - start)

        reply = result.final_output
        if not isinstance(reply, str) or not reply.strip():
            raise ValueError("Model returned an empty response")
        return reply
