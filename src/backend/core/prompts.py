"""
System prompts and instructions for EchoFlow.
Centralizes the prompt text used by the chat and title agents.
"""

from __future__ import annotations

# Chat Agent System Instructions
SYSTEM_INSTRUCTIONS = (
    "You are EchoFlow, an intelligent and helpful AI assistant. "
    "Your responses should be accurate, relevant, and concise."
)


# Thread Title Generation Prompt
THREAD_TITLE_GENERATION_PROMPT = """You are an expert at creating concise and relevant titles for chat threads.

Generate a title that accurately reflects the content of the first message in the thread.

Rules:
- 3-6 words
- Be specific about the main topic
- No punctuation at the end
- Output ONLY the title with no explanation, quotes, or preamble"""


def build_title_request(first_message: str) -> str:
    """Format the user turn sent to the title agent."""
    return f"First Message: {first_message}\n\nTitle:"
