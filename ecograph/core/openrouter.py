"""
Shared OpenAI-compatible client.

Any endpoint speaking the chat-completions protocol works (OpenRouter,
OpenAI, a local proxy); point ``OPENAI_API_BASE_URL`` at it.
"""

from functools import lru_cache

from openai import OpenAI

from ecograph.core.config import settings


@lru_cache(maxsize=1)
def get_client() -> OpenAI:
    """Build the client on first use so importing producers needs no API key."""
    return OpenAI(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_API_BASE_URL,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )
