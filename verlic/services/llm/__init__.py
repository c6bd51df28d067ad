from typing import Optional

from verlic.config import settings
from verlic.services.llm.base import LLMError, LLMProvider, LLMResponse
from verlic.services.llm.deepseek_provider import DeepSeekProvider


def get_llm_provider() -> Optional[LLMProvider]:
    """DeepSeek provider from settings, or None when no API key is configured."""
    if not settings.deepseek_api_key:
        return None
    return DeepSeekProvider(
        api_key=settings.deepseek_api_key,
        default_model=settings.deepseek_model,
        base_url=settings.deepseek_api_url,
        timeout_seconds=settings.deepseek_timeout_seconds,
    )


__all__ = ["LLMError", "LLMProvider", "LLMResponse", "DeepSeekProvider", "get_llm_provider"]
