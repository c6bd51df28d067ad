from typing import List, Optional

import httpx

from verlic.logging_config import get_logger
from verlic.services.llm.base import LLMError, LLMProvider, LLMResponse

logger = get_logger("llm.deepseek")

DEFAULT_BASE_URL = "https://api.deepseek.com"
DEFAULT_MODEL = "deepseek-chat"


class DeepSeekProvider(LLMProvider):
    """DeepSeek chat completions (OpenAI-compatible wire format)."""

    def __init__(
        self,
        api_key: str,
        default_model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.base_url = f"{base_url.rstrip('/')}/chat/completions"
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        """Generate a response from DeepSeek. Timeouts surface as httpx.TimeoutException."""
        model = model or self.default_model
        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds

        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": False,
        }
        logger.debug(f"DeepSeek request: model={model}, messages_count={len(messages)}")

        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            response = await client.post(
                self.base_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )

        logger.debug(f"DeepSeek response status: {response.status_code}")

        if response.status_code != 200:
            logger.error(f"DeepSeek error: {response.text[:500]}")
            raise LLMError(
                f"DeepSeek API error: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(f"DeepSeek returned invalid JSON: {e}", status_code=response.status_code) from e

        content = ""
        choices = data.get("choices") if isinstance(data, dict) else None
        if choices:
            message = choices[0].get("message") or {}
            content = message.get("content") or ""

        return LLMResponse(
            content=content,
            model=data.get("model", model),
            usage=data.get("usage"),
        )
