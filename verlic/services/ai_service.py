import time
from dataclasses import dataclass
from typing import List, Optional

import httpx
from sqlalchemy.orm import Session

from verlic.logging_config import get_logger
from verlic.models import SystemConfig
from verlic.services.llm import LLMProvider
from verlic.services.result import Result

logger = get_logger("ai_service")

SYSTEM_PROMPT_KEY = "system_prompt"
LLM_MAX_TOKENS = 1024
LLM_TEMPERATURE = 0.7

SYSTEM_PROMPT = (
    "Você é um assistente virtual profissional e prestativo.\n"
    "Responda de forma clara, objetiva e educada.\n"
    "Mantenha suas respostas concisas, mas completas.\n"
    "Sempre responda no mesmo idioma da mensagem recebida.\n"
    "Se não souber algo, diga honestamente."
)


@dataclass
class ChatResponse:
    content: str
    tokens_used: int
    response_time_ms: int


def get_system_prompt(db: Session) -> str:
    """Operator-configured system prompt, falling back to the built-in default."""
    config = db.query(SystemConfig).filter(SystemConfig.key == SYSTEM_PROMPT_KEY).first()
    if config and config.value and config.value.strip():
        return config.value
    return SYSTEM_PROMPT


def build_chat_messages(system_prompt: Optional[str], context: List[dict], user_message: str) -> List[dict]:
    return [
        {"role": "system", "content": system_prompt or SYSTEM_PROMPT},
        *context,
        {"role": "user", "content": user_message},
    ]


async def generate_reply(
    llm: LLMProvider,
    system_prompt: Optional[str],
    context: List[dict],
    user_message: str,
    timeout_seconds: Optional[float] = None,
) -> Result[ChatResponse]:
    """Ask the AI backend for the next assistant turn."""
    messages = build_chat_messages(system_prompt, context, user_message)
    start = time.monotonic()
    try:
        response = await llm.generate(
            messages,
            temperature=LLM_TEMPERATURE,
            max_tokens=LLM_MAX_TOKENS,
            timeout_seconds=timeout_seconds,
        )
    except httpx.TimeoutException as e:
        logger.warning(f"LLM timeout: {e}")
        return Result.failure(f"AI backend timed out: {e}", "ai_timeout")
    except Exception as e:
        logger.error(f"AI generation error: {e}", exc_info=True)
        return Result.failure(str(e), "ai_error")

    elapsed_ms = int((time.monotonic() - start) * 1000)
    content = (response.content or "").strip()
    if not content:
        logger.warning("LLM returned empty content")
        return Result.failure("AI backend returned an empty reply", "ai_empty")

    return Result.success(
        ChatResponse(content=content, tokens_used=response.total_tokens, response_time_ms=elapsed_ms)
    )
