"""FastAPI dependencies shared by the routers. Tests swap them via ``app.dependency_overrides``."""

import hmac
from typing import Optional

from fastapi import Header, HTTPException

from verlic.config import settings
from verlic.services.cache_service import get_redis_client
from verlic.services.conversation_context import ConversationContextStore
from verlic.services.evolution_service import EvolutionClient, get_evolution_client
from verlic.services.llm import LLMProvider, get_llm_provider


def require_admin_token(x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token")) -> None:
    expected = settings.admin_token
    if not expected:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=401, detail="Invalid admin token")


def get_gateway() -> EvolutionClient:
    return get_evolution_client()


def get_llm() -> Optional[LLMProvider]:
    return get_llm_provider()


def get_context_store() -> ConversationContextStore:
    return ConversationContextStore(get_redis_client())
