from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from verlic.database import get_db
from verlic.logging_config import get_logger
from verlic.routers.deps import get_context_store, get_gateway, get_llm
from verlic.schemas.webhook import EvolutionEnvelope, WebhookAck
from verlic.services.ai_service import SYSTEM_PROMPT, get_system_prompt
from verlic.services.conversation_context import ConversationContextStore
from verlic.services.event_dispatcher import dispatch_webhook_event
from verlic.services.evolution_service import EvolutionClient
from verlic.services.llm import LLMProvider
from verlic.services.metrics_service import record_error
from verlic.services.reply_orchestrator import ReplyDependencies

logger = get_logger("webhook")

router = APIRouter(prefix="/api/webhook", tags=["webhook"])

INVALID_PAYLOAD_MESSAGE = "Failed to process webhook"


def _reject(db: Session, reason: str, detail: str) -> JSONResponse:
    logger.warning("Rejected webhook payload", extra={"context": {"reason": reason, "error": detail[:500]}})
    record_error(db, "webhook", f"{reason}: {detail[:500]}")
    return JSONResponse(status_code=500, content={"error": INVALID_PAYLOAD_MESSAGE})


@router.post("/evolution", response_model=WebhookAck)
async def handle_evolution_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: EvolutionClient = Depends(get_gateway),
    llm: Optional[LLMProvider] = Depends(get_llm),
    context_store: ConversationContextStore = Depends(get_context_store),
):
    """Receive Evolution gateway events. Always acknowledges unless the body is unreadable."""
    try:
        payload = await request.json()
    except Exception as exc:
        return _reject(db, "invalid_json", str(exc))

    if not isinstance(payload, dict):
        return _reject(db, "invalid_format", f"expected object, got {type(payload).__name__}")

    try:
        EvolutionEnvelope.model_validate(payload)
    except ValidationError as exc:
        return _reject(db, "invalid_envelope", str(exc))

    try:
        system_prompt = get_system_prompt(db)
    except Exception as exc:
        db.rollback()
        logger.warning("Falling back to default system prompt", extra={"context": {"error": str(exc)}})
        system_prompt = SYSTEM_PROMPT

    deps = ReplyDependencies(
        db=db,
        context_store=context_store,
        llm=llm,
        gateway=gateway,
        system_prompt=system_prompt,
    )
    await dispatch_webhook_event(db, payload, deps)
    return WebhookAck(received=True)
