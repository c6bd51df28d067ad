import math
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from verlic.database import get_db
from verlic.logging_config import get_logger
from verlic.routers.deps import get_context_store, require_admin_token
from verlic.schemas.message import (
    ContextClearResponse,
    ConversationResponse,
    MessageListResponse,
    MessageResponse,
    RankingEntry,
    RankingResponse,
)
from verlic.services.conversation_context import ConversationContextStore
from verlic.services.message_service import get_conversation_history, list_messages
from verlic.services.metrics_service import get_top_senders
from verlic.services.phone_utils import normalize_phone_number

logger = get_logger("messages")

router = APIRouter(prefix="/api/messages", tags=["messages"], dependencies=[Depends(require_admin_token)])

RANKING_LIMIT = 20


@router.get("", response_model=MessageListResponse)
def get_messages(
    instance_id: Optional[UUID] = None,
    phone_number: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    messages, total = list_messages(
        db,
        instance_id=instance_id,
        phone_number=normalize_phone_number(phone_number) or None,
        page=page,
        limit=limit,
    )
    return MessageListResponse(
        messages=[MessageResponse.model_validate(message) for message in messages],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/conversation", response_model=ConversationResponse)
def get_conversation(instance_id: UUID, phone_number: str, db: Session = Depends(get_db)):
    phone_number = normalize_phone_number(phone_number)
    if not phone_number:
        raise HTTPException(status_code=400, detail="phone_number must contain digits")
    history = get_conversation_history(db, instance_id, phone_number)
    return ConversationResponse(
        instance_id=instance_id,
        phone_number=phone_number,
        messages=[MessageResponse.model_validate(message) for message in history],
    )


@router.get("/ranking", response_model=RankingResponse)
def get_ranking(db: Session = Depends(get_db)):
    return RankingResponse(ranking=[RankingEntry(**entry) for entry in get_top_senders(db, RANKING_LIMIT)])


@router.delete("/context", response_model=ContextClearResponse)
async def clear_context(
    instance_id: UUID,
    phone_number: str,
    context_store: ConversationContextStore = Depends(get_context_store),
):
    phone_number = normalize_phone_number(phone_number)
    if not phone_number:
        raise HTTPException(status_code=400, detail="phone_number must contain digits")
    try:
        cleared = await context_store.clear(instance_id, phone_number)
    except Exception as e:
        logger.error(f"Failed to clear conversation context: {e}")
        raise HTTPException(status_code=500, detail="Failed to clear conversation context") from e
    return ContextClearResponse(success=True, cleared=cleared)
