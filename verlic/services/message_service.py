from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from verlic.models import Message

DIRECTION_INBOUND = "inbound"
DIRECTION_OUTBOUND = "outbound"
STATUS_RECEIVED = "received"
STATUS_SENT = "sent"


def save_message(
    db: Session,
    instance_id: UUID,
    phone_number: str,
    direction: str,
    content: str,
    *,
    status: Optional[str] = None,
    ai_generated: bool = False,
    tokens_used: Optional[int] = None,
    response_time_ms: Optional[int] = None,
    authorized_number_id: Optional[UUID] = None,
) -> Message:
    """Append a message to the history and commit."""
    if status is None:
        status = STATUS_RECEIVED if direction == DIRECTION_INBOUND else STATUS_SENT

    message = Message(
        instance_id=instance_id,
        phone_number=phone_number,
        direction=direction,
        content=content,
        status=status,
        ai_generated=ai_generated,
        tokens_used=tokens_used,
        response_time_ms=response_time_ms,
        authorized_number_id=authorized_number_id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def _filtered(db: Session, instance_id: Optional[UUID], phone_number: Optional[str]):
    query = db.query(Message)
    if instance_id:
        query = query.filter(Message.instance_id == instance_id)
    if phone_number:
        query = query.filter(Message.phone_number == phone_number)
    return query


def list_messages(
    db: Session,
    instance_id: Optional[UUID] = None,
    phone_number: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[Message], int]:
    """Newest first, with the total count for the same filter."""
    page = max(page, 1)
    query = _filtered(db, instance_id, phone_number)
    total = query.count()
    messages = (
        query.order_by(Message.created_at.desc(), Message.id.desc()).offset((page - 1) * limit).limit(limit).all()
    )
    return messages, total


def get_conversation_history(db: Session, instance_id: UUID, phone_number: str, limit: int = 100) -> list[Message]:
    """The latest `limit` messages for one (instance, sender) pair, oldest first."""
    newest = (
        _filtered(db, instance_id, phone_number)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
        .all()
    )
    return list(reversed(newest))
