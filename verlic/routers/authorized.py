from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from verlic.database import get_db
from verlic.logging_config import get_logger, mask_phone
from verlic.models import AuthorizedNumber, Message
from verlic.routers.deps import require_admin_token
from verlic.schemas.authorized import (
    AuthorizedNumberCreate,
    AuthorizedNumberListResponse,
    AuthorizedNumberResponse,
    AuthorizedNumberUpdate,
)
from verlic.services.instance_service import get_instance
from verlic.services.metrics_service import MetricType, record_metric

logger = get_logger("authorized")

router = APIRouter(prefix="/api/authorized", tags=["authorized"], dependencies=[Depends(require_admin_token)])


def _to_response(db: Session, number: AuthorizedNumber) -> AuthorizedNumberResponse:
    message_count = (
        db.query(func.count(Message.id)).filter(Message.authorized_number_id == number.id).scalar() or 0
    )
    return AuthorizedNumberResponse(
        id=number.id,
        instance_id=number.instance_id,
        instance_name=number.instance.instance_name if number.instance else None,
        phone_number=number.phone_number,
        name=number.name,
        is_active=number.is_active,
        created_at=number.created_at,
        message_count=message_count,
    )


def _get_or_404(db: Session, number_id: UUID) -> AuthorizedNumber:
    number = db.query(AuthorizedNumber).filter(AuthorizedNumber.id == number_id).first()
    if not number:
        raise HTTPException(status_code=404, detail="Authorized number not found")
    return number


@router.get("", response_model=AuthorizedNumberListResponse)
def list_authorized_numbers(instance_id: Optional[UUID] = None, db: Session = Depends(get_db)):
    query = db.query(AuthorizedNumber)
    if instance_id:
        query = query.filter(AuthorizedNumber.instance_id == instance_id)
    numbers = query.order_by(AuthorizedNumber.created_at.desc()).all()
    return AuthorizedNumberListResponse(authorized_numbers=[_to_response(db, number) for number in numbers])


@router.post("", response_model=AuthorizedNumberResponse)
def add_authorized_number(request: AuthorizedNumberCreate, db: Session = Depends(get_db)):
    if not get_instance(db, request.instance_id):
        raise HTTPException(status_code=404, detail="Instance not found")

    existing = (
        db.query(AuthorizedNumber)
        .filter(
            AuthorizedNumber.instance_id == request.instance_id,
            AuthorizedNumber.phone_number == request.phone_number,
        )
        .first()
    )
    if existing:
        raise HTTPException(status_code=400, detail="This number is already authorized for this instance")

    number = AuthorizedNumber(
        instance_id=request.instance_id,
        phone_number=request.phone_number,
        name=request.name or None,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    db.add(number)
    db.commit()
    db.refresh(number)

    record_metric(db, MetricType.API_REQUEST, 1, {"action": "add_authorized_number"})
    logger.info(
        "Authorized number added",
        extra={"context": {"instance_id": str(request.instance_id), "phone": mask_phone(request.phone_number)}},
    )
    return _to_response(db, number)


@router.put("/{number_id}", response_model=AuthorizedNumberResponse)
def update_authorized_number(number_id: UUID, request: AuthorizedNumberUpdate, db: Session = Depends(get_db)):
    number = _get_or_404(db, number_id)
    updates = request.model_dump(exclude_unset=True)
    if "name" in updates:
        number.name = updates["name"] or None
    if updates.get("is_active") is not None:
        number.is_active = updates["is_active"]
    db.commit()
    db.refresh(number)
    return _to_response(db, number)


@router.delete("/{number_id}")
def remove_authorized_number(number_id: UUID, db: Session = Depends(get_db)):
    number = _get_or_404(db, number_id)
    db.delete(number)
    db.commit()
    record_metric(db, MetricType.API_REQUEST, 1, {"action": "remove_authorized_number"})
    return {"success": True}
