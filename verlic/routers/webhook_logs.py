from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from verlic.database import get_db
from verlic.logging_config import get_logger
from verlic.models import WebhookLog
from verlic.routers.deps import require_admin_token
from verlic.schemas.webhook import WebhookLogCleanupResponse, WebhookLogListResponse, WebhookLogResponse

logger = get_logger("webhook_logs")

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"], dependencies=[Depends(require_admin_token)])

MAX_LOGS = 100


@router.get("/logs", response_model=WebhookLogListResponse)
def list_webhook_logs(
    limit: int = Query(default=50, ge=1),
    event: Optional[str] = None,
    instance: Optional[str] = None,
    db: Session = Depends(get_db),
):
    query = db.query(WebhookLog)
    if event:
        query = query.filter(WebhookLog.event == event)
    if instance:
        query = query.filter(WebhookLog.instance_name == instance)
    logs = query.order_by(WebhookLog.created_at.desc()).limit(min(limit, MAX_LOGS)).all()
    return WebhookLogListResponse(logs=[WebhookLogResponse.model_validate(log) for log in logs])


@router.delete("/logs", response_model=WebhookLogCleanupResponse)
def cleanup_webhook_logs(days: int = Query(default=7, ge=0), db: Session = Depends(get_db)):
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    deleted = db.query(WebhookLog).filter(WebhookLog.created_at < cutoff).delete(synchronize_session=False)
    db.commit()
    logger.info("Webhook logs cleaned up", extra={"context": {"days": days, "deleted": deleted}})
    return WebhookLogCleanupResponse(success=True, deleted=deleted)
