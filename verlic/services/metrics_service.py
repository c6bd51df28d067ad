from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from verlic.logging_config import get_logger
from verlic.models import AuthorizedNumber, Message, SystemMetric, WhatsAppInstance

logger = get_logger("metrics_service")


class MetricType(str, Enum):
    API_REQUEST = "api_request"
    AI_REQUEST = "ai_request"
    MESSAGE_SENT = "message_sent"
    MESSAGE_RECEIVED = "message_received"
    ERROR = "error"
    WEBHOOK_RECEIVED = "webhook_received"
    BOT_STARTED = "bot_started"
    BOT_STOPPED = "bot_stopped"


def record_metric(
    db: Session,
    metric_type: MetricType,
    value: float = 1,
    metadata: Optional[dict[str, Any]] = None,
) -> bool:
    """Persist a metric event. Never raises: metrics must not break the caller."""
    try:
        db.add(
            SystemMetric(
                metric_type=MetricType(metric_type).value,
                value=value,
                metric_metadata=metadata,
                created_at=datetime.now(timezone.utc),
            )
        )
        db.commit()
        return True
    except Exception as e:
        db.rollback()
        logger.error(
            "Failed to record metric",
            extra={"context": {"metric_type": str(metric_type), "error": str(e)}},
        )
        return False


def record_error(db: Session, source: str, error: str, **metadata: Any) -> bool:
    return record_metric(db, MetricType.ERROR, 1, {"source": source, "error": error, **metadata})


def _since(days: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)


def get_metrics_summary(db: Session, days: int = 7) -> dict[str, dict[str, float]]:
    rows = (
        db.query(SystemMetric.metric_type, func.sum(SystemMetric.value), func.count(SystemMetric.id))
        .filter(SystemMetric.created_at >= _since(days))
        .group_by(SystemMetric.metric_type)
        .all()
    )
    return {metric_type: {"total": float(total or 0), "count": count} for metric_type, total, count in rows}


def get_metrics_by_day(db: Session, metric_type: MetricType, days: int = 7) -> list[dict[str, Any]]:
    day = func.date(SystemMetric.created_at)
    rows = (
        db.query(day.label("date"), func.sum(SystemMetric.value).label("total"))
        .filter(
            SystemMetric.metric_type == MetricType(metric_type).value,
            SystemMetric.created_at >= _since(days),
        )
        .group_by(day)
        .order_by(day)
        .all()
    )
    return [{"date": str(row.date), "total": float(row.total or 0)} for row in rows]


def get_message_stats(db: Session) -> dict[str, int]:
    return {
        "total_messages": db.query(Message).count(),
        "inbound_messages": db.query(Message).filter(Message.direction == "inbound").count(),
        "outbound_messages": db.query(Message).filter(Message.direction == "outbound").count(),
        "ai_responses": db.query(Message).filter(Message.ai_generated.is_(True)).count(),
    }


def get_top_senders(db: Session, limit: int = 10) -> list[dict[str, Any]]:
    message_count = func.count(Message.id)
    rows = (
        db.query(Message.phone_number, message_count.label("message_count"))
        .filter(Message.direction == "inbound")
        .group_by(Message.phone_number)
        .order_by(message_count.desc())
        .limit(limit)
        .all()
    )
    phone_numbers = [row.phone_number for row in rows]
    names = {}
    if phone_numbers:
        for number in db.query(AuthorizedNumber).filter(AuthorizedNumber.phone_number.in_(phone_numbers)).all():
            names.setdefault(number.phone_number, number.name)

    return [
        {
            "phone_number": row.phone_number,
            "name": names.get(row.phone_number),
            "message_count": row.message_count,
        }
        for row in rows
    ]


def get_recent_errors(db: Session, limit: int = 10) -> list[SystemMetric]:
    return (
        db.query(SystemMetric)
        .filter(SystemMetric.metric_type == MetricType.ERROR.value)
        .order_by(SystemMetric.created_at.desc())
        .limit(limit)
        .all()
    )


def get_dashboard_stats(db: Session) -> dict[str, Any]:
    summary = get_metrics_summary(db, 7)
    return {
        **get_message_stats(db),
        "instance_count": db.query(WhatsAppInstance).count(),
        "authorized_count": db.query(AuthorizedNumber).filter(AuthorizedNumber.is_active.is_(True)).count(),
        "active_instances": db.query(WhatsAppInstance).filter(WhatsAppInstance.status == "connected").count(),
        "api_requests": summary.get(MetricType.API_REQUEST.value, {}).get("total", 0),
        "ai_requests": summary.get(MetricType.AI_REQUEST.value, {}).get("total", 0),
        "errors": summary.get(MetricType.ERROR.value, {}).get("total", 0),
    }
