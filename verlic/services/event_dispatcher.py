from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from sqlalchemy.orm import Session

from verlic.logging_config import get_logger
from verlic.models import WebhookLog
from verlic.services.instance_service import apply_connection_update, apply_qrcode_update, get_instance_by_name
from verlic.services.metrics_service import MetricType, record_error, record_metric
from verlic.services.reply_orchestrator import ReplyDependencies, handle_incoming_message

logger = get_logger("event_dispatcher")

SOURCE_WEBHOOK = "webhook"


class WebhookEvent(str, Enum):
    CONNECTION_UPDATE = "connection_update"
    QRCODE_UPDATED = "qrcode_updated"
    MESSAGES_UPSERT = "messages_upsert"
    UNKNOWN = "unknown"


_EVENT_ALIASES = {
    "connection_update": WebhookEvent.CONNECTION_UPDATE,
    "qrcode_updated": WebhookEvent.QRCODE_UPDATED,
    "qrcode_update": WebhookEvent.QRCODE_UPDATED,
    "messages_upsert": WebhookEvent.MESSAGES_UPSERT,
}


def normalize_event_name(name: Any) -> WebhookEvent:
    """Map gateway spellings (connection.update, CONNECTION_UPDATE, connection-update) to one event."""
    if not isinstance(name, str):
        return WebhookEvent.UNKNOWN
    key = name.strip().lower().replace(".", "_").replace("-", "_")
    return _EVENT_ALIASES.get(key, WebhookEvent.UNKNOWN)


@dataclass
class DispatchResult:
    event: WebhookEvent
    handled: bool = False
    instance_found: bool = False
    detail: Optional[str] = None
    error: Optional[str] = None


def _log_webhook(
    db: Session, payload: dict, event_name: Optional[str], instance_name: Optional[str]
) -> Optional[WebhookLog]:
    try:
        entry = WebhookLog(
            event=event_name,
            instance_name=instance_name,
            payload=payload,
            created_at=datetime.now(timezone.utc),
        )
        db.add(entry)
        db.commit()
        return entry
    except Exception as e:
        db.rollback()
        logger.warning("Failed to store webhook log", extra={"context": {"error": str(e)}})
        return None


def _attach_error(db: Session, entry: Optional[WebhookLog], error: str) -> None:
    if entry is None:
        return
    try:
        entry.error = error[:2000]
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning("Failed to attach error to webhook log", extra={"context": {"error": str(e)}})


async def _route(
    db: Session,
    event: WebhookEvent,
    instance,
    data: Any,
    payload: dict,
    deps: ReplyDependencies,
    result: DispatchResult,
) -> None:
    if event == WebhookEvent.CONNECTION_UPDATE:
        status = apply_connection_update(db, instance, data)
        result.handled = status is not None
        result.detail = status.value if status else "no_state"
    elif event == WebhookEvent.QRCODE_UPDATED:
        result.handled = apply_qrcode_update(db, instance, data)
        result.detail = "qrcode_stored" if result.handled else "no_qrcode"
    elif event == WebhookEvent.MESSAGES_UPSERT:
        outcome = await handle_incoming_message(instance, payload, deps)
        result.handled = outcome.ok
        if outcome.ok:
            result.detail = outcome.value.value
        else:
            result.detail = outcome.error_code
            result.error = outcome.error
    else:
        result.detail = "ignored"


async def dispatch_webhook_event(db: Session, payload: dict, deps: ReplyDependencies) -> DispatchResult:
    """Route one gateway webhook to its handler. Never raises; failures end up in the webhook log."""
    raw_event = payload.get("event")
    event_name = raw_event if isinstance(raw_event, str) else None
    raw_instance = payload.get("instance")
    instance_name = raw_instance if isinstance(raw_instance, str) else None
    event = normalize_event_name(event_name)

    record_metric(db, MetricType.WEBHOOK_RECEIVED, 1, {"event": event_name})
    entry = _log_webhook(db, payload, event_name, instance_name)
    result = DispatchResult(event=event)

    try:
        instance = get_instance_by_name(db, instance_name)
        if instance is None:
            logger.info(
                "Webhook for unknown instance",
                extra={"context": {"instance": instance_name, "event": event_name}},
            )
            result.detail = "unknown_instance"
            return result

        result.instance_found = True
        await _route(db, event, instance, payload.get("data"), payload, deps, result)
    except Exception as e:
        db.rollback()
        logger.error(
            f"Webhook processing error: {e}",
            exc_info=True,
            extra={"context": {"instance": instance_name, "event": event_name}},
        )
        record_error(db, SOURCE_WEBHOOK, str(e), event=event_name)
        result.handled = False
        result.error = str(e)

    if result.error:
        _attach_error(db, entry, result.error)

    logger.info(
        "Webhook processed",
        extra={"context": {"instance": instance_name, "event": event.value, "detail": result.detail}},
    )
    return result
