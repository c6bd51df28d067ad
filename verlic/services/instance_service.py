from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from verlic.logging_config import get_logger
from verlic.models import BotStatus, WhatsAppInstance
from verlic.services.envelope import get_path, get_str
from verlic.services.identity_service import extract_phone_number
from verlic.services.metrics_service import MetricType, record_metric

logger = get_logger("instance_service")

GATEWAY_OPEN_STATE = "open"


class InstanceStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def map_connection_state(state: Optional[str]) -> InstanceStatus:
    """Only the gateway's "open" state counts as connected."""
    if isinstance(state, str) and state.strip().lower() == GATEWAY_OPEN_STATE:
        return InstanceStatus.CONNECTED
    return InstanceStatus.DISCONNECTED


def get_instance_by_name(db: Session, instance_name: Optional[str]) -> Optional[WhatsAppInstance]:
    if not instance_name:
        return None
    return db.query(WhatsAppInstance).filter(WhatsAppInstance.instance_name == instance_name).first()


def get_instance(db: Session, instance_id: UUID) -> Optional[WhatsAppInstance]:
    return db.query(WhatsAppInstance).filter(WhatsAppInstance.id == instance_id).first()


def _get_or_create_bot_status(db: Session, instance: WhatsAppInstance, now: datetime) -> BotStatus:
    bot_status = db.query(BotStatus).filter(BotStatus.instance_id == instance.id).first()
    if bot_status is None:
        bot_status = BotStatus(instance_id=instance.id, is_running=False, updated_at=now)
        db.add(bot_status)
    return bot_status


def set_instance_status(
    db: Session,
    instance: WhatsAppInstance,
    status: InstanceStatus,
    *,
    phone_number: Optional[str] = None,
    clear_qr_code: bool = False,
) -> Optional[str]:
    """Persist an instance status and keep BotStatus in step.

    Returns the bot transition that happened ("started" or "stopped"), or None
    when the bot was already in the requested state. Applying the same status
    twice leaves the rows unchanged.
    """
    now = datetime.now(timezone.utc)
    changed = False

    if instance.status != status.value:
        instance.status = status.value
        changed = True
    if phone_number and instance.phone_number != phone_number:
        instance.phone_number = phone_number
        changed = True
    if clear_qr_code and instance.qr_code is not None:
        instance.qr_code = None
        changed = True
    if changed:
        instance.updated_at = now

    transition = None
    running = status == InstanceStatus.CONNECTED
    bot_status = _get_or_create_bot_status(db, instance, now)
    if running and not bot_status.is_running:
        bot_status.is_running = True
        bot_status.last_started = now
        bot_status.updated_at = now
        transition = "started"
    elif not running and bot_status.is_running:
        bot_status.is_running = False
        bot_status.last_stopped = now
        bot_status.updated_at = now
        transition = "stopped"

    db.commit()

    if transition == "started":
        record_metric(db, MetricType.BOT_STARTED, 1, {"instance_id": str(instance.id)})
    elif transition == "stopped":
        record_metric(db, MetricType.BOT_STOPPED, 1, {"instance_id": str(instance.id)})

    if changed or transition:
        logger.info(
            "Instance status updated",
            extra={
                "context": {
                    "instance": instance.instance_name,
                    "status": status.value,
                    "transition": transition,
                }
            },
        )
    return transition


def apply_connection_update(db: Session, instance: WhatsAppInstance, data: Any) -> Optional[InstanceStatus]:
    """Apply a gateway connection-update payload. Missing state is a no-op."""
    state = get_str(data, "state")
    if not state:
        logger.debug("Connection update without state", extra={"context": {"instance": instance.instance_name}})
        return None

    status = map_connection_state(state)
    phone_number = None
    if status == InstanceStatus.CONNECTED:
        phone_number = extract_phone_number(get_str(data, "wuid"))

    set_instance_status(
        db,
        instance,
        status,
        phone_number=phone_number,
        clear_qr_code=status == InstanceStatus.CONNECTED,
    )
    return status


def apply_qrcode_update(db: Session, instance: WhatsAppInstance, data: Any) -> bool:
    """Store a fresh pairing QR artifact. Missing artifact is a no-op."""
    qr_code = get_path(data, "qrcode.base64")
    if not isinstance(qr_code, str) or not qr_code:
        logger.debug("QR code update without artifact", extra={"context": {"instance": instance.instance_name}})
        return False

    if instance.qr_code == qr_code:
        return True

    instance.qr_code = qr_code
    instance.updated_at = datetime.now(timezone.utc)
    db.commit()
    logger.info("QR code updated", extra={"context": {"instance": instance.instance_name}})
    return True


async def sync_instance_status(db: Session, instance: WhatsAppInstance, gateway) -> Optional[InstanceStatus]:
    """Refresh one instance from the gateway's live connection state.

    Gateway errors are logged and leave the stored status untouched.
    """
    if gateway is None or not gateway.is_configured:
        return None

    try:
        state = await gateway.get_connection_state(instance.instance_name)
        status = map_connection_state(state)
        phone_number = None
        if status == InstanceStatus.CONNECTED:
            info = await gateway.get_instance_info(instance.instance_name)
            if info:
                phone_number = info.get("phone_number")
    except Exception as e:
        logger.warning(
            "Instance status sync failed",
            extra={"context": {"instance": instance.instance_name, "error": str(e)}},
        )
        return None

    set_instance_status(
        db,
        instance,
        status,
        phone_number=phone_number,
        clear_qr_code=status == InstanceStatus.CONNECTED,
    )
    return status
