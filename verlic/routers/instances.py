"""Operator endpoints for WhatsApp instances."""

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from verlic.config import settings
from verlic.database import get_db
from verlic.logging_config import get_logger
from verlic.models import AuthorizedNumber, Message, WhatsAppInstance
from verlic.routers.deps import get_gateway, require_admin_token
from verlic.schemas.instance import (
    AuthorizedSummary,
    InstanceAction,
    InstanceActionResponse,
    InstanceCreate,
    InstanceDetailResponse,
    InstanceListResponse,
    InstanceResponse,
    InstanceStatusResponse,
)
from verlic.services.evolution_service import EvolutionClient
from verlic.services.instance_service import (
    InstanceStatus,
    get_instance,
    get_instance_by_name,
    map_connection_state,
    set_instance_status,
    sync_instance_status,
)
from verlic.services.metrics_service import MetricType, record_error, record_metric
from verlic.services.phone_utils import generate_instance_name

logger = get_logger("instances")

router = APIRouter(prefix="/api/instances", tags=["instances"], dependencies=[Depends(require_admin_token)])

ALLOWED_ACTIONS = {"restart", "disconnect", "connect"}


def _count(db: Session, model, instance_id: UUID) -> int:
    return db.query(func.count(model.id)).filter(model.instance_id == instance_id).scalar() or 0


def _to_response(db: Session, instance: WhatsAppInstance) -> InstanceResponse:
    return InstanceResponse(
        id=instance.id,
        instance_name=instance.instance_name,
        status=instance.status,
        qr_code=instance.qr_code,
        phone_number=instance.phone_number,
        created_at=instance.created_at,
        updated_at=instance.updated_at,
        message_count=_count(db, Message, instance.id),
        authorized_count=_count(db, AuthorizedNumber, instance.id),
    )


def _get_or_404(db: Session, instance_id: UUID) -> WhatsAppInstance:
    instance = get_instance(db, instance_id)
    if not instance:
        raise HTTPException(status_code=404, detail="Instance not found")
    return instance


def _remote_name(remote: dict) -> str | None:
    return remote.get("name") or remote.get("instanceName")


@router.get("", response_model=InstanceListResponse)
async def list_instances(db: Session = Depends(get_db), gateway: EvolutionClient = Depends(get_gateway)):
    instances = db.query(WhatsAppInstance).order_by(WhatsAppInstance.created_at.desc()).all()

    if gateway.is_configured:
        remote_names = {_remote_name(remote) for remote in await gateway.list_instances()}
        for instance in instances:
            if instance.instance_name in remote_names:
                await sync_instance_status(db, instance, gateway)

    return InstanceListResponse(
        instances=[_to_response(db, instance) for instance in instances],
        evolution_configured=gateway.is_configured,
    )


@router.post("", response_model=InstanceResponse)
async def create_instance(
    request: InstanceCreate,
    db: Session = Depends(get_db),
    gateway: EvolutionClient = Depends(get_gateway),
):
    instance_name = request.instance_name or generate_instance_name()
    if get_instance_by_name(db, instance_name):
        raise HTTPException(status_code=400, detail="An instance with this name already exists")

    qr_code = None
    if gateway.is_configured:
        try:
            await gateway.create_instance(instance_name)
        except Exception as e:
            logger.error(f"Gateway instance creation failed: {e}", extra={"context": {"instance": instance_name}})
            record_error(db, "create_instance", str(e))
            raise HTTPException(status_code=500, detail="Failed to create instance on gateway") from e

        webhook_url = f"{settings.public_base_url.rstrip('/')}/api/webhook/evolution"
        await gateway.set_webhook(instance_name, webhook_url)
        qr = await gateway.get_qrcode(instance_name)
        qr_code = qr.get("base64") if qr else None

    now = datetime.now(timezone.utc)
    instance = WhatsAppInstance(
        instance_name=instance_name,
        status=InstanceStatus.DISCONNECTED.value,
        qr_code=qr_code,
        created_at=now,
        updated_at=now,
    )
    db.add(instance)
    db.commit()
    db.refresh(instance)

    record_metric(db, MetricType.API_REQUEST, 1, {"action": "create_instance"})
    logger.info("Instance created", extra={"context": {"instance": instance_name}})
    return _to_response(db, instance)


@router.get("/{instance_id}", response_model=InstanceDetailResponse)
async def get_instance_detail(
    instance_id: UUID,
    db: Session = Depends(get_db),
    gateway: EvolutionClient = Depends(get_gateway),
):
    instance = _get_or_404(db, instance_id)
    qr_code_raw = None
    pairing_code = None

    if gateway.is_configured:
        status = map_connection_state(await gateway.get_connection_state(instance.instance_name))
        if status == InstanceStatus.CONNECTED:
            set_instance_status(db, instance, status, clear_qr_code=True)
        else:
            qr = await gateway.get_qrcode(instance.instance_name) or {}
            qr_code_raw = qr.get("code")
            pairing_code = qr.get("pairing_code")
            set_instance_status(db, instance, status)
            instance.qr_code = qr.get("base64")
            db.commit()

    base = _to_response(db, instance)
    return InstanceDetailResponse(
        **base.model_dump(),
        qr_code_raw=qr_code_raw,
        pairing_code=pairing_code,
        authorized_numbers=[AuthorizedSummary.model_validate(number) for number in instance.authorized_numbers],
    )


@router.get("/{instance_id}/status", response_model=InstanceStatusResponse)
async def get_instance_status(
    instance_id: UUID,
    db: Session = Depends(get_db),
    gateway: EvolutionClient = Depends(get_gateway),
):
    instance = _get_or_404(db, instance_id)
    if not gateway.is_configured:
        return InstanceStatusResponse(status=instance.status, phone_number=instance.phone_number)

    state = await gateway.get_connection_state(instance.instance_name)
    status = map_connection_state(state)
    info = None
    if status == InstanceStatus.CONNECTED:
        info = await gateway.get_instance_info(instance.instance_name)

    phone_number = (info or {}).get("phone_number")
    set_instance_status(
        db,
        instance,
        status,
        phone_number=phone_number,
        clear_qr_code=status == InstanceStatus.CONNECTED,
    )
    return InstanceStatusResponse(
        status=status.value,
        state=state,
        phone_number=instance.phone_number,
        profile_name=(info or {}).get("profile_name"),
        profile_picture_url=(info or {}).get("profile_picture_url"),
    )


@router.post("/{instance_id}/actions", response_model=InstanceActionResponse)
async def run_instance_action(
    instance_id: UUID,
    request: InstanceAction,
    db: Session = Depends(get_db),
    gateway: EvolutionClient = Depends(get_gateway),
):
    instance = _get_or_404(db, instance_id)
    if not gateway.is_configured:
        raise HTTPException(status_code=400, detail="Evolution API not configured")

    action = request.action.strip().lower()
    if action not in ALLOWED_ACTIONS:
        raise HTTPException(status_code=400, detail=f"Invalid action: {request.action}")

    metadata = {"instance_id": str(instance.id)}

    if action == "connect":
        qr = await gateway.get_qrcode(instance.instance_name) or {}
        instance.qr_code = qr.get("base64")
        if instance.qr_code:
            instance.status = InstanceStatus.CONNECTING.value
        instance.updated_at = datetime.now(timezone.utc)
        db.commit()
        record_metric(db, MetricType.API_REQUEST, 1, {"action": "instance_connect"})
        return InstanceActionResponse(
            success=bool(instance.qr_code),
            status=instance.status,
            qr_code=instance.qr_code,
            qr_code_raw=qr.get("code"),
            pairing_code=qr.get("pairing_code"),
        )

    if action == "restart":
        success = await gateway.restart_instance(instance.instance_name)
        if success:
            record_metric(db, MetricType.BOT_STARTED, 1, metadata)
    else:
        success = await gateway.logout_instance(instance.instance_name)
        if success:
            transition = set_instance_status(db, instance, InstanceStatus.DISCONNECTED)
            if transition is None:
                record_metric(db, MetricType.BOT_STOPPED, 1, metadata)

    record_metric(db, MetricType.API_REQUEST, 1, {"action": f"instance_{action}"})
    logger.info(
        "Instance action executed",
        extra={"context": {"instance": instance.instance_name, "action": action, "success": success}},
    )
    return InstanceActionResponse(success=success, status=instance.status)


@router.delete("/{instance_id}")
async def delete_instance(
    instance_id: UUID,
    db: Session = Depends(get_db),
    gateway: EvolutionClient = Depends(get_gateway),
):
    instance = _get_or_404(db, instance_id)
    if gateway.is_configured:
        await gateway.delete_instance(instance.instance_name)

    instance_name = instance.instance_name
    db.delete(instance)
    db.commit()

    record_metric(db, MetricType.API_REQUEST, 1, {"action": "delete_instance"})
    logger.info("Instance deleted", extra={"context": {"instance": instance_name}})
    return {"success": True}
