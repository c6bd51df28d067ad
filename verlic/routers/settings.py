from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from verlic.database import get_db
from verlic.logging_config import get_logger
from verlic.models import SystemConfig
from verlic.routers.deps import require_admin_token
from verlic.schemas.settings import SettingsResponse, SettingUpdate, SettingUpdateResponse

logger = get_logger("settings")

router = APIRouter(prefix="/api/settings", tags=["settings"], dependencies=[Depends(require_admin_token)])

MAX_VALUE_LENGTH = 10000


@router.get("", response_model=SettingsResponse)
def get_settings(db: Session = Depends(get_db)):
    configs = db.query(SystemConfig).order_by(SystemConfig.key).all()
    return SettingsResponse(configs={config.key: config.value for config in configs})


@router.post("", response_model=SettingUpdateResponse)
def save_setting(request: SettingUpdate, db: Session = Depends(get_db)):
    key = request.key.strip()
    if not key:
        raise HTTPException(status_code=400, detail="Key is required")
    if len(request.value) > MAX_VALUE_LENGTH:
        raise HTTPException(status_code=400, detail=f"Value too long (max {MAX_VALUE_LENGTH} chars)")

    now = datetime.now(timezone.utc)
    config = db.query(SystemConfig).filter(SystemConfig.key == key).first()
    if config:
        config.value = request.value
        config.updated_at = now
    else:
        db.add(SystemConfig(key=key, value=request.value, updated_at=now))
    db.commit()

    logger.info("Setting saved", extra={"context": {"key": key}})
    return SettingUpdateResponse(success=True, key=key)
