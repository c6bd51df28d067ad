from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


class InstanceCreate(BaseModel):
    instance_name: Optional[str] = None

    @field_validator("instance_name", mode="before")
    @classmethod
    def strip_name(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None


class InstanceAction(BaseModel):
    action: str


class AuthorizedSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    phone_number: str
    name: Optional[str] = None
    is_active: bool


class InstanceResponse(BaseModel):
    id: UUID
    instance_name: str
    status: str
    qr_code: Optional[str] = None
    phone_number: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    message_count: int = 0
    authorized_count: int = 0


class InstanceDetailResponse(InstanceResponse):
    qr_code_raw: Optional[str] = None
    pairing_code: Optional[str] = None
    authorized_numbers: list[AuthorizedSummary] = []


class InstanceListResponse(BaseModel):
    instances: list[InstanceResponse]
    evolution_configured: bool


class InstanceStatusResponse(BaseModel):
    status: str
    state: Optional[str] = None
    phone_number: Optional[str] = None
    profile_name: Optional[str] = None
    profile_picture_url: Optional[str] = None


class InstanceActionResponse(BaseModel):
    success: bool
    status: Optional[str] = None
    qr_code: Optional[str] = None
    qr_code_raw: Optional[str] = None
    pairing_code: Optional[str] = None
