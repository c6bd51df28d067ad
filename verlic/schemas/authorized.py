from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

from verlic.services.phone_utils import normalize_phone_number


class AuthorizedNumberCreate(BaseModel):
    phone_number: str
    name: Optional[str] = None
    instance_id: UUID

    @field_validator("phone_number")
    @classmethod
    def digits_only(cls, value: str) -> str:
        digits = normalize_phone_number(value)
        if not digits:
            raise ValueError("phone_number must contain digits")
        return digits


class AuthorizedNumberUpdate(BaseModel):
    name: Optional[str] = None
    is_active: Optional[bool] = None


class AuthorizedNumberResponse(BaseModel):
    id: UUID
    instance_id: UUID
    instance_name: Optional[str] = None
    phone_number: str
    name: Optional[str] = None
    is_active: bool
    created_at: datetime
    message_count: int = 0


class AuthorizedNumberListResponse(BaseModel):
    authorized_numbers: list[AuthorizedNumberResponse]
