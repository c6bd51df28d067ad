from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class EvolutionEnvelope(BaseModel):
    """Top level of an Evolution webhook. Everything below ``data`` is read by the extractors."""

    model_config = ConfigDict(extra="allow")

    event: Optional[str] = None
    instance: Optional[str] = None
    data: Optional[Any] = None


class WebhookAck(BaseModel):
    received: bool = True


class WebhookError(BaseModel):
    error: str


class WebhookLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event: Optional[str] = None
    instance_name: Optional[str] = None
    payload: Any
    error: Optional[str] = None
    created_at: datetime


class WebhookLogListResponse(BaseModel):
    logs: list[WebhookLogResponse]


class WebhookLogCleanupResponse(BaseModel):
    success: bool
    deleted: int
