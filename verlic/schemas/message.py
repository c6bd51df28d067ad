from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    instance_id: UUID
    phone_number: str
    direction: str
    content: str
    status: str
    ai_generated: bool
    tokens_used: Optional[int] = None
    response_time_ms: Optional[int] = None
    authorized_number_id: Optional[UUID] = None
    created_at: datetime


class MessageListResponse(BaseModel):
    messages: list[MessageResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class ConversationResponse(BaseModel):
    instance_id: UUID
    phone_number: str
    messages: list[MessageResponse]


class RankingEntry(BaseModel):
    phone_number: str
    name: Optional[str] = None
    message_count: int


class RankingResponse(BaseModel):
    ranking: list[RankingEntry]


class ContextClearResponse(BaseModel):
    success: bool
    cleared: bool
