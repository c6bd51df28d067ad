from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MetricTotals(BaseModel):
    total: float
    count: int


class DailyPoint(BaseModel):
    date: str
    total: float


class ErrorEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    value: float
    metadata: Optional[dict[str, Any]] = Field(default=None, validation_alias="metric_metadata")
    created_at: datetime


class MessageStats(BaseModel):
    total_messages: int
    inbound_messages: int
    outbound_messages: int
    ai_responses: int


class MetricsResponse(BaseModel):
    summary: dict[str, MetricTotals]
    message_stats: MessageStats
    messages_by_day: list[DailyPoint]
    ai_requests_by_day: list[DailyPoint]
    recent_errors: list[ErrorEntry]


class DashboardStatsResponse(MessageStats):
    instance_count: int
    authorized_count: int
    active_instances: int
    api_requests: float
    ai_requests: float
    errors: float
    env_status: dict[str, bool]
