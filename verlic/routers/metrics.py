from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from verlic.database import get_db
from verlic.routers.deps import require_admin_token
from verlic.schemas.metrics import DashboardStatsResponse, ErrorEntry, MetricsResponse
from verlic.services.health_service import get_env_status
from verlic.services.metrics_service import (
    MetricType,
    get_dashboard_stats,
    get_message_stats,
    get_metrics_by_day,
    get_metrics_summary,
    get_recent_errors,
)

router = APIRouter(prefix="/api", tags=["metrics"], dependencies=[Depends(require_admin_token)])


@router.get("/metrics", response_model=MetricsResponse)
def get_metrics(db: Session = Depends(get_db)):
    return MetricsResponse(
        summary=get_metrics_summary(db, 30),
        message_stats=get_message_stats(db),
        messages_by_day=get_metrics_by_day(db, MetricType.MESSAGE_RECEIVED, 7),
        ai_requests_by_day=get_metrics_by_day(db, MetricType.AI_REQUEST, 7),
        recent_errors=[ErrorEntry.model_validate(metric) for metric in get_recent_errors(db, 10)],
    )


@router.get("/dashboard/stats", response_model=DashboardStatsResponse)
def get_dashboard(db: Session = Depends(get_db)):
    return DashboardStatsResponse(**get_dashboard_stats(db), env_status=get_env_status())
