import uuid

from sqlalchemy import Column, DateTime, Float, Index, Text, Uuid

from verlic.database import Base, JSONType


class SystemMetric(Base):
    __tablename__ = "system_metrics"
    __table_args__ = (Index("ix_system_metrics_type_created", "metric_type", "created_at"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    metric_type = Column(Text, nullable=False)
    value = Column(Float, nullable=False, default=1)
    metric_metadata = Column("metadata", JSONType)
    created_at = Column(DateTime(timezone=True), nullable=False)
