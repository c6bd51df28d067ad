import uuid

from sqlalchemy import Column, DateTime, Text, Uuid

from verlic.database import Base, JSONType


class WebhookLog(Base):
    __tablename__ = "webhook_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event = Column(Text)
    instance_name = Column(Text)
    payload = Column(JSONType, nullable=False)
    error = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
