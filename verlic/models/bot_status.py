import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship

from verlic.database import Base


class BotStatus(Base):
    __tablename__ = "bot_status"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    instance_id = Column(
        Uuid, ForeignKey("whatsapp_instances.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    is_running = Column(Boolean, nullable=False, default=False)
    last_started = Column(DateTime(timezone=True))
    last_stopped = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), nullable=False)

    instance = relationship("WhatsAppInstance", back_populates="bot_status")
