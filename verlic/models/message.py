import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, Text, Uuid
from sqlalchemy.orm import relationship

from verlic.database import Base


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_instance_phone_created", "instance_id", "phone_number", "created_at"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    instance_id = Column(Uuid, ForeignKey("whatsapp_instances.id", ondelete="CASCADE"), nullable=False)
    phone_number = Column(Text, nullable=False)
    direction = Column(Text, nullable=False)  # inbound, outbound
    content = Column(Text, nullable=False)
    status = Column(Text, nullable=False)  # received, sent
    ai_generated = Column(Boolean, nullable=False, default=False)
    tokens_used = Column(Integer)
    response_time_ms = Column(Integer)
    authorized_number_id = Column(Uuid, ForeignKey("authorized_numbers.id", ondelete="SET NULL"))
    created_at = Column(DateTime(timezone=True), nullable=False)

    instance = relationship("WhatsAppInstance", back_populates="messages")
    authorized_number = relationship("AuthorizedNumber", back_populates="messages")
