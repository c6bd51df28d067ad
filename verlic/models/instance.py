import uuid

from sqlalchemy import Column, DateTime, Text, Uuid
from sqlalchemy.orm import relationship

from verlic.database import Base


class WhatsAppInstance(Base):
    __tablename__ = "whatsapp_instances"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    instance_name = Column(Text, nullable=False, unique=True)
    status = Column(Text, nullable=False, default="disconnected")  # disconnected, connecting, connected
    qr_code = Column(Text)
    phone_number = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    authorized_numbers = relationship(
        "AuthorizedNumber", back_populates="instance", cascade="all, delete-orphan"
    )
    messages = relationship("Message", back_populates="instance", cascade="all, delete-orphan")
    bot_status = relationship(
        "BotStatus", back_populates="instance", uselist=False, cascade="all, delete-orphan"
    )
