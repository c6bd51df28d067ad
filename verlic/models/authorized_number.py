import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from verlic.database import Base


class AuthorizedNumber(Base):
    __tablename__ = "authorized_numbers"
    __table_args__ = (UniqueConstraint("phone_number", "instance_id", name="uq_authorized_phone_instance"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    instance_id = Column(Uuid, ForeignKey("whatsapp_instances.id", ondelete="CASCADE"), nullable=False)
    # Stored as entered by the operator (digits only), not necessarily with a country code.
    phone_number = Column(Text, nullable=False)
    name = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    instance = relationship("WhatsAppInstance", back_populates="authorized_numbers")
    messages = relationship("Message", back_populates="authorized_number")
