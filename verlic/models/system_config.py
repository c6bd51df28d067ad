from sqlalchemy import Column, DateTime, Text

from verlic.database import Base


class SystemConfig(Base):
    __tablename__ = "system_config"

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
