"""Database model for studio-wide settings."""

from sqlalchemy import JSON, Column, DateTime, Text
from sqlalchemy.sql import func

from ..database import Base

AVAILABILITY_KEY = "availability"
SCHEDULE_OVERRIDES_KEY = "scheduleOverrides"
CLASS_CAPACITY_KEY = "classCapacity"


class StudioSetting(Base):
    """Key/value setting stored as JSON (availability template, overrides, capacities)."""

    __tablename__ = "studio_settings"

    key = Column(Text, primary_key=True, nullable=False)
    value_json = Column(JSON, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<StudioSetting key={self.key}>"


__all__ = ["AVAILABILITY_KEY", "CLASS_CAPACITY_KEY", "SCHEDULE_OVERRIDES_KEY", "StudioSetting"]
