"""Availability model definitions."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from scheduler.database import Base


class Availability(Base):
    """Weekly bookable hours for a single user."""
    __tablename__ = "availability"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    days = Column(JSON, nullable=False)  # weekday numbers, 0 = Sunday
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    time_zone = Column(String, nullable=False, default="UTC")
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
