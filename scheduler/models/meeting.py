"""Meeting model definitions."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, UniqueConstraint
from scheduler.database import Base


class Meeting(Base):
    """A booked meeting between a user and a guest."""
    __tablename__ = "meetings"
    __table_args__ = (
        UniqueConstraint("user_id", "start_time", name="uq_meetings_user_start"),
        Index("idx_meetings_user_range", "user_id", "start_time", "end_time"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    guest_name = Column(String, nullable=False)
    guest_email = Column(String, nullable=False)
    guest_notes = Column(String)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    google_event_id = Column(String)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
