"""Calendar integration model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from scheduler.database import Base


class CalendarIntegration(Base):
    """Google Calendar credentials linked to a user."""
    __tablename__ = "calendar_integrations"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    access_token = Column(String, nullable=False)
    calendar_id = Column(String, default="primary")
