"""User model definitions."""

import uuid

from sqlalchemy import Column, String
from scheduler.database import Base


class User(Base):
    """Represents an agency-side user who owns a booking calendar."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True)
    name = Column(String)
    role = Column(String)  # admin/member
