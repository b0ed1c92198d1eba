import os
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('GOOGLE_CLIENT_ID', '')

from scheduler.database import Base  # noqa: E402
from scheduler.models import availability, calendar_integration, meeting, user  # noqa: E402,F401
from scheduler.models.user import User  # noqa: E402
from scheduler.services.slot_computer import TimeSlot  # noqa: E402


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


class FakeCalendar:
    """In-memory calendar collaborator that records what it was asked."""

    def __init__(self, busy=None, event_id='evt-123', fail_free_busy=False, fail_events=False):
        self.busy = list(busy or [])
        self.event_id = event_id
        self.fail_free_busy = fail_free_busy
        self.fail_events = fail_events
        self.free_busy_calls = []
        self.created_events = []

    def get_free_busy(self, user_id, window_start, window_end):
        self.free_busy_calls.append((user_id, window_start, window_end))
        if self.fail_free_busy:
            raise RuntimeError('calendar offline')
        return list(self.busy)

    def create_event(self, user_id, title, description, start, end, attendee_email):
        if self.fail_events:
            raise RuntimeError('calendar offline')
        self.created_events.append(
            {
                'user_id': user_id,
                'title': title,
                'description': description,
                'start': start,
                'end': end,
                'attendee_email': attendee_email,
            }
        )
        return self.event_id


@pytest.fixture
def session_factory(tmp_path):
    # File-backed so separate sessions only see each other's committed rows.
    engine = create_engine(
        f'sqlite:///{tmp_path / "scheduler-test.db"}',
        connect_args={'check_same_thread': False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def owner(db) -> User:
    account = User(id='user-1', email='owner@agency.test', name='Agency Owner', role='admin')
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


@pytest.fixture
def calendar() -> FakeCalendar:
    return FakeCalendar()


def busy(start: datetime, end: datetime) -> TimeSlot:
    return TimeSlot(start, end)
