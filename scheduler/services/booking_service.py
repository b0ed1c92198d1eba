"""
Guest bookings.

A booking is validated, re-checked against the current slot list, then
committed before any calendar call is made. The ``(user_id, start_time)``
unique constraint on meetings is what settles two requests racing for the
same slot: the loser's insert fails and is reported as a conflict.
"""

import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.core.errors import ConflictError, NotFoundError, ValidationError
from scheduler.models.meeting import Meeting
from scheduler.services.availability_store import AvailabilityStore
from scheduler.services.busy_intervals import BusyIntervalSource
from scheduler.services.calendar_gateway import CalendarProvider, attempt
from scheduler.services.slot_computer import (
    TimeSlot,
    as_utc,
    compute_slots,
    day_window,
    local_date,
    sunday_based_weekday,
)
from scheduler.services.users import user_exists

logger = logging.getLogger(__name__)

SLOT_TAKEN_DETAIL = 'This time is no longer available. Please pick another time.'


def available_slots(
    store: AvailabilityStore,
    busy_source: BusyIntervalSource,
    user_id: str,
    day: date,
) -> list[TimeSlot]:
    """Open slots for ``user_id`` on ``day``, falling back to the default rule."""
    rule = store.get_or_default(user_id)
    if sunday_based_weekday(day) not in rule.days:
        return []

    window_start, window_end = day_window(rule, day)
    busy = busy_source.get_busy_intervals(user_id, window_start, window_end)
    return compute_slots(rule, day, busy)


def _require(value: str | None, message: str) -> str:
    normalized = (value or '').strip()
    if not normalized:
        raise ValidationError(message)
    return normalized


class BookingService:
    def __init__(
        self,
        db: Session,
        calendar: CalendarProvider,
        store: AvailabilityStore | None = None,
        busy_source: BusyIntervalSource | None = None,
    ):
        self.db = db
        self.calendar = calendar
        self.store = store or AvailabilityStore(db)
        self.busy_source = busy_source or BusyIntervalSource(db, calendar)

    def book(
        self,
        user_id: str | None,
        guest_name: str | None,
        guest_email: str | None,
        guest_notes: str | None,
        start_time: datetime | None,
        end_time: datetime | None,
    ) -> Meeting:
        user_id = _require(user_id, 'User id is required.')
        guest_name = _require(guest_name, 'Guest name is required.')
        guest_email = _require(guest_email, 'Guest email is required.').lower()
        guest_notes = (guest_notes or '').strip() or None

        if start_time is None or end_time is None:
            raise ValidationError('Start time and end time are required.')
        if '@' not in guest_email:
            raise ValidationError('Guest email is not a valid email address.')

        start = as_utc(start_time)
        end = as_utc(end_time)
        if start >= end:
            raise ValidationError('Start time must be before end time.')

        if not user_exists(self.db, user_id):
            raise NotFoundError('User not found.')

        requested = TimeSlot(start, end)
        rule = self.store.get_or_default(user_id)
        if requested not in available_slots(self.store, self.busy_source, user_id, local_date(rule, start)):
            raise ConflictError(SLOT_TAKEN_DETAIL)

        meeting = Meeting(
            user_id=user_id,
            guest_name=guest_name,
            guest_email=guest_email,
            guest_notes=guest_notes,
            start_time=start,
            end_time=end,
        )
        self.db.add(meeting)

        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.info('Lost booking race for user %s at %s', user_id, start.isoformat())
            raise ConflictError(SLOT_TAKEN_DETAIL) from exc
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(meeting)
        logger.info('Meeting %s booked for user %s at %s', meeting.id, user_id, start.isoformat())

        event_id = attempt(
            'event creation',
            self.calendar.create_event,
            user_id,
            f'Meeting with {guest_name}',
            guest_notes or f'Booked via Meeting Scheduler\nGuest: {guest_name} ({guest_email})',
            start,
            end,
            guest_email,
        ).unwrap_or(None)

        if event_id:
            self._record_event_id(meeting, event_id)

        return meeting

    def _record_event_id(self, meeting: Meeting, event_id: str) -> None:
        meeting.google_event_id = event_id
        try:
            self.db.commit()
        except SQLAlchemyError:
            # The meeting itself is already committed.
            self.db.rollback()
            logger.exception('Could not store calendar event %s for meeting %s', event_id, meeting.id)
            return
        self.db.refresh(meeting)


def list_meetings(db: Session, user_id: str) -> list[Meeting]:
    return db.query(Meeting).filter(
        Meeting.user_id == user_id,
    ).order_by(Meeting.start_time.asc()).all()
