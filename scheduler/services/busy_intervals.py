import logging
from datetime import datetime

from sqlalchemy.orm import Session

from scheduler.models.meeting import Meeting
from scheduler.services.calendar_gateway import CalendarProvider, attempt
from scheduler.services.slot_computer import TimeSlot, as_utc

logger = logging.getLogger(__name__)


class BusyIntervalSource:
    """
    Busy time for a user: external calendar free/busy plus meetings already
    booked here. The result may contain overlaps and duplicates; it is only
    guaranteed never to leave out a locally booked meeting.
    """

    def __init__(self, db: Session, calendar: CalendarProvider):
        self.db = db
        self.calendar = calendar

    def booked_meetings(self, user_id: str, window_start: datetime, window_end: datetime) -> list[TimeSlot]:
        rows = self.db.query(Meeting.start_time, Meeting.end_time).filter(
            Meeting.user_id == user_id,
            Meeting.start_time < as_utc(window_end),
            Meeting.end_time > as_utc(window_start),
        ).all()
        return [TimeSlot(as_utc(start), as_utc(end)) for start, end in rows]

    def get_busy_intervals(self, user_id: str, window_start: datetime, window_end: datetime) -> list[TimeSlot]:
        calendar_busy = attempt(
            'free/busy',
            self.calendar.get_free_busy,
            user_id,
            window_start,
            window_end,
        ).unwrap_or([])

        booked = self.booked_meetings(user_id, window_start, window_end)
        logger.debug(
            'User %s busy: %d calendar interval(s), %d booked meeting(s)',
            user_id,
            len(calendar_busy),
            len(booked),
        )

        intervals = [TimeSlot(as_utc(interval.start), as_utc(interval.end)) for interval in calendar_busy]
        intervals.extend(booked)
        return sorted(intervals, key=lambda interval: (interval.start, interval.end))
