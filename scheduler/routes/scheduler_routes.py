from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.core.errors import SchedulerError
from scheduler.database import get_db
from scheduler.models.meeting import Meeting
from scheduler.routes import common
from scheduler.services.availability_store import AvailabilityStore
from scheduler.services.booking_service import BookingService, available_slots, list_meetings
from scheduler.services.busy_intervals import BusyIntervalSource
from scheduler.services.calendar_gateway import CalendarProvider, get_calendar_provider
from scheduler.services.slot_computer import as_utc
from scheduler.services.users import user_exists

router = APIRouter(tags=['scheduler'])

MAX_GUEST_NOTES_LENGTH = 2000


class SlotResponse(BaseModel):
    start: datetime
    end: datetime


class SlotListResponse(BaseModel):
    slots: list[SlotResponse]


class BookingRequest(BaseModel):
    # Presence is checked by the booking service so that gaps report as 400.
    user_id: str | None = Field(default=None, alias='userId')
    guest_name: str | None = Field(default=None, alias='guestName')
    guest_email: str | None = Field(default=None, alias='guestEmail')
    guest_notes: str | None = Field(default=None, alias='guestNotes', max_length=MAX_GUEST_NOTES_LENGTH)
    start_time: datetime | None = Field(default=None, alias='startTime')
    end_time: datetime | None = Field(default=None, alias='endTime')

    class Config:
        populate_by_name = True


class BookedMeetingResponse(BaseModel):
    id: str
    start_time: datetime = Field(alias='startTime')
    end_time: datetime = Field(alias='endTime')
    google_event_id: str | None = Field(default=None, alias='googleEventId')

    class Config:
        populate_by_name = True


class BookingResponse(BaseModel):
    success: bool = True
    meeting: BookedMeetingResponse


class MeetingResponse(BaseModel):
    id: str
    guest_name: str = Field(alias='guestName')
    guest_email: str = Field(alias='guestEmail')
    guest_notes: str | None = Field(default=None, alias='guestNotes')
    start_time: datetime = Field(alias='startTime')
    end_time: datetime = Field(alias='endTime')

    class Config:
        populate_by_name = True


class MeetingListResponse(BaseModel):
    meetings: list[MeetingResponse]


def to_meeting_response(meeting: Meeting) -> MeetingResponse:
    return MeetingResponse(
        id=meeting.id,
        guest_name=meeting.guest_name,
        guest_email=meeting.guest_email,
        guest_notes=meeting.guest_notes,
        start_time=as_utc(meeting.start_time),
        end_time=as_utc(meeting.end_time),
    )


@router.get('/slots', response_model=SlotListResponse)
def list_slots(
    user_id: str | None = Query(default=None, alias='userId'),
    day: date | None = Query(default=None, alias='date'),
    db: Session = Depends(get_db),
    calendar: CalendarProvider = Depends(get_calendar_provider),
):
    if not user_id or day is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='userId and date are required.',
        )

    common.ensure_database_ready()

    try:
        if not user_exists(db, user_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found.')

        slots = available_slots(AvailabilityStore(db), BusyIntervalSource(db, calendar), user_id, day)
        return SlotListResponse(slots=[SlotResponse(start=slot.start, end=slot.end) for slot in slots])
    except SQLAlchemyError as exc:
        raise common.database_unavailable() from exc


@router.post('/book', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def book_meeting(
    data: BookingRequest,
    db: Session = Depends(get_db),
    calendar: CalendarProvider = Depends(get_calendar_provider),
):
    common.ensure_database_ready()

    try:
        meeting = BookingService(db, calendar).book(
            user_id=data.user_id,
            guest_name=data.guest_name,
            guest_email=data.guest_email,
            guest_notes=data.guest_notes,
            start_time=data.start_time,
            end_time=data.end_time,
        )
    except SchedulerError as exc:
        raise common.http_error_for(exc) from exc
    except SQLAlchemyError as exc:
        raise common.database_unavailable() from exc

    return BookingResponse(
        meeting=BookedMeetingResponse(
            id=meeting.id,
            start_time=as_utc(meeting.start_time),
            end_time=as_utc(meeting.end_time),
            google_event_id=meeting.google_event_id,
        )
    )


@router.get('/book', response_model=MeetingListResponse)
def list_booked_meetings(
    user_id: str | None = Query(default=None, alias='userId'),
    db: Session = Depends(get_db),
):
    if not user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='userId is required.')

    common.ensure_database_ready()

    try:
        meetings = list_meetings(db, user_id)
        return MeetingListResponse(meetings=[to_meeting_response(meeting) for meeting in meetings])
    except SQLAlchemyError as exc:
        raise common.database_unavailable() from exc
