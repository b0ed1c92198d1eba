"""
Google Calendar collaborators.

Providers raise ``ExternalServiceDegraded`` on any failure. Callers never
call them directly; they go through ``attempt`` and collapse the result to
a default, so a broken calendar integration only ever degrades a schedule.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Protocol, TypeVar

import httpx
from fastapi import Depends
from sqlalchemy.orm import Session

from scheduler.core import config
from scheduler.core.errors import ExternalServiceDegraded
from scheduler.database import get_db
from scheduler.models.calendar_integration import CalendarIntegration
from scheduler.services.slot_computer import TimeSlot, as_utc

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class ExternalResult(Generic[T]):
    value: T | None = None
    error: ExternalServiceDegraded | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        if self.error is not None or self.value is None:
            return default
        return self.value


def attempt(operation: str, call: Callable[..., T], *args: Any, **kwargs: Any) -> ExternalResult[T]:
    """Run one external call and capture any failure as a degraded result."""
    try:
        return ExternalResult(value=call(*args, **kwargs))
    except ExternalServiceDegraded as exc:
        logger.warning('Calendar %s degraded: %s', operation, exc.detail)
        return ExternalResult(error=exc)
    except Exception as exc:
        logger.warning('Calendar %s failed unexpectedly', operation, exc_info=True)
        return ExternalResult(error=ExternalServiceDegraded(operation, str(exc)))


class CalendarProvider(Protocol):
    def get_free_busy(self, user_id: str, window_start: datetime, window_end: datetime) -> list[TimeSlot]:
        ...

    def create_event(
        self,
        user_id: str,
        title: str,
        description: str,
        start: datetime,
        end: datetime,
        attendee_email: str,
    ) -> str | None:
        ...


class MockCalendarProvider:
    """Stands in for Google Calendar when no client is configured."""

    def get_free_busy(self, user_id: str, window_start: datetime, window_end: datetime) -> list[TimeSlot]:
        logger.info('Mock calendar: no busy intervals for user %s', user_id)
        return []

    def create_event(self, user_id, title, description, start, end, attendee_email) -> str | None:
        logger.info('Mock calendar: simulating event %r at %s', title, start.isoformat())
        return f'mock-event-id-{int(datetime.now(timezone.utc).timestamp() * 1000)}'


def _parse_google_timestamp(value: str) -> datetime:
    # Google returns RFC 3339 with a trailing Z.
    return as_utc(datetime.fromisoformat(value.replace('Z', '+00:00')))


class GoogleCalendarProvider:
    """Calendar API v3 over httpx, using the user's stored access token."""

    def __init__(self, db: Session, client: httpx.Client | None = None):
        self.db = db
        self.client = client or httpx.Client(
            base_url=config.GOOGLE_CALENDAR_API,
            timeout=config.CALENDAR_TIMEOUT_SECONDS,
        )

    def close(self) -> None:
        self.client.close()

    def _integration(self, user_id: str, operation: str) -> CalendarIntegration:
        integration = self.db.query(CalendarIntegration).filter(
            CalendarIntegration.user_id == user_id
        ).first()
        if integration is None or not integration.access_token:
            raise ExternalServiceDegraded(operation, 'No Google account linked')
        return integration

    def _request(self, operation: str, method: str, url: str, access_token: str, **kwargs) -> dict:
        try:
            response = self.client.request(
                method,
                url,
                headers={'Authorization': f'Bearer {access_token}'},
                **kwargs,
            )
        except httpx.HTTPError as exc:
            raise ExternalServiceDegraded(operation, str(exc)) from exc

        if response.status_code not in (200, 201):
            raise ExternalServiceDegraded(operation, f'HTTP {response.status_code}: {response.text}')

        return response.json()

    def get_free_busy(self, user_id: str, window_start: datetime, window_end: datetime) -> list[TimeSlot]:
        integration = self._integration(user_id, 'free/busy')
        calendar_id = integration.calendar_id or 'primary'

        payload = self._request(
            'free/busy',
            'POST',
            '/freeBusy',
            integration.access_token,
            json={
                'timeMin': as_utc(window_start).isoformat(),
                'timeMax': as_utc(window_end).isoformat(),
                'items': [{'id': calendar_id}],
            },
        )

        busy = payload.get('calendars', {}).get(calendar_id, {}).get('busy', [])
        return [
            TimeSlot(_parse_google_timestamp(entry['start']), _parse_google_timestamp(entry['end']))
            for entry in busy
        ]

    def create_event(
        self,
        user_id: str,
        title: str,
        description: str,
        start: datetime,
        end: datetime,
        attendee_email: str,
    ) -> str | None:
        integration = self._integration(user_id, 'event creation')
        calendar_id = integration.calendar_id or 'primary'

        event = self._request(
            'event creation',
            'POST',
            f'/calendars/{calendar_id}/events',
            integration.access_token,
            params={'sendUpdates': 'all'},
            json={
                'summary': title,
                'description': description,
                'start': {'dateTime': as_utc(start).isoformat(), 'timeZone': 'UTC'},
                'end': {'dateTime': as_utc(end).isoformat(), 'timeZone': 'UTC'},
                'attendees': [{'email': attendee_email}],
                'reminders': {'useDefault': True},
            },
        )

        event_id = event.get('id')
        logger.info('Google Calendar event created: %s', event_id)
        return event_id


def get_calendar_provider(db: Session = Depends(get_db)):
    if config.is_calendar_mock_mode():
        yield MockCalendarProvider()
        return

    provider = GoogleCalendarProvider(db)
    try:
        yield provider
    finally:
        provider.close()
