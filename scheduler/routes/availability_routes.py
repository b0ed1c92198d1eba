from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduler.auth.dependencies import get_current_user
from scheduler.core import config
from scheduler.core.errors import SchedulerError
from scheduler.database import get_db
from scheduler.models.user import User
from scheduler.routes import common
from scheduler.services.availability_store import AvailabilityStore
from scheduler.services.slot_computer import AvailabilityRule
from scheduler.services.users import user_exists

router = APIRouter(tags=['availability'])


class AvailabilityRequest(BaseModel):
    days: list[int]
    start_time: str = Field(alias='startTime')
    end_time: str = Field(alias='endTime')
    time_zone: str | None = Field(default=None, alias='timeZone')

    class Config:
        populate_by_name = True


class AvailabilityResponse(BaseModel):
    days: list[int]
    start_time: str = Field(alias='startTime')
    end_time: str = Field(alias='endTime')
    time_zone: str = Field(alias='timeZone')

    class Config:
        populate_by_name = True


class SuccessResponse(BaseModel):
    success: bool = True


def to_response(rule: AvailabilityRule) -> AvailabilityResponse:
    return AvailabilityResponse(
        days=sorted(rule.days),
        start_time=rule.start_time,
        end_time=rule.end_time,
        time_zone=rule.time_zone,
    )


@router.get('/{user_id}', response_model=AvailabilityResponse)
def get_availability(user_id: str, db: Session = Depends(get_db)):
    common.ensure_database_ready()

    try:
        if not user_exists(db, user_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found.')

        return to_response(AvailabilityStore(db).get_or_default(user_id))
    except SQLAlchemyError as exc:
        raise common.database_unavailable() from exc


@router.post('/{user_id}', response_model=SuccessResponse)
def set_availability(
    user_id: str,
    data: AvailabilityRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if current_user.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only the owner can change this availability.',
        )

    common.ensure_database_ready()

    rule = AvailabilityRule(
        days=frozenset(data.days),
        start_time=data.start_time.strip(),
        end_time=data.end_time.strip(),
        time_zone=(data.time_zone or '').strip() or config.DEFAULT_TIME_ZONE,
    )

    try:
        AvailabilityStore(db).set(user_id, rule)
    except SchedulerError as exc:
        raise common.http_error_for(exc) from exc
    except SQLAlchemyError as exc:
        raise common.database_unavailable() from exc

    return SuccessResponse()
