from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from scheduler.core.errors import ConflictError, NotFoundError, SchedulerError, ValidationError
from scheduler.database import ensure_availability_schema, ensure_meeting_schema

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

_STATUS_BY_ERROR = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
}


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_meeting_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def http_error_for(exc: SchedulerError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail=exc.detail)
