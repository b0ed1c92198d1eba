import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from scheduler.core import config
from scheduler.database import Base, engine, ensure_availability_schema, ensure_meeting_schema
from scheduler.models import availability, calendar_integration, meeting, user  # noqa: F401
from scheduler.routes import availability_routes, scheduler_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='Meeting Scheduler')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={'detail': jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {'loc': list(error.get('loc', ())), 'msg': error.get('msg', ''), 'type': error.get('type', '')}
        for error in exc.errors()
    ]


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_availability_schema()
        ensure_meeting_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')

    if config.is_calendar_mock_mode():
        logger.warning('GOOGLE_CLIENT_ID is not set; calendar calls are simulated.')


@app.get('/')
def root():
    return {'status': 'Meeting Scheduler API Running'}


app.include_router(availability_routes.router, prefix='/availability')
app.include_router(scheduler_routes.router, prefix='/scheduler')
