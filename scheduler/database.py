from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from scheduler.core import config


def _engine_options(url: str) -> dict:
    if url.startswith('sqlite'):
        return {'connect_args': {'check_same_thread': False}}
    return {'pool_pre_ping': True}


engine = create_engine(config.DATABASE_URL, echo=config.SQL_ECHO, **_engine_options(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_availability_schema_checked = False
_meeting_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(engine)

        if 'availability' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('availability')}
        migration_steps = [
            ('time_zone', "ALTER TABLE availability ADD COLUMN time_zone VARCHAR DEFAULT 'UTC'"),
            ('updated_at', 'ALTER TABLE availability ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE UNIQUE INDEX IF NOT EXISTS idx_availability_user ON availability(user_id)')
            )

        _availability_schema_checked = True


def ensure_meeting_schema() -> None:
    global _meeting_schema_checked

    if _meeting_schema_checked:
        return

    with _schema_lock:
        if _meeting_schema_checked:
            return

        inspector = inspect(engine)

        if 'meetings' not in inspector.get_table_names():
            _meeting_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('meetings')}
        migration_steps = [
            ('guest_notes', 'ALTER TABLE meetings ADD COLUMN guest_notes VARCHAR'),
            ('google_event_id', 'ALTER TABLE meetings ADD COLUMN google_event_id VARCHAR'),
            ('created_at', 'ALTER TABLE meetings ADD COLUMN created_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_meetings_user_range ON meetings(user_id, start_time, end_time)')
            )
            connection.execute(
                text('CREATE UNIQUE INDEX IF NOT EXISTS uq_meetings_user_start ON meetings(user_id, start_time)')
            )

        _meeting_schema_checked = True
