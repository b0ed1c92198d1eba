import os

from dotenv import load_dotenv

load_dotenv()



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./scheduler.db")
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:3000"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# No client id means calendar calls are simulated.
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CALENDAR_API = os.getenv("GOOGLE_CALENDAR_API", "https://www.googleapis.com/calendar/v3")
CALENDAR_TIMEOUT_SECONDS = float(os.getenv("CALENDAR_TIMEOUT_SECONDS", "10"))

DEFAULT_AVAILABILITY_DAYS = [1, 2, 3, 4, 5]
DEFAULT_AVAILABILITY_START = "09:00"
DEFAULT_AVAILABILITY_END = "17:00"
DEFAULT_TIME_ZONE = "UTC"


def is_calendar_mock_mode() -> bool:
    return not GOOGLE_CLIENT_ID


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
