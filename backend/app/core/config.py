from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import field_validator
from typing import Annotated, Any, ClassVar
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import json
from pathlib import Path
import os


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"

    # Signs the OAuth ``state`` round-tripped through Google's consent screen
    SECRET_KEY: str = "fallback_secret_for_dev_only"

    # Absolute path so the app and alembic agree on the SQLite file
    # whether started from the repo root or from backend/.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'calendar.db'}"

    # Comma-separated or JSON list; NoDecode lets the validator see the raw string
    CORS_ORIGINS: Annotated[list[str], NoDecode] = ["http://localhost:3000", "http://localhost:5173"]
    CORS_ALLOW_ALL: bool = False

    LOG_LEVEL: str = "INFO"
    ENABLE_CONSOLE_TRACING: bool = False

    # Google OAuth client (web application type)
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/api/v1/calendar/auth/callback"
    OAUTH_STATE_TTL: int = 600  # seconds

    # Timed events are sent with this zone on both ends; all-day events carry no zone.
    CALENDAR_TIMEZONE: str = "America/Sao_Paulo"
    CALENDAR_DEFAULT_ID: str = "primary"
    # Push a record to Google right after it is created/edited when a connection exists.
    CALENDAR_AUTO_SYNC: bool = True

    model_config = SettingsConfigDict(extra="ignore", case_sensitive=True)

    @field_validator("CORS_ORIGINS", mode="before")
    def split_origins(cls, v: Any) -> list[str]:
        if not isinstance(v, str):
            return v
        if v.lstrip().startswith("["):
            return json.loads(v)
        return [s.strip() for s in v.split(",") if s.strip()]

    @field_validator("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GOOGLE_REDIRECT_URI", mode="before")
    def strip_whitespace(cls, v: Any) -> Any:
        # Values pasted from the Google console often carry a trailing newline
        return v.strip() if isinstance(v, str) else v

    @field_validator("LOG_LEVEL", mode="before")
    def upper_level(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("CALENDAR_TIMEZONE")
    def known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown IANA time zone: {v}") from exc
        return v


def load_settings() -> "Settings":
    env_file = os.getenv("ENV_FILE", str(Settings.BASE_DIR.parent / ".env"))
    return Settings(_env_file=env_file)


settings = load_settings()


def _allowed_origins() -> list[str]:
    if settings.CORS_ALLOW_ALL:
        return ["*"]
    origins = (o.strip().rstrip("/") for o in settings.CORS_ORIGINS or [])
    return list(dict.fromkeys(o for o in origins if o))


ALLOWED_ORIGINS = _allowed_origins()
