# backend/app/main.py

import logging
import os
import time

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as SA_TimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models  # noqa: F401 - registers tables on Base.metadata
from .api import api_calendar
from .core.config import ALLOWED_ORIGINS, settings
from .core.observability import setup_logging, setup_tracer
from .database import Base, engine
from .services.calendar_errors import CalendarError
from .utils.errors import error_detail

setup_logging()
logger = logging.getLogger(__name__)

_STARTED_AT = time.time()

# Alembic owns the schema in deployed environments; this keeps local SQLite
# and test databases usable without running migrations first.
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Calendar Sync API", default_response_class=ORJSONResponse)
setup_tracer(app)

# Wildcard origins cannot be combined with credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials="*" not in ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)
logger.info("CORS origins for calendar API: %s", ALLOWED_ORIGINS)


def _json_error(code: int, detail, headers=None) -> ORJSONResponse:
    return ORJSONResponse(status_code=code, content={"detail": detail}, headers=headers)


@app.middleware("http")
async def catch_exceptions(request: Request, call_next):
    """Turn anything that escapes the routers into a JSON error and log it."""
    path = request.url.path
    try:
        return await call_next(request)
    except StarletteHTTPException as exc:
        logger.error("HTTP %s on %s %s: %s", exc.status_code, request.method, path, exc.detail)
        return _json_error(exc.status_code, exc.detail)
    except SA_TimeoutError as exc:
        # Pool exhausted: ask clients to back off instead of failing hard
        logger.error("DB pool timeout on %s %s: %s", request.method, path, exc)
        return _json_error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            error_detail("Database busy, please retry"),
            headers={"Retry-After": "1"},
        )
    except Exception as exc:  # pragma: no cover - last resort
        logger.exception("Unhandled error on %s %s: %s", request.method, path, exc)
        return _json_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_detail("Internal Server Error"),
        )


@app.exception_handler(CalendarError)
async def calendar_exception_handler(request: Request, exc: CalendarError):
    """Render calendar, OAuth and sync errors with the shared ``detail`` envelope."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return _json_error(exc.status_code, error_detail(exc.message, exc.field_errors))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Flatten pydantic errors into ``field_errors`` keyed by dotted field path."""
    errors = exc.errors()
    logger.warning("Invalid payload on %s: %s", request.url.path, errors)
    field_errors = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "header")]
        field_errors[".".join(loc) or "body"] = err.get("msg", "invalid")
    return _json_error(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        error_detail("Invalid request", field_errors),
    )


@app.get("/healthz", tags=["health"])
async def healthz():
    """Readiness probe; the calendar cannot serve anything without its DB."""
    no_store = {"Cache-Control": "no-store"}
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except OperationalError as exc:
        logger.error("Health check cannot reach the database: %s", exc)
        return ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "error", "db": "unavailable"},
            headers=no_store,
        )
    uptime = round(time.time() - _STARTED_AT, 1)
    return ORJSONResponse(
        content={"status": "ok", "db": "ok", "uptime_s": uptime, "pid": os.getpid()},
        headers=no_store,
    )


# ─── Calendar routes: /api/v1/calendar/... ───────────────────────────────────
app.include_router(
    api_calendar.router,
    prefix=f"{settings.API_V1_STR}/calendar",
    tags=["calendar"],
)


@app.get("/")
async def root():
    return {"message": "Welcome to Calendar Sync API"}
