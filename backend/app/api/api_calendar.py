import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from app.crud import crud_calendar_account, crud_calendar_event
from app.database import get_db
from app.models import CalendarEvent, SyncStatus
from app.schemas import (
    AuthUrlResponse,
    CalendarEventCreate,
    CalendarEventList,
    CalendarEventRead,
    CalendarEventUpdate,
    CalendarListResponse,
    ConnectionSummary,
    EventSources,
    SyncOutcomeRead,
    SyncRequest,
    SyncResponse,
)
from app.services import calendar_sync, event_projector
from app.services.calendar_auth import TokenManager, decode_state, encode_state
from app.services.calendar_errors import CalendarError, EventNotFound
from app.utils.errors import error_response

from .dependencies import (
    auto_sync_enabled,
    get_account_id,
    get_sync_engine,
    get_token_manager,
    get_user_id,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["calendar"])


def _summary(connection) -> ConnectionSummary:
    if connection is None:
        return ConnectionSummary(connected=False)
    return ConnectionSummary(
        connected=True,
        account_id=connection.account_id,
        scope=connection.scope,
        token_type=connection.token_type,
        expiry_date=connection.expiry_date,
        has_refresh_token=bool(connection.refresh_token),
    )


def _sync_response(report: calendar_sync.SyncReport, direction: str) -> SyncResponse:
    return SyncResponse(
        synced_count=report.synced_count,
        failed_count=report.failed_count,
        results=[
            SyncOutcomeRead(
                record_id=o.record_id,
                google_event_id=o.google_event_id,
                outcome=o.outcome,
                reason=o.reason,
            )
            for o in report.outcomes
        ],
        message=f"Successfully synced {report.synced_count} events {direction} Google Calendar",
    )


def _push_now(
    db: Session,
    account_id: str,
    event: CalendarEvent,
    token_manager: TokenManager,
) -> None:
    """Best-effort immediate push after a user edit; never fails the request."""
    if event.sync_status == SyncStatus.NOT_SYNCED:
        return
    if crud_calendar_account.get_connection(db, account_id) is None:
        return
    try:
        engine = calendar_sync.connect(db, account_id, token_manager)
    except CalendarError as exc:
        logger.warning("Skipping immediate sync of event %s: %s", event.id, exc.message)
        return
    outcome = engine.push_event(event)
    if not outcome.ok:
        logger.warning("Immediate sync of event %s failed: %s", event.id, outcome.reason)
    db.refresh(event)


# ─── OAuth ───────────────────────────────────────────────────────────────────
@router.get("/auth", response_model=AuthUrlResponse)
def start_auth(
    account_id: str = Depends(get_account_id),
    token_manager: TokenManager = Depends(get_token_manager),
):
    """Return the Google consent URL for the calling account."""
    url = token_manager.generate_auth_url(state=encode_state(account_id))
    return AuthUrlResponse(auth_url=url)


@router.get("/auth/callback", response_model=ConnectionSummary)
def auth_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    db: Session = Depends(get_db),
    token_manager: TokenManager = Depends(get_token_manager),
):
    if not code:
        raise error_response(
            "Authorization code is required",
            {"code": "required"},
            status.HTTP_400_BAD_REQUEST,
        )
    account_id = "default"
    if state:
        try:
            account_id = decode_state(state)
        except ValueError as exc:
            logger.error("Invalid Google Calendar state value: %s", exc)
            raise error_response(
                "Invalid OAuth state",
                {"state": str(exc)},
                status.HTTP_400_BAD_REQUEST,
            )
    tokens = token_manager.exchange_code(code)
    connection = crud_calendar_account.save_tokens(db, account_id, tokens)
    logger.info("Google Calendar connected for account %s", account_id)
    return _summary(connection)


@router.get("/auth/status", response_model=ConnectionSummary)
def auth_status(
    db: Session = Depends(get_db),
    account_id: str = Depends(get_account_id),
):
    return _summary(crud_calendar_account.get_connection(db, account_id))


@router.delete("/auth", response_model=ConnectionSummary)
def disconnect(
    db: Session = Depends(get_db),
    account_id: str = Depends(get_account_id),
    token_manager: TokenManager = Depends(get_token_manager),
):
    """Revoke the stored grant at Google, then forget it locally."""
    connection = crud_calendar_account.get_connection(db, account_id)
    if connection is None:
        return _summary(None)
    token = connection.refresh_token or connection.access_token
    if token:
        token_manager.revoke_token(token)
    crud_calendar_account.delete_connection(db, connection)
    logger.info("Google Calendar disconnected for account %s", account_id)
    return _summary(None)


# ─── Events ──────────────────────────────────────────────────────────────────
def _event_list(db: Session, mode: str, account_id: str) -> CalendarEventList:
    events, stored, deliveries = event_projector.get_events(db, mode=mode, account_id=account_id)
    return CalendarEventList(
        events=events,
        count=len(events),
        sources=EventSources(calendar=stored, deliveries=deliveries),
    )


@router.get("/events", response_model=CalendarEventList)
def list_events(
    db: Session = Depends(get_db),
    account_id: str = Depends(get_account_id),
):
    """Stored events and scheduled deliveries for the current month."""
    return _event_list(db, event_projector.MODE_ALL, account_id)


@router.get("/events/upcoming", response_model=CalendarEventList)
def list_upcoming_events(
    db: Session = Depends(get_db),
    account_id: str = Depends(get_account_id),
):
    return _event_list(db, event_projector.MODE_UPCOMING, account_id)


@router.get("/events/{event_id}", response_model=CalendarEventRead)
def read_event(
    event_id: str,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_account_id),
):
    event = crud_calendar_event.get_event(db, event_id, account_id)
    if event is None:
        raise EventNotFound(field_errors={"id": "not_found"})
    return event


@router.post("/events", response_model=CalendarEventRead, status_code=status.HTTP_201_CREATED)
def create_event(
    event_in: CalendarEventCreate,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_account_id),
    user_id: Optional[str] = Depends(get_user_id),
    token_manager: TokenManager = Depends(get_token_manager),
    auto_sync: bool = Depends(auto_sync_enabled),
):
    event = crud_calendar_event.create_event(db, event_in, account_id, user_id)
    logger.info("Calendar event %s created for account %s", event.id, account_id)
    if auto_sync:
        _push_now(db, account_id, event, token_manager)
    return event


@router.put("/events/{event_id}", response_model=CalendarEventRead)
def update_event(
    event_id: str,
    event_in: CalendarEventUpdate,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_account_id),
    token_manager: TokenManager = Depends(get_token_manager),
    auto_sync: bool = Depends(auto_sync_enabled),
):
    event_projector.ensure_mutable(event_id)
    event = crud_calendar_event.get_event(db, event_id, account_id)
    if event is None:
        raise EventNotFound(field_errors={"id": "not_found"})
    event = crud_calendar_event.update_event(db, event, event_in)
    if auto_sync:
        _push_now(db, account_id, event, token_manager)
    return event


@router.delete("/events/{event_id}")
def delete_event(
    event_id: str,
    db: Session = Depends(get_db),
    account_id: str = Depends(get_account_id),
    token_manager: TokenManager = Depends(get_token_manager),
):
    event_projector.ensure_mutable(event_id)
    event = crud_calendar_event.get_event(db, event_id, account_id)
    if event is None:
        raise EventNotFound(field_errors={"id": "not_found"})
    if event.google_event_id and crud_calendar_account.get_connection(db, account_id) is not None:
        try:
            calendar_sync.connect(db, account_id, token_manager).delete_remote(event)
        except CalendarError as exc:
            logger.error("Error deleting event %s from Google Calendar: %s", event_id, exc.message)
    crud_calendar_event.delete_event(db, event)
    return {"message": "Calendar event deleted successfully"}


# ─── Sync ────────────────────────────────────────────────────────────────────
@router.post("/sync/from-google", response_model=SyncResponse)
def sync_from_google(
    sync_in: Optional[SyncRequest] = Body(default=None),
    engine: calendar_sync.SyncEngine = Depends(get_sync_engine),
):
    calendar_id = sync_in.calendar_id if sync_in else None
    return _sync_response(engine.pull(calendar_id=calendar_id), "from")


@router.post("/sync/to-google", response_model=SyncResponse)
def sync_to_google(engine: calendar_sync.SyncEngine = Depends(get_sync_engine)):
    return _sync_response(engine.push(), "to")


@router.get("/calendars", response_model=CalendarListResponse)
def list_calendars(engine: calendar_sync.SyncEngine = Depends(get_sync_engine)):
    calendars = engine.list_calendars()
    return CalendarListResponse(calendars=calendars, count=len(calendars))
