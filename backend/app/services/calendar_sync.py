"""Two-way sync between ``calendar_events`` and a Google calendar.

Per-record state machine::

    not_synced/pending --push ok--> synced
    pending/error      --push----> synced | error
    synced             --user edit--> pending
    (pull, no match)   ----------> synced

``not_synced`` is a user choice and is never written here. A failure on one
record is recorded on that record and the batch carries on; only failing to
obtain credentials (see :func:`connect`) aborts a whole run, and it does so
before any call to Google.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.crud import crud_calendar_account, crud_calendar_event
from app.models import SYNC_AGENT, CalendarEvent

from .calendar_auth import TokenManager, TokenSet
from .calendar_errors import (
    MappingError,
    NotConnected,
    PersistenceError,
    ProviderReadError,
    ProviderWriteError,
)
from .event_mapper import to_local_event, to_provider_event
from .google_calendar import GoogleCalendarClient

logger = logging.getLogger(__name__)

# Upper bound on records pushed per call, keeping the burst of Google writes predictable.
PUSH_BATCH_LIMIT = 50
PULL_MAX_RESULTS = 250

SYNCED = "synced"
FAILED = "failed"


@dataclass
class SyncOutcome:
    record_id: Optional[str]
    outcome: str
    reason: Optional[str] = None
    google_event_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == SYNCED


@dataclass
class SyncReport:
    """Per-record results of one pull or push; the counts derive from them."""

    outcomes: List[SyncOutcome] = field(default_factory=list)

    def add(self, outcome: SyncOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def synced_count(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)


class SyncEngine:
    def __init__(
        self,
        db: Session,
        provider: Any,
        account_id: str = "default",
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.db = db
        self.provider = provider
        self.account_id = account_id
        self.clock = clock

    # ─── Google → local ──────────────────────────────────────────────────────
    def pull(
        self,
        calendar_id: Optional[str] = None,
        window_start: Optional[datetime] = None,
        max_results: int = PULL_MAX_RESULTS,
    ) -> SyncReport:
        """Import remote events starting at or after ``window_start`` (default: now).

        Records are matched by ``google_event_id``, so pulling an unchanged
        calendar twice rewrites the same rows instead of duplicating them.
        """
        calendar_id = calendar_id or settings.CALENDAR_DEFAULT_ID
        remote_events = self.provider.list_events(
            calendar_id=calendar_id,
            time_min=window_start or self.clock(),
            max_results=max_results,
        )
        report = SyncReport()
        for remote in remote_events:
            if not remote.get("id"):
                continue
            report.add(self._pull_one(calendar_id, remote))
        logger.info(
            "Pulled %d/%d events from Google calendar %s for account %s",
            report.synced_count,
            len(report.outcomes),
            calendar_id,
            self.account_id,
        )
        return report

    def _match_local(self, remote_id: str, local_id: Optional[str]) -> Optional[CalendarEvent]:
        event = crud_calendar_event.get_by_google_event_id(self.db, self.account_id, remote_id)
        if event is not None or not local_id:
            return event
        # Created by our push but the id never made it back (crash between
        # Google's insert and our commit): re-link instead of duplicating.
        candidate = crud_calendar_event.get_event(self.db, local_id, self.account_id)
        if candidate is not None and candidate.google_event_id in (None, remote_id):
            return candidate
        return None

    def _pull_one(self, calendar_id: str, remote: Dict[str, Any]) -> SyncOutcome:
        remote_id = remote["id"]
        record_id = None
        try:
            fields = to_local_event(remote)
            event = self._match_local(remote_id, fields.get("local_event_id"))
            if event is None:
                event = CalendarEvent(
                    account_id=self.account_id,
                    google_calendar_id=calendar_id,
                    created_by=SYNC_AGENT,
                )
                self.db.add(event)
            else:
                record_id = event.id
            crud_calendar_event.apply_remote_fields(event, fields)
            event.google_event_id = remote_id
            event.mark_synced(self.clock())
            self.db.commit()
            record_id = event.id
        except MappingError as exc:
            self.db.rollback()
            logger.warning("Skipping Google event %s: %s", remote_id, exc.message)
            return SyncOutcome(record_id, FAILED, exc.message, remote_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            error = PersistenceError(f"Failed to store Google event {remote_id}: {exc}")
            logger.error("%s", error.message, exc_info=True)
            return SyncOutcome(record_id, FAILED, error.message, remote_id)
        return SyncOutcome(record_id, SYNCED, google_event_id=remote_id)

    # ─── local → Google ──────────────────────────────────────────────────────
    def push(self) -> SyncReport:
        """Push up to :data:`PUSH_BATCH_LIMIT` pending/errored records, in order."""
        report = SyncReport()
        for event in crud_calendar_event.list_needing_push(self.db, self.account_id, PUSH_BATCH_LIMIT):
            report.add(self.push_event(event))
        logger.info(
            "Pushed %d/%d events to Google for account %s",
            report.synced_count,
            len(report.outcomes),
            self.account_id,
        )
        return report

    def push_event(self, event: CalendarEvent) -> SyncOutcome:
        record_id = event.id
        calendar_id = event.google_calendar_id or settings.CALENDAR_DEFAULT_ID
        try:
            body = to_provider_event(event)
            if event.google_event_id:
                self.provider.update_event(calendar_id, event.google_event_id, body)
            else:
                existing = self.provider.find_by_local_id(calendar_id, record_id)
                if existing:
                    logger.info("Event %s already exists on Google as %s; updating", record_id, existing["id"])
                    self.provider.update_event(calendar_id, existing["id"], body)
                    event.google_event_id = existing["id"]
                else:
                    event.google_event_id = self.provider.insert_event(calendar_id, body)
        except (ProviderReadError, ProviderWriteError, MappingError) as exc:
            logger.error("Error syncing event %s: %s", record_id, exc.message)
            return self._record_failure(event, record_id, exc.message)

        google_event_id = event.google_event_id
        event.mark_synced(self.clock())
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            error = PersistenceError(f"Failed to store sync result for {record_id}: {exc}")
            logger.error("%s", error.message, exc_info=True)
            return SyncOutcome(record_id, FAILED, error.message, google_event_id)
        return SyncOutcome(record_id, SYNCED, google_event_id=google_event_id)

    def _record_failure(self, event: CalendarEvent, record_id: str, message: str) -> SyncOutcome:
        event.mark_error(message, self.clock())
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("Failed to record sync error on event %s", record_id, exc_info=True)
        return SyncOutcome(record_id, FAILED, message)

    def delete_remote(self, event: CalendarEvent) -> None:
        if not event.google_event_id:
            return
        self.provider.delete_event(
            event.google_calendar_id or settings.CALENDAR_DEFAULT_ID,
            event.google_event_id,
        )

    def list_calendars(self) -> List[Dict[str, Any]]:
        return self.provider.list_calendars()


def connect(
    db: Session,
    account_id: str,
    token_manager: Optional[TokenManager] = None,
    client_factory: Callable[..., Any] = GoogleCalendarClient,
) -> SyncEngine:
    """Build a :class:`SyncEngine` for the account's stored Google connection.

    Raises :class:`NotConnected` when the account never completed OAuth and
    lets TokenManager errors propagate; either way no Google call is made.
    """
    connection = crud_calendar_account.get_connection(db, account_id)
    if connection is None:
        raise NotConnected()
    manager = token_manager or TokenManager()
    credentials = manager.get_authenticated_client(TokenSet.from_record(connection))
    if crud_calendar_account.store_refreshed_credentials(db, connection, credentials):
        logger.info("Stored refreshed Google token for account %s", account_id)
    return SyncEngine(db, client_factory(credentials), account_id)
