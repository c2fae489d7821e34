from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .. import models
from ..schemas.calendar import CalendarEventCreate, CalendarEventUpdate
from ..services.calendar_errors import ValidationError

# Fields a pull from Google may overwrite on an existing record.
MUTABLE_FIELDS = (
    "title",
    "description",
    "location",
    "start_date",
    "end_date",
    "all_day",
    "event_type",
    "event_category",
    "expected_attendees",
    "products_to_bring",
    "special_requirements",
    "estimated_revenue",
)

# Editable columns that may be omitted from an update but never set to null.
NON_NULLABLE_FIELDS = ("start_date", "event_type", "all_day", "google_calendar_id")


def get_event(db: Session, event_id: str, account_id: Optional[str] = None) -> Optional[models.CalendarEvent]:
    query = db.query(models.CalendarEvent).filter(models.CalendarEvent.id == event_id)
    if account_id is not None:
        query = query.filter(models.CalendarEvent.account_id == account_id)
    return query.first()


def get_by_google_event_id(db: Session, account_id: str, google_event_id: str) -> Optional[models.CalendarEvent]:
    return (
        db.query(models.CalendarEvent)
        .filter(
            models.CalendarEvent.account_id == account_id,
            models.CalendarEvent.google_event_id == google_event_id,
        )
        .first()
    )


def list_events(
    db: Session,
    account_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[models.CalendarEvent]:
    """Events whose start falls in ``[start, end)``, earliest first."""
    query = db.query(models.CalendarEvent).filter(models.CalendarEvent.account_id == account_id)
    if start is not None:
        query = query.filter(models.CalendarEvent.start_date >= start)
    if end is not None:
        query = query.filter(models.CalendarEvent.start_date < end)
    return query.order_by(models.CalendarEvent.start_date.asc(), models.CalendarEvent.id.asc()).all()


def list_needing_push(db: Session, account_id: str, limit: int) -> List[models.CalendarEvent]:
    return (
        db.query(models.CalendarEvent)
        .filter(
            models.CalendarEvent.account_id == account_id,
            models.CalendarEvent.sync_status.in_([models.SyncStatus.PENDING, models.SyncStatus.ERROR]),
        )
        .order_by(models.CalendarEvent.created_at.asc(), models.CalendarEvent.id.asc())
        .limit(limit)
        .all()
    )


def _check_span(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start is not None and end is not None and end < start:
        raise ValidationError("end_date must not be before start_date", {"end_date": "before_start"})


def create_event(
    db: Session,
    event_in: CalendarEventCreate,
    account_id: str,
    user_id: Optional[str],
) -> models.CalendarEvent:
    missing = {
        name: "required"
        for name in ("title", "start_date", "event_type")
        if not getattr(event_in, name)
    }
    if missing:
        raise ValidationError(field_errors=missing)
    _check_span(event_in.start_date, event_in.end_date)

    data = event_in.model_dump(exclude_unset=True, exclude_none=True)
    data["sync_status"] = models.SyncStatus(data.get("sync_status") or models.SyncStatus.PENDING)
    event = models.CalendarEvent(
        **data,
        account_id=account_id,
        created_by=user_id,
    )
    if event.assigned_to is None:
        event.assigned_to = user_id
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def update_event(db: Session, event: models.CalendarEvent, event_in: CalendarEventUpdate) -> models.CalendarEvent:
    """Apply a user edit; any edit marks the record for re-sync."""
    data = event_in.model_dump(exclude_unset=True)
    if "title" in data and not data["title"]:
        raise ValidationError(field_errors={"title": "required"})
    for required in NON_NULLABLE_FIELDS:
        if required in data and data[required] is None:
            raise ValidationError(f"{required} cannot be null", {required: "required"})
    _check_span(data.get("start_date", event.start_date), data.get("end_date", event.end_date))

    for field, value in data.items():
        setattr(event, field, value)
    event.sync_status = models.SyncStatus.PENDING
    db.commit()
    db.refresh(event)
    return event


def apply_remote_fields(event: models.CalendarEvent, fields: Dict[str, Any]) -> None:
    for name in MUTABLE_FIELDS:
        if name in fields:
            setattr(event, name, fields[name])


def delete_event(db: Session, event: models.CalendarEvent) -> None:
    db.delete(event)
    db.commit()
