from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.calendar_event import EventCategory, EventType, SyncStatus


class CalendarEventBase(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    all_day: Optional[bool] = None
    location: Optional[str] = None
    address: Optional[str] = None
    event_type: Optional[EventType] = None
    event_category: Optional[EventCategory] = None
    expected_attendees: Optional[Annotated[int, Field(ge=0)]] = None
    products_to_bring: Optional[List[str]] = None
    special_requirements: Optional[str] = None
    estimated_revenue: Optional[Annotated[Decimal, Field(ge=0)]] = None
    google_calendar_id: Optional[str] = None
    assigned_to: Optional[str] = None


class CalendarEventCreate(CalendarEventBase):
    """Create payload.

    ``title``, ``start_date`` and ``event_type`` are required but checked by the
    router so a missing field answers 400 rather than pydantic's 422.
    """

    sync_status: Optional[Literal["pending", "not_synced"]] = None


class CalendarEventUpdate(CalendarEventBase):
    """Partial update; sync bookkeeping fields cannot be set from outside."""

    pass


class CalendarEventRead(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    all_day: bool = False
    location: Optional[str] = None
    address: Optional[str] = None
    event_type: EventType
    event_category: Optional[EventCategory] = None
    expected_attendees: Optional[int] = None
    products_to_bring: Optional[List[str]] = None
    special_requirements: Optional[str] = None
    estimated_revenue: Optional[Decimal] = None
    google_event_id: Optional[str] = None
    google_calendar_id: Optional[str] = "primary"
    sync_status: SyncStatus
    sync_error: Optional[str] = None
    last_sync_at: Optional[datetime] = None
    created_by: Optional[str] = None
    assigned_to: Optional[str] = None
    # Only set on delivery entries projected from orders.
    status: Optional[Literal["scheduled", "completed"]] = None
    is_virtual: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class EventSources(BaseModel):
    calendar: int
    deliveries: int


class CalendarEventList(BaseModel):
    events: List[CalendarEventRead]
    count: int
    sources: EventSources


class SyncRequest(BaseModel):
    calendar_id: Optional[str] = Field(default=None, alias="calendarId")

    model_config = ConfigDict(populate_by_name=True)


class SyncOutcomeRead(BaseModel):
    record_id: Optional[str] = Field(serialization_alias="recordId")
    google_event_id: Optional[str] = Field(default=None, serialization_alias="googleEventId")
    outcome: Literal["synced", "failed"]
    reason: Optional[str] = None


class SyncResponse(BaseModel):
    synced_count: int = Field(serialization_alias="syncedCount")
    failed_count: int = Field(serialization_alias="failedCount")
    results: List[SyncOutcomeRead]
    message: str


class AuthUrlResponse(BaseModel):
    auth_url: str = Field(serialization_alias="authUrl")
    message: str = "Redirect to this URL to authenticate with Google Calendar"


class ConnectionSummary(BaseModel):
    """Token details safe to show a browser; never includes the tokens themselves."""

    connected: bool
    account_id: Optional[str] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None
    expiry_date: Optional[datetime] = None
    has_refresh_token: bool = False


class CalendarListResponse(BaseModel):
    calendars: List[dict]
    count: int
