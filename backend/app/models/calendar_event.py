import enum
import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String, Text

from .base import BaseModel
from .types import CaseInsensitiveEnum, StringList


class EventType(str, enum.Enum):
    FAIR = "fair"
    EVENT = "event"
    APPOINTMENT = "appointment"
    DELIVERY = "delivery"
    MEETING = "meeting"

    @classmethod
    def _missing_(cls, value: object):
        """Accept upper-case input, ``generic-event`` and the labels older clients wrote."""
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        legacy = {
            "feira": cls.FAIR,
            "evento": cls.EVENT,
            "compromisso": cls.APPOINTMENT,
            "entrega": cls.DELIVERY,
            "reuniao": cls.MEETING,
            "generic-event": cls.EVENT,
            "generic_event": cls.EVENT,
        }
        if key in legacy:
            return legacy[key]
        for member in cls:
            if member.value == key:
                return member
        return None


class EventCategory(str, enum.Enum):
    FOOD_FAIR = "food_fair"
    CORPORATE_EVENT = "corporate_event"
    PRIVATE_EVENT = "private_event"
    DELIVERY = "delivery"
    MEETING = "meeting"
    OTHER = "other"


class SyncStatus(str, enum.Enum):
    """Whether a local event matches its Google Calendar counterpart.

    ``NOT_SYNCED`` is only ever written by users (form default / opt-out);
    the sync engine moves records between the other three states.
    """

    NOT_SYNCED = "not_synced"
    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"


# Author recorded on rows created by a pull from Google.
SYNC_AGENT = "google-sync"


def _new_id() -> str:
    return str(uuid.uuid4())


class CalendarEvent(BaseModel):
    __tablename__ = "calendar_events"
    __table_args__ = (
        CheckConstraint("end_date IS NULL OR end_date >= start_date", name="ck_calendar_events_span"),
        CheckConstraint("expected_attendees IS NULL OR expected_attendees >= 0", name="ck_calendar_events_attendees"),
        CheckConstraint("estimated_revenue IS NULL OR estimated_revenue >= 0", name="ck_calendar_events_revenue"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    account_id = Column(String(64), nullable=False, default="default", index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=True)
    all_day = Column(Boolean, nullable=False, default=False)
    location = Column(String(255), nullable=True)
    address = Column(String(255), nullable=True)

    event_type = Column(CaseInsensitiveEnum(EventType, name="calendareventtype"), nullable=False)
    event_category = Column(
        CaseInsensitiveEnum(EventCategory, name="calendareventcategory"),
        nullable=True,
        default=EventCategory.OTHER,
    )
    expected_attendees = Column(Integer, nullable=True)
    products_to_bring = Column(StringList, nullable=True)
    special_requirements = Column(Text, nullable=True)
    estimated_revenue = Column(Numeric(12, 2), nullable=True)

    # Google linkage
    google_event_id = Column(String(255), nullable=True, index=True)
    google_calendar_id = Column(String(255), nullable=False, default="primary")
    sync_status = Column(
        CaseInsensitiveEnum(SyncStatus, name="calendarsyncstatus"),
        nullable=False,
        default=SyncStatus.PENDING,
        index=True,
    )
    sync_error = Column(Text, nullable=True)
    last_sync_at = Column(DateTime, nullable=True)

    created_by = Column(String(255), nullable=True)
    assigned_to = Column(String(255), nullable=True)

    # Bumped on every UPDATE; a write based on a stale read raises StaleDataError
    # instead of silently clobbering a concurrent pull/push.
    sync_version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": sync_version}

    def mark_synced(self, when) -> None:
        self.sync_status = SyncStatus.SYNCED
        self.sync_error = None
        self.last_sync_at = when

    def mark_error(self, message: str, when) -> None:
        self.sync_status = SyncStatus.ERROR
        self.sync_error = message or "Unknown error"
        self.last_sync_at = when
