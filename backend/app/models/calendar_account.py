import enum
from sqlalchemy import Column, Integer, String, DateTime, Text

from .base import BaseModel
from .types import CaseInsensitiveEnum


class CalendarProvider(str, enum.Enum):
    GOOGLE = "google"


class ProviderConnection(BaseModel):
    """OAuth token set for one account's Google Calendar.

    Keyed by ``account_id`` so several tenants can connect their own
    calendars; the single-tenant deployment simply uses ``"default"``.
    Refresh updates ``access_token``/``expiry_date`` in place; revoking deletes
    the row.
    """

    __tablename__ = "calendar_provider_connections"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(String(64), nullable=False, unique=True, index=True)
    provider = Column(
        CaseInsensitiveEnum(CalendarProvider, name="calendarprovider"),
        nullable=False,
        default=CalendarProvider.GOOGLE,
    )
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    expiry_date = Column(DateTime, nullable=True)
    scope = Column(Text, nullable=True)
    token_type = Column(String(32), nullable=True)
