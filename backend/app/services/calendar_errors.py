"""Error taxonomy for Google Calendar auth, sync and the calendar endpoints.

Every error carries the HTTP status the API answers with, so routers can let
them propagate and ``app.main`` renders them in one place.
"""

from typing import Dict, Optional

from fastapi import status


class CalendarError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Calendar error"

    def __init__(self, message: Optional[str] = None, field_errors: Optional[Dict[str, str]] = None):
        self.message = message or self.message
        self.field_errors = dict(field_errors or {})
        super().__init__(self.message)


# ─── OAuth / token lifecycle ─────────────────────────────────────────────────
class AuthUrlError(CalendarError):
    message = "Failed to generate authentication URL"


class AuthExchangeError(CalendarError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Failed to exchange authorization code for tokens"


class TokenExpiredNoRefresh(CalendarError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Access token expired and no refresh token available"


class RefreshError(CalendarError):
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "Failed to refresh access token"


class RevokeError(CalendarError):
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "Failed to revoke token"


class TokenVerifyError(CalendarError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Failed to verify token"


class NotConnected(CalendarError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Google Calendar not authenticated"


# ─── Provider I/O and mapping ────────────────────────────────────────────────
class ProviderReadError(CalendarError):
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "Failed to read from Google Calendar"


class ProviderWriteError(CalendarError):
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "Failed to write to Google Calendar"


class MappingError(CalendarError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    message = "Malformed calendar event data"


class PersistenceError(CalendarError):
    message = "Failed to persist calendar event"


# ─── Local event endpoints ───────────────────────────────────────────────────
class ValidationError(CalendarError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Title, start_date, and event_type are required"


class EventNotFound(CalendarError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Event not found"


class VirtualEventMutationRejected(CalendarError):
    status_code = status.HTTP_409_CONFLICT
    message = "Delivery entries are read-only; edit the order instead"
