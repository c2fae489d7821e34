"""Thin wrapper over the Calendar v3 API that maps failures onto our errors."""

from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

import httplib2
from google.auth.exceptions import RefreshError as GoogleRefreshError, TransportError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .calendar_errors import ProviderReadError, ProviderWriteError
from .event_mapper import to_rfc3339

logger = logging.getLogger(__name__)

# Google rejects maxResults above this for events.list
MAX_PAGE_SIZE = 2500

# Failures short of an API response include httplib2 and socket errors.
_GOOGLE_FAILURES = (HttpError, GoogleRefreshError, TransportError, httplib2.HttpLib2Error, OSError)


class GoogleCalendarClient:
    def __init__(self, credentials: Credentials) -> None:
        self.credentials = credentials
        self.service = build("calendar", "v3", credentials=credentials, cache_discovery=False)

    def list_events(
        self,
        calendar_id: str = "primary",
        time_min: Optional[datetime] = None,
        time_max: Optional[datetime] = None,
        max_results: int = 250,
        private_property: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Return expanded (single) events ordered by start time."""
        params: Dict[str, Any] = {
            "calendarId": calendar_id,
            "timeMin": to_rfc3339(time_min or datetime.utcnow()),
            "maxResults": min(max_results, MAX_PAGE_SIZE),
            "singleEvents": True,
            "orderBy": "startTime",
        }
        if time_max is not None:
            params["timeMax"] = to_rfc3339(time_max)
        if private_property:
            params["privateExtendedProperty"] = private_property
        try:
            response = self.service.events().list(**params).execute()
        except _GOOGLE_FAILURES as exc:
            logger.error("Google Calendar API error listing events: %s", exc, exc_info=True)
            raise ProviderReadError(f"Failed to get Google Calendar events: {exc}") from exc
        return response.get("items", [])

    def find_by_local_id(self, calendar_id: str, local_event_id: str) -> Optional[Dict[str, Any]]:
        """Look up the remote copy of a local event by its private ``local_event_id`` tag."""
        params = {
            "calendarId": calendar_id,
            "privateExtendedProperty": f"local_event_id={local_event_id}",
            "maxResults": 1,
            "singleEvents": True,
            "showDeleted": False,
        }
        try:
            response = self.service.events().list(**params).execute()
        except _GOOGLE_FAILURES as exc:
            raise ProviderReadError(f"Failed to search Google Calendar: {exc}") from exc
        items = response.get("items", [])
        return items[0] if items else None

    def insert_event(self, calendar_id: str, body: Dict[str, Any]) -> str:
        try:
            created = self.service.events().insert(calendarId=calendar_id, body=body).execute()
        except _GOOGLE_FAILURES as exc:
            raise ProviderWriteError(f"Failed to create Google Calendar event: {exc}") from exc
        return created["id"]

    def update_event(self, calendar_id: str, event_id: str, body: Dict[str, Any]) -> None:
        try:
            self.service.events().update(calendarId=calendar_id, eventId=event_id, body=body).execute()
        except _GOOGLE_FAILURES as exc:
            raise ProviderWriteError(f"Failed to update Google Calendar event: {exc}") from exc

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        try:
            self.service.events().delete(calendarId=calendar_id, eventId=event_id).execute()
        except HttpError as exc:
            # Already gone on Google's side: nothing left to delete.
            if getattr(exc.resp, "status", None) in (404, 410):
                logger.info("Google event %s already deleted", event_id)
                return
            raise ProviderWriteError(f"Failed to delete Google Calendar event: {exc}") from exc
        except _GOOGLE_FAILURES as exc:
            raise ProviderWriteError(f"Failed to delete Google Calendar event: {exc}") from exc

    def list_calendars(self) -> List[Dict[str, Any]]:
        try:
            response = self.service.calendarList().list().execute()
        except _GOOGLE_FAILURES as exc:
            logger.error("Google Calendar API error listing calendars: %s", exc, exc_info=True)
            raise ProviderReadError(f"Failed to get calendars: {exc}") from exc
        return response.get("items", [])
