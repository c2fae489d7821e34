from .calendar import (
    CalendarEventBase,
    CalendarEventCreate,
    CalendarEventUpdate,
    CalendarEventRead,
    CalendarEventList,
    EventSources,
    SyncRequest,
    SyncOutcomeRead,
    SyncResponse,
    AuthUrlResponse,
    ConnectionSummary,
    CalendarListResponse,
)
