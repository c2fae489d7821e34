from .calendar_event import CalendarEvent, EventType, EventCategory, SyncStatus, SYNC_AGENT
from .calendar_account import ProviderConnection, CalendarProvider
from .order import Order, OrderType, OrderStatus

__all__ = [
    "CalendarEvent",
    "EventType",
    "EventCategory",
    "SyncStatus",
    "SYNC_AGENT",
    "ProviderConnection",
    "CalendarProvider",
    "Order",
    "OrderType",
    "OrderStatus",
]
