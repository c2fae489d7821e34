"""Merged calendar view: stored events plus delivery orders as read-only entries.

Delivery orders are never copied into ``calendar_events``; each read builds
a synthetic entry with id ``order_<order id>``. Those entries are not synced
and cannot be edited through the event endpoints.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from app.crud import crud_calendar_event, crud_order
from app.models import EventType, Order, OrderStatus, SyncStatus
from app.schemas.calendar import CalendarEventRead

from .calendar_errors import VirtualEventMutationRejected

logger = logging.getLogger(__name__)

VIRTUAL_PREFIX = "order_"
DELIVERY_DURATION = timedelta(minutes=30)
UPCOMING_LIMIT = 5

MODE_ALL = "all"
MODE_UPCOMING = "upcoming"


def is_virtual_id(event_id: str) -> bool:
    return str(event_id).startswith(VIRTUAL_PREFIX)


def ensure_mutable(event_id: str) -> None:
    if is_virtual_id(event_id):
        raise VirtualEventMutationRejected(field_errors={"id": "read_only"})


def month_window(now: datetime) -> Tuple[datetime, datetime]:
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def order_to_event(order: Order) -> CalendarEventRead:
    order_id = str(order.id)
    start = order.scheduled_date
    return CalendarEventRead(
        id=f"{VIRTUAL_PREFIX}{order_id}",
        title=f"Delivery - Order #{order_id[-6:]}",
        description=f"Customer: {order.customer_name or ''}".rstrip(),
        start_date=start,
        end_date=order.delivery_date or start + DELIVERY_DURATION,
        all_day=False,
        location=order.delivery_address,
        address=order.delivery_address,
        event_type=EventType.DELIVERY,
        google_event_id=None,
        google_calendar_id="primary",
        sync_status=SyncStatus.SYNCED,
        status="completed" if order.status == OrderStatus.DELIVERED else "scheduled",
        is_virtual=True,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def get_events(
    db: Session,
    mode: str = MODE_ALL,
    account_id: str = "default",
    now: Optional[datetime] = None,
) -> Tuple[List[CalendarEventRead], int, int]:
    """Return ``(events, stored_count, delivery_count)`` for the requested view.

    ``all`` covers the current calendar month; ``upcoming`` starts now and keeps
    the first :data:`UPCOMING_LIMIT` entries. Entries are sorted by start date;
    the sort is stable, so stored events come before deliveries at equal times.
    """
    now = now or datetime.utcnow()
    if mode == MODE_UPCOMING:
        start, end = now, None
    elif mode == MODE_ALL:
        start, end = month_window(now)
    else:
        raise ValueError(f"unknown mode: {mode}")

    stored = [
        CalendarEventRead.model_validate(row)
        for row in crud_calendar_event.list_events(db, account_id, start, end)
    ]
    deliveries = [order_to_event(order) for order in crud_order.list_scheduled_deliveries(db, start, end)]

    merged = sorted(stored + deliveries, key=lambda item: item.start_date)
    if mode == MODE_UPCOMING:
        merged = merged[:UPCOMING_LIMIT]
    logger.debug(
        "Calendar view %s: %d stored, %d deliveries, %d returned",
        mode,
        len(stored),
        len(deliveries),
        len(merged),
    )
    return merged, len(stored), len(deliveries)
