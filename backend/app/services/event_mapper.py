"""Translate between local calendar events and Google Calendar event bodies.

Google has no columns for our domain fields, so they travel in the event's
``extendedProperties.private`` bag, which only holds strings. The
:data:`EXTENSION_CODECS` table is the single place that knows how each field
is packed and unpacked; both directions and the tests go through it.

Values left empty locally come back as the table default after a round trip
(``expected_attendees=None`` returns as ``0``, an empty product list as
``[]``). That asymmetry is accepted.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from app.core.config import settings
from app.models.calendar_event import EventCategory, EventType

from .calendar_errors import MappingError


class ExtensionCodec(NamedTuple):
    key: str
    encode: Callable[[Any], str]
    decode: Callable[[str], Any]
    # String used when encoding ``None`` and decoded when the key is absent.
    # ``None`` means "no default": absent keys decode to ``None``.
    default: Optional[str]


def _identity(value: Any) -> str:
    return str(getattr(value, "value", value))


def _encode_products(value: List[str]) -> str:
    return ",".join(str(item) for item in value)


def _decode_products(raw: str) -> List[str]:
    return [item for item in raw.split(",") if item] if raw else []


def _encode_revenue(value: Any) -> str:
    return str(Decimal(str(value)))


EXTENSION_CODECS = (
    ExtensionCodec("event_type", _identity, EventType, "event"),
    ExtensionCodec("event_category", _identity, EventCategory, "other"),
    ExtensionCodec("expected_attendees", str, int, "0"),
    ExtensionCodec("products_to_bring", _encode_products, _decode_products, ""),
    ExtensionCodec("special_requirements", str, str, ""),
    ExtensionCodec("estimated_revenue", _encode_revenue, Decimal, "0"),
    ExtensionCodec("local_event_id", str, str, None),
)

# Local attribute each codec reads from; local_event_id is the record's own id.
_SOURCE_ATTR = {"local_event_id": "id"}

EVENT_COLORS = {
    EventType.FAIR: "5",  # yellow
    EventType.EVENT: "6",  # orange
    EventType.APPOINTMENT: "7",  # cyan
    EventType.DELIVERY: "8",  # gray
    EventType.MEETING: "9",  # blue
}
DEFAULT_COLOR = "1"

REMINDERS = {
    "useDefault": False,
    "overrides": [
        {"method": "email", "minutes": 60},
        {"method": "popup", "minutes": 30},
    ],
}


def to_rfc3339(value: datetime) -> str:
    """Format a datetime for Google; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_rfc3339(value: str) -> datetime:
    """Parse a Google ``dateTime``/``date`` string into a naive UTC datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _as_date(value: datetime | date) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    return value.isoformat()


def encode_extension(local: Any) -> Dict[str, str]:
    props: Dict[str, str] = {}
    for codec in EXTENSION_CODECS:
        value = getattr(local, _SOURCE_ATTR.get(codec.key, codec.key), None)
        if value is None or (isinstance(value, (list, str)) and not value):
            if codec.default is None:
                props[codec.key] = ""
            else:
                props[codec.key] = codec.default
            continue
        props[codec.key] = codec.encode(value)
    return props


def decode_extension(props: Optional[Dict[str, str]]) -> Dict[str, Any]:
    props = props or {}
    fields: Dict[str, Any] = {}
    for codec in EXTENSION_CODECS:
        raw = props.get(codec.key)
        if raw is None or (raw == "" and codec.key != "products_to_bring"):
            raw = codec.default
        if raw is None:
            fields[codec.key] = None
            continue
        try:
            fields[codec.key] = codec.decode(raw)
        except (ValueError, InvalidOperation) as exc:
            raise MappingError(
                f"Invalid value for {codec.key}: {raw!r}",
                {codec.key: "invalid"},
            ) from exc
    return fields


def to_provider_event(local: Any) -> Dict[str, Any]:
    """Build a Google Calendar event body from a local event (ORM row or schema)."""
    body: Dict[str, Any] = {
        "summary": local.title,
        "description": local.description,
        "location": local.location or getattr(local, "address", None),
        "start": {},
        "end": {},
    }

    if local.all_day:
        body["start"]["date"] = _as_date(local.start_date)
        body["end"]["date"] = _as_date(local.end_date) if local.end_date else body["start"]["date"]
    else:
        body["start"]["dateTime"] = to_rfc3339(local.start_date)
        body["end"]["dateTime"] = to_rfc3339(local.end_date or local.start_date)
        body["start"]["timeZone"] = settings.CALENDAR_TIMEZONE
        body["end"]["timeZone"] = settings.CALENDAR_TIMEZONE

    body["reminders"] = {
        "useDefault": REMINDERS["useDefault"],
        "overrides": [dict(item) for item in REMINDERS["overrides"]],
    }
    body["colorId"] = EVENT_COLORS.get(_coerce_type(local.event_type), DEFAULT_COLOR)
    body["extendedProperties"] = {"private": encode_extension(local)}
    return body


def _coerce_type(value: Any) -> Optional[EventType]:
    try:
        return EventType(getattr(value, "value", value))
    except ValueError:
        return None


def _read_when(when: Optional[Dict[str, str]]) -> tuple[Optional[datetime], bool]:
    if not when:
        return None, False
    if when.get("dateTime"):
        return parse_rfc3339(when["dateTime"]), False
    if when.get("date"):
        return parse_rfc3339(when["date"]), True
    return None, False


def to_local_event(provider_event: Dict[str, Any]) -> Dict[str, Any]:
    """Return local event field values for a Google Calendar event body.

    ``local_event_id`` is included so callers can re-link a remote event to the
    record that created it.
    """
    summary = provider_event.get("summary")
    if not summary:
        raise MappingError("Event has no summary", {"summary": "required"})
    try:
        start, all_day = _read_when(provider_event.get("start"))
        end, _ = _read_when(provider_event.get("end"))
    except ValueError as exc:
        raise MappingError("Invalid event start/end", {"start": "invalid"}) from exc
    if start is None:
        raise MappingError("Event has no start", {"start": "required"})

    fields: Dict[str, Any] = {
        "title": summary,
        "description": provider_event.get("description"),
        "location": provider_event.get("location"),
        "google_event_id": provider_event.get("id"),
        "start_date": start,
        "end_date": end,
        "all_day": all_day,
    }
    private = (provider_event.get("extendedProperties") or {}).get("private")
    fields.update(decode_extension(private))
    return fields
