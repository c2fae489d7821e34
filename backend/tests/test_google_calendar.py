from datetime import datetime, timedelta
from unittest.mock import Mock

import httplib2
import pytest
from google.auth.exceptions import TransportError
from googleapiclient.errors import HttpError

from app.api import dependencies
from app.main import app
from app.models import CalendarEvent, EventType, ProviderConnection, SyncStatus
from app.services import calendar_sync, google_calendar
from app.services.calendar_errors import ProviderReadError, ProviderWriteError, RefreshError
from backend.tests.google_mocks import FakeProvider, make_dummy_credentials


def make_client(monkeypatch, service):
    calls = {}

    def dummy_build(api, version, credentials=None, cache_discovery=True):
        calls["args"] = (api, version, cache_discovery)
        return service

    monkeypatch.setattr(google_calendar, "build", dummy_build)
    client = google_calendar.GoogleCalendarClient(make_dummy_credentials())
    assert calls["args"] == ("calendar", "v3", False)
    return client


def http_error(status):
    return HttpError(resp=Mock(status=status), content=b"")


def test_list_events_requests_single_events_by_start(monkeypatch):
    service = Mock()
    service.events.return_value.list.return_value.execute.return_value = {"items": [{"id": "g1"}]}
    client = make_client(monkeypatch, service)

    items = client.list_events("primary", time_min=datetime(2025, 3, 1), max_results=10)

    assert items == [{"id": "g1"}]
    kwargs = service.events.return_value.list.call_args.kwargs
    assert kwargs["singleEvents"] is True
    assert kwargs["orderBy"] == "startTime"
    assert kwargs["timeMin"] == "2025-03-01T00:00:00Z"
    assert kwargs["maxResults"] == 10


def test_list_events_failure_maps_to_read_error(monkeypatch):
    service = Mock()
    service.events.return_value.list.return_value.execute.side_effect = http_error(500)
    client = make_client(monkeypatch, service)

    with pytest.raises(ProviderReadError):
        client.list_events("primary")


def test_find_by_local_id_filters_on_private_property(monkeypatch):
    service = Mock()
    service.events.return_value.list.return_value.execute.return_value = {"items": []}
    client = make_client(monkeypatch, service)

    assert client.find_by_local_id("primary", "evt-1") is None
    kwargs = service.events.return_value.list.call_args.kwargs
    assert kwargs["privateExtendedProperty"] == "local_event_id=evt-1"


def test_insert_returns_remote_id(monkeypatch):
    service = Mock()
    service.events.return_value.insert.return_value.execute.return_value = {"id": "g-new"}
    client = make_client(monkeypatch, service)

    assert client.insert_event("primary", {"summary": "x"}) == "g-new"


def test_write_failure_maps_to_write_error(monkeypatch):
    service = Mock()
    service.events.return_value.update.return_value.execute.side_effect = http_error(403)
    client = make_client(monkeypatch, service)

    with pytest.raises(ProviderWriteError):
        client.update_event("primary", "g1", {"summary": "x"})


@pytest.mark.parametrize("status", [404, 410])
def test_delete_of_missing_event_is_ignored(monkeypatch, status):
    service = Mock()
    service.events.return_value.delete.return_value.execute.side_effect = http_error(status)
    client = make_client(monkeypatch, service)

    client.delete_event("primary", "g1")


def test_delete_failure_maps_to_write_error(monkeypatch):
    service = Mock()
    service.events.return_value.delete.return_value.execute.side_effect = http_error(500)
    client = make_client(monkeypatch, service)

    with pytest.raises(ProviderWriteError):
        client.delete_event("primary", "g1")


def test_list_calendars(monkeypatch):
    service = Mock()
    service.calendarList.return_value.list.return_value.execute.return_value = {"items": [{"id": "primary"}]}
    client = make_client(monkeypatch, service)

    assert client.list_calendars() == [{"id": "primary"}]


TRANSPORT_FAILURES = [
    TimeoutError("timed out"),
    ConnectionResetError("reset by peer"),
    httplib2.ServerNotFoundError("Unable to find the server at www.googleapis.com"),
    TransportError("connection aborted"),
]


@pytest.mark.parametrize("failure", TRANSPORT_FAILURES, ids=lambda e: type(e).__name__)
def test_transport_failures_map_to_provider_errors(monkeypatch, failure):
    service = Mock()
    service.events.return_value.list.return_value.execute.side_effect = failure
    service.events.return_value.insert.return_value.execute.side_effect = failure
    service.events.return_value.delete.return_value.execute.side_effect = failure
    client = make_client(monkeypatch, service)

    with pytest.raises(ProviderReadError):
        client.list_events("primary")
    with pytest.raises(ProviderReadError):
        client.find_by_local_id("primary", "evt-1")
    with pytest.raises(ProviderWriteError):
        client.insert_event("primary", {"summary": "x"})
    with pytest.raises(ProviderWriteError):
        client.delete_event("primary", "g1")


def test_push_batch_survives_network_timeout(db, monkeypatch):
    service = Mock()
    service.events.return_value.list.return_value.execute.return_value = {"items": []}

    def insert(calendarId, body):
        request = Mock()
        if body["summary"] == "B":
            request.execute.side_effect = TimeoutError("timed out")
        else:
            request.execute.return_value = {"id": f"g-{body['summary']}"}
        return request

    service.events.return_value.insert.side_effect = insert
    client = make_client(monkeypatch, service)
    base = datetime(2025, 3, 10, 9, 0)
    events = []
    for i, title in enumerate("ABC"):
        event = CalendarEvent(
            title=title,
            start_date=base + timedelta(days=1),
            event_type=EventType.EVENT,
            created_at=base + timedelta(minutes=i),
        )
        db.add(event)
        events.append(event)
    db.commit()

    report = calendar_sync.SyncEngine(db, client, clock=lambda: base).push()

    assert report.synced_count == 2
    assert report.failed_count == 1
    assert [o.record_id for o in report.outcomes] == [e.id for e in events]
    db.expire_all()
    a, b, c = events
    assert (a.sync_status, a.google_event_id) == (SyncStatus.SYNCED, "g-A")
    assert b.sync_status == SyncStatus.ERROR
    assert "timed out" in b.sync_error
    assert (c.sync_status, c.google_event_id) == (SyncStatus.SYNCED, "g-C")


def test_delete_endpoint_survives_network_failure(client, api_session, monkeypatch):
    db = api_session()
    db.add(ProviderConnection(account_id="default", access_token="at", refresh_token="rt"))
    event = CalendarEvent(
        title="Gone",
        start_date=datetime(2025, 3, 14, 10, 0),
        event_type=EventType.EVENT,
        google_event_id="g-del",
    )
    db.add(event)
    db.commit()
    service = Mock()
    service.events.return_value.delete.return_value.execute.side_effect = ConnectionResetError("reset by peer")
    google = make_client(monkeypatch, service)
    monkeypatch.setattr(
        calendar_sync,
        "connect",
        lambda session, account_id, token_manager=None: calendar_sync.SyncEngine(session, google, account_id),
    )

    res = client.delete(f"/api/v1/calendar/events/{event.id}")

    assert res.status_code == 200
    assert db.query(CalendarEvent).count() == 0


# ─── Immediate push on create/update ─────────────────────────────────────────
@pytest.fixture
def auto_sync(api_session):
    app.dependency_overrides[dependencies.auto_sync_enabled] = lambda: True
    return api_session


def payload(**overrides):
    data = {"title": "Market", "start_date": "2025-03-14T10:00:00", "event_type": "event"}
    data.update(overrides)
    return data


def test_create_without_connection_stays_pending(client, auto_sync, monkeypatch):
    connect = Mock()
    monkeypatch.setattr(calendar_sync, "connect", connect)

    res = client.post("/api/v1/calendar/events", json=payload())

    assert res.status_code == 201
    assert res.json()["sync_status"] == "pending"
    connect.assert_not_called()


def test_create_pushes_immediately_when_connected(client, auto_sync, monkeypatch):
    db = auto_sync()
    db.add(ProviderConnection(account_id="default", access_token="at", refresh_token="rt"))
    db.commit()
    provider = FakeProvider()
    monkeypatch.setattr(
        calendar_sync,
        "connect",
        lambda session, account_id, token_manager=None: calendar_sync.SyncEngine(session, provider, account_id),
    )

    res = client.post("/api/v1/calendar/events", json=payload())

    assert res.status_code == 201
    body = res.json()
    assert body["sync_status"] == "synced"
    assert body["google_event_id"] == "g1"


def test_create_survives_push_failure(client, auto_sync, monkeypatch):
    db = auto_sync()
    db.add(ProviderConnection(account_id="default", access_token="at", refresh_token="rt"))
    db.commit()
    provider = FakeProvider(fail_titles=("Market",))
    monkeypatch.setattr(
        calendar_sync,
        "connect",
        lambda session, account_id, token_manager=None: calendar_sync.SyncEngine(session, provider, account_id),
    )

    res = client.post("/api/v1/calendar/events", json=payload())

    assert res.status_code == 201
    assert res.json()["sync_status"] == "error"
    assert res.json()["sync_error"] == "Google said no"


def test_create_survives_token_failure(client, auto_sync, monkeypatch):
    db = auto_sync()
    db.add(ProviderConnection(account_id="default", access_token="at", refresh_token="rt"))
    db.commit()
    monkeypatch.setattr(calendar_sync, "connect", Mock(side_effect=RefreshError()))

    res = client.post("/api/v1/calendar/events", json=payload())

    assert res.status_code == 201
    assert res.json()["sync_status"] == "pending"


def test_opted_out_event_is_not_pushed(client, auto_sync, monkeypatch):
    db = auto_sync()
    db.add(ProviderConnection(account_id="default", access_token="at", refresh_token="rt"))
    db.commit()
    connect = Mock()
    monkeypatch.setattr(calendar_sync, "connect", connect)

    res = client.post("/api/v1/calendar/events", json=payload(sync_status="not_synced"))

    assert res.json()["sync_status"] == "not_synced"
    connect.assert_not_called()
    stored = db.query(CalendarEvent).one()
    assert stored.sync_status == SyncStatus.NOT_SYNCED
