from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
from sqlalchemy.orm import Session

from app.models import SYNC_AGENT, CalendarEvent, EventType, ProviderConnection, SyncStatus
from app.services import calendar_sync, event_mapper
from app.services.calendar_auth import TokenManager, TokenSet
from app.services.calendar_errors import NotConnected, ProviderReadError, TokenExpiredNoRefresh
from backend.tests.google_mocks import FakeProvider, make_dummy_credentials

NOW = datetime(2025, 3, 10, 12, 0)


def add_event(db, title, status=SyncStatus.PENDING, offset_minutes=0, **extra):
    event = CalendarEvent(
        title=title,
        start_date=NOW + timedelta(days=1, minutes=offset_minutes),
        event_type=EventType.EVENT,
        sync_status=status,
        created_at=NOW + timedelta(minutes=offset_minutes),
        **extra,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def make_engine(db, provider):
    return calendar_sync.SyncEngine(db, provider, clock=lambda: NOW)


def remote_event(remote_id, summary="Fair", **private):
    return {
        "id": remote_id,
        "summary": summary,
        "start": {"dateTime": "2025-03-12T13:00:00Z"},
        "end": {"dateTime": "2025-03-12T15:00:00Z"},
        "extendedProperties": {"private": {"event_type": "fair", **private}},
    }


def test_push_partial_failure_is_contained(db):
    first = add_event(db, "A", offset_minutes=0)
    broken = add_event(db, "B", offset_minutes=1)
    third = add_event(db, "C", offset_minutes=2)
    provider = FakeProvider(fail_titles=("B",))

    report = make_engine(db, provider).push()

    assert report.synced_count == 2
    assert report.failed_count == 1
    assert [o.record_id for o in report.outcomes] == [first.id, broken.id, third.id]
    failed = report.outcomes[1]
    assert failed.outcome == calendar_sync.FAILED
    assert "Google said no" in failed.reason

    db.expire_all()
    assert first.sync_status == SyncStatus.SYNCED and first.google_event_id
    assert third.sync_status == SyncStatus.SYNCED and third.google_event_id
    assert broken.sync_status == SyncStatus.ERROR
    assert broken.sync_error == "Google said no"
    assert broken.google_event_id is None
    assert broken.last_sync_at == NOW


def test_push_skips_user_opt_out_and_synced_records(db):
    add_event(db, "mine", status=SyncStatus.NOT_SYNCED)
    add_event(db, "done", status=SyncStatus.SYNCED, google_event_id="g-old")
    retry = add_event(db, "retry", status=SyncStatus.ERROR, sync_error="boom")
    provider = FakeProvider()

    report = make_engine(db, provider).push()

    assert [o.record_id for o in report.outcomes] == [retry.id]
    db.refresh(retry)
    assert retry.sync_status == SyncStatus.SYNCED
    assert retry.sync_error is None


def test_push_updates_record_already_linked(db):
    event = add_event(db, "linked", google_event_id="g-77")
    provider = FakeProvider()

    outcome = make_engine(db, provider).push_event(event)

    assert outcome.ok
    assert provider.inserted == {}
    assert provider.updated[0][0] == "g-77"


def test_push_relinks_instead_of_inserting_twice(db):
    event = add_event(db, "once")
    provider = FakeProvider()
    # Insert landed on Google but our commit never did.
    provider.inserted["g-lost"] = event_mapper.to_provider_event(event)

    outcome = make_engine(db, provider).push_event(event)

    assert outcome.ok
    assert list(provider.inserted) == ["g-lost"]
    assert provider.updated[0][0] == "g-lost"
    db.refresh(event)
    assert event.google_event_id == "g-lost"


def test_push_records_provider_read_error(db):
    event = add_event(db, "lookup fails")
    provider = FakeProvider()
    provider.find_by_local_id = Mock(side_effect=ProviderReadError("timeout"))

    outcome = make_engine(db, provider).push_event(event)

    assert not outcome.ok
    db.refresh(event)
    assert event.sync_status == SyncStatus.ERROR
    assert event.sync_error == "timeout"


def test_push_handles_at_most_one_batch(db):
    total = calendar_sync.PUSH_BATCH_LIMIT + 5
    for i in range(total):
        add_event(db, f"e{i:02d}", offset_minutes=i)
    provider = FakeProvider()

    report = make_engine(db, provider).push()

    assert len(report.outcomes) == calendar_sync.PUSH_BATCH_LIMIT
    assert report.synced_count == calendar_sync.PUSH_BATCH_LIMIT
    assert len(provider.inserted) == calendar_sync.PUSH_BATCH_LIMIT
    left = db.query(CalendarEvent).filter(CalendarEvent.sync_status == SyncStatus.PENDING).all()
    assert sorted(e.title for e in left) == [f"e{i:02d}" for i in range(calendar_sync.PUSH_BATCH_LIMIT, total)]


class RacingProvider(FakeProvider):
    """Edits ``victim_id`` from a second session while its insert is in flight."""

    def __init__(self, bind, victim_id):
        super().__init__()
        self.bind = bind
        self.victim_id = victim_id

    def insert_event(self, calendar_id, body):
        remote_id = super().insert_event(calendar_id, body)
        if body["extendedProperties"]["private"]["local_event_id"] == self.victim_id:
            other = Session(bind=self.bind)
            try:
                other.get(CalendarEvent, self.victim_id).title = "edited elsewhere"
                other.commit()
            finally:
                other.close()
        return remote_id


def test_push_contains_concurrent_edit_as_persistence_failure(db):
    first = add_event(db, "A", offset_minutes=0)
    raced = add_event(db, "B", offset_minutes=1)
    third = add_event(db, "C", offset_minutes=2)
    provider = RacingProvider(db.get_bind(), raced.id)

    report = make_engine(db, provider).push()

    assert [o.outcome for o in report.outcomes] == [calendar_sync.SYNCED, calendar_sync.FAILED, calendar_sync.SYNCED]
    assert report.outcomes[1].record_id == raced.id
    assert "Failed to store sync result" in report.outcomes[1].reason
    db.expire_all()
    assert first.sync_status == SyncStatus.SYNCED
    assert third.sync_status == SyncStatus.SYNCED
    # The other writer's edit wins and the record stays queued.
    assert raced.title == "edited elsewhere"
    assert raced.sync_status == SyncStatus.PENDING
    assert raced.google_event_id is None

    # The next run adopts the copy Google already has instead of inserting again.
    adopted = make_engine(db, provider).push_event(raced)
    assert adopted.ok
    assert len(provider.inserted) == 3
    assert raced.google_event_id == provider.updated[-1][0] == "g2"


def test_pull_creates_records_and_is_idempotent(db):
    provider = FakeProvider(remote=[remote_event("g1"), remote_event("g2", summary="Meeting")])
    engine = make_engine(db, provider)

    first = engine.pull()
    second = engine.pull()

    assert first.synced_count == 2
    assert second.synced_count == 2
    rows = db.query(CalendarEvent).order_by(CalendarEvent.google_event_id).all()
    assert [r.google_event_id for r in rows] == ["g1", "g2"]
    assert all(r.sync_status == SyncStatus.SYNCED for r in rows)
    assert all(r.created_by == SYNC_AGENT for r in rows)
    assert rows[0].start_date == datetime(2025, 3, 12, 13, 0)
    assert rows[0].event_type == EventType.FAIR


def test_pull_overwrites_local_fields_from_remote(db):
    local = add_event(db, "old title", status=SyncStatus.SYNCED, google_event_id="g1")
    provider = FakeProvider(remote=[remote_event("g1", summary="new title")])

    make_engine(db, provider).pull()

    db.refresh(local)
    assert local.title == "new title"
    assert db.query(CalendarEvent).count() == 1


def test_pull_relinks_by_local_event_id(db):
    local = add_event(db, "pushed")
    provider = FakeProvider(remote=[remote_event("g9", summary="pushed", local_event_id=local.id)])

    report = make_engine(db, provider).pull()

    assert report.outcomes[0].record_id == local.id
    assert db.query(CalendarEvent).count() == 1
    db.refresh(local)
    assert local.google_event_id == "g9"
    assert local.sync_status == SyncStatus.SYNCED


def test_pull_skips_malformed_events(db):
    bad = remote_event("g-bad", expected_attendees="many")
    provider = FakeProvider(remote=[bad, remote_event("g-ok")])

    report = make_engine(db, provider).pull()

    assert report.synced_count == 1
    assert report.failed_count == 1
    assert report.outcomes[0].google_event_id == "g-bad"
    assert [r.google_event_id for r in db.query(CalendarEvent).all()] == ["g-ok"]


def test_pull_listing_failure_aborts(db):
    provider = FakeProvider()
    provider.list_events = Mock(side_effect=ProviderReadError("503"))

    with pytest.raises(ProviderReadError):
        make_engine(db, provider).pull()


def test_connect_requires_stored_connection(db):
    with pytest.raises(NotConnected):
        calendar_sync.connect(db, "nobody", TokenManager(client_id="id", client_secret="sec"))


def test_connect_with_expired_token_and_no_refresh_makes_no_provider_call(db):
    db.add(
        ProviderConnection(
            account_id="default",
            access_token="stale",
            refresh_token=None,
            expiry_date=datetime.utcnow() - timedelta(hours=1),
        )
    )
    db.commit()
    factory = Mock()

    with pytest.raises(TokenExpiredNoRefresh):
        calendar_sync.connect(db, "default", TokenManager(client_id="id", client_secret="sec"), factory)

    factory.assert_not_called()


def test_connect_persists_refreshed_token(db):
    connection = ProviderConnection(
        account_id="default",
        access_token="stale",
        refresh_token="rt",
        expiry_date=datetime.utcnow() - timedelta(hours=1),
    )
    db.add(connection)
    db.commit()
    manager = TokenManager(client_id="id", client_secret="sec")
    fresh = make_dummy_credentials()
    manager.refresh_access_token = Mock(
        return_value=TokenSet(fresh.token, "rt", fresh.expiry)
    )
    factory = Mock(return_value=FakeProvider())

    engine = calendar_sync.connect(db, "default", manager, factory)

    manager.refresh_access_token.assert_called_once_with("rt")
    assert isinstance(engine.provider, FakeProvider)
    db.refresh(connection)
    assert connection.access_token == "at"
    assert connection.refresh_token == "rt"
