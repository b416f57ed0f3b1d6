"""
Tests for SQLite Event Store

Verifies core event sourcing properties:
- Append-only semantics
- Idempotency via command_id
- Optimistic locking via stream versioning
- Replay order

Fun fact: Event sourcing tests are like archaeology - we're verifying
that the historical record is complete, immutable, and replayable!
"""

from datetime import datetime, timezone

import pytest

from gear_share.kernel.errors import StreamVersionConflict
from gear_share.kernel.event_store import SQLiteEventStore
from gear_share.kernel.events import Event, create_event
from gear_share.kernel.ids import generate_id

T0 = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_event(
    stream_id: str,
    version: int,
    payload: dict | None = None,
    command_id: str | None = None,
    occurred_at: datetime = T0,
) -> Event:
    return create_event(
        event_id=generate_id(),
        stream_id=stream_id,
        stream_type="Stock",
        event_type="InventoryStocked",
        occurred_at=occurred_at,
        actor_id="test-actor",
        command_id=command_id or generate_id(),
        payload=payload or {},
        version=version,
    )


def test_append_and_load_single_event(event_store: SQLiteEventStore) -> None:
    event = make_event("stream-1", 1, {"quantity": 12})

    appended = event_store.append("stream-1", 0, [event])
    assert len(appended) == 1
    assert appended[0].event_id == event.event_id

    loaded = event_store.load_stream("stream-1")
    assert len(loaded) == 1
    assert loaded[0].event_id == event.event_id
    assert loaded[0].payload == {"quantity": 12}
    assert loaded[0].occurred_at == T0


def test_stream_versioning(event_store: SQLiteEventStore) -> None:
    event_store.append("stream-2", 0, [make_event("stream-2", 1)])
    assert event_store.get_stream_version("stream-2") == 1

    event_store.append("stream-2", 1, [make_event("stream-2", 2)])
    assert event_store.get_stream_version("stream-2") == 2

    versions = [e.version for e in event_store.load_stream("stream-2")]
    assert versions == [1, 2]


def test_unknown_stream_has_version_zero(event_store: SQLiteEventStore) -> None:
    assert event_store.get_stream_version("nobody") == 0
    assert event_store.load_stream("nobody") == []


def test_stale_expected_version_conflicts(event_store: SQLiteEventStore) -> None:
    """Two writers read version 1; only the first append wins"""
    event_store.append("stream-3", 0, [make_event("stream-3", 1)])
    event_store.append("stream-3", 1, [make_event("stream-3", 2)])

    with pytest.raises(StreamVersionConflict) as exc_info:
        event_store.append("stream-3", 1, [make_event("stream-3", 2)])

    assert exc_info.value.expected_version == 1
    assert exc_info.value.actual_version == 2
    assert event_store.get_stream_version("stream-3") == 2


def test_same_command_is_idempotent(event_store: SQLiteEventStore) -> None:
    """Re-appending a command's events returns the stored ones untouched"""
    command_id = generate_id()
    first = make_event("stream-4", 1, {"quantity": 5}, command_id=command_id)
    event_store.append("stream-4", 0, [first])

    retry = make_event("stream-4", 1, {"quantity": 5}, command_id=command_id)
    result = event_store.append("stream-4", 0, [retry])

    assert [e.event_id for e in result] == [first.event_id]
    assert event_store.count_events() == 1


def test_command_idempotency_is_per_stream(event_store: SQLiteEventStore) -> None:
    """One command may touch several streams"""
    command_id = generate_id()
    event_store.append("stream-a", 0, [make_event("stream-a", 1, command_id=command_id)])
    event_store.append("stream-b", 0, [make_event("stream-b", 1, command_id=command_id)])

    assert event_store.count_events() == 2


def test_append_empty_list_is_noop(event_store: SQLiteEventStore) -> None:
    assert event_store.append("stream-5", 0, []) == []
    assert event_store.count_events() == 0


def test_load_all_events_orders_by_time_then_insertion(event_store: SQLiteEventStore) -> None:
    later = datetime(2025, 1, 16, tzinfo=timezone.utc)
    event_store.append("late", 0, [make_event("late", 1, occurred_at=later)])
    event_store.append("same", 0, [make_event("same", 1)])
    event_store.append("same", 1, [make_event("same", 2)])

    replay = [(e.stream_id, e.version) for e in event_store.load_all_events()]
    assert replay == [("same", 1), ("same", 2), ("late", 1)]

    assert len(event_store.load_all_events(limit=2)) == 2


def test_events_survive_a_new_store_instance(temp_db) -> None:
    SQLiteEventStore(temp_db).append("stream-6", 0, [make_event("stream-6", 1)])

    reopened = SQLiteEventStore(temp_db)
    assert reopened.get_stream_version("stream-6") == 1
    assert reopened.count_events() == 1
