"""
Tests for kernel support pieces

Bus, keyed locks, input parsing, retries, log redaction, policy, ids,
time and metrics helpers.
"""

import contextvars
import sqlite3
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import REGISTRY

from gear_share.directory.models import ProviderRef, ProviderType
from gear_share.kernel.bus import InProcessBus
from gear_share.kernel.errors import (
    InsufficientInventory,
    StreamVersionConflict,
    ValidationError,
)
from gear_share.kernel.events import create_event
from gear_share.kernel.ids import format_reference, generate_id
from gear_share.kernel.locks import KeyedLocks
from gear_share.kernel.logging import (
    LogOperation,
    get_correlation_id,
    get_logger,
    redact_context,
    set_correlation_id,
)
from gear_share.kernel.metrics import track_command_duration
from gear_share.kernel.policy import ExchangePolicy
from gear_share.kernel.retry import retry_on_sqlite_lock, retry_on_stream_conflict
from gear_share.kernel.time import TestTimeProvider, as_utc, parse_timestamp
from gear_share.kernel.validation import parse_input


def _event(event_type: str = "EquipmentRequestApproved"):
    return create_event(
        event_id=generate_id(),
        stream_id="req-1",
        stream_type="EquipmentRequest",
        event_type=event_type,
        occurred_at=datetime(2025, 1, 15, tzinfo=timezone.utc),
        command_id=generate_id(),
        version=2,
    )


# =============================================================================
# Bus
# =============================================================================


class RecordingNotifier:
    def __init__(self):
        self.seen = []

    def notify(self, event):
        self.seen.append(event.event_type)


class BrokenNotifier:
    def notify(self, event):
        raise RuntimeError("mail server down")


def test_bus_delivers_to_typed_and_wildcard_subscribers():
    bus = InProcessBus()
    approvals = RecordingNotifier()
    everything = RecordingNotifier()
    bus.subscribe(approvals, ["EquipmentRequestApproved"])
    bus.subscribe(everything)

    bus.publish_events([_event("EquipmentRequestApproved"), _event("EquipmentRequestRejected")])

    assert approvals.seen == ["EquipmentRequestApproved"]
    assert everything.seen == ["EquipmentRequestApproved", "EquipmentRequestRejected"]


def test_bus_failing_subscriber_does_not_stop_others():
    bus = InProcessBus()
    recorder = RecordingNotifier()
    bus.subscribe(BrokenNotifier())
    bus.subscribe(recorder)

    bus.publish_event(_event())

    assert recorder.seen == ["EquipmentRequestApproved"]


def test_bus_clear_removes_handlers():
    bus = InProcessBus()
    recorder = RecordingNotifier()
    bus.subscribe(recorder, ["EquipmentRequestApproved"])
    assert bus.get_event_types() == ["EquipmentRequestApproved"]

    bus.clear()
    bus.publish_event(_event())

    assert recorder.seen == []


# =============================================================================
# Keyed locks
# =============================================================================


def test_keyed_locks_serialise_same_key():
    locks = KeyedLocks()
    counter = {"value": 0}

    def bump():
        for _ in range(200):
            with locks.hold("stock:school:s1:ball"):
                current = counter["value"]
                time.sleep(0)
                counter["value"] = current + 1

    threads = [threading.Thread(target=bump) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert counter["value"] == 800
    assert len(locks) == 0


def test_keyed_locks_are_reentrant():
    locks = KeyedLocks()
    with locks.hold("req-1"):
        with locks.hold("req-1"):
            assert len(locks) == 1
        assert len(locks) == 1
    assert len(locks) == 0


def test_keyed_locks_are_dropped_once_released():
    locks = KeyedLocks()
    for n in range(100):
        with locks.hold(f"req-{n}"):
            pass
    assert len(locks) == 0

    with pytest.raises(RuntimeError):
        with locks.hold("req-1"):
            raise RuntimeError("boom")
    assert len(locks) == 0


# =============================================================================
# Input parsing
# =============================================================================


def test_parse_input_from_fields_and_mapping():
    from_fields = parse_input(ProviderRef, provider_type="school", provider_id="s1")
    from_mapping = parse_input(ProviderRef, {"provider_type": "school", "provider_id": "s1"})

    assert from_fields == from_mapping
    assert from_fields.provider_type == ProviderType.SCHOOL
    assert from_fields.key == "school:s1"


def test_parse_input_passes_instances_through():
    ref = ProviderRef.governing_body("gb-1")
    assert parse_input(ProviderRef, ref) is ref


def test_parse_input_raises_exchange_validation_error():
    with pytest.raises(ValidationError) as exc_info:
        parse_input(ProviderRef, provider_type="donor", provider_id="x")

    assert exc_info.value.field == "provider_type"
    assert "ProviderRef" in str(exc_info.value)


# =============================================================================
# Retry
# =============================================================================


def test_stream_conflict_retry_succeeds_after_catch_up():
    attempts = []

    for attempt in retry_on_stream_conflict():
        with attempt:
            attempts.append(attempt.retry_state.attempt_number)
            if len(attempts) < 3:
                raise StreamVersionConflict("stock:school:s1:ball", 1, 2)

    assert attempts == [1, 2, 3]


def test_stream_conflict_retry_gives_up():
    with pytest.raises(StreamVersionConflict):
        for attempt in retry_on_stream_conflict(max_attempts=2):
            with attempt:
                raise StreamVersionConflict("stream", 0, 1)


def test_stream_conflict_retry_does_not_retry_domain_errors():
    attempts = []
    with pytest.raises(InsufficientInventory):
        for attempt in retry_on_stream_conflict():
            with attempt:
                attempts.append(1)
                raise InsufficientInventory("school:s1", "ball", 10, 4)
    assert len(attempts) == 1


def test_sqlite_lock_retry_recovers():
    calls = []

    @retry_on_sqlite_lock(max_attempts=3, min_wait_ms=1, max_wait_ms=2)
    def flaky():
        calls.append(1)
        if len(calls) < 2:
            raise sqlite3.OperationalError("database is locked")
        return "ok"

    assert flaky() == "ok"
    assert len(calls) == 2


# =============================================================================
# Logging
# =============================================================================


def test_redact_context_hides_personal_fields():
    redacted = redact_context(
        {"actor_id": "principal-1", "donor_id": "d-9", "amount": "5000", "request_id": "r-1"}
    )
    assert redacted["actor_id"] == "***REDACTED***"
    assert redacted["donor_id"] == "***REDACTED***"
    assert redacted["amount"] == "***REDACTED***"
    assert redacted["request_id"] == "r-1"


def test_log_operation_propagates_errors():
    logger = get_logger(__name__)
    with pytest.raises(ValidationError):
        with LogOperation(logger, "respond", request_id="r-1"):
            raise ValidationError("Rejection requires a reason")


# =============================================================================
# Policy, ids, time
# =============================================================================


def test_default_policy_distances():
    policy = ExchangePolicy()
    assert policy.same_district_distance == 1.0
    assert policy.same_province_distance == 50.0
    assert policy.default_distance == 1000.0
    assert policy.earth_radius_km == 6371.0
    assert policy.donation_reserves_inventory is True
    assert policy.default_listing_statuses == ["pending"]


def test_policy_rejects_out_of_order_distances():
    with pytest.raises(ValueError):
        ExchangePolicy(same_district_distance=100.0, same_province_distance=50.0)


def test_generate_id_is_unique_and_uuid_shaped():
    ids = {generate_id() for _ in range(100)}
    assert len(ids) == 100
    sample = next(iter(ids))
    assert len(sample) == 36
    assert sample[14] == "7"


def test_format_reference_pads_to_six_digits():
    assert format_reference("REQ", 42) == "REQ000042"
    assert format_reference("DON-E", 1) == "DON-E000001"
    with pytest.raises(ValueError):
        format_reference("REQ", 0)


def test_test_time_provider_advances():
    start = datetime(2025, 1, 1, tzinfo=timezone.utc)
    clock = TestTimeProvider(start)
    clock.advance_days(7)
    clock.advance_seconds(30)
    assert clock.now() == start + timedelta(days=7, seconds=30)


def test_test_time_provider_can_jump():
    clock = TestTimeProvider()
    assert clock.now().year == 1970
    clock.set_time(datetime(2025, 3, 1, tzinfo=timezone.utc))
    assert clock.now() == datetime(2025, 3, 1, tzinfo=timezone.utc)


def test_correlation_id_is_generated_once_then_kept():
    def run():
        first = get_correlation_id()
        assert get_correlation_id() == first
        set_correlation_id("cli-run-1")
        return get_correlation_id()

    # Fresh context so the id set here does not leak into other tests
    assert contextvars.copy_context().run(run) == "cli-run-1"


def test_timestamps_are_normalised_to_utc():
    naive = datetime(2025, 1, 8)
    assert as_utc(naive).tzinfo == timezone.utc
    assert parse_timestamp("2025-01-08T00:00:00Z") == datetime(2025, 1, 8, tzinfo=timezone.utc)
    assert parse_timestamp(None) is None


# =============================================================================
# Metrics
# =============================================================================


def test_track_command_duration_counts_outcomes():
    @track_command_duration("kernel_test_command")
    def command(fail: bool):
        if fail:
            raise ValidationError("bad input")
        return "done"

    def processed(status: str) -> float:
        return REGISTRY.get_sample_value(
            "gearshare_commands_processed_total",
            {"command_type": "kernel_test_command", "status": status},
        ) or 0.0

    before_ok, before_fail = processed("success"), processed("failure")

    assert command(False) == "done"
    with pytest.raises(ValidationError):
        command(True)

    assert processed("success") == before_ok + 1
    assert processed("failure") == before_fail + 1
