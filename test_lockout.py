#!/usr/bin/env python3
"""
Per-zone brute-force lockout: counting, locking, lazy expiry and reset.
"""

import threading

import pytest
from sqlmodel import Session, SQLModel, create_engine

from core.errors import InvalidInput, ZoneNotFound
from db.zone_store import SqlZoneStore
from models.zone import Zone
from services.geofence_access import AccessOutcome, LockState
from utils.datetime_helpers import ensure_utc


def fail(controller, zone_id, times):
    return [controller.attempt(zone_id, "9999") for _ in range(times)]


def test_wrong_pin_counts_up_by_one(controller, make_zone, store):
    zone = make_zone(pin="1234")

    decisions = fail(controller, zone.id, 3)

    assert [d.outcome for d in decisions] == [AccessOutcome.DENIED] * 3
    assert [d.failed_attempts for d in decisions] == [1, 2, 3]
    assert [d.attempts_remaining for d in decisions] == [4, 3, 2]
    assert store.load(zone.id).failed_attempts == 3
    assert store.load(zone.id).locked_until is None


def test_fifth_failure_locks_and_resets_counter(controller, make_zone, store, clock):
    zone = make_zone(pin="1234")

    decisions = fail(controller, zone.id, 5)

    assert decisions[-1].outcome == AccessOutcome.LOCKED
    assert decisions[-1].retry_after_seconds == 60

    stored = store.load(zone.id)
    assert stored.failed_attempts == 0
    assert (ensure_utc(stored.locked_until) - clock.now()).total_seconds() == 60
    assert controller.lock_state(stored) == LockState.LOCKED


def test_sixth_attempt_is_rejected_without_hashing(controller, make_zone, credential, clock):
    zone = make_zone(pin="1234")
    fail(controller, zone.id, 5)
    calls_before = credential.verify_calls

    clock.advance(10)
    decision = controller.attempt(zone.id, "1234")  # correct PIN, still rejected

    assert decision.outcome == AccessOutcome.LOCKED
    assert decision.retry_after_seconds == 50
    assert credential.verify_calls == calls_before


def test_retries_while_locked_do_not_touch_the_counter(controller, make_zone, store, clock):
    zone = make_zone(pin="1234")
    fail(controller, zone.id, 5)
    locked_until = store.load(zone.id).locked_until

    for _ in range(10):
        clock.advance(1)
        assert controller.attempt(zone.id, "0000").outcome == AccessOutcome.LOCKED

    stored = store.load(zone.id)
    assert stored.failed_attempts == 0
    assert stored.locked_until == locked_until


def test_lock_expires_lazily(controller, make_zone, store, clock):
    zone = make_zone(pin="1234")
    fail(controller, zone.id, 5)

    clock.advance(60)
    assert controller.lock_state(store.load(zone.id)) == LockState.UNLOCKED

    decision = controller.attempt(zone.id, "1234")
    assert decision.outcome == AccessOutcome.ALLOWED
    stored = store.load(zone.id)
    assert stored.locked_until is None
    assert stored.failed_attempts == 0


def test_wrong_pin_after_expiry_starts_a_fresh_count(controller, make_zone, clock):
    zone = make_zone(pin="1234")
    fail(controller, zone.id, 5)
    clock.advance(61)

    decision = controller.attempt(zone.id, "9999")
    assert decision.outcome == AccessOutcome.DENIED
    assert decision.failed_attempts == 1


def test_success_resets_failed_attempts(controller, make_zone, store):
    zone = make_zone(pin="1234")
    fail(controller, zone.id, 4)

    assert controller.attempt(zone.id, "1234").allowed
    assert store.load(zone.id).failed_attempts == 0

    # A full new budget is available again
    decisions = fail(controller, zone.id, 4)
    assert decisions[-1].outcome == AccessOutcome.DENIED


def test_success_clears_expired_lock_timestamp(controller, make_zone, store, clock):
    zone = make_zone(pin="1234", locked_until=clock.now())

    assert controller.attempt(zone.id, "1234").allowed
    assert store.load(zone.id).locked_until is None


def test_malformed_pin_is_rejected_before_any_state_change(controller, make_zone, store, credential):
    zone = make_zone(pin="1234")
    calls_before = credential.verify_calls

    with pytest.raises(InvalidInput):
        controller.attempt(zone.id, "12ab")

    assert credential.verify_calls == calls_before
    assert store.load(zone.id).failed_attempts == 0


def test_unknown_zone(controller):
    with pytest.raises(ZoneNotFound):
        controller.attempt("does-not-exist", "1234")


def test_zones_lock_independently(controller, make_zone):
    a = make_zone(latitude=0.0, longitude=0.0, pin="1111")
    b = make_zone(latitude=10.0, longitude=10.0, pin="2222")

    fail(controller, a.id, 5)

    assert controller.attempt(a.id, "1111").outcome == AccessOutcome.LOCKED
    assert controller.attempt(b.id, "2222").outcome == AccessOutcome.ALLOWED


def test_custom_threshold_and_window(store, credential, clock, make_zone):
    from services.geofence_access import GeofenceAccessController

    strict = GeofenceAccessController(
        store=store, credential=credential, clock=clock,
        lockout_threshold=2, lock_window_seconds=300,
    )
    zone = make_zone(pin="1234")

    assert strict.attempt(zone.id, "0000").outcome == AccessOutcome.DENIED
    locked = strict.attempt(zone.id, "0000")
    assert locked.outcome == AccessOutcome.LOCKED
    assert locked.retry_after_seconds == 300


def test_legacy_hash_zone_goes_through_the_same_lockout(controller, make_zone):
    import hashlib

    zone = make_zone(pin_hash=hashlib.sha256(b"5555").hexdigest())

    fail(controller, zone.id, 5)
    assert controller.attempt(zone.id, "5555").outcome == AccessOutcome.LOCKED


@pytest.fixture()
def file_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'zones.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


def test_interleaved_failures_on_sqlite_are_both_counted(file_engine, credential, clock):
    from services.geofence_access import GeofenceAccessController

    with Session(file_engine) as s:
        zone_id = SqlZoneStore(s).save(
            Zone(
                latitude=0.0,
                longitude=0.0,
                radius_meters=100.0,
                pin_hash=credential.hash("1234"),
                owner_id="device:owner-device-1",
            )
        ).id

    first_inside = threading.Event()
    release_first = threading.Event()
    errors = []
    outcomes = []

    # Holds the zone open mid read-modify-write
    def first_session():
        try:
            with Session(file_engine) as s:
                with SqlZoneStore(s).atomic(zone_id) as zone:
                    first_inside.set()
                    release_first.wait(5)
                    zone.failed_attempts += 1
        except Exception as e:
            errors.append(e)
            first_inside.set()

    def second_session():
        try:
            with Session(file_engine) as s:
                controller = GeofenceAccessController(
                    store=SqlZoneStore(s), credential=credential, clock=clock
                )
                outcomes.append(controller.attempt(zone_id, "0000"))
        except Exception as e:
            errors.append(e)

    t1 = threading.Thread(target=first_session)
    t1.start()
    assert first_inside.wait(5)

    t2 = threading.Thread(target=second_session)
    t2.start()
    t2.join(0.3)
    # Still waiting on the write lock held by the first session
    assert t2.is_alive()

    release_first.set()
    t1.join(5)
    t2.join(10)

    assert errors == []
    assert outcomes[0].failed_attempts == 2
    with Session(file_engine) as s:
        assert s.get(Zone, zone_id).failed_attempts == 2


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__, "-v"]))
