import threading

import pytest

from core.errors import NotFoundError, ValidationError
from locations.models import LocationUpdate
from locations.retention import PositionRetentionSweep, RetentionPolicy
from locations.store import InMemoryLocationStore


@pytest.fixture
def store(clock):
    return InMemoryLocationStore("test", clock)


def test_upsert_replaces_previous_position(store):
    store.upsert("d1", LocationUpdate.parse(51.0, -0.5))
    store.upsert("d1", LocationUpdate.parse(51.1, -0.6, heading=90, speed_kmh=20))

    position = store.latest("d1")
    assert len(store) == 1
    assert position.coordinates == (51.1, -0.6)
    assert position.heading == 90
    assert position.speed_kmh == 20


def test_observed_at_is_server_time(store, clock):
    position = store.upsert("d1", LocationUpdate.parse(51.0, -0.5))
    assert position.observed_at == clock.now


def test_future_device_timestamp_is_not_trusted(store, clock):
    future = clock.now.replace(year=clock.now.year + 1)
    position = store.upsert("d1", LocationUpdate.parse(51.0, -0.5, reported_at=future))
    assert position.observed_at == clock.now


def test_old_device_timestamp_ages_the_position(store, clock):
    from datetime import timedelta

    old = clock.now - timedelta(minutes=10)
    store.upsert("d1", LocationUpdate.parse(51.0, -0.5, reported_at=old))

    # stored, but invisible to a 5-minute freshness window
    assert store.find("d1") is not None
    assert store.recent(300) == []


def test_recent_filters_by_age(store, clock):
    store.upsert("old", LocationUpdate.parse(51.0, -0.5))
    clock.advance(minutes=6)
    store.upsert("new", LocationUpdate.parse(51.0, -0.5))

    assert [p.subject_id for p in store.recent(300)] == ["new"]


def test_latest_unknown_subject_raises(store):
    with pytest.raises(NotFoundError):
        store.latest("ghost")
    assert store.find("ghost") is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"latitude": 91, "longitude": 0},
        {"latitude": 0, "longitude": -181},
        {"latitude": "nan", "longitude": 0},
        {"latitude": 0, "longitude": 0, "heading": 361},
        {"latitude": 0, "longitude": 0, "speed_kmh": -1},
        {"latitude": None, "longitude": 0},
    ],
)
def test_invalid_updates_are_rejected(kwargs):
    with pytest.raises(ValidationError):
        LocationUpdate.parse(**kwargs)


def test_heading_360_folds_to_zero(store):
    position = store.upsert("d1", LocationUpdate.parse(51.0, -0.5, heading=360))
    assert position.heading == 0


def test_concurrent_upserts_keep_one_position_per_subject(store):
    """
    Many threads hammering the same subjects never produce duplicates or
    torn records.
    """
    def writer(offset):
        for i in range(200):
            store.upsert(f"d{i % 5}", LocationUpdate.parse(51.0 + offset / 1000, -0.5))

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(store) == 5
    for position in store.all():
        assert 51.0 <= position.latitude < 51.01


def test_retention_sweep_purges_only_old_rider_positions(store, clock):
    store.upsert("stale", LocationUpdate.parse(51.0, -0.5))
    clock.advance(hours=23)
    store.upsert("fresh", LocationUpdate.parse(51.0, -0.5))
    clock.advance(hours=2)

    sweep = PositionRetentionSweep(store, RetentionPolicy(), clock)
    assert sweep.run_cycle() == 1
    assert store.find("stale") is None
    assert store.find("fresh") is not None


def test_location_service_notifies_for_drivers_only(engine, recorder):
    engine.locations.update_driver_location("d1", 51.2, -0.57)
    engine.locations.update_rider_location("r1", 51.2, -0.57)

    names = [name for name, _ in recorder.calls]
    assert names == ["nearby_riders", "ride_subscribers"]
    assert engine.locations.rider_location("r1").subject_id == "r1"


def test_upsert_without_subject_is_a_validation_error(store):
    with pytest.raises(ValidationError):
        store.upsert("", LocationUpdate.parse(51.0, -0.5))
