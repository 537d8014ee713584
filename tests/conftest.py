import os
from datetime import datetime, timedelta, timezone
from typing import List, Tuple

import django
import pytest

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "rideflow_backend.settings")
django.setup()

from dispatch.engine import build_engine  # noqa: E402
from dispatch.policy import MatchingPolicy  # noqa: E402
from drivers.models import Driver  # noqa: E402
from notifications.dispatcher import NotificationDispatcher  # noqa: E402
from rides.policy import LifecyclePolicy  # noqa: E402

# Guildford town centre, inside the Surrey operating region
GUILDFORD = (51.2362, -0.5704)

# A Wednesday, outside rush hour
START = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class RecordingDispatcher(NotificationDispatcher):
    """Keeps every call as (method, args) so tests can assert on them."""

    def __init__(self):
        self.calls: List[Tuple[str, tuple]] = []

    def notify_nearby_riders_of_driver_update(self, driver_id, position):
        self.calls.append(("nearby_riders", (driver_id, position)))

    def notify_ride_subscribers_of_driver_location(self, driver_id, position):
        self.calls.append(("ride_subscribers", (driver_id, position)))

    def notify_ride_state_changed(self, ride_id, new_status, payload):
        self.calls.append(("ride_state", (ride_id, new_status, payload)))

    def notify_user(self, user_id, event_type, payload):
        self.calls.append(("user", (user_id, event_type, payload)))

    def user_events(self, user_id):
        return [args[1] for name, args in self.calls if name == "user" and args[0] == user_id]

    def ride_statuses(self, ride_id):
        return [args[1] for name, args in self.calls if name == "ride_state" and args[0] == ride_id]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder():
    return RecordingDispatcher()


@pytest.fixture
def pickup_location():
    return GUILDFORD


@pytest.fixture
def engine(clock, recorder):
    # explicit policies so a developer's .env cannot change test outcomes
    built = build_engine(
        notification_dispatcher=recorder,
        synchronous_notifications=True,
        matching_policy=MatchingPolicy(),
        lifecycle_policy=LifecyclePolicy(),
        clock=clock,
    )
    yield built
    built.shutdown()


@pytest.fixture
def add_driver(engine):
    """
    Publishes a driver and reports its position `north_km` north of Guildford.
    """
    def _add(driver_id, north_km=0.5, vehicle_class="sedan", speed=0.0, **flags):
        engine.directory.publish(Driver.new(driver_id, vehicle_class, name=driver_id.title(), **flags))
        lat = GUILDFORD[0] + north_km / 111.2
        engine.locations.update_driver_location(driver_id, lat, GUILDFORD[1], 0, speed)
        return driver_id

    return _add
