"""
Purpose: Entry point for inbound location updates.
What it does:
- parses/validates raw device input into a LocationUpdate
- upserts the driver or rider store
- for drivers, fires the two realtime fan-outs (nearby riders, ride subscribers)

The fan-outs go through NotificationFanout, so a slow or broken gateway can
never fail or delay the upsert.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from .models import LocationUpdate, Position
from .store import LocationStore

logger = logging.getLogger(__name__)


class LocationService:
    def __init__(self, driver_store: LocationStore, rider_store: LocationStore, notifier=None):
        self.driver_store = driver_store
        self.rider_store = rider_store
        self.notifier = notifier

    def update_driver_location(
        self,
        driver_id: str,
        latitude: Any,
        longitude: Any,
        heading: Any = None,
        speed: Any = None,
        accuracy: Any = None,
        reported_at: Optional[datetime] = None,
    ) -> Position:
        update = LocationUpdate.parse(latitude, longitude, heading, speed, accuracy, reported_at)
        position = self.driver_store.upsert(driver_id, update)
        logger.debug("driver %s at (%.6f, %.6f)", driver_id, position.latitude, position.longitude)

        if self.notifier is not None:
            self.notifier.notify_nearby_riders_of_driver_update(driver_id, position)
            self.notifier.notify_ride_subscribers_of_driver_location(driver_id, position)
        return position

    def update_rider_location(
        self,
        rider_id: str,
        latitude: Any,
        longitude: Any,
        heading: Any = None,
        speed: Any = None,
        accuracy: Any = None,
        reported_at: Optional[datetime] = None,
    ) -> Position:
        update = LocationUpdate.parse(latitude, longitude, heading, speed, accuracy, reported_at)
        return self.rider_store.upsert(rider_id, update)

    def driver_location(self, driver_id: str) -> Position:
        return self.driver_store.latest(driver_id)

    def rider_location(self, rider_id: str) -> Position:
        return self.rider_store.latest(rider_id)
