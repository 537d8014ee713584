"""
Purpose: Storage for Ride records with optimistic concurrency.
What it does:
- add(ride) / get(ride_id)
- compare_and_swap(ride_id, expected_version, updated): commits `updated`
  only if the stored ride still has `expected_version`; otherwise raises
  ConflictError. Read-check-write happens under the ride's own lock, so it is
  one atomic step even though callers read and validate outside of it.
- query helpers for the dispatcher, the scheduler and the ride views

Rides on different ids never share a lock.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Set

from core.errors import ConflictError, NotFoundError
from .models import ACTIVE_DRIVER_STATUSES, Ride, RideStatus


class RideRepository(ABC):

    @abstractmethod
    def add(self, ride: Ride) -> Ride: ...

    @abstractmethod
    def get(self, ride_id: str) -> Ride: ...

    @abstractmethod
    def compare_and_swap(self, ride_id: str, expected_version: int, updated: Ride) -> Ride: ...

    @abstractmethod
    def all(self) -> List[Ride]: ...

    def find(self, ride_id: str) -> Optional[Ride]:
        try:
            return self.get(ride_id)
        except NotFoundError:
            return None

    def by_status(self, *statuses: RideStatus) -> List[Ride]:
        wanted = set(statuses)
        return [ride for ride in self.all() if ride.status in wanted]

    def for_rider(self, rider_id: str) -> List[Ride]:
        """Newest first."""
        rides = [ride for ride in self.all() if ride.rider_id == rider_id]
        return sorted(rides, key=lambda ride: ride.created_at, reverse=True)

    def for_driver(self, driver_id: str) -> List[Ride]:
        rides = [ride for ride in self.all() if ride.driver_id == driver_id]
        return sorted(rides, key=lambda ride: ride.created_at, reverse=True)

    def active_for_rider(self, rider_id: str) -> Optional[Ride]:
        for ride in self.for_rider(rider_id):
            if not ride.is_terminal and ride.status != RideStatus.SCHEDULED:
                return ride
        return None

    def active_for_driver(self, driver_id: str, exclude_ride_id: Optional[str] = None) -> Optional[Ride]:
        for ride in self.all():
            if ride.id == exclude_ride_id:
                continue
            if ride.driver_id == driver_id and ride.status in ACTIVE_DRIVER_STATUSES:
                return ride
        return None

    def busy_driver_ids(self) -> Set[str]:
        return {ride.driver_id for ride in self.all() if ride.has_active_driver}

    def due_scheduled(self, now: datetime) -> List[Ride]:
        return [
            ride for ride in self.by_status(RideStatus.SCHEDULED)
            if ride.scheduled_for is not None and ride.scheduled_for <= now
        ]


class InMemoryRideRepository(RideRepository):
    def __init__(self):
        self._rides: Dict[str, Ride] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._rides)

    def add(self, ride: Ride) -> Ride:
        with self._guard:
            if ride.id in self._rides:
                raise ConflictError(f"Ride {ride.id} already exists", ride_id=ride.id)
            self._locks[ride.id] = threading.Lock()
            self._rides[ride.id] = ride
        return ride

    def get(self, ride_id: str) -> Ride:
        ride = self._rides.get(ride_id)
        if ride is None:
            raise NotFoundError(f"Ride {ride_id} not found", ride_id=ride_id)
        return ride

    def compare_and_swap(self, ride_id: str, expected_version: int, updated: Ride) -> Ride:
        lock = self._locks.get(ride_id)
        if lock is None:
            raise NotFoundError(f"Ride {ride_id} not found", ride_id=ride_id)

        with lock:
            current = self._rides[ride_id]
            if current.version != expected_version:
                raise ConflictError(
                    f"Ride {ride_id} was modified concurrently",
                    ride_id=ride_id,
                    current_status=current.status.value,
                )
            if updated.version != expected_version + 1:
                raise ValueError("updated ride must carry version = expected_version + 1")
            self._rides[ride_id] = updated
            return updated

    def all(self) -> List[Ride]:
        return list(self._rides.values())
