"""
Purpose: Nearest-candidate search (the "who is close and allowed" layer).
What it does:
Scans the recent driver positions, drops ineligible drivers with cheap
boolean checks, measures haversine distance to the origin, and returns the
in-radius drivers sorted by distance (closest first, at most 50).

Pipeline, in this order:
1. recent positions only (staleness window)
2. eligibility gates (online / approved / active) and vehicle class
3. operating region (advisory or enforced, see MatchingPolicy)
4. distance <= radius
5. ETA from reported speed, or the fallback speed
6. stable sort by distance, truncate

This is a pure read over a store snapshot: no writes, safe to call
concurrently and repeatedly.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.clock import Clock, utc_now
from core.errors import ValidationError
from drivers.directory import DriverDirectory
from drivers.eligibility import rejection_reason
from drivers.models import Driver, VehicleClass
from geo.distance import haversine_km
from geo.region import OperatingRegion, default_operating_region
from locations.models import Position
from locations.store import LocationStore
from .policy import MatchingPolicy, default_matching_policy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriverCandidate:
    """
    One ranked matching result.
    """
    driver_id: str
    driver: Driver
    distance_km: float  # rounded to 1 decimal
    distance_m: int
    eta_minutes: int
    latitude: float
    longitude: float
    heading: float
    last_observed_at: datetime
    estimated_fare: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        info = self.driver.display_info()
        return {
            "id": self.driver_id,
            **info,
            "currentLocation": {"latitude": self.latitude, "longitude": self.longitude},
            "heading": self.heading,
            "distance": self.distance_m,
            "distanceKm": self.distance_km,
            "eta": self.eta_minutes,
            "lastSeen": self.last_observed_at.isoformat(),
            "estimatedFare": self.estimated_fare,
        }


def eta_minutes(distance_km: float, speed_kmh: float, fallback_speed_kmh: float) -> int:
    effective_speed = speed_kmh if speed_kmh > 0 else fallback_speed_kmh
    if distance_km <= 0:
        return 0
    return round(distance_km / effective_speed * 60)


class GeoMatcher:
    def __init__(
        self,
        driver_locations: LocationStore,
        directory: DriverDirectory,
        estimator=None,
        policy: Optional[MatchingPolicy] = None,
        region: Optional[OperatingRegion] = None,
        clock: Clock = utc_now,
    ):
        self.driver_locations = driver_locations
        self.directory = directory
        self.estimator = estimator
        self.policy = policy or default_matching_policy()
        self.region = region or default_operating_region()
        self.clock = clock

    def _validate_origin(self, origin_lat: float, origin_lng: float, radius_km: float) -> None:
        for name, value, bound in (("latitude", origin_lat, 90.0), ("longitude", origin_lng, 180.0)):
            if not isinstance(value, (int, float)) or not math.isfinite(value) or abs(value) > bound:
                raise ValidationError(f"Invalid {name}", field=name)
        if not isinstance(radius_km, (int, float)) or not math.isfinite(radius_km):
            raise ValidationError("Invalid radius", field="radius")
        if radius_km <= 0 or radius_km > self.policy.max_radius_km:
            raise ValidationError(
                f"Invalid radius (must be within 0-{self.policy.max_radius_km:g} km)", field="radius"
            )

    def _scan(
        self,
        origin_lat: float,
        origin_lng: float,
        radius_km: float,
        vehicle_class: Optional[VehicleClass],
        exclude: Iterable[str],
        now: Optional[datetime],
    ) -> List[Tuple[float, DriverCandidate]]:
        now = now or self.clock()
        excluded = set(exclude)
        counters: Counter = Counter()
        found: List[Tuple[float, DriverCandidate]] = []

        positions: List[Position] = self.driver_locations.recent(self.policy.staleness_window_seconds, now=now)

        for position in positions:
            driver = self.directory.find(position.subject_id)

            # cheap gates first; distance is only computed for survivors
            reason = rejection_reason(driver, vehicle_class)
            if reason is not None:
                counters[reason] += 1
                continue

            if driver.id in excluded:
                counters["excluded"] += 1
                continue

            if not self.region.contains_point(position.latitude, position.longitude):
                if self.policy.enforce_operating_region:
                    counters["outside_region"] += 1
                    continue
                logger.debug("Driver %s outside %s region (advisory only)", driver.id, self.region.name)

            distance = haversine_km(origin_lat, origin_lng, position.latitude, position.longitude)
            if distance > radius_km:
                counters["too_far"] += 1
                continue

            fare = None
            if self.estimator is not None:
                fare = self.estimator.estimate(distance, driver.vehicle_class)

            found.append((
                distance,
                DriverCandidate(
                    driver_id=driver.id,
                    driver=driver,
                    distance_km=round(distance, 1),
                    distance_m=round(distance * 1000),
                    eta_minutes=eta_minutes(distance, position.speed_kmh, self.policy.fallback_speed_kmh),
                    latitude=position.latitude,
                    longitude=position.longitude,
                    heading=position.heading,
                    last_observed_at=position.observed_at,
                    estimated_fare=fare,
                ),
            ))

        logger.debug(
            "Matching scan: %d recent, %d in radius, filtered %s",
            len(positions), len(found), dict(counters),
        )

        # list.sort is stable: equal distances keep discovery order
        found.sort(key=lambda item: item[0])
        return found

    def nearby(
        self,
        origin_lat: float,
        origin_lng: float,
        radius_km: Optional[float] = None,
        vehicle_class: Optional[VehicleClass] = None,
        *,
        exclude: Iterable[str] = (),
        now: Optional[datetime] = None,
    ) -> List[DriverCandidate]:
        """
        Ranked candidate drivers around (origin_lat, origin_lng).
        """
        radius_km = self.policy.default_radius_km if radius_km is None else radius_km
        self._validate_origin(origin_lat, origin_lng, radius_km)
        found = self._scan(origin_lat, origin_lng, radius_km, vehicle_class, exclude, now)
        return [candidate for _, candidate in found[: self.policy.max_results]]

    def count_available(
        self,
        origin_lat: float,
        origin_lng: float,
        vehicle_class: Optional[VehicleClass] = None,
        radius_km: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> int:
        radius_km = self.policy.dispatch_radius_km if radius_km is None else radius_km
        self._validate_origin(origin_lat, origin_lng, radius_km)
        return len(self._scan(origin_lat, origin_lng, radius_km, vehicle_class, (), now))

    def estimated_pickup_minutes(
        self,
        origin_lat: float,
        origin_lng: float,
        vehicle_class: Optional[VehicleClass] = None,
        radius_km: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Mean ETA of the few closest drivers, or the policy default when none.
        """
        radius_km = self.policy.dispatch_radius_km if radius_km is None else radius_km
        candidates = self.nearby(origin_lat, origin_lng, radius_km, vehicle_class, now=now)
        etas = sorted(candidate.eta_minutes for candidate in candidates)[: self.policy.pickup_eta_sample_size]
        if not etas:
            return self.policy.default_pickup_minutes
        return round(sum(etas) / len(etas))
