"""
Purpose: Orchestrator / decision pipeline (the "glue").
What it does:
Takes a booked ride, runs the system search (PENDING -> SEARCHING), asks the
GeoMatcher for candidates around the pickup and either
- broadcasts the offer to every candidate (default), or
- assigns the closest candidate directly (MatchingPolicy.auto_assign).

When a driver accepts, the offer is revoked from everyone else who still has
it on screen. Rejections re-queue the ride without the rejecting driver; the
lifecycle cancels it once nobody is left.

Also serves the read paths: fare estimates (with surge and driver
availability), the ride status view, the active ride and ride history.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from core.clock import Clock, utc_now
from core.errors import ForbiddenError, ValidationError
from drivers.models import VehicleClass
from fares.estimator import FareEstimator
from fares.quotes import FareQuoteBook, StoredEstimate
from fares.surge import surge_multiplier
from geo.place import Place
from locations.store import LocationStore
from rides.lifecycle import RideLifecycle
from rides.models import Actor, ActorRole, Ride, RideStatus
from .matcher import DriverCandidate, GeoMatcher
from .policy import MatchingPolicy, default_matching_policy

logger = logging.getLogger(__name__)


class RideDispatcher:
    """
    Coordinates the hand-over of a Ride to a Driver.
    """

    def __init__(
        self,
        lifecycle: RideLifecycle,
        matcher: GeoMatcher,
        estimator: FareEstimator,
        quote_book: FareQuoteBook,
        driver_locations: LocationStore,
        notifier=None,
        policy: Optional[MatchingPolicy] = None,
        clock: Clock = utc_now,
    ):
        self.lifecycle = lifecycle
        self.matcher = matcher
        self.estimator = estimator
        self.quote_book = quote_book
        self.driver_locations = driver_locations
        self.notifier = notifier
        self.policy = policy or default_matching_policy()
        self.clock = clock
        # ride id -> drivers currently holding an offer card
        self._offers: Dict[str, Set[str]] = {}
        self._offers_lock = threading.Lock()

    # ------------------------------------------------------------------
    # estimates
    # ------------------------------------------------------------------

    def estimate_fare(
        self,
        rider_id: str,
        pickup: Place,
        dropoff: Place,
        vehicle_class: Any,
        duration_minutes: Optional[int] = None,
    ) -> StoredEstimate:
        vehicle_class = VehicleClass.parse(vehicle_class)
        now = self.clock()

        available = self.matcher.count_available(pickup.lat, pickup.lng, vehicle_class, now=now)
        pickup_minutes = self.matcher.estimated_pickup_minutes(pickup.lat, pickup.lng, vehicle_class, now=now)
        surge = surge_multiplier(now, available)

        quote = self.estimator.quote_trip(pickup, dropoff, vehicle_class, duration_minutes, surge)
        estimate = self.quote_book.issue(
            rider_id,
            pickup,
            dropoff,
            vehicle_class,
            quote,
            available_drivers=available,
            estimated_pickup_minutes=pickup_minutes,
        )
        logger.debug(
            "Estimate %s for %s: %.2f %s (surge x%.1f, %d drivers)",
            estimate.estimate_id, rider_id, quote.total, quote.currency, surge, available,
        )
        return estimate

    # ------------------------------------------------------------------
    # booking + search
    # ------------------------------------------------------------------

    def book_ride(
        self,
        rider_id: str,
        pickup: Optional[Place] = None,
        dropoff: Optional[Place] = None,
        vehicle_class: Any = None,
        *,
        estimate_id: Optional[str] = None,
        **options: Any,
    ) -> Ride:
        """
        Books with either a valid estimate id or the full trip details, then
        starts the search right away unless the ride is scheduled.
        """
        quote = None
        if estimate_id:
            estimate = self.quote_book.redeem(estimate_id, rider_id)
            if estimate is None:
                raise ValidationError("Invalid or expired fare estimate", field="estimateId")
            pickup, dropoff = estimate.pickup, estimate.dropoff
            vehicle_class, quote = estimate.vehicle_class, estimate.quote
        elif pickup is None or dropoff is None or vehicle_class is None:
            raise ValidationError("pickup, dropoff and vehicleType are required without an estimateId")

        ride = self.lifecycle.book(rider_id, pickup, dropoff, vehicle_class, quote=quote, **options)
        if ride.status == RideStatus.PENDING:
            ride = self.dispatch_ride(ride.id)
        return ride

    def candidates(self, ride: Ride) -> List[DriverCandidate]:
        excluded = set(ride.rejected_driver_ids) | self.lifecycle.repository.busy_driver_ids()
        return self.matcher.nearby(
            ride.pickup.lat,
            ride.pickup.lng,
            self.policy.dispatch_radius_km,
            ride.vehicle_class,
            exclude=excluded,
        )

    def candidate_ids(self, ride: Ride) -> List[str]:
        return [candidate.driver_id for candidate in self.candidates(ride)]

    def dispatch_ride(self, ride_id: str) -> Ride:
        ride = self.lifecycle.get(ride_id)
        if ride.status == RideStatus.PENDING:
            ride = self.lifecycle.begin_search(ride_id)

        candidates = self.candidates(ride)
        if not candidates:
            logger.info("Ride %s: no drivers in %.0f km", ride.id, self.policy.dispatch_radius_km)
            self._tell(ride.rider_id, "no_drivers_available", {"rideId": ride.id})
            return ride

        if self.policy.auto_assign:
            return self._assign_closest(ride, candidates)

        self._broadcast(ride, candidates)
        return ride

    def _assign_closest(self, ride: Ride, candidates: List[DriverCandidate]) -> Ride:
        closest = candidates[0]
        ride = self.lifecycle.assign(ride.id, closest.driver_id, closest.eta_minutes)
        self._broadcast(ride, [closest])
        return ride

    def _broadcast(self, ride: Ride, candidates: List[DriverCandidate]) -> None:
        with self._offers_lock:
            holders = self._offers.setdefault(ride.id, set())
            fresh = [candidate for candidate in candidates if candidate.driver_id not in holders]
            holders.update(candidate.driver_id for candidate in fresh)

        if not fresh:
            return
        logger.info("Broadcasting ride %s to %d driver(s)", ride.id, len(fresh))
        for candidate in fresh:
            self._tell(candidate.driver_id, "ride_request", self._offer_payload(ride, candidate))

    @staticmethod
    def _offer_payload(ride: Ride, candidate: DriverCandidate) -> Dict[str, Any]:
        return {
            "rideId": ride.id,
            "pickup": ride.pickup.to_dict(),
            "dropoff": ride.dropoff.to_dict(),
            "vehicleType": ride.vehicle_class.value,
            "estimatedFare": ride.estimated_fare,
            "estimatedDistanceKm": ride.estimated_distance_km,
            "distanceToPickup": candidate.distance_m,
            "eta": candidate.eta_minutes,
            "paymentMethod": ride.payment_method.value,
        }

    def _revoke(self, ride_id: str, keep: Optional[str] = None) -> None:
        with self._offers_lock:
            holders = self._offers.pop(ride_id, set())
        for driver_id in holders:
            if driver_id != keep:
                self._tell(driver_id, "ride_request_revoked", {"rideId": ride_id})

    def _tell(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        if self.notifier is not None:
            self.notifier.notify_user(user_id, event_type, payload)

    def offered_to(self, ride_id: str) -> Set[str]:
        with self._offers_lock:
            return set(self._offers.get(ride_id, ()))

    # ------------------------------------------------------------------
    # driver responses
    # ------------------------------------------------------------------

    def accept(self, ride_id: str, driver_id: str) -> Ride:
        """
        Race resolver: the lifecycle CAS lets exactly one driver through;
        everyone else who got the offer has it revoked.
        """
        ride = self.lifecycle.accept(ride_id, driver_id)
        self._revoke(ride_id, keep=driver_id)
        return ride

    def reject(self, ride_id: str, driver_id: str, reason: Optional[str] = None) -> Ride:
        offered = driver_id in self.offered_to(ride_id)
        ride = self.lifecycle.reject(ride_id, driver_id, reason, offered=offered)

        with self._offers_lock:
            self._offers.get(ride_id, set()).discard(driver_id)

        if ride.status == RideStatus.CANCELLED:
            self._revoke(ride_id)
            self._tell(ride.rider_id, "no_drivers_available", {"rideId": ride.id})
        else:
            candidates = self.candidates(ride)
            if candidates and self.policy.auto_assign:
                ride = self._assign_closest(ride, candidates)
            elif candidates:
                # drivers who came online since the first broadcast
                self._broadcast(ride, candidates)
        return ride

    def cancel(self, ride_id: str, actor: Actor, reason: Optional[str]) -> Ride:
        ride = self.lifecycle.cancel(ride_id, actor, reason)
        self._revoke(ride_id)
        return ride

    # ------------------------------------------------------------------
    # read views
    # ------------------------------------------------------------------

    def _with_driver_location(self, ride: Ride) -> Dict[str, Any]:
        payload = ride.to_dict()
        payload["driverLocation"] = None
        if ride.has_active_driver:
            position = self.driver_locations.find(ride.driver_id)
            if position is not None and position.is_fresh(self.clock(), self.policy.staleness_window_seconds):
                payload["driverLocation"] = position.to_dict()
        return payload

    def ride_status(self, ride_id: str, actor: Optional[Actor] = None) -> Dict[str, Any]:
        ride = self.lifecycle.get(ride_id)
        if actor is not None:
            if actor.role == ActorRole.RIDER and ride.rider_id != actor.id:
                raise ForbiddenError("You can only view your own rides", action="status")
            if actor.role == ActorRole.DRIVER and ride.driver_id != actor.id:
                raise ForbiddenError("You can only view rides assigned to you", action="status")
        return self._with_driver_location(ride)

    def active_ride(self, actor: Actor) -> Optional[Dict[str, Any]]:
        """
        The actor's ride in progress (searching through in_progress), or None.
        """
        repository = self.lifecycle.repository
        if actor.role == ActorRole.DRIVER:
            ride = repository.active_for_driver(actor.id)
        else:
            ride = repository.active_for_rider(actor.id)
        return self._with_driver_location(ride) if ride is not None else None

    def ride_history(
        self,
        actor: Actor,
        statuses: Optional[Iterable[RideStatus]] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[Ride], int]:
        """
        Newest-first page of the actor's rides and the total count.
        """
        repository = self.lifecycle.repository
        if actor.role == ActorRole.DRIVER:
            rides = repository.for_driver(actor.id)
        else:
            rides = repository.for_rider(actor.id)
        if statuses:
            wanted = set(statuses)
            rides = [ride for ride in rides if ride.status in wanted]
        return rides[offset:offset + limit], len(rides)
