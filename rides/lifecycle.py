"""
Purpose: The ride state machine service (owns every change to a Ride).
What it does:
- book() creates a ride in PENDING (or SCHEDULED for future-dated rides)
- one method per transition in rides.state_machine.TRANSITIONS
- settlement on complete(), fees on cancel(), tips and ratings afterwards
- announces every committed change through the notification fan-out

How a transition runs:
1. read the current ride
2. check role + source status (state_machine.check_transition) and the
   party rules (is this the ride's driver / rider?)
3. build the new snapshot with version + 1
4. repository.compare_and_swap(): commits only if nobody else committed in
   between, otherwise ConflictError

Step 4 is what makes two simultaneous accepts safe: both may pass step 2,
only one CAS wins, the other gets ConflictError("ride already accepted").
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Optional

from core.clock import Clock, utc_now
from core.errors import ConflictError, ForbiddenError, InvalidTransitionError, ValidationError
from drivers.models import VehicleClass
from fares.estimator import FareEstimator
from fares.models import FareQuote
from geo.distance import distance_km
from geo.place import Place
from .models import Actor, ActorRole, PaymentMethod, Rating, Ride, RideStatus
from .policy import LifecyclePolicy, default_lifecycle_policy
from .repository import RideRepository
from .settlement import EarningsLedger, compute_settlement
from .state_machine import check_transition

logger = logging.getLogger(__name__)

# statuses in which another driver has already won the ride
TAKEN_STATUSES = frozenset({RideStatus.ACCEPTED, RideStatus.ARRIVED, RideStatus.IN_PROGRESS})

# a rider cancelling in these statuses pays the higher fee
DRIVER_EN_ROUTE_STATUSES = frozenset({
    RideStatus.ASSIGNED,
    RideStatus.ACCEPTED,
    RideStatus.ARRIVED,
    RideStatus.IN_PROGRESS,
})

# (ride) -> ids of drivers who could still take it
CandidateSource = Callable[[Ride], Iterable[str]]


class RideLifecycle:
    def __init__(
        self,
        repository: RideRepository,
        estimator: Optional[FareEstimator] = None,
        notifier=None,
        ledger: Optional[EarningsLedger] = None,
        policy: Optional[LifecyclePolicy] = None,
        clock: Clock = utc_now,
        candidate_source: Optional[CandidateSource] = None,
    ):
        self.repository = repository
        self.estimator = estimator or FareEstimator()
        self.notifier = notifier
        self.ledger = ledger
        self.policy = policy or default_lifecycle_policy()
        self.clock = clock
        self.candidate_source = candidate_source

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _commit(self, ride: Ride, action: str, **changes: Any) -> Ride:
        updated = replace(ride, version=ride.version + 1, **changes)
        try:
            self.repository.compare_and_swap(ride.id, ride.version, updated)
        except ConflictError:
            current = self.repository.get(ride.id)
            if action == "accept" and current.status in TAKEN_STATUSES:
                raise ConflictError("ride already accepted", ride_id=ride.id, current_status=current.status.value)
            raise ConflictError(
                f"Ride changed while trying to {action}; retry against the current status",
                ride_id=ride.id,
                current_status=current.status.value,
            )

        if updated.status != ride.status:
            logger.info("Ride %s: %s -> %s (%s)", ride.id, ride.status.value, updated.status.value, action)
            self._announce(updated, action)
        return updated

    def _announce(self, ride: Ride, action: str) -> None:
        if self.notifier is None:
            return
        payload = ride.to_dict()
        self.notifier.notify_ride_state_changed(ride.id, ride.status.value, payload)
        event = {"rideId": ride.id, "status": ride.status.value, "action": action, "ride": payload}
        self.notifier.notify_user(ride.rider_id, "ride_status", event)
        if ride.driver_id:
            self.notifier.notify_user(ride.driver_id, "ride_status", event)

    @staticmethod
    def _require_ride_driver(ride: Ride, actor: Actor, action: str) -> None:
        if ride.driver_id != actor.id:
            raise ForbiddenError(f"You are not authorized to {action} this ride", action=action)

    # ------------------------------------------------------------------
    # creation
    # ------------------------------------------------------------------

    def book(
        self,
        rider_id: str,
        pickup: Place,
        dropoff: Place,
        vehicle_class: Any,
        *,
        payment_method: Any = PaymentMethod.WALLET,
        scheduled_for: Optional[datetime] = None,
        special_instructions: Optional[str] = None,
        quote: Optional[FareQuote] = None,
    ) -> Ride:
        if not rider_id:
            raise ValidationError("rider id is required", field="riderId")
        vehicle_class = VehicleClass.parse(vehicle_class)
        try:
            payment_method = PaymentMethod(payment_method or PaymentMethod.WALLET)
        except ValueError:
            raise ValidationError("paymentMethod must be cash, card or wallet", field="paymentMethod")

        now = self.clock()
        if scheduled_for is not None:
            if scheduled_for.tzinfo is None:
                raise ValidationError("scheduledTime must include a timezone", field="scheduledTime")
            if scheduled_for <= now:
                raise ValidationError("Scheduled time must be in the future", field="scheduledTime")
            if scheduled_for > now + timedelta(days=self.policy.max_schedule_ahead_days):
                raise ValidationError(
                    f"Cannot schedule rides more than {self.policy.max_schedule_ahead_days} days in advance",
                    field="scheduledTime",
                )

        if quote is None:
            quote = self.estimator.quote_trip(pickup, dropoff, vehicle_class)

        ride = Ride(
            id=Ride.new_id(),
            rider_id=rider_id,
            pickup=pickup,
            dropoff=dropoff,
            vehicle_class=vehicle_class,
            status=RideStatus.SCHEDULED if scheduled_for else RideStatus.PENDING,
            payment_method=payment_method,
            special_instructions=special_instructions,
            scheduled_for=scheduled_for,
            created_at=now,
            estimated_fare=quote.total,
            surge_multiplier=quote.surge_multiplier,
            estimated_distance_km=round(quote.distance_km, 2),
            estimated_duration_minutes=quote.duration_minutes,
        )
        self.repository.add(ride)
        logger.info("Ride %s booked by %s (%s)", ride.id, rider_id, ride.status.value)
        self._announce(ride, "book")
        return ride

    # ------------------------------------------------------------------
    # system transitions
    # ------------------------------------------------------------------

    def activate(self, ride_id: str) -> Ride:
        """A scheduled ride whose time has come rejoins the normal flow."""
        ride = self.repository.get(ride_id)
        check_transition(ride, "activate", Actor.system())
        return self._commit(ride, "activate", status=RideStatus.PENDING)

    def begin_search(self, ride_id: str) -> Ride:
        ride = self.repository.get(ride_id)
        check_transition(ride, "begin_search", Actor.system())
        return self._commit(ride, "begin_search", status=RideStatus.SEARCHING)

    def assign(self, ride_id: str, driver_id: str, estimated_pickup_minutes: Optional[int] = None) -> Ride:
        ride = self.repository.get(ride_id)
        check_transition(ride, "assign", Actor.system())
        if driver_id in ride.rejected_driver_ids:
            raise ValidationError(f"Driver {driver_id} already rejected this ride", driver_id=driver_id)
        return self._commit(
            ride,
            "assign",
            status=RideStatus.ASSIGNED,
            driver_id=driver_id,
            estimated_pickup_minutes=estimated_pickup_minutes,
        )

    # ------------------------------------------------------------------
    # driver transitions
    # ------------------------------------------------------------------

    def accept(self, ride_id: str, driver_id: str) -> Ride:
        actor = Actor.driver(driver_id)
        ride = self.repository.get(ride_id)

        if ride.status in TAKEN_STATUSES and ride.driver_id != driver_id:
            raise ConflictError("ride already accepted", ride_id=ride_id, current_status=ride.status.value)

        check_transition(ride, "accept", actor)

        if ride.status == RideStatus.ASSIGNED and ride.driver_id != driver_id:
            raise ForbiddenError("Ride is assigned to another driver", action="accept")
        if driver_id in ride.rejected_driver_ids:
            raise ForbiddenError("You already rejected this ride", action="accept")

        current = self.repository.active_for_driver(driver_id, exclude_ride_id=ride_id)
        if current is not None:
            raise ConflictError(
                "You already have an active ride",
                ride_id=ride_id,
                active_ride_id=current.id,
            )

        return self._commit(
            ride,
            "accept",
            status=RideStatus.ACCEPTED,
            driver_id=driver_id,
            accepted_at=self.clock(),
        )

    def reject(self, ride_id: str, driver_id: str, reason: Optional[str] = None, *, offered: bool = False) -> Ride:
        """
        The driver turns the offer down. The ride goes back to SEARCHING
        without that driver, or is cancelled when nobody is left to ask.

        Only a party to the ride may reject it: the assigned driver, or while
        SEARCHING a driver who holds the offer (`offered`) or is still a
        candidate for it.
        """
        actor = Actor.driver(driver_id)
        ride = self.repository.get(ride_id)
        check_transition(ride, "reject", actor)

        if ride.status == RideStatus.ASSIGNED:
            self._require_ride_driver(ride, actor, "reject")
        elif not offered and not self._is_candidate(ride, driver_id):
            raise ForbiddenError("This ride was not offered to you", action="reject")

        rejected = ride.rejected_driver_ids
        if driver_id not in rejected:
            rejected = rejected + (driver_id,)

        if self._search_exhausted(replace(ride, rejected_driver_ids=rejected, driver_id=None)):
            logger.info("Ride %s exhausted after %d rejections", ride.id, len(rejected))
            return self._commit(
                ride,
                "reject",
                status=RideStatus.CANCELLED,
                driver_id=None,
                rejected_driver_ids=rejected,
                cancellation_reason="No drivers available",
                cancelled_by=ActorRole.SYSTEM,
                ended_at=self.clock(),
            )

        logger.debug("Ride %s rejected by %s (%s)", ride.id, driver_id, reason or "no reason")
        return self._commit(
            ride,
            "reject",
            status=RideStatus.SEARCHING,
            driver_id=None,
            rejected_driver_ids=rejected,
            estimated_pickup_minutes=None,
        )

    def _is_candidate(self, ride: Ride, driver_id: str) -> bool:
        if driver_id in ride.rejected_driver_ids or self.candidate_source is None:
            return False
        return driver_id in set(self.candidate_source(ride))

    def _search_exhausted(self, ride: Ride) -> bool:
        if len(ride.rejected_driver_ids) >= self.policy.max_rejections:
            return True
        if self.candidate_source is None:
            return False
        remaining = set(self.candidate_source(ride)) - set(ride.rejected_driver_ids)
        return not remaining

    def arrive(self, ride_id: str, driver_id: str) -> Ride:
        actor = Actor.driver(driver_id)
        ride = self.repository.get(ride_id)
        check_transition(ride, "arrive", actor)
        self._require_ride_driver(ride, actor, "arrive at")
        return self._commit(ride, "arrive", status=RideStatus.ARRIVED, arrived_at=self.clock())

    def start(self, ride_id: str, driver_id: str) -> Ride:
        actor = Actor.driver(driver_id)
        ride = self.repository.get(ride_id)
        check_transition(ride, "start", actor)
        self._require_ride_driver(ride, actor, "start")
        return self._commit(ride, "start", status=RideStatus.IN_PROGRESS, started_at=self.clock())

    def complete(
        self,
        ride_id: str,
        driver_id: str,
        actual_distance_km: Optional[float] = None,
        actual_duration_minutes: Optional[int] = None,
    ) -> Ride:
        actor = Actor.driver(driver_id)
        ride = self.repository.get(ride_id)
        check_transition(ride, "complete", actor)
        self._require_ride_driver(ride, actor, "complete")

        if actual_distance_km is not None and actual_distance_km < 0:
            raise ValidationError("actualDistance must be >= 0", field="actualDistance")
        if actual_duration_minutes is not None and actual_duration_minutes < 0:
            raise ValidationError("actualDuration must be >= 0", field="actualDuration")

        if actual_distance_km is None and actual_duration_minutes is None:
            final_fare = ride.estimated_fare
            actual_distance_km = round(distance_km(ride.pickup.coordinates, ride.dropoff.coordinates), 2)
        else:
            # re-priced with the booked surge; a missing measurement falls back to the booked one
            if actual_distance_km is None:
                actual_distance_km = ride.estimated_distance_km
            final_fare = self.estimator.breakdown(
                actual_distance_km,
                ride.vehicle_class,
                actual_duration_minutes if actual_duration_minutes is not None else ride.estimated_duration_minutes,
                ride.surge_multiplier,
            ).total

        settlement = compute_settlement(
            final_fare,
            self.policy.commission_rate,
            tips=ride.tips,
            bonuses=ride.bonuses + self.policy.completion_bonus,
        )

        completed = self._commit(
            ride,
            "complete",
            status=RideStatus.COMPLETED,
            ended_at=self.clock(),
            final_fare=settlement.final_fare,
            platform_commission=settlement.platform_commission,
            driver_earnings=settlement.driver_earnings,
            tips=settlement.tips,
            bonuses=settlement.bonuses,
            actual_distance_km=actual_distance_km,
            actual_duration_minutes=actual_duration_minutes,
        )
        self._post_to_ledger("completion", lambda: self.ledger.record_completion(completed))
        return completed

    # ------------------------------------------------------------------
    # cancellation
    # ------------------------------------------------------------------

    def cancellation_fee(self, ride: Ride, actor: Actor, at: datetime) -> float:
        # only the rider pays; drivers and the system cancel for free
        if actor.role != ActorRole.RIDER:
            return 0.0
        if (at - ride.created_at).total_seconds() <= self.policy.free_cancellation_seconds:
            return 0.0
        if ride.status in DRIVER_EN_ROUTE_STATUSES:
            return self.policy.driver_en_route_cancellation_fee
        return self.policy.late_cancellation_fee

    def cancel(self, ride_id: str, actor: Actor, reason: Optional[str]) -> Ride:
        if not reason or not str(reason).strip():
            raise ValidationError("cancellationReason is required", field="cancellationReason")

        ride = self.repository.get(ride_id)
        check_transition(ride, "cancel", actor)

        if actor.role == ActorRole.RIDER and ride.rider_id != actor.id:
            raise ForbiddenError("You are not authorized to cancel this ride", action="cancel")
        if actor.role == ActorRole.DRIVER and ride.driver_id != actor.id:
            raise ForbiddenError("You are not authorized to cancel this ride", action="cancel")

        now = self.clock()
        return self._commit(
            ride,
            "cancel",
            status=RideStatus.CANCELLED,
            cancellation_reason=str(reason).strip(),
            cancelled_by=actor.role,
            cancellation_fee=self.cancellation_fee(ride, actor, now),
            ended_at=now,
        )

    # ------------------------------------------------------------------
    # after completion
    # ------------------------------------------------------------------

    def add_tip(self, ride_id: str, rider_id: str, amount: float) -> Ride:
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            raise ValidationError("Tip amount must be a number", field="tipAmount")
        if amount <= 0:
            raise ValidationError("Tip amount must be greater than 0", field="tipAmount")
        if amount > self.policy.max_tip:
            raise ValidationError(f"Tip amount cannot exceed {self.policy.max_tip:.2f}", field="tipAmount")

        ride = self.repository.get(ride_id)
        if ride.rider_id != rider_id:
            raise ForbiddenError("You can only add tips to your own rides", action="tip")
        if ride.status != RideStatus.COMPLETED:
            raise InvalidTransitionError("tip", ride.status, "Tips can only be added to completed rides")
        if ride.tips > 0:
            raise ValidationError("Tip has already been added to this ride", field="tipAmount")

        amount = round(amount, 2)
        tipped = self._commit(
            ride,
            "tip",
            tips=amount,
            driver_earnings=round(ride.driver_earnings + amount, 2),
        )
        if self.notifier is not None and tipped.driver_id:
            self.notifier.notify_user(tipped.driver_id, "ride_tip", {"rideId": tipped.id, "amount": amount})
        self._post_to_ledger("tip", lambda: self.ledger.record_tip(tipped, amount))
        return tipped

    def rate(self, ride_id: str, actor: Actor, rating: Any, comment: Optional[str] = None) -> Ride:
        """
        A rider rates the driver, or a driver rates the rider; once each.
        """
        try:
            value = float(rating)
        except (TypeError, ValueError):
            raise ValidationError("Rating must be an integer between 1 and 5", field="rating")
        score = int(value) if value.is_integer() else None
        if score is None or not 1 <= score <= 5:
            raise ValidationError("Rating must be an integer between 1 and 5", field="rating")

        ride = self.repository.get(ride_id)
        if ride.status != RideStatus.COMPLETED:
            raise InvalidTransitionError("rate", ride.status, "Only completed rides can be rated")

        if actor.role == ActorRole.RIDER:
            if ride.rider_id != actor.id:
                raise ForbiddenError("You can only rate your own rides", action="rate")
            if ride.rating.driver_rating is not None:
                raise ValidationError("Driver has already been rated for this ride", field="rating")
            new_rating = replace(ride.rating, driver_rating=score, driver_comment=comment)
        elif actor.role == ActorRole.DRIVER:
            if ride.driver_id != actor.id:
                raise ForbiddenError("You can only rate riders of your own rides", action="rate")
            if ride.rating.rider_rating is not None:
                raise ValidationError("Rider has already been rated for this ride", field="rating")
            new_rating = replace(ride.rating, rider_rating=score, rider_comment=comment)
        else:
            raise ForbiddenError("Only the rider or the driver can rate a ride", action="rate")

        return self._commit(ride, "rate", rating=new_rating)

    def rate_driver(self, ride_id: str, rider_id: str, rating: Any, comment: Optional[str] = None) -> Ride:
        return self.rate(ride_id, Actor.rider(rider_id), rating, comment)

    def rate_rider(self, ride_id: str, driver_id: str, rating: Any, comment: Optional[str] = None) -> Ride:
        return self.rate(ride_id, Actor.driver(driver_id), rating, comment)

    def _post_to_ledger(self, what: str, post: Callable[[], None]) -> None:
        if self.ledger is None:
            return
        try:
            post()
        except Exception:
            # the ride is already committed; reconciliation is the ledger's job
            logger.exception("Ledger rejected %s posting", what)

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    def get(self, ride_id: str) -> Ride:
        return self.repository.get(ride_id)

    def summary(self, ride: Ride) -> Dict[str, Any]:
        return ride.to_dict()
