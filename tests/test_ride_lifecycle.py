import threading
from datetime import timedelta

import pytest

from core.errors import ConflictError, ForbiddenError, InvalidTransitionError, ValidationError
from drivers.models import VehicleClass
from geo.place import Place
from rides.lifecycle import RideLifecycle
from rides.models import Actor, ActorRole, Ride, RideStatus
from rides.repository import InMemoryRideRepository
from rides.settlement import EarningsLedger, compute_settlement
from rides.state_machine import allowed_actions, check_transition

PICKUP = Place(51.2362, -0.5704, "Guildford High Street")
DROPOFF = Place(51.3148, -0.5600, "Woking Station")


def book(engine, rider="r1", **options):
    return engine.lifecycle.book(rider, PICKUP, DROPOFF, "sedan", **options)


def advance_to(engine, status, driver="d1", rider="r1"):
    """
    Walks a fresh ride through the happy path until it reaches `status`.
    """
    lifecycle = engine.lifecycle
    ride = book(engine, rider)
    steps = [
        (RideStatus.SEARCHING, lambda r: lifecycle.begin_search(r.id)),
        (RideStatus.ASSIGNED, lambda r: lifecycle.assign(r.id, driver, 5)),
        (RideStatus.ACCEPTED, lambda r: lifecycle.accept(r.id, driver)),
        (RideStatus.ARRIVED, lambda r: lifecycle.arrive(r.id, driver)),
        (RideStatus.IN_PROGRESS, lambda r: lifecycle.start(r.id, driver)),
        (RideStatus.COMPLETED, lambda r: lifecycle.complete(r.id, driver)),
    ]
    for target, step in steps:
        if ride.status == status:
            break
        ride = step(ride)
    assert ride.status == status
    return ride


def test_booking_creates_pending_ride_with_estimate(engine, recorder):
    ride = book(engine)

    assert ride.status == RideStatus.PENDING
    assert ride.id.startswith("ride_")
    assert ride.estimated_fare > 0
    assert ride.estimated_distance_km > 8
    assert ride.version == 1
    assert recorder.ride_statuses(ride.id) == ["pending"]


def test_happy_path_stamps_timeline(engine, clock):
    ride = advance_to(engine, RideStatus.COMPLETED)

    assert ride.accepted_at is not None
    assert ride.arrived_at is not None
    assert ride.started_at is not None
    assert ride.ended_at == clock.now
    assert ride.version == 7


def test_every_transition_is_announced(engine, recorder):
    ride = advance_to(engine, RideStatus.COMPLETED)

    assert recorder.ride_statuses(ride.id) == [
        "pending", "searching", "assigned", "accepted", "arrived", "in_progress", "completed",
    ]
    assert "ride_status" in recorder.user_events("r1")
    assert "ride_status" in recorder.user_events("d1")


def test_complete_from_pending_fails_and_leaves_ride_untouched(engine):
    ride = book(engine)

    with pytest.raises(InvalidTransitionError) as excinfo:
        engine.lifecycle.complete(ride.id, "d1")

    assert excinfo.value.current_status == "pending"
    assert excinfo.value.action == "complete"
    assert engine.lifecycle.get(ride.id) == ride


def test_accept_from_completed_fails(engine):
    ride = advance_to(engine, RideStatus.COMPLETED)
    with pytest.raises(InvalidTransitionError):
        engine.lifecycle.accept(ride.id, "d1")


def test_start_is_allowed_straight_from_accepted(engine):
    ride = advance_to(engine, RideStatus.ACCEPTED)
    assert engine.lifecycle.start(ride.id, "d1").status == RideStatus.IN_PROGRESS


@pytest.mark.parametrize(
    "status",
    [
        RideStatus.PENDING,
        RideStatus.SEARCHING,
        RideStatus.ASSIGNED,
        RideStatus.ACCEPTED,
        RideStatus.ARRIVED,
        RideStatus.IN_PROGRESS,
    ],
)
def test_rider_can_cancel_from_every_non_terminal_state(engine, clock, status):
    ride = advance_to(engine, status)

    cancelled = engine.lifecycle.cancel(ride.id, Actor.rider("r1"), "changed my mind")

    assert cancelled.status == RideStatus.CANCELLED
    assert cancelled.cancelled_by == ActorRole.RIDER
    assert cancelled.cancellation_reason == "changed my mind"
    assert cancelled.ended_at == clock.now


def test_scheduled_ride_can_be_cancelled(engine, clock):
    ride = book(engine, scheduled_for=clock.now + timedelta(hours=2))
    assert ride.status == RideStatus.SCHEDULED
    assert engine.lifecycle.cancel(ride.id, Actor.system(), "rider unreachable").status == RideStatus.CANCELLED


def test_cancel_terminal_ride_fails(engine):
    ride = advance_to(engine, RideStatus.COMPLETED)
    with pytest.raises(InvalidTransitionError):
        engine.lifecycle.cancel(ride.id, Actor.rider("r1"), "too late")


def test_cancel_requires_a_reason(engine):
    ride = book(engine)
    for reason in (None, "", "   "):
        with pytest.raises(ValidationError):
            engine.lifecycle.cancel(ride.id, Actor.rider("r1"), reason)


def test_only_parties_may_cancel(engine):
    ride = advance_to(engine, RideStatus.ACCEPTED)
    with pytest.raises(ForbiddenError):
        engine.lifecycle.cancel(ride.id, Actor.rider("someone-else"), "nope")
    with pytest.raises(ForbiddenError):
        engine.lifecycle.cancel(ride.id, Actor.driver("d2"), "nope")


def test_cancellation_fees(engine, clock):
    # 1. inside the free window
    ride = advance_to(engine, RideStatus.ACCEPTED)
    assert engine.lifecycle.cancel(ride.id, Actor.rider("r1"), "oops").cancellation_fee == 0

    # 2. driver already on the way
    ride = advance_to(engine, RideStatus.ACCEPTED)
    clock.advance(minutes=3)
    assert engine.lifecycle.cancel(ride.id, Actor.rider("r1"), "late").cancellation_fee == 5.0

    # 3. still searching
    ride = advance_to(engine, RideStatus.SEARCHING)
    clock.advance(minutes=3)
    assert engine.lifecycle.cancel(ride.id, Actor.rider("r1"), "late").cancellation_fee == 2.0

    # 4. drivers cancel for free
    ride = advance_to(engine, RideStatus.ACCEPTED)
    clock.advance(minutes=3)
    assert engine.lifecycle.cancel(ride.id, Actor.driver("d1"), "flat tyre").cancellation_fee == 0


def test_other_driver_cannot_progress_the_ride(engine):
    ride = advance_to(engine, RideStatus.ACCEPTED)
    with pytest.raises(ForbiddenError):
        engine.lifecycle.arrive(ride.id, "d2")
    with pytest.raises(ForbiddenError):
        engine.lifecycle.start(ride.id, "d2")


def test_assigned_ride_belongs_to_the_assignee(engine):
    ride = advance_to(engine, RideStatus.ASSIGNED)
    with pytest.raises(ForbiddenError):
        engine.lifecycle.accept(ride.id, "d2")


def test_second_accept_by_other_driver_conflicts(engine):
    ride = advance_to(engine, RideStatus.SEARCHING)
    engine.lifecycle.accept(ride.id, "d1")

    with pytest.raises(ConflictError) as excinfo:
        engine.lifecycle.accept(ride.id, "d2")
    assert excinfo.value.message == "ride already accepted"


def test_driver_with_an_active_ride_cannot_accept_another(engine):
    first = advance_to(engine, RideStatus.ACCEPTED)
    second = advance_to(engine, RideStatus.SEARCHING, rider="r2")

    with pytest.raises(ConflictError) as excinfo:
        engine.lifecycle.accept(second.id, "d1")
    assert excinfo.value.details["active_ride_id"] == first.id
    assert engine.lifecycle.get(second.id).status == RideStatus.SEARCHING

    # free again once the first ride is over
    engine.lifecycle.start(first.id, "d1")
    engine.lifecycle.complete(first.id, "d1")
    assert engine.lifecycle.accept(second.id, "d1").status == RideStatus.ACCEPTED


def test_stranger_cannot_reject_a_searching_ride(engine):
    ride = advance_to(engine, RideStatus.SEARCHING)

    with pytest.raises(ForbiddenError):
        engine.lifecycle.reject(ride.id, "stranger")

    ride = engine.lifecycle.get(ride.id)
    assert ride.status == RideStatus.SEARCHING
    assert ride.rejected_driver_ids == ()


def test_concurrent_accept_has_exactly_one_winner(engine):
    """
    Two drivers hit accept at the same moment; repeated to give the race
    a real chance to interleave.
    """
    for round_no in range(25):
        ride = advance_to(engine, RideStatus.SEARCHING)
        # fresh drivers each round; a winner keeps its accepted ride
        drivers = (f"d{round_no}a", f"d{round_no}b")
        barrier = threading.Barrier(2)
        outcomes = []

        def accept(driver_id):
            barrier.wait()
            try:
                outcomes.append(("ok", engine.lifecycle.accept(ride.id, driver_id).driver_id))
            except ConflictError as exc:
                outcomes.append(("conflict", exc.message))

        threads = [threading.Thread(target=accept, args=(d,)) for d in drivers]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        winners = [value for kind, value in outcomes if kind == "ok"]
        losers = [value for kind, value in outcomes if kind == "conflict"]
        assert len(winners) == 1
        assert losers == ["ride already accepted"]
        assert engine.lifecycle.get(ride.id).driver_id == winners[0]


def test_stale_version_write_is_rejected():
    repository = InMemoryRideRepository()
    lifecycle = RideLifecycle(repository)
    ride = lifecycle.book("r1", PICKUP, DROPOFF, "sedan")
    lifecycle.begin_search(ride.id)

    # a writer still holding the version-1 snapshot loses
    with pytest.raises(ConflictError):
        lifecycle._commit(ride, "begin_search", status=RideStatus.SEARCHING)


def test_completion_settles_commission_and_earnings(engine):
    ride = advance_to(engine, RideStatus.IN_PROGRESS)
    completed = engine.lifecycle.complete(ride.id, "d1", actual_distance_km=10.0, actual_duration_minutes=22)

    # (5.00 + 10 km * 1.50 + 22 min * 0.25) * 1.20 VAT
    assert completed.final_fare == 30.6
    assert completed.platform_commission == 6.12
    assert completed.driver_earnings == 24.48
    assert round(completed.platform_commission + completed.driver_earnings, 2) == completed.final_fare
    assert completed.actual_duration_minutes == 22
    assert engine.ledger.account("d1").total_earned == 24.48


def test_trip_that_matches_its_quote_settles_at_the_quote(engine):
    # 1. book at a surged quote
    quote = engine.estimator.quote_trip(PICKUP, DROPOFF, "sedan", surge_multiplier=1.3)
    ride = engine.lifecycle.book("r1", PICKUP, DROPOFF, "sedan", quote=quote)
    assert ride.surge_multiplier == 1.3

    # 2. drive it
    lifecycle = engine.lifecycle
    lifecycle.begin_search(ride.id)
    lifecycle.accept(ride.id, "d1")
    lifecycle.start(ride.id, "d1")

    # 3. same distance and duration as quoted -> same fare
    completed = lifecycle.complete(
        ride.id, "d1", actual_distance_km=quote.distance_km, actual_duration_minutes=quote.duration_minutes
    )
    assert completed.final_fare == ride.estimated_fare == quote.total


def test_longer_trip_is_repriced_with_time_and_surge(engine):
    quote = engine.estimator.quote_trip(PICKUP, DROPOFF, "sedan", surge_multiplier=1.3)
    ride = engine.lifecycle.book("r1", PICKUP, DROPOFF, "sedan", quote=quote)
    engine.lifecycle.begin_search(ride.id)
    engine.lifecycle.accept(ride.id, "d1")
    engine.lifecycle.start(ride.id, "d1")

    completed = engine.lifecycle.complete(ride.id, "d1", actual_duration_minutes=quote.duration_minutes + 15)

    expected = engine.estimator.breakdown(
        ride.estimated_distance_km, "sedan", quote.duration_minutes + 15, 1.3
    ).total
    assert completed.final_fare == expected
    assert completed.final_fare > ride.estimated_fare


@pytest.mark.parametrize("fare", [0.0, 7.33, 15.995, 19.99, 123.45])
def test_settlement_always_adds_up(fare):
    settlement = compute_settlement(fare, 0.20)
    assert round(settlement.platform_commission + settlement.driver_earnings, 2) == settlement.final_fare


def test_completion_without_distance_uses_booked_estimate(engine):
    ride = advance_to(engine, RideStatus.IN_PROGRESS)
    completed = engine.lifecycle.complete(ride.id, "d1")
    assert completed.final_fare == ride.estimated_fare


def test_tip_once_after_completion(engine):
    ride = advance_to(engine, RideStatus.COMPLETED)

    tipped = engine.lifecycle.add_tip(ride.id, "r1", 5)
    assert tipped.tips == 5.0
    assert tipped.driver_earnings == round(ride.driver_earnings + 5, 2)
    assert engine.ledger.account("d1").tips == 5.0

    with pytest.raises(ValidationError):
        engine.lifecycle.add_tip(ride.id, "r1", 2)


@pytest.mark.parametrize("amount", [0, -1, 50.01, "abc"])
def test_tip_amount_bounds(engine, amount):
    ride = advance_to(engine, RideStatus.COMPLETED)
    with pytest.raises(ValidationError):
        engine.lifecycle.add_tip(ride.id, "r1", amount)


def test_tip_rules(engine):
    in_progress = advance_to(engine, RideStatus.IN_PROGRESS)
    with pytest.raises(InvalidTransitionError):
        engine.lifecycle.add_tip(in_progress.id, "r1", 5)

    completed = advance_to(engine, RideStatus.COMPLETED)
    with pytest.raises(ForbiddenError):
        engine.lifecycle.add_tip(completed.id, "r2", 5)


def test_both_parties_rate_once(engine):
    ride = advance_to(engine, RideStatus.COMPLETED)

    ride = engine.lifecycle.rate_driver(ride.id, "r1", 5, "smooth")
    ride = engine.lifecycle.rate_rider(ride.id, "d1", 4)

    assert ride.rating.driver_rating == 5
    assert ride.rating.driver_comment == "smooth"
    assert ride.rating.rider_rating == 4

    with pytest.raises(ValidationError):
        engine.lifecycle.rate_driver(ride.id, "r1", 3)


@pytest.mark.parametrize("rating", [0, 6, 4.5, "five"])
def test_rating_must_be_one_to_five(engine, rating):
    ride = advance_to(engine, RideStatus.COMPLETED)
    with pytest.raises(ValidationError):
        engine.lifecycle.rate_driver(ride.id, "r1", rating)


@pytest.mark.parametrize("rating", [5, 5.0, "5"])
def test_whole_number_ratings_in_any_form_are_accepted(engine, rating):
    ride = advance_to(engine, RideStatus.COMPLETED)
    assert engine.lifecycle.rate_driver(ride.id, "r1", rating).rating.driver_rating == 5


def test_rating_requires_completed_ride(engine):
    ride = advance_to(engine, RideStatus.IN_PROGRESS)
    with pytest.raises(InvalidTransitionError):
        engine.lifecycle.rate_driver(ride.id, "r1", 5)


def test_scheduling_window(engine, clock):
    with pytest.raises(ValidationError):
        book(engine, scheduled_for=clock.now - timedelta(minutes=1))
    with pytest.raises(ValidationError):
        book(engine, scheduled_for=clock.now + timedelta(days=8))

    ride = book(engine, scheduled_for=clock.now + timedelta(days=6))
    assert ride.status == RideStatus.SCHEDULED


def test_booking_validates_vehicle_and_payment(engine):
    with pytest.raises(ValidationError):
        engine.lifecycle.book("r1", PICKUP, DROPOFF, "hovercraft")
    with pytest.raises(ValidationError):
        engine.lifecycle.book("r1", PICKUP, DROPOFF, "sedan", payment_method="cheque")


def test_ledger_failure_does_not_undo_completion(engine):
    class BrokenLedger(EarningsLedger):
        def record_completion(self, ride):
            raise RuntimeError("wallet service down")

        def record_tip(self, ride, amount):
            raise RuntimeError("wallet service down")

    engine.lifecycle.ledger = BrokenLedger()
    ride = advance_to(engine, RideStatus.COMPLETED)

    assert engine.lifecycle.get(ride.id).status == RideStatus.COMPLETED
    assert engine.lifecycle.add_tip(ride.id, "r1", 3).tips == 3.0


def test_role_table():
    ride = Ride(id="x", rider_id="r1", pickup=PICKUP, dropoff=DROPOFF, vehicle_class=VehicleClass.SEDAN, status=RideStatus.SEARCHING)

    assert allowed_actions(ride, ActorRole.DRIVER) == ["accept", "cancel", "reject"]
    assert allowed_actions(ride, ActorRole.RIDER) == ["cancel"]
    with pytest.raises(ForbiddenError):
        check_transition(ride, "accept", Actor.rider("r1"))
