"""
Purpose: Composition root.
What it does:
Builds one fully wired engine (stores, directory, matcher, pricing, ride
lifecycle, notifications, dispatcher) from policies and a clock, so the HTTP
layer, the scripts and the tests all assemble it the same way.

Rule: wiring only. No business rules live here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from core.clock import Clock, utc_now
from core.sweeper import PeriodicTask
from drivers.directory import DriverDirectory
from drivers.models import Driver
from fares.estimator import FareEstimator
from fares.quotes import FareQuoteBook
from geo.region import OperatingRegion
from locations.retention import PositionRetentionSweep, RetentionPolicy, default_retention_policy
from locations.service import LocationService
from locations.store import InMemoryLocationStore, LocationStore
from notifications.dispatcher import LoggingDispatcher, NotificationDispatcher
from notifications.fanout import NotificationFanout
from notifications.webhook import webhook_dispatcher_from_env
from rides.lifecycle import RideLifecycle
from rides.policy import LifecyclePolicy, default_lifecycle_policy
from rides.repository import InMemoryRideRepository, RideRepository
from rides.scheduler import ScheduledRideActivator
from rides.settlement import EarningsLedger, InMemoryEarningsLedger
from .dispatcher import RideDispatcher
from .matcher import GeoMatcher
from .policy import MatchingPolicy, default_matching_policy

# how often scheduled rides and expired estimates are checked
SCHEDULER_INTERVAL_SECONDS = 30


@dataclass
class Engine:
    driver_locations: LocationStore
    rider_locations: LocationStore
    directory: DriverDirectory
    locations: LocationService
    matcher: GeoMatcher
    estimator: FareEstimator
    quote_book: FareQuoteBook
    rides: RideRepository
    ledger: EarningsLedger
    lifecycle: RideLifecycle
    dispatcher: RideDispatcher
    notifier: NotificationFanout
    retention: PositionRetentionSweep
    activator: ScheduledRideActivator
    retention_policy: RetentionPolicy

    def sweepers(self) -> List[PeriodicTask]:
        return [
            PeriodicTask(self.retention, self.retention_policy.sweep_interval_seconds, name="rider-retention"),
            PeriodicTask(self.activator, SCHEDULER_INTERVAL_SECONDS, name="scheduled-rides"),
            PeriodicTask(self.quote_book, SCHEDULER_INTERVAL_SECONDS, name="fare-estimates"),
        ]

    def shutdown(self) -> None:
        self.notifier.shutdown()


def build_engine(
    drivers: Iterable[Driver] = (),
    *,
    notification_dispatcher: Optional[NotificationDispatcher] = None,
    synchronous_notifications: bool = False,
    matching_policy: Optional[MatchingPolicy] = None,
    lifecycle_policy: Optional[LifecyclePolicy] = None,
    retention_policy: Optional[RetentionPolicy] = None,
    region: Optional[OperatingRegion] = None,
    ledger: Optional[EarningsLedger] = None,
    clock: Clock = utc_now,
) -> Engine:
    """
    Without an explicit dispatcher, notifications go to the webhook gateway
    when NOTIFICATION_WEBHOOK_URL is set, otherwise to the log.
    """
    matching_policy = matching_policy or default_matching_policy()
    lifecycle_policy = lifecycle_policy or default_lifecycle_policy()
    retention_policy = retention_policy or default_retention_policy()

    if notification_dispatcher is None:
        notification_dispatcher = webhook_dispatcher_from_env() or LoggingDispatcher()
    notifier = NotificationFanout(notification_dispatcher, synchronous=synchronous_notifications)

    driver_locations = InMemoryLocationStore("driver-locations", clock)
    rider_locations = InMemoryLocationStore("rider-locations", clock)
    directory = DriverDirectory(drivers)
    estimator = FareEstimator()
    matcher = GeoMatcher(driver_locations, directory, estimator, matching_policy, region, clock)
    quote_book = FareQuoteBook(clock)
    rides = InMemoryRideRepository()
    ledger = ledger or InMemoryEarningsLedger()

    lifecycle = RideLifecycle(rides, estimator, notifier, ledger, lifecycle_policy, clock)
    dispatcher = RideDispatcher(lifecycle, matcher, estimator, quote_book, driver_locations, notifier, matching_policy, clock)
    # exhaustion check asks the dispatcher who is still around
    lifecycle.candidate_source = dispatcher.candidate_ids

    activator = ScheduledRideActivator(
        lifecycle,
        rides,
        on_activated=lambda ride: dispatcher.dispatch_ride(ride.id),
        clock=clock,
    )

    return Engine(
        driver_locations=driver_locations,
        rider_locations=rider_locations,
        directory=directory,
        locations=LocationService(driver_locations, rider_locations, notifier),
        matcher=matcher,
        estimator=estimator,
        quote_book=quote_book,
        rides=rides,
        ledger=ledger,
        lifecycle=lifecycle,
        dispatcher=dispatcher,
        notifier=notifier,
        retention=PositionRetentionSweep(rider_locations, retention_policy, clock),
        activator=activator,
        retention_policy=retention_policy,
    )
