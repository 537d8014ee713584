"""
Rides capability: the ride record, its state machine and everything that
changes it.

Public API:
- Ride, RideStatus, Actor, ActorRole, PaymentMethod, Rating
- RideRepository, InMemoryRideRepository
- RideLifecycle (book / assign / accept / reject / arrive / start / complete / cancel / tip / rate)
- LifecyclePolicy, default_lifecycle_policy
- compute_settlement, EarningsLedger, InMemoryEarningsLedger
- ScheduledRideActivator
"""
from .models import (
    Actor,
    ActorRole,
    PaymentMethod,
    Rating,
    Ride,
    RideStatus,
    ACTIVE_DRIVER_STATUSES,
    TERMINAL_STATUSES,
)
from .state_machine import TRANSITIONS, allowed_actions, check_transition
from .repository import RideRepository, InMemoryRideRepository
from .policy import LifecyclePolicy, default_lifecycle_policy
from .settlement import (
    Settlement,
    compute_settlement,
    EarningsLedger,
    InMemoryEarningsLedger,
)
from .lifecycle import RideLifecycle
from .scheduler import ScheduledRideActivator

__all__ = [
    "Actor",
    "ActorRole",
    "PaymentMethod",
    "Rating",
    "Ride",
    "RideStatus",
    "ACTIVE_DRIVER_STATUSES",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "allowed_actions",
    "check_transition",
    "RideRepository",
    "InMemoryRideRepository",
    "LifecyclePolicy",
    "default_lifecycle_policy",
    "Settlement",
    "compute_settlement",
    "EarningsLedger",
    "InMemoryEarningsLedger",
    "RideLifecycle",
    "ScheduledRideActivator",
]
