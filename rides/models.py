"""
Purpose: Domain models for the Rides capability.
What it does:
- Defines the Ride record and its value objects (Rating, Actor)
- Defines enums/constants:
  - RideStatus = PENDING | SCHEDULED | SEARCHING | ASSIGNED | ACCEPTED | ARRIVED
                 | IN_PROGRESS | COMPLETED | CANCELLED
  - ActorRole = RIDER | DRIVER | SYSTEM

Rides are immutable snapshots: every change produces a new Ride with
version + 1 (see repository.compare_and_swap). Nothing here talks to storage.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from core.clock import utc_now
from drivers.models import VehicleClass
from geo.place import Place


class RideStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    SEARCHING = "searching"
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    ARRIVED = "arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({RideStatus.COMPLETED, RideStatus.CANCELLED})

# statuses in which a driver is attached and moving towards/with the rider
ACTIVE_DRIVER_STATUSES = frozenset({
    RideStatus.ASSIGNED,
    RideStatus.ACCEPTED,
    RideStatus.ARRIVED,
    RideStatus.IN_PROGRESS,
})


class ActorRole(str, Enum):
    RIDER = "rider"
    DRIVER = "driver"
    SYSTEM = "system"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    WALLET = "wallet"


@dataclass(frozen=True)
class Actor:
    id: str
    role: ActorRole

    @classmethod
    def rider(cls, rider_id: str) -> Actor:
        return cls(rider_id, ActorRole.RIDER)

    @classmethod
    def driver(cls, driver_id: str) -> Actor:
        return cls(driver_id, ActorRole.DRIVER)

    @classmethod
    def system(cls) -> Actor:
        return cls("system", ActorRole.SYSTEM)


@dataclass(frozen=True)
class Rating:
    rider_rating: Optional[int] = None  # given by the driver
    driver_rating: Optional[int] = None  # given by the rider
    rider_comment: Optional[str] = None
    driver_comment: Optional[str] = None


@dataclass(frozen=True)
class Ride:
    id: str
    rider_id: str
    pickup: Place
    dropoff: Place
    vehicle_class: VehicleClass
    status: RideStatus = RideStatus.PENDING
    driver_id: Optional[str] = None

    payment_method: PaymentMethod = PaymentMethod.WALLET
    special_instructions: Optional[str] = None

    # timeline
    scheduled_for: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)
    accepted_at: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    # money
    estimated_fare: float = 0.0
    surge_multiplier: float = 1.0
    final_fare: float = 0.0
    tips: float = 0.0
    bonuses: float = 0.0
    platform_commission: float = 0.0
    driver_earnings: float = 0.0
    cancellation_fee: float = 0.0

    # trip metrics
    estimated_distance_km: float = 0.0
    estimated_duration_minutes: int = 0
    estimated_pickup_minutes: Optional[int] = None
    actual_distance_km: float = 0.0
    actual_duration_minutes: Optional[int] = None

    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[ActorRole] = None
    rating: Rating = field(default_factory=Rating)

    # drivers that turned this ride down; never offered it again
    rejected_driver_ids: Tuple[str, ...] = ()

    # optimistic-concurrency token, bumped on every committed change
    version: int = 1

    @staticmethod
    def new_id() -> str:
        return "ride_" + uuid.uuid4().hex

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def has_active_driver(self) -> bool:
        return self.driver_id is not None and self.status in ACTIVE_DRIVER_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        def stamp(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "riderId": self.rider_id,
            "driverId": self.driver_id,
            "status": self.status.value,
            "pickup": self.pickup.to_dict(),
            "dropoff": self.dropoff.to_dict(),
            "vehicleType": self.vehicle_class.value,
            "paymentMethod": self.payment_method.value,
            "specialInstructions": self.special_instructions,
            "scheduledFor": stamp(self.scheduled_for),
            "createdAt": stamp(self.created_at),
            "acceptedAt": stamp(self.accepted_at),
            "arrivedAt": stamp(self.arrived_at),
            "startedAt": stamp(self.started_at),
            "endedAt": stamp(self.ended_at),
            "estimatedFare": self.estimated_fare,
            "surgeMultiplier": self.surge_multiplier,
            "finalFare": self.final_fare,
            "tips": self.tips,
            "bonuses": self.bonuses,
            "platformCommission": self.platform_commission,
            "driverEarnings": self.driver_earnings,
            "cancellationFee": self.cancellation_fee,
            "estimatedDistanceKm": self.estimated_distance_km,
            "estimatedDuration": self.estimated_duration_minutes,
            "estimatedPickupTime": self.estimated_pickup_minutes,
            "actualDistanceKm": self.actual_distance_km,
            "actualDuration": self.actual_duration_minutes,
            "cancellationReason": self.cancellation_reason,
            "cancelledBy": self.cancelled_by.value if self.cancelled_by else None,
            "rating": {
                "riderRating": self.rating.rider_rating,
                "driverRating": self.rating.driver_rating,
                "riderComment": self.rating.rider_comment,
                "driverComment": self.rating.driver_comment,
            },
            "version": self.version,
        }
