"""
Purpose: Short-lived persisted fare estimates.
What it does:
A rider asks for an estimate, gets back an `est_...` id valid for 10 minutes,
and may book with that id instead of resending the trip. An estimate can be
redeemed once, only by the rider it was issued to.

Expired estimates are dropped by `run_cycle` (periodic sweep) and are never
redeemable even before the sweep gets to them.
"""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from core.clock import Clock, utc_now
from drivers.models import VehicleClass
from geo.place import Place
from .models import FareQuote

logger = logging.getLogger(__name__)

QUOTE_VALIDITY_SECONDS = 10 * 60


@dataclass(frozen=True)
class StoredEstimate:
    estimate_id: str
    rider_id: str
    pickup: Place
    dropoff: Place
    vehicle_class: VehicleClass
    quote: FareQuote
    expires_at: datetime
    available_drivers: int = 0
    estimated_pickup_minutes: int = 15
    is_used: bool = False
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        count = self.available_drivers
        payload = {
            "estimateId": self.estimate_id,
            "pickup": self.pickup.to_dict(),
            "dropoff": self.dropoff.to_dict(),
            "vehicleType": self.vehicle_class.value,
            **self.quote.to_dict(),
            "fare": self.quote.total,
            "estimatedFare": self.quote.total,
            "driverAvailability": {
                "count": count,
                "estimatedPickupTime": self.estimated_pickup_minutes,
                "message": (
                    f"{count} driver{'s' if count > 1 else ''} available"
                    if count > 0
                    else "No drivers available right now"
                ),
            },
            "expiresAt": self.expires_at.isoformat(),
            "validFor": f"{QUOTE_VALIDITY_SECONDS // 60} minutes",
        }
        return payload


def generate_estimate_id() -> str:
    return "est_" + secrets.token_hex(8)


class FareQuoteBook:
    def __init__(self, clock: Clock = utc_now, validity_seconds: int = QUOTE_VALIDITY_SECONDS):
        self.clock = clock
        self.validity_seconds = validity_seconds
        self._estimates: Dict[str, StoredEstimate] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._estimates)

    def issue(
        self,
        rider_id: str,
        pickup: Place,
        dropoff: Place,
        vehicle_class: VehicleClass,
        quote: FareQuote,
        *,
        available_drivers: int = 0,
        estimated_pickup_minutes: int = 15,
    ) -> StoredEstimate:
        now = self.clock()
        estimate = StoredEstimate(
            estimate_id=generate_estimate_id(),
            rider_id=rider_id,
            pickup=pickup,
            dropoff=dropoff,
            vehicle_class=vehicle_class,
            quote=quote,
            expires_at=now + timedelta(seconds=self.validity_seconds),
            available_drivers=available_drivers,
            estimated_pickup_minutes=estimated_pickup_minutes,
            created_at=now,
        )
        with self._lock:
            self._estimates[estimate.estimate_id] = estimate
        return estimate

    def redeem(self, estimate_id: str, rider_id: str) -> Optional[StoredEstimate]:
        """
        Marks the estimate used and returns it, or returns None when it is
        unknown, expired, already used or belongs to someone else.
        """
        now = self.clock()
        with self._lock:
            estimate = self._estimates.get(estimate_id)
            if estimate is None or estimate.is_used:
                return None
            if estimate.rider_id != rider_id or estimate.expires_at <= now:
                return None
            estimate = replace(estimate, is_used=True)
            self._estimates[estimate_id] = estimate
            return estimate

    def run_cycle(self, now: Optional[datetime] = None) -> int:
        now = now or self.clock()
        with self._lock:
            expired = [key for key, estimate in self._estimates.items() if estimate.expires_at <= now]
            for key in expired:
                del self._estimates[key]
        if expired:
            logger.debug("Dropped %d expired fare estimates", len(expired))
        return len(expired)
