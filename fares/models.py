from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class FareQuote:
    """
    Full fare breakdown for one pickup/dropoff/vehicle class tuple.
    Derived value; persisted only through FareQuoteBook.
    """
    base_fare: float
    distance_fare: float
    time_fare: float
    surge_multiplier: float
    subtotal: float
    tax: float
    total: float

    distance_km: float
    duration_minutes: int
    currency: str = "GBP"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "distance": {"kilometers": round(self.distance_km, 1)},
            "duration": {"minutes": self.duration_minutes, "formatted": f"{self.duration_minutes} min"},
            "fareBreakdown": {
                "baseFare": self.base_fare,
                "distanceFare": self.distance_fare,
                "timeFare": self.time_fare,
                "surgeMultiplier": self.surge_multiplier,
                "subtotal": self.subtotal,
                "tax": self.tax,
                "total": self.total,
            },
            "currency": self.currency,
        }
