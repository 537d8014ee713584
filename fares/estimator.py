"""
Purpose: Deterministic pricing.
What it does:
- estimate(distance_km, vehicle_class): the quick fare shown next to each
  nearby driver
- breakdown(...): the full quote (base, distance, time, surge, tax, minimum),
  also used to re-price a completed ride
- quote_trip(pickup, dropoff, ...): breakdown for two Places

Every money amount is rounded to 2 decimals on the way out.
"""

from __future__ import annotations

from typing import Mapping, Optional

from core.errors import ValidationError
from drivers.models import VehicleClass
from geo.distance import distance_km
from geo.place import Place
from .models import FareQuote
from .rates import CURRENCY, RATE_TABLE, TAX_RATE, RateCard, validate_rate_table

# average urban speed used to turn a trip distance into minutes
AVERAGE_TRIP_SPEED_KMH = 30.0


def _money(amount: float) -> float:
    return round(amount, 2)


class FareEstimator:
    def __init__(
        self,
        rate_table: Optional[Mapping[VehicleClass, RateCard]] = None,
        tax_rate: float = TAX_RATE,
        currency: str = CURRENCY,
    ):
        self.rate_table = rate_table if rate_table is not None else RATE_TABLE
        validate_rate_table(self.rate_table)
        if tax_rate < 0:
            raise ValueError("tax_rate must be >= 0")
        self.tax_rate = tax_rate
        self.currency = currency

    def rate_card(self, vehicle_class) -> RateCard:
        return self.rate_table[VehicleClass.parse(vehicle_class)]

    def base_fare(self, vehicle_class) -> float:
        return self.rate_card(vehicle_class).base_fare

    def estimate(self, distance_km: float, vehicle_class) -> float:
        if distance_km < 0:
            raise ValidationError("distance must be >= 0", field="distance")
        card = self.rate_card(vehicle_class)
        return _money(card.base_fare + distance_km * card.per_km)

    @staticmethod
    def trip_minutes(distance_km: float) -> int:
        if distance_km <= 0:
            return 0
        return max(1, round(distance_km / AVERAGE_TRIP_SPEED_KMH * 60))

    def breakdown(
        self,
        distance_km: float,
        vehicle_class,
        duration_minutes: Optional[int] = None,
        surge_multiplier: float = 1.0,
    ) -> FareQuote:
        if distance_km < 0:
            raise ValidationError("distance must be >= 0", field="distance")
        if surge_multiplier < 1.0:
            raise ValidationError("surge multiplier must be >= 1.0", field="surgeMultiplier")
        if duration_minutes is None:
            duration_minutes = self.trip_minutes(distance_km)
        elif duration_minutes < 0:
            raise ValidationError("duration must be >= 0", field="duration")

        card = self.rate_card(vehicle_class)
        distance_fare = distance_km * card.per_km
        time_fare = duration_minutes * card.per_minute

        subtotal = (card.base_fare + distance_fare + time_fare) * surge_multiplier
        tax = subtotal * self.tax_rate
        total = max(subtotal + tax, card.minimum_fare)

        return FareQuote(
            base_fare=_money(card.base_fare),
            distance_fare=_money(distance_fare),
            time_fare=_money(time_fare),
            surge_multiplier=surge_multiplier,
            subtotal=_money(subtotal),
            tax=_money(tax),
            total=_money(total),
            distance_km=distance_km,
            duration_minutes=int(duration_minutes),
            currency=self.currency,
        )

    def quote_trip(
        self,
        pickup: Place,
        dropoff: Place,
        vehicle_class,
        duration_minutes: Optional[int] = None,
        surge_multiplier: float = 1.0,
    ) -> FareQuote:
        trip_km = distance_km(pickup.coordinates, dropoff.coordinates)
        return self.breakdown(trip_km, vehicle_class, duration_minutes, surge_multiplier)
