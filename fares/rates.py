"""
Purpose: Static per-vehicle-class rate tables (single source of truth).
What it does:

Stores the pricing parameters for every VehicleClass:

base fare, per-km rate, per-minute rate, minimum fare

plus the tax rate and currency.

Rule: No logic here beyond load-time validation. The table must cover every
VehicleClass; a missing or negative entry fails at import, not mid-request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from drivers.models import VehicleClass

CURRENCY = "GBP"
TAX_RATE = 0.20  # VAT


@dataclass(frozen=True)
class RateCard:
    base_fare: float
    per_km: float
    per_minute: float
    minimum_fare: float


RATE_TABLE: Mapping[VehicleClass, RateCard] = {
    VehicleClass.SEDAN: RateCard(base_fare=5.00, per_km=1.50, per_minute=0.25, minimum_fare=8.00),
    VehicleClass.SUV: RateCard(base_fare=7.00, per_km=2.00, per_minute=0.35, minimum_fare=10.00),
    VehicleClass.ELECTRIC: RateCard(base_fare=6.00, per_km=1.75, per_minute=0.30, minimum_fare=9.00),
    VehicleClass.HATCHBACK: RateCard(base_fare=4.50, per_km=1.25, per_minute=0.20, minimum_fare=7.00),
    VehicleClass.COUPE: RateCard(base_fare=6.50, per_km=1.75, per_minute=0.30, minimum_fare=9.00),
    VehicleClass.CONVERTIBLE: RateCard(base_fare=8.00, per_km=2.25, per_minute=0.40, minimum_fare=11.00),
    VehicleClass.WAGON: RateCard(base_fare=6.00, per_km=1.70, per_minute=0.30, minimum_fare=9.00),
    VehicleClass.PICKUP: RateCard(base_fare=7.50, per_km=2.10, per_minute=0.35, minimum_fare=10.00),
    VehicleClass.VAN: RateCard(base_fare=8.50, per_km=2.50, per_minute=0.45, minimum_fare=12.00),
    VehicleClass.MOTORCYCLE: RateCard(base_fare=3.50, per_km=1.00, per_minute=0.15, minimum_fare=5.00),
}


def validate_rate_table(table: Mapping[VehicleClass, RateCard]) -> None:
    """
    Every vehicle class needs a card, and no rate may be negative.
    """
    missing = [vehicle_class.value for vehicle_class in VehicleClass if vehicle_class not in table]
    if missing:
        raise ValueError(f"Rate table is missing vehicle classes: {', '.join(missing)}")

    for vehicle_class, card in table.items():
        if min(card.base_fare, card.per_km, card.per_minute, card.minimum_fare) < 0:
            raise ValueError(f"Rate card for {vehicle_class.value} has a negative rate")


validate_rate_table(RATE_TABLE)
