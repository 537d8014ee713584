"""
Purpose: Earnings split and the ledger boundary.
What it does:
- compute_settlement(): final fare -> platform commission + driver earnings
- EarningsLedger: the collaborator that receives settled amounts (wallets,
  payouts). The engine writes to it after a ride is committed; a ledger
  failure is logged by the caller and never rolls the ride back.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List

from .models import Ride


@dataclass(frozen=True)
class Settlement:
    final_fare: float
    platform_commission: float
    driver_earnings: float
    tips: float
    bonuses: float


def compute_settlement(final_fare: float, commission_rate: float, tips: float = 0.0, bonuses: float = 0.0) -> Settlement:
    """
    platform_commission = final_fare * commission_rate
    driver_earnings     = final_fare - platform_commission + tips + bonuses

    Commission is rounded first and earnings take the remainder, so
    commission + earnings - tips - bonuses == final_fare exactly in cents.
    """
    final_fare = round(final_fare, 2)
    platform_commission = round(final_fare * commission_rate, 2)
    driver_earnings = round(final_fare - platform_commission + tips + bonuses, 2)
    return Settlement(
        final_fare=final_fare,
        platform_commission=platform_commission,
        driver_earnings=driver_earnings,
        tips=round(tips, 2),
        bonuses=round(bonuses, 2),
    )


class EarningsLedger(ABC):

    @abstractmethod
    def record_completion(self, ride: Ride) -> None: ...

    @abstractmethod
    def record_tip(self, ride: Ride, amount: float) -> None: ...


@dataclass
class DriverAccount:
    driver_id: str
    total_earned: float = 0.0
    tips: float = 0.0
    rides: int = 0
    entries: List[Dict] = field(default_factory=list)


class InMemoryEarningsLedger(EarningsLedger):
    """
    Keeps per-driver running totals. Stands in for the wallet service in
    tests, scripts and single-process deployments.
    """

    def __init__(self):
        self._accounts: Dict[str, DriverAccount] = {}
        self._lock = threading.Lock()

    def account(self, driver_id: str) -> DriverAccount:
        with self._lock:
            return self._accounts.setdefault(driver_id, DriverAccount(driver_id))

    def record_completion(self, ride: Ride) -> None:
        account = self.account(ride.driver_id)
        with self._lock:
            account.total_earned = round(account.total_earned + ride.driver_earnings, 2)
            account.rides += 1
            account.entries.append({
                "type": "ride",
                "rideId": ride.id,
                "fare": ride.final_fare,
                "commission": ride.platform_commission,
                "earnings": ride.driver_earnings,
            })

    def record_tip(self, ride: Ride, amount: float) -> None:
        account = self.account(ride.driver_id)
        with self._lock:
            account.total_earned = round(account.total_earned + amount, 2)
            account.tips = round(account.tips + amount, 2)
            account.entries.append({"type": "tip", "rideId": ride.id, "amount": amount})
