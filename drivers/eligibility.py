"""
Purpose: Hard eligibility gates for matching.
What it does:
Decides whether a driver may be offered rides at all: online, approved and
active, and (optionally) of the requested vehicle class.

Rule: only cheap boolean checks here. Callers run these before any distance
math so ineligible drivers never cost a haversine.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, List, Optional

from .models import ActiveState, ApprovalState, Driver, OperationalStatus, VehicleClass


def is_matchable(driver: Driver) -> bool:
    return (
        driver.operational_status == OperationalStatus.ONLINE
        and driver.approval_state == ApprovalState.APPROVED
        and driver.active_state == ActiveState.ACTIVE
    )


def matches_vehicle_class(driver: Driver, vehicle_class: Optional[VehicleClass]) -> bool:
    return vehicle_class is None or driver.vehicle_class == vehicle_class


def rejection_reason(driver: Optional[Driver], vehicle_class: Optional[VehicleClass] = None) -> Optional[str]:
    """
    Returns why a driver is excluded, or None if eligible.
    Used for the filtering counters the matcher logs.
    """
    if driver is None:
        return "no_driver"
    if driver.operational_status != OperationalStatus.ONLINE:
        return "not_online"
    if driver.approval_state != ApprovalState.APPROVED:
        return "not_approved"
    if driver.active_state != ActiveState.ACTIVE:
        return "not_active"
    if not matches_vehicle_class(driver, vehicle_class):
        return "vehicle_type_mismatch"
    return None


def filter_eligible_drivers(
    drivers: Iterable[Driver],
    vehicle_class: Optional[VehicleClass] = None,
    counters: Optional[Counter] = None,
) -> List[Driver]:
    """
    Returns only drivers who are online, approved, active and of the
    requested class, preserving input order.
    """
    eligible = []

    for driver in drivers:
        reason = rejection_reason(driver, vehicle_class)
        if reason is not None:
            if counters is not None:
                counters[reason] += 1
            continue

        eligible.append(driver)

    return eligible
