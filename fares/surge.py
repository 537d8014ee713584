"""
Purpose: Demand-based surge heuristic.
What it does:
Multiplies fares during weekday rush hours and when nearby supply is thin.
Rush hours are local wall-clock time in the operating region (UK), so they
follow the GMT/BST switch.
Deliberately simple; a real demand model would replace this function and
keep its signature.
"""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

PEAK_MULTIPLIER = 1.3
LOW_SUPPLY_MULTIPLIER = 1.2

OPERATING_TIMEZONE = ZoneInfo("Europe/London")


def is_peak_hour(at: datetime) -> bool:
    # naive datetimes are taken as UTC
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    local = at.astimezone(OPERATING_TIMEZONE)
    # weekdays, 07:00-09:59 and 17:00-19:59
    return local.weekday() < 5 and (7 <= local.hour <= 9 or 17 <= local.hour <= 19)


def surge_multiplier(at: datetime, available_drivers: int, requested_drivers: int = 1) -> float:
    multiplier = 1.0

    if is_peak_hour(at):
        multiplier *= PEAK_MULTIPLIER

    if available_drivers < requested_drivers * 2:
        multiplier *= LOW_SUPPLY_MULTIPLIER

    return round(multiplier, 1)
