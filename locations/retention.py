"""
Purpose: Retention sweep for rider positions.
What it does:
Deletes rider positions older than the retention window (24 hours by
default). Runs as a scheduled job (core.sweeper.PeriodicTask) instead of
piggybacking on every write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.clock import Clock, utc_now
from .store import LocationStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetentionPolicy:
    # how long a rider position may live after its last update
    rider_max_age_seconds: int = 24 * 60 * 60

    # how often the sweep wakes up
    sweep_interval_seconds: int = 15 * 60

    def validate(self) -> None:
        if self.rider_max_age_seconds <= 0:
            raise ValueError("rider_max_age_seconds must be > 0")
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")


def default_retention_policy() -> RetentionPolicy:
    p = RetentionPolicy()
    p.validate()
    return p


class PositionRetentionSweep:
    def __init__(self, store: LocationStore, policy: Optional[RetentionPolicy] = None, clock: Clock = utc_now):
        self.store = store
        self.policy = policy or default_retention_policy()
        self.clock = clock

    def run_cycle(self, now: Optional[datetime] = None) -> int:
        now = now or self.clock()
        removed = self.store.purge_older_than(self.policy.rider_max_age_seconds, now=now)
        if removed:
            logger.info("Retention sweep purged %d rider positions", removed)
        return removed
