"""
Purpose: Wake scheduled rides when their time comes.
What it does:
Each cycle finds SCHEDULED rides whose scheduled_for has passed, moves them to
PENDING and hands them to `on_activated` (normally the dispatcher, which starts
the driver search).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from core.clock import Clock, utc_now
from core.errors import ConflictError, InvalidTransitionError
from .lifecycle import RideLifecycle
from .models import Ride
from .repository import RideRepository

logger = logging.getLogger(__name__)


class ScheduledRideActivator:
    def __init__(
        self,
        lifecycle: RideLifecycle,
        repository: RideRepository,
        on_activated: Optional[Callable[[Ride], None]] = None,
        clock: Clock = utc_now,
    ):
        self.lifecycle = lifecycle
        self.repository = repository
        self.on_activated = on_activated
        self.clock = clock

    def run_cycle(self, now: Optional[datetime] = None) -> List[Ride]:
        now = now or self.clock()
        activated: List[Ride] = []

        for ride in self.repository.due_scheduled(now):
            try:
                ride = self.lifecycle.activate(ride.id)
            except (ConflictError, InvalidTransitionError):
                # cancelled or activated by someone else in the meantime
                logger.debug("Skipping scheduled ride %s: no longer scheduled", ride.id)
                continue
            activated.append(ride)

            if self.on_activated is not None:
                try:
                    self.on_activated(ride)
                except Exception:
                    logger.exception("Dispatch of activated ride %s failed", ride.id)

        if activated:
            logger.info("Activated %d scheduled ride(s)", len(activated))
        return activated
