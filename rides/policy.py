"""
Purpose: Central configuration for ride lifecycle money and time rules.
What it does:

COMMISSION_RATE = 0.20
FREE_CANCELLATION_SECONDS = 120
MAX_SCHEDULE_AHEAD_DAYS = 7

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class LifecyclePolicy:
    """
    Central configuration for RideLifecycle.
    """

    # --- Settlement ---
    # Share of the final fare kept by the platform.
    commission_rate: float = 0.20
    # Flat bonus credited to the driver on completion.
    completion_bonus: float = 0.0

    # --- Cancellation fees (charged only when the rider cancels) ---
    free_cancellation_seconds: int = 120
    driver_en_route_cancellation_fee: float = 5.0
    late_cancellation_fee: float = 2.0

    # --- Scheduling ---
    max_schedule_ahead_days: int = 7

    # --- Tips ---
    max_tip: float = 50.0

    # --- Search exhaustion ---
    # A ride with this many rejections is cancelled instead of re-queued.
    max_rejections: int = 5

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if not 0.0 <= self.commission_rate < 1.0:
            raise ValueError("commission_rate must be within [0, 1)")

        if self.completion_bonus < 0:
            raise ValueError("completion_bonus must be >= 0")

        if self.free_cancellation_seconds < 0:
            raise ValueError("free_cancellation_seconds must be >= 0")

        if self.driver_en_route_cancellation_fee < 0 or self.late_cancellation_fee < 0:
            raise ValueError("cancellation fees must be >= 0")

        if self.max_schedule_ahead_days <= 0:
            raise ValueError("max_schedule_ahead_days must be > 0")

        if self.max_tip <= 0:
            raise ValueError("max_tip must be > 0")

        if self.max_rejections <= 0:
            raise ValueError("max_rejections must be > 0")


def default_lifecycle_policy() -> LifecyclePolicy:
    """
    Convenience factory for the default policy, with environment overrides.
    """
    p = LifecyclePolicy(
        commission_rate=float(os.getenv("COMMISSION_RATE", "0.20")),
    )
    p.validate()
    return p
