"""
Purpose: Central configuration for driver matching and dispatch.
What it does:

Stores all tunable thresholds for finding drivers and pushing offers:

STALENESS_WINDOW_SECONDS = 300
MAX_RESULTS = 50
FALLBACK_SPEED_KMH = 30

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class MatchingPolicy:
    """
    Central configuration for the GeoMatcher and the RideDispatcher.
    """

    # --- Freshness ---
    # A position older than this is invisible to matching (but still stored).
    staleness_window_seconds: int = 300

    # --- Result shaping ---
    max_results: int = 50

    # --- ETA heuristic ---
    # Used when the driver reports speed 0 (parked, or an old client).
    fallback_speed_kmh: float = 30.0

    # --- Search radii (km) ---
    default_radius_km: float = 5.0
    max_radius_km: float = 50.0
    # Radius the system search uses when a ride is booked.
    dispatch_radius_km: float = 10.0

    # --- Operating region ---
    # False: drivers outside the region are logged and still matched.
    # True: they are excluded.
    enforce_operating_region: bool = False

    # --- Pickup estimate ---
    # Pickup time quoted to riders = mean ETA of the N closest drivers.
    pickup_eta_sample_size: int = 3
    default_pickup_minutes: int = 15

    # --- Dispatch ---
    # Automatically assign the closest driver instead of broadcasting offers.
    auto_assign: bool = False

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.staleness_window_seconds <= 0:
            raise ValueError("staleness_window_seconds must be > 0")

        if self.max_results <= 0:
            raise ValueError("max_results must be > 0")

        if self.fallback_speed_kmh <= 0:
            raise ValueError("fallback_speed_kmh must be > 0")

        if not 0 < self.default_radius_km <= self.max_radius_km:
            raise ValueError("default_radius_km must be within (0, max_radius_km]")

        if not 0 < self.dispatch_radius_km <= self.max_radius_km:
            raise ValueError("dispatch_radius_km must be within (0, max_radius_km]")

        if self.pickup_eta_sample_size <= 0:
            raise ValueError("pickup_eta_sample_size must be > 0")


def default_matching_policy() -> MatchingPolicy:
    """
    Convenience factory for the default policy, with environment overrides.
    """
    p = MatchingPolicy(
        enforce_operating_region=_env_flag("ENFORCE_OPERATING_REGION"),
        auto_assign=_env_flag("DISPATCH_AUTO_ASSIGN"),
    )
    p.validate()
    return p
