"""
Purpose: Core data models for the live-location domain.
What it does:
- LocationUpdate: the raw fields a device reports (what arrives over the wire)
- Position: what the store keeps, one per subject, stamped with observed_at

Rule: validation of numeric ranges lives here so every store implementation
rejects the same inputs. No storage, no notifications.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from core.errors import ValidationError


@dataclass(frozen=True)
class LocationUpdate:
    latitude: float
    longitude: float
    heading: float = 0.0
    speed_kmh: float = 0.0
    accuracy_meters: float = 0.0
    # what the device claims; the store decides observed_at
    reported_at: Optional[datetime] = None

    @classmethod
    def parse(
        cls,
        latitude: Any,
        longitude: Any,
        heading: Any = None,
        speed_kmh: Any = None,
        accuracy_meters: Any = None,
        reported_at: Optional[datetime] = None,
    ) -> LocationUpdate:
        """
        Build an update from loosely-typed input (form data, JSON, CSV rows).
        Missing optional fields default to 0; anything unparseable is a
        ValidationError.
        """
        update = cls(
            latitude=_to_float("latitude", latitude),
            longitude=_to_float("longitude", longitude),
            heading=_to_float("heading", heading, default=0.0),
            speed_kmh=_to_float("speed", speed_kmh, default=0.0),
            accuracy_meters=_to_float("accuracy", accuracy_meters, default=0.0),
            reported_at=reported_at,
        )
        update.validate()
        return update

    def validate(self) -> None:
        if not _is_finite(self.latitude) or not -90.0 <= self.latitude <= 90.0:
            raise ValidationError("latitude must be a number between -90 and 90", field="latitude")
        if not _is_finite(self.longitude) or not -180.0 <= self.longitude <= 180.0:
            raise ValidationError("longitude must be a number between -180 and 180", field="longitude")
        # 360 is accepted and folded to 0 by normalized_heading()
        if not _is_finite(self.heading) or not 0.0 <= self.heading <= 360.0:
            raise ValidationError("heading must be between 0 and 360", field="heading")
        if not _is_finite(self.speed_kmh) or self.speed_kmh < 0:
            raise ValidationError("speed must be >= 0", field="speed")
        if not _is_finite(self.accuracy_meters) or self.accuracy_meters < 0:
            raise ValidationError("accuracy must be >= 0", field="accuracy")

    def normalized_heading(self) -> float:
        return self.heading % 360.0


@dataclass(frozen=True)
class Position:
    """
    A subject's most recent reported coordinates.
    Exactly one live Position exists per subject; updates replace it.
    """
    subject_id: str
    latitude: float
    longitude: float
    heading: float
    speed_kmh: float
    accuracy_meters: float
    observed_at: datetime

    @property
    def coordinates(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    def age_seconds(self, now: datetime) -> float:
        return (now - self.observed_at).total_seconds()

    def is_fresh(self, now: datetime, max_age_seconds: float) -> bool:
        return self.age_seconds(now) <= max_age_seconds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subjectId": self.subject_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "heading": self.heading,
            "speed": self.speed_kmh,
            "accuracy": self.accuracy_meters,
            "timestamp": self.observed_at.isoformat(),
        }


def _is_finite(value: float) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _to_float(name: str, value: Any, default: Optional[float] = None) -> float:
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{name} is required", field=name)
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number", field=name)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number", field=name)
