from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from core.errors import ValidationError
from .distance import LatLon


@dataclass(frozen=True)
class Place:
    """A pickup or dropoff point: coordinates plus the human-readable address."""
    lat: float
    lng: float
    address: str = ""

    @property
    def coordinates(self) -> LatLon:
        return (self.lat, self.lng)

    @classmethod
    def parse(cls, value: Optional[Mapping[str, Any]], field: str) -> Place:
        """
        Accepts {lat, lng, address} or {latitude, longitude, address}.
        """
        if not isinstance(value, Mapping):
            raise ValidationError(f"{field} is required", field=field)
        lat = value.get("lat", value.get("latitude"))
        lng = value.get("lng", value.get("longitude"))
        try:
            lat = float(lat)
            lng = float(lng)
        except (TypeError, ValueError):
            raise ValidationError(f"{field} coordinates must be valid numbers", field=field)
        if not (math.isfinite(lat) and -90.0 <= lat <= 90.0 and math.isfinite(lng) and -180.0 <= lng <= 180.0):
            raise ValidationError(f"{field} coordinates are out of range", field=field)
        return cls(lat=lat, lng=lng, address=str(value.get("address") or ""))

    def to_dict(self) -> Dict[str, Any]:
        return {"lat": self.lat, "lng": self.lng, "address": self.address}
