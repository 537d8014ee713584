"""
Live-location capability: the latest known Position per driver and per rider.

Public API:
- Position, LocationUpdate
- LocationStore (interface), InMemoryLocationStore
- LocationService (validation + notification fan-out)
- RetentionPolicy, PositionRetentionSweep
"""
from .models import Position, LocationUpdate
from .store import LocationStore, InMemoryLocationStore
from .service import LocationService
from .retention import RetentionPolicy, PositionRetentionSweep, default_retention_policy

__all__ = [
    "Position",
    "LocationUpdate",
    "LocationStore",
    "InMemoryLocationStore",
    "LocationService",
    "RetentionPolicy",
    "PositionRetentionSweep",
    "default_retention_policy",
]
