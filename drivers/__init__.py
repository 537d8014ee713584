"""
Drivers domain package (read-only from the engine's point of view).

Public API:
- Driver, VehicleClass, OperationalStatus, ApprovalState, ActiveState
- is_matchable, filter_eligible_drivers, rejection_reason
- DriverDirectory
"""
from .models import Driver, VehicleClass, OperationalStatus, ApprovalState, ActiveState
from .eligibility import is_matchable, matches_vehicle_class, filter_eligible_drivers, rejection_reason
from .directory import DriverDirectory

__all__ = [
    "Driver",
    "VehicleClass",
    "OperationalStatus",
    "ApprovalState",
    "ActiveState",
    "is_matchable",
    "matches_vehicle_class",
    "filter_eligible_drivers",
    "rejection_reason",
    "DriverDirectory",
]
