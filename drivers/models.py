"""
Purpose: Core data models for the drivers domain.
What it does:
Defines the read-only eligibility view of a Driver (operational, approval and
activity flags plus the vehicle class) and the display fields matching
results carry. The Driver entity itself is owned by another service; the
engine never mutates these fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from core.errors import ValidationError


class OperationalStatus(str, Enum):
    ONLINE = "online"
    BUSY = "busy"
    OFFLINE = "offline"


class ApprovalState(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ActiveState(str, Enum):
    ACTIVE = "active"
    DEACTIVE = "deactive"


class VehicleClass(str, Enum):
    SEDAN = "sedan"
    SUV = "suv"
    ELECTRIC = "electric"
    HATCHBACK = "hatchback"
    COUPE = "coupe"
    CONVERTIBLE = "convertible"
    WAGON = "wagon"
    PICKUP = "pickup"
    VAN = "van"
    MOTORCYCLE = "motorcycle"

    @classmethod
    def parse(cls, value: Any) -> VehicleClass:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("vehicleType is required", field="vehicleType")
        try:
            # older clients send "SUV"
            return cls(value.strip().lower())
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValidationError(f"Invalid vehicleType. Must be one of: {allowed}", field="vehicleType")


@dataclass(frozen=True)
class Driver:
    """
    Snapshot of a driver as the engine sees it.
    """
    id: str
    vehicle_class: VehicleClass
    operational_status: OperationalStatus = OperationalStatus.OFFLINE
    approval_state: ApprovalState = ApprovalState.PENDING
    active_state: ActiveState = ActiveState.ACTIVE

    # display info for matching results
    name: str = ""
    rating: float = 5.0
    vehicle_number: Optional[str] = None
    vehicle_model: Optional[str] = None
    vehicle_color: Optional[str] = None

    @classmethod
    def new(
        cls,
        driver_id: str,
        vehicle_class: str | VehicleClass = VehicleClass.SEDAN,
        operational_status: str | OperationalStatus = OperationalStatus.ONLINE,
        approval_state: str | ApprovalState = ApprovalState.APPROVED,
        active_state: str | ActiveState = ActiveState.ACTIVE,
        **display: Any,
    ) -> Driver:
        return cls(
            id=driver_id,
            vehicle_class=VehicleClass.parse(vehicle_class),
            operational_status=OperationalStatus(operational_status),
            approval_state=ApprovalState(approval_state),
            active_state=ActiveState(active_state),
            **display,
        )

    def display_info(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "rating": self.rating,
            "vehicleType": self.vehicle_class.value,
            "vehicleNumber": self.vehicle_number or "N/A",
            "vehicleModel": self.vehicle_model,
            "vehicleColor": self.vehicle_color,
        }
