"""
Purpose: The outbound notification contract.
What it does:
Defines the four calls the engine makes after a location upsert or a ride
state change. Implementations deliver them however they like; the engine
treats every call as fire-and-forget (see fanout.py).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from locations.models import Position

logger = logging.getLogger(__name__)


class NotificationDispatcher(ABC):

    @abstractmethod
    def notify_nearby_riders_of_driver_update(self, driver_id: str, position: Position) -> None:
        """Tell riders around the driver that the driver moved."""

    @abstractmethod
    def notify_ride_subscribers_of_driver_location(self, driver_id: str, position: Position) -> None:
        """Push the driver's position to whoever follows an active ride of that driver."""

    @abstractmethod
    def notify_ride_state_changed(self, ride_id: str, new_status: str, payload: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def notify_user(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        ...


class LoggingDispatcher(NotificationDispatcher):
    """
    Default dispatcher when no realtime gateway is configured.
    Writes every event to the log at DEBUG (location chatter) or INFO.
    """

    def notify_nearby_riders_of_driver_update(self, driver_id, position):
        logger.debug("driver %s moved to (%.6f, %.6f)", driver_id, position.latitude, position.longitude)

    def notify_ride_subscribers_of_driver_location(self, driver_id, position):
        logger.debug("ride subscribers of driver %s <- (%.6f, %.6f)", driver_id, position.latitude, position.longitude)

    def notify_ride_state_changed(self, ride_id, new_status, payload):
        logger.info("ride %s -> %s", ride_id, new_status)

    def notify_user(self, user_id, event_type, payload):
        logger.info("user %s <- %s", user_id, event_type)
