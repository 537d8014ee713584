#Purpose: HTTP adapter to the realtime gateway (socket/push service).
#Sole responsibility: turn dispatcher calls into JSON POSTs and report
#non-2xx answers as WebhookError.
#It should not contain ride rules, retries or fan-out; the caller
#(NotificationFanout) decides what a failure means.

from __future__ import annotations

import os
from typing import Any, Dict, Optional

import requests
from dotenv import load_dotenv

from locations.models import Position
from .dispatcher import NotificationDispatcher

# Example in .env:
# NOTIFICATION_WEBHOOK_URL=http://realtime.internal:8080/events
load_dotenv()


class WebhookError(Exception):
    """The gateway refused or failed to accept an event."""
    pass


class WebhookDispatcher(NotificationDispatcher):
    """
    Posts every event to `{base_url}/{event}` as JSON:

        {"event": "...", "data": {...}}

    One HTTP call per notification, no retries (at-most-once from the
    engine's point of view).
    """

    def __init__(self, base_url: str, timeout: float = 3, session: Optional[requests.Session] = None):
        if not base_url:
            raise ValueError("Webhook base URL not set. Please set NOTIFICATION_WEBHOOK_URL.")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout #seconds to wait for the gateway before giving up
        self.session = session or requests.Session()

    def _post(self, event: str, data: Dict[str, Any]) -> None:
        url = f"{self.base_url}/{event}"
        response = self.session.post(url, json={"event": event, "data": data}, timeout=self.timeout)
        if response.status_code >= 300:
            raise WebhookError(f"Gateway returned {response.status_code} for {event}")

    def notify_nearby_riders_of_driver_update(self, driver_id: str, position: Position) -> None:
        self._post("driver-location", {"driverId": driver_id, "scope": "nearby-riders", **position.to_dict()})

    def notify_ride_subscribers_of_driver_location(self, driver_id: str, position: Position) -> None:
        self._post("driver-location", {"driverId": driver_id, "scope": "ride-subscribers", **position.to_dict()})

    def notify_ride_state_changed(self, ride_id: str, new_status: str, payload: Dict[str, Any]) -> None:
        self._post("ride-status", {"rideId": ride_id, "status": new_status, "ride": payload})

    def notify_user(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        self._post("user-event", {"userId": user_id, "type": event_type, "payload": payload})


def webhook_dispatcher_from_env() -> Optional[WebhookDispatcher]:
    """
    Returns a WebhookDispatcher when NOTIFICATION_WEBHOOK_URL is set, else None.
    """
    base_url = os.getenv("NOTIFICATION_WEBHOOK_URL")
    if not base_url:
        return None
    timeout = float(os.getenv("NOTIFICATION_TIMEOUT", "3"))
    return WebhookDispatcher(base_url, timeout=timeout)
