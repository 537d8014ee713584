"""
Purpose: Read-only lookup of driver eligibility views.
What it does:
The Driver entity (documents, approval, online toggle) is managed by another
service. That service pushes snapshots in with `publish`; the engine only
ever calls `get`/`find`.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional

from core.errors import NotFoundError
from .models import Driver


class DriverDirectory:
    def __init__(self, drivers: Iterable[Driver] = ()):
        self._drivers: Dict[str, Driver] = {}
        self._lock = threading.Lock()
        for driver in drivers:
            self.publish(driver)

    def __len__(self) -> int:
        return len(self._drivers)

    def __contains__(self, driver_id: str) -> bool:
        return driver_id in self._drivers

    def publish(self, driver: Driver) -> None:
        """Called by the Driver service whenever a driver's flags change."""
        with self._lock:
            self._drivers[driver.id] = driver

    def withdraw(self, driver_id: str) -> None:
        with self._lock:
            self._drivers.pop(driver_id, None)

    def find(self, driver_id: str) -> Optional[Driver]:
        return self._drivers.get(driver_id)

    def get(self, driver_id: str) -> Driver:
        driver = self._drivers.get(driver_id)
        if driver is None:
            raise NotFoundError(f"Driver {driver_id} not found", driver_id=driver_id)
        return driver

    def all(self) -> List[Driver]:
        return list(self._drivers.values())
