"""
Purpose: Keyed, upsertable store of the latest Position per subject.
What it does:
- upsert(subject_id, update) replaces the subject's previous Position
- latest(subject_id) returns it or raises NotFoundError
- recent(max_age_seconds) returns a snapshot for bulk matching scans
- purge_older_than(max_age_seconds) is for the retention sweep

Concurrency:
Upserts for the same subject are serialized by a per-subject lock, so the
later arrival always wins regardless of what timestamp the device claimed.
Different subjects never contend. Readers copy the value list and never take
a lock, so matching scans tolerate slightly stale data but never block writers.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from core.clock import Clock, utc_now
from core.errors import NotFoundError, ValidationError
from .models import LocationUpdate, Position


class LocationStore(ABC):
    """
    Repository interface. The in-memory implementation below is what the
    engine ships with; a Redis/DB-backed one only has to honour the same
    replace-not-append contract.
    """

    @abstractmethod
    def upsert(self, subject_id: str, update: LocationUpdate) -> Position: ...

    @abstractmethod
    def latest(self, subject_id: str) -> Position: ...

    @abstractmethod
    def recent(self, max_age_seconds: float, now: Optional[datetime] = None) -> List[Position]: ...

    @abstractmethod
    def purge_older_than(self, max_age_seconds: float, now: Optional[datetime] = None) -> int: ...

    def find(self, subject_id: str) -> Optional[Position]:
        try:
            return self.latest(subject_id)
        except NotFoundError:
            return None


class InMemoryLocationStore(LocationStore):
    def __init__(self, name: str = "locations", clock: Clock = utc_now):
        self.name = name
        self.clock = clock
        self._positions: Dict[str, Position] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._positions)

    def _lock_for(self, subject_id: str) -> threading.Lock:
        lock = self._locks.get(subject_id)
        if lock is None:
            with self._locks_guard:
                lock = self._locks.setdefault(subject_id, threading.Lock())
        return lock

    def upsert(self, subject_id: str, update: LocationUpdate) -> Position:
        if not subject_id:
            raise ValidationError("subject id is required", field="subjectId")
        update.validate()

        with self._lock_for(subject_id):
            now = self.clock()
            observed_at = now
            # an old claimed timestamp is kept so the position ages out of
            # matching; a claim from the future is not trusted
            if update.reported_at is not None and update.reported_at < now:
                observed_at = update.reported_at

            position = Position(
                subject_id=subject_id,
                latitude=update.latitude,
                longitude=update.longitude,
                heading=update.normalized_heading(),
                speed_kmh=update.speed_kmh,
                accuracy_meters=update.accuracy_meters,
                observed_at=observed_at,
            )
            self._positions[subject_id] = position
            return position

    def latest(self, subject_id: str) -> Position:
        position = self._positions.get(subject_id)
        if position is None:
            raise NotFoundError(f"No known position for {subject_id}", subject_id=subject_id)
        return position

    def recent(self, max_age_seconds: float, now: Optional[datetime] = None) -> List[Position]:
        now = now or self.clock()
        cutoff = now - timedelta(seconds=max_age_seconds)
        snapshot = list(self._positions.values())
        return [position for position in snapshot if position.observed_at >= cutoff]

    def all(self) -> List[Position]:
        return list(self._positions.values())

    def remove(self, subject_id: str) -> bool:
        with self._lock_for(subject_id):
            return self._positions.pop(subject_id, None) is not None

    def purge_older_than(self, max_age_seconds: float, now: Optional[datetime] = None) -> int:
        now = now or self.clock()
        cutoff = now - timedelta(seconds=max_age_seconds)
        removed = 0

        for subject_id, position in list(self._positions.items()):
            if position.observed_at >= cutoff:
                continue
            with self._lock_for(subject_id):
                # re-check under the lock: a fresh upsert may have landed meanwhile
                current = self._positions.get(subject_id)
                if current is not None and current.observed_at < cutoff:
                    del self._positions[subject_id]
                    removed += 1
        return removed
