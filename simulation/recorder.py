"""
Selective long-term position recorder.

Only flights in the RecordingRegistry are recorded (the engine checks
membership each tick). A position is persisted only when it moved by more
than epsilon in latitude or longitude since the last stored entry, and each
log keeps at most max_positions entries (oldest dropped first).
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional

from contracts.constants import (
    RECORD_OUTCOME_SAVED,
    RECORD_OUTCOME_UNCHANGED,
    RECORD_OUTCOME_FAILED,
)
from simulation import geo
from simulation.errors import PersistenceError
from simulation.metrics import PERSIST_LATENCY, RECORD_RESULTS, RECORDINGS_ACTIVE
from simulation.models import PositionEntry, utcnow
from simulation.store import PositionStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_POSITIONS = 5000
DEFAULT_EPSILON = 1e-10


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RecordOutcome(str, Enum):
    SAVED = RECORD_OUTCOME_SAVED
    UNCHANGED = RECORD_OUTCOME_UNCHANGED
    FAILED = RECORD_OUTCOME_FAILED


@dataclass(frozen=True)
class RecordResult:
    """Outcome of one record_if_changed call, passed by value."""
    outcome: RecordOutcome
    flight_id: str
    position_count: Optional[int] = None
    reason: Optional[str] = None
    at: Optional[datetime] = None

    @property
    def saved(self) -> bool:
        return self.outcome is RecordOutcome.SAVED

    @classmethod
    def failed(cls, flight_id: str, reason: str) -> "RecordResult":
        return cls(RecordOutcome.FAILED, flight_id, reason=reason, at=utcnow())

    def to_dict(self) -> dict:
        return {
            "flightId": self.flight_id,
            "outcome": self.outcome.value,
            "saved": self.saved,
            "positionCount": self.position_count,
            "reason": self.reason,
            "at": self.at.isoformat() if self.at else None,
        }


class RecordingRegistry:
    """Thread-safe set of flight ids opted into recording."""

    def __init__(self):
        self._flight_ids: set[str] = set()
        self._lock = threading.Lock()

    def start(self, flight_id: str) -> None:
        with self._lock:
            self._flight_ids.add(str(flight_id))
            RECORDINGS_ACTIVE.set(len(self._flight_ids))

    def stop(self, flight_id: str) -> bool:
        with self._lock:
            present = str(flight_id) in self._flight_ids
            self._flight_ids.discard(str(flight_id))
            RECORDINGS_ACTIVE.set(len(self._flight_ids))
            return present

    def is_recording(self, flight_id: str) -> bool:
        with self._lock:
            return str(flight_id) in self._flight_ids

    def flight_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._flight_ids)

    def clear(self) -> None:
        with self._lock:
            self._flight_ids.clear()
            RECORDINGS_ACTIVE.set(0)

    def __contains__(self, flight_id: str) -> bool:
        return self.is_recording(flight_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._flight_ids)


@dataclass(frozen=True)
class PositionStats:
    flight_id: str
    total_positions: int
    first_position: Optional[PositionEntry]
    last_position: Optional[PositionEntry]
    distance_traveled_m: float
    time_span_seconds: float

    def to_dict(self) -> dict:
        return {
            "flightId": self.flight_id,
            "totalPositions": self.total_positions,
            "firstPosition": self.first_position.to_dict() if self.first_position else None,
            "lastPosition": self.last_position.to_dict() if self.last_position else None,
            "distanceTraveledM": self.distance_traveled_m,
            "timeSpanSeconds": self.time_span_seconds,
        }


@dataclass(frozen=True)
class ChangeStats:
    flight_id: str
    total_changes: int
    average_lat_change: float
    average_lng_change: float
    total_positions: int

    def to_dict(self) -> dict:
        return {
            "flightId": self.flight_id,
            "totalChanges": self.total_changes,
            "averageLatChange": self.average_lat_change,
            "averageLngChange": self.average_lng_change,
            "totalPositions": self.total_positions,
        }


class PositionRecorder:
    """Change-detecting, FIFO-capped writer over a PositionStore."""

    def __init__(
        self,
        store: PositionStore,
        max_positions: int = DEFAULT_MAX_POSITIONS,
        epsilon: float = DEFAULT_EPSILON,
    ):
        if max_positions <= 0:
            raise ValueError(f"max_positions must be positive, got {max_positions}")
        self.store = store
        self.max_positions = max_positions
        self.epsilon = epsilon
        self._flight_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, flight_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._flight_locks.get(flight_id)
            if lock is None:
                lock = self._flight_locks[flight_id] = threading.Lock()
            return lock

    def has_changed(self, last: Optional[PositionEntry], lat: float, lng: float) -> bool:
        if last is None:
            return True
        return abs(last.lat - lat) > self.epsilon or abs(last.lng - lng) > self.epsilon

    def record_if_changed(
        self,
        flight_id: str,
        lat: float,
        lng: float,
        heading: float = 0.0,
        altitude: float = 0.0,
        speed: float = 0.0,
        timestamp: Optional[datetime] = None,
    ) -> RecordResult:
        """
        Persist a position unless it matches the last stored one.

        Read-modify-write is serialized per flight id. Store failures come
        back as a FAILED result and are never raised.
        """
        with self._lock_for(flight_id):
            started = time.time()
            try:
                log = self.store.find_or_create(flight_id)
                last = self.store.last_position(flight_id) if log.position_count else None

                if not self.has_changed(last, lat, lng):
                    result = RecordResult(
                        RecordOutcome.UNCHANGED,
                        flight_id,
                        position_count=log.position_count,
                        reason="Coordinates unchanged",
                        at=utcnow(),
                    )
                else:
                    entry = PositionEntry(
                        lat=lat,
                        lng=lng,
                        heading=heading or 0.0,
                        altitude=altitude or 0.0,
                        speed=speed or 0.0,
                        timestamp=as_utc(timestamp) if timestamp else utcnow(),
                    )
                    count = self.store.append(flight_id, entry, self.max_positions)
                    PERSIST_LATENCY.observe(time.time() - started)
                    result = RecordResult(
                        RecordOutcome.SAVED,
                        flight_id,
                        position_count=count,
                        reason="Coordinates changed" if last else "First position for flight",
                        at=utcnow(),
                    )
            except PersistenceError as e:
                logger.warning(f"Recording failed for flight {flight_id}: {e}")
                result = RecordResult.failed(flight_id, str(e))

        RECORD_RESULTS.labels(outcome=result.outcome.value).inc()
        return result

    def start(self, flight_id: str) -> None:
        """Begin a fresh recording session: any existing log is emptied."""
        with self._lock_for(flight_id):
            self.store.clear(flight_id)
        logger.info(f"Recording session started for flight {flight_id}")

    # ------------------------------------------------------------------
    # Reads, recomputed from the store on every call
    # ------------------------------------------------------------------

    def positions(self, flight_id: str) -> List[PositionEntry]:
        return self.store.positions(flight_id)

    def positions_in_range(self, flight_id: str, start: datetime, end: datetime) -> List[PositionEntry]:
        """Entries with start <= timestamp <= end. Naive bounds are taken as UTC."""
        start, end = as_utc(start), as_utc(end)
        return [p for p in self.store.positions(flight_id) if start <= p.timestamp <= end]

    def stats(self, flight_id: str) -> PositionStats:
        positions = self.store.positions(flight_id)
        if not positions:
            return PositionStats(flight_id, 0, None, None, 0.0, 0.0)

        traveled = sum(
            geo.distance((prev.lat, prev.lng), (curr.lat, curr.lng))
            for prev, curr in zip(positions, positions[1:])
        )
        first, last = positions[0], positions[-1]
        return PositionStats(
            flight_id=flight_id,
            total_positions=len(positions),
            first_position=first,
            last_position=last,
            distance_traveled_m=traveled,
            time_span_seconds=(last.timestamp - first.timestamp).total_seconds(),
        )

    def change_stats(self, flight_id: str) -> ChangeStats:
        positions = self.store.positions(flight_id)
        if len(positions) < 2:
            return ChangeStats(flight_id, 0, 0.0, 0.0, len(positions))

        steps = list(zip(positions, positions[1:]))
        lat_total = sum(abs(curr.lat - prev.lat) for prev, curr in steps)
        lng_total = sum(abs(curr.lng - prev.lng) for prev, curr in steps)
        return ChangeStats(
            flight_id=flight_id,
            total_changes=len(steps),
            average_lat_change=lat_total / len(steps),
            average_lng_change=lng_total / len(steps),
            total_positions=len(positions),
        )

    def recorded_flights(self) -> List[str]:
        return self.store.flight_ids()

    def delete(self, flight_id: str) -> bool:
        with self._lock_for(flight_id):
            deleted = self.store.delete(flight_id)
        self.prune_locks(keep=())
        return deleted

    def prune_locks(self, keep: Iterable[str] = ()) -> None:
        """Forget per-flight locks that are idle and not in keep."""
        keep = set(keep)
        with self._locks_guard:
            for flight_id, lock in list(self._flight_locks.items()):
                if flight_id not in keep and not lock.locked():
                    del self._flight_locks[flight_id]

    def cleanup(self, retention_days: int = 7) -> int:
        """Drop logs not updated within the retention window."""
        cutoff = utcnow() - timedelta(days=retention_days)
        removed = self.store.delete_older_than(cutoff)
        if removed:
            logger.info(f"Removed {removed} position logs older than {retention_days} days")
        return removed
