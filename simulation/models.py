"""
Engine data model: flights, history, zones, alerts and recorded positions.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Deque, Iterator, NamedTuple, Optional, Tuple

from contracts.constants import (
    FLIGHT_STATUS_ON_TIME,
    FLIGHT_STATUS_DELAYED,
    FLIGHT_STATUS_LANDED,
    FLIGHT_STATUS_LOST_COMM,
    ALERT_TYPE_LOST_COMM,
    ALERT_TYPE_RESTRICTED_ZONE,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    SEVERITY_HIGH,
    ZONE_TYPE_MILITARY,
    ZONE_TYPE_AIRPORT,
    ZONE_TYPE_RESTRICTED,
)
from contracts.validation import (
    AlertPayload,
    FlightSnapshot,
    HistoryPoint,
    RestrictedZonePayload,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FlightStatus(str, Enum):
    ON_TIME = FLIGHT_STATUS_ON_TIME
    DELAYED = FLIGHT_STATUS_DELAYED
    LANDED = FLIGHT_STATUS_LANDED
    LOST_COMM = FLIGHT_STATUS_LOST_COMM


class AlertType(str, Enum):
    LOST_COMM = ALERT_TYPE_LOST_COMM
    RESTRICTED_ZONE = ALERT_TYPE_RESTRICTED_ZONE


class Severity(str, Enum):
    LOW = SEVERITY_LOW
    MEDIUM = SEVERITY_MEDIUM
    HIGH = SEVERITY_HIGH


class ZoneType(str, Enum):
    MILITARY = ZONE_TYPE_MILITARY
    AIRPORT = ZONE_TYPE_AIRPORT
    RESTRICTED = ZONE_TYPE_RESTRICTED


class HistoryBuffer:
    """Bounded recent-position ring; the oldest entry is evicted first."""

    def __init__(self, capacity: int = 50):
        if capacity <= 0:
            raise ValueError(f"History capacity must be positive, got {capacity}")
        self._points: Deque[HistoryPoint] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._points.maxlen

    def append(self, point: HistoryPoint) -> None:
        self._points.append(point)

    def latest(self) -> Optional[HistoryPoint]:
        return self._points[-1] if self._points else None

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[HistoryPoint]:
        return iter(self._points)


@dataclass
class FlightState:
    """
    Mutable per-flight state, owned by the simulator.

    Everything outside the simulator reads FlightSnapshot copies.
    """
    id: str
    flight_number: str
    lat: float
    lng: float
    altitude: float
    speed: float
    heading: float
    status: FlightStatus = FlightStatus.ON_TIME
    history: HistoryBuffer = field(default_factory=HistoryBuffer)
    updated_at: datetime = field(default_factory=utcnow)

    aircraft: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None

    def record_position(self) -> None:
        """Append the current position to the history buffer."""
        self.history.append(HistoryPoint(
            lat=self.lat,
            lng=self.lng,
            heading=self.heading,
            altitude=self.altitude,
            speed=self.speed,
            timestamp=self.updated_at,
        ))

    def snapshot(self) -> FlightSnapshot:
        return FlightSnapshot(
            id=self.id,
            flight_number=self.flight_number,
            lat=self.lat,
            lng=self.lng,
            altitude=self.altitude,
            speed=self.speed,
            heading=self.heading,
            status=self.status.value,
            history=tuple(self.history),
            updated_at=self.updated_at,
            aircraft=self.aircraft,
            origin=self.origin,
            destination=self.destination,
        )


@dataclass(frozen=True)
class RestrictedZone:
    id: str
    name: str
    center: Tuple[float, float]
    radius: float  # meters
    type: ZoneType

    def to_payload(self) -> RestrictedZonePayload:
        return RestrictedZonePayload(
            id=self.id,
            name=self.name,
            center=self.center,
            radius=self.radius,
            type=self.type.value,
        )


class AlertKey(NamedTuple):
    """Dedup key: at most one live alert per key."""
    flight_id: str
    alert_type: AlertType
    zone_id: Optional[str] = None


@dataclass(frozen=True)
class Alert:
    id: str
    flight_id: str
    type: AlertType
    message: str
    timestamp: datetime
    severity: Severity
    zone_id: Optional[str] = None
    zone_name: Optional[str] = None
    zone_type: Optional[ZoneType] = None

    @property
    def key(self) -> AlertKey:
        return AlertKey(self.flight_id, self.type, self.zone_id)

    def to_payload(self) -> AlertPayload:
        return AlertPayload(
            id=self.id,
            flight_id=self.flight_id,
            type=self.type.value,
            message=self.message,
            timestamp=self.timestamp,
            severity=self.severity.value,
            zone_id=self.zone_id,
            zone_name=self.zone_name,
            zone_type=self.zone_type.value if self.zone_type else None,
        )


@dataclass(frozen=True)
class PositionEntry:
    """One persisted position of a recorded flight."""
    lat: float
    lng: float
    heading: float
    altitude: float
    speed: float
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "lat": self.lat,
            "lng": self.lng,
            "heading": self.heading,
            "altitude": self.altitude,
            "speed": self.speed,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class PositionLog:
    """Header of a persisted position log."""
    flight_id: str
    created_at: datetime
    updated_at: datetime
    position_count: int = 0
