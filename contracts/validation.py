"""
Validation library for SkyWatch message contracts.

Provides Pydantic models for everything that crosses the engine boundary:
flight snapshots, alerts, restricted zones and WebSocket messages.
JSON field names are camelCase; Python attribute names are snake_case.
"""

from typing import Optional, Literal
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from contracts.constants import (
    SCHEMA_VERSION,
    WS_MESSAGE_TYPE_SNAPSHOT,
    WS_MESSAGE_TYPE_TICK,
)


FlightStatusLiteral = Literal["on-time", "delayed", "landed", "lost-comm"]
AlertTypeLiteral = Literal["lost-comm", "restricted-zone"]
SeverityLiteral = Literal["high", "medium", "low"]
ZoneTypeLiteral = Literal["military", "airport", "restricted"]


class WireModel(BaseModel):
    """Base for camelCase wire models."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict:
        """JSON-ready dict using wire (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)


# ============================================================================
# Flight Snapshot
# ============================================================================

class HistoryPoint(WireModel):
    """One entry of the live history buffer."""
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    heading: float = Field(ge=0, lt=360)
    altitude: float
    speed: float
    timestamp: datetime


class FlightSnapshot(WireModel):
    """Immutable per-flight state as published after a tick."""
    id: str = Field(min_length=1)
    flight_number: str
    lat: float = Field(ge=-90, le=90, description="Latitude in degrees")
    lng: float = Field(ge=-180, le=180, description="Longitude in degrees")
    altitude: float = Field(description="Altitude in feet")
    speed: float = Field(ge=0, description="Ground speed in knots")
    heading: float = Field(ge=0, lt=360, description="Heading in degrees [0, 360)")
    status: FlightStatusLiteral
    history: tuple[HistoryPoint, ...] = ()
    updated_at: datetime
    aircraft: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None


# ============================================================================
# Alerts and Zones
# ============================================================================

class AlertPayload(WireModel):
    """Alert as seen by consumers."""
    id: str
    flight_id: str
    type: AlertTypeLiteral
    message: str
    timestamp: datetime
    severity: SeverityLiteral
    zone_id: Optional[str] = None
    zone_name: Optional[str] = None
    zone_type: Optional[ZoneTypeLiteral] = None


class RestrictedZonePayload(WireModel):
    """Static restricted zone definition."""
    id: str
    name: str
    center: tuple[float, float]
    radius: float = Field(gt=0, description="Radius in meters")
    type: ZoneTypeLiteral


# ============================================================================
# WebSocket Messages
# ============================================================================

class SnapshotMessage(WireModel):
    """WebSocket snapshot message (sent on connect and on request)."""
    schema_version: int = SCHEMA_VERSION
    type: Literal["snapshot"] = WS_MESSAGE_TYPE_SNAPSHOT
    timestamp: datetime
    sequence: int = Field(ge=0)
    flights: tuple[FlightSnapshot, ...]
    alerts: tuple[AlertPayload, ...] = ()


class TickMessage(WireModel):
    """WebSocket tick message (full snapshot plus alerts created this tick)."""
    schema_version: int = SCHEMA_VERSION
    type: Literal["tick"] = WS_MESSAGE_TYPE_TICK
    timestamp: datetime
    sequence: int = Field(ge=0)
    flights: tuple[FlightSnapshot, ...]
    alerts: tuple[AlertPayload, ...] = ()


# ============================================================================
# Control Surface Requests
# ============================================================================

class SeedRequest(WireModel):
    """Reseed request body; count is range-checked by the engine."""
    count: Optional[int] = None


class RecordingRequest(WireModel):
    """Start/stop recording request body."""
    flight_id: str = ""


# ============================================================================
# Validation Functions
# ============================================================================

def validate_flight_snapshot(data: dict) -> tuple[bool, Optional[FlightSnapshot], Optional[str]]:
    """
    Validate FlightSnapshot.

    Returns:
        (is_valid, snapshot_or_none, error_message_or_none)
    """
    try:
        return True, FlightSnapshot.model_validate(data), None
    except ValidationError as e:
        return False, None, str(e)


def validate_alert(data: dict) -> tuple[bool, Optional[AlertPayload], Optional[str]]:
    """
    Validate AlertPayload.

    Returns:
        (is_valid, alert_or_none, error_message_or_none)
    """
    try:
        return True, AlertPayload.model_validate(data), None
    except ValidationError as e:
        return False, None, str(e)


def validate_snapshot_message(data: dict) -> tuple[bool, Optional[SnapshotMessage], Optional[str]]:
    """
    Validate SnapshotMessage.

    Returns:
        (is_valid, message_or_none, error_message_or_none)
    """
    try:
        return True, SnapshotMessage.model_validate(data), None
    except ValidationError as e:
        return False, None, str(e)


def validate_tick_message(data: dict) -> tuple[bool, Optional[TickMessage], Optional[str]]:
    """
    Validate TickMessage.

    Returns:
        (is_valid, message_or_none, error_message_or_none)
    """
    try:
        return True, TickMessage.model_validate(data), None
    except ValidationError as e:
        return False, None, str(e)
