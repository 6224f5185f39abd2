"""
SkyWatch Contracts Package

Provides shared constants and validation for message contracts.
"""

from contracts.constants import *
from contracts.validation import (
    HistoryPoint,
    FlightSnapshot,
    AlertPayload,
    RestrictedZonePayload,
    SnapshotMessage,
    TickMessage,
    SeedRequest,
    RecordingRequest,
    validate_flight_snapshot,
    validate_alert,
    validate_snapshot_message,
    validate_tick_message,
)

__all__ = [
    # Constants
    "SCHEMA_VERSION",
    "FLIGHT_STATUS_ON_TIME",
    "FLIGHT_STATUS_DELAYED",
    "FLIGHT_STATUS_LANDED",
    "FLIGHT_STATUS_LOST_COMM",
    "ALERT_TYPE_LOST_COMM",
    "ALERT_TYPE_RESTRICTED_ZONE",
    "SEVERITY_LOW",
    "SEVERITY_MEDIUM",
    "SEVERITY_HIGH",
    "ZONE_TYPE_MILITARY",
    "ZONE_TYPE_AIRPORT",
    "ZONE_TYPE_RESTRICTED",
    "WS_MESSAGE_TYPE_SNAPSHOT",
    "WS_MESSAGE_TYPE_TICK",
    "WS_MESSAGE_TYPE_PONG",
    "WS_MESSAGE_TYPE_ERROR",
    "WS_REQUEST_PING",
    "WS_REQUEST_FLIGHTS",
    "RECORD_OUTCOME_SAVED",
    "RECORD_OUTCOME_UNCHANGED",
    "RECORD_OUTCOME_FAILED",
    # Models
    "HistoryPoint",
    "FlightSnapshot",
    "AlertPayload",
    "RestrictedZonePayload",
    "SnapshotMessage",
    "TickMessage",
    "SeedRequest",
    "RecordingRequest",
    # Validators
    "validate_flight_snapshot",
    "validate_alert",
    "validate_snapshot_message",
    "validate_tick_message",
]
