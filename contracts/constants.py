"""
Shared constants for SkyWatch services.

This module provides a single source of truth for:
- Flight statuses
- Alert types, severities and zone types
- WebSocket message types
- Schema version

All services should import from this module to ensure consistency.
"""

# Schema version
SCHEMA_VERSION = 1

# Flight Status
FLIGHT_STATUS_ON_TIME = "on-time"
FLIGHT_STATUS_DELAYED = "delayed"
FLIGHT_STATUS_LANDED = "landed"
FLIGHT_STATUS_LOST_COMM = "lost-comm"

# Alert Types
ALERT_TYPE_LOST_COMM = "lost-comm"
ALERT_TYPE_RESTRICTED_ZONE = "restricted-zone"

# Severity Levels
SEVERITY_LOW = "low"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"

# Zone Types
ZONE_TYPE_MILITARY = "military"
ZONE_TYPE_AIRPORT = "airport"
ZONE_TYPE_RESTRICTED = "restricted"

# WebSocket Message Types
WS_MESSAGE_TYPE_SNAPSHOT = "snapshot"
WS_MESSAGE_TYPE_TICK = "tick"
WS_MESSAGE_TYPE_PONG = "pong"
WS_MESSAGE_TYPE_ERROR = "error"

# WebSocket client requests
WS_REQUEST_PING = "ping"
WS_REQUEST_FLIGHTS = "request_flights"

# Recorder outcomes
RECORD_OUTCOME_SAVED = "saved"
RECORD_OUTCOME_UNCHANGED = "unchanged"
RECORD_OUTCOME_FAILED = "failed"
