"""
Zone and communication alert monitor.

Edge-triggered: an alert is created when its condition goes false -> true
for a dedup key and removed when it goes true -> false. While a condition
holds, its key maps to exactly one live alert.
"""

import logging
import threading
import uuid
from typing import Callable, Dict, Iterable, List, Optional

from simulation.models import (
    Alert,
    AlertKey,
    AlertType,
    FlightState,
    FlightStatus,
    RestrictedZone,
    Severity,
    utcnow,
)
from simulation.zones import DEFAULT_ZONES, ZoneIndex, severity_for
from simulation.metrics import ALERTS_CREATED, ALERTS_ACTIVE, MONITOR_ERRORS

logger = logging.getLogger(__name__)


class AlertMonitor:
    """Stateful dedup engine over zone membership and comm-loss."""

    def __init__(self, zones: Iterable[RestrictedZone] = DEFAULT_ZONES):
        self.index = zones if isinstance(zones, ZoneIndex) else ZoneIndex(zones)
        self._alerts: Dict[str, Alert] = {}
        self._keys: Dict[AlertKey, str] = {}
        self._lock = threading.RLock()

    @property
    def zones(self) -> List[RestrictedZone]:
        return list(self.index.zones)

    def evaluate(
        self,
        flights: Iterable[FlightState],
        zones: Optional[ZoneIndex] = None,
    ) -> List[Alert]:
        """
        Evaluate every flight and update the live alert set.

        Returns:
            Alerts created by this call only (the delta).
        """
        index = zones or self.index
        new_alerts: List[Alert] = []

        for flight in flights:
            try:
                new_alerts.extend(self._evaluate_flight(flight, index))
            except Exception as e:
                MONITOR_ERRORS.inc()
                logger.error(f"Error evaluating alerts for flight {flight.id}: {e}", exc_info=True)

        if new_alerts:
            logger.info(f"Created {len(new_alerts)} alerts")
        return new_alerts

    def _evaluate_flight(self, flight: FlightState, index: ZoneIndex) -> List[Alert]:
        created = []

        # Rule 1: lost communication
        lost_comm_key = AlertKey(flight.id, AlertType.LOST_COMM)
        if flight.status is FlightStatus.LOST_COMM:
            alert = self._raise(lost_comm_key, lambda: self._create_alert(
                flight,
                AlertType.LOST_COMM,
                Severity.HIGH,
                f"Flight {flight.flight_number} has lost communication",
            ))
            if alert:
                created.append(alert)
        else:
            self._clear(lost_comm_key)

        # Rule 2: restricted zone entry, one key per (flight, zone)
        inside = {z.id for z in index.containing(flight.lat, flight.lng)}
        for zone in index.zones:
            zone_key = AlertKey(flight.id, AlertType.RESTRICTED_ZONE, zone.id)
            if zone.id in inside:
                alert = self._raise(zone_key, lambda zone=zone: self._create_alert(
                    flight,
                    AlertType.RESTRICTED_ZONE,
                    severity_for(zone.type),
                    f"Flight {flight.flight_number} has entered {zone.name}",
                    zone,
                ))
                if alert:
                    created.append(alert)
            else:
                self._clear(zone_key)

        return created

    def _raise(self, key: AlertKey, build: Callable[[], Alert]) -> Optional[Alert]:
        """Create the alert for key unless one is live. Returns the new alert."""
        with self._lock:
            if key in self._keys:
                return None
            alert = build()
            self._alerts[alert.id] = alert
            self._keys[key] = alert.id
            ALERTS_ACTIVE.set(len(self._alerts))

        ALERTS_CREATED.labels(type=alert.type.value, severity=alert.severity.value).inc()
        logger.debug(f"Alert raised: {alert.message}")
        return alert

    def _clear(self, key: AlertKey) -> Optional[Alert]:
        with self._lock:
            alert_id = self._keys.pop(key, None)
            if alert_id is None:
                return None
            alert = self._alerts.pop(alert_id, None)
            ALERTS_ACTIVE.set(len(self._alerts))

        logger.debug(f"Alert cleared: {key}")
        return alert

    @staticmethod
    def _create_alert(
        flight: FlightState,
        alert_type: AlertType,
        severity: Severity,
        message: str,
        zone: Optional[RestrictedZone] = None,
    ) -> Alert:
        return Alert(
            id=str(uuid.uuid4()),
            flight_id=flight.id,
            type=alert_type,
            message=message,
            timestamp=utcnow(),
            severity=severity,
            zone_id=zone.id if zone else None,
            zone_name=zone.name if zone else None,
            zone_type=zone.type if zone else None,
        )

    # ------------------------------------------------------------------
    # Read accessors and control
    # ------------------------------------------------------------------

    def alerts(self) -> List[Alert]:
        with self._lock:
            return list(self._alerts.values())

    def flight_alerts(self, flight_id: str) -> List[Alert]:
        with self._lock:
            return [a for a in self._alerts.values() if a.flight_id == flight_id]

    def get(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            return self._alerts.get(alert_id)

    def dismiss(self, alert_id: str) -> bool:
        """
        Remove an alert and its dedup key regardless of the condition.

        No cool-down: if the condition still holds, the next evaluation
        raises a new alert with a new id.
        """
        with self._lock:
            alert = self._alerts.pop(alert_id, None)
            if alert is None:
                return False
            if self._keys.get(alert.key) == alert_id:
                del self._keys[alert.key]
            ALERTS_ACTIVE.set(len(self._alerts))

        logger.info(f"Alert {alert_id} dismissed ({alert.type.value}, flight {alert.flight_id})")
        return True

    def clear(self) -> None:
        with self._lock:
            self._alerts.clear()
            self._keys.clear()
            ALERTS_ACTIVE.set(0)
