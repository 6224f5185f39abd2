"""
Unit tests for zone geofencing and the alert monitor.
"""

import pytest

from simulation.alerts import AlertMonitor
from simulation.models import AlertType, FlightStatus, RestrictedZone, Severity, ZoneType
from simulation.zones import DEFAULT_ZONES, ZoneIndex, severity_for

MUMBAI = DEFAULT_ZONES[1].center
DELHI = DEFAULT_ZONES[0].center


class TestZoneIndex:
    def test_default_zones(self):
        index = ZoneIndex()
        assert len(index) == 4
        assert index.get("zone-2").name == "Mumbai Airport Zone"

    def test_center_is_contained(self):
        index = ZoneIndex()
        assert [z.id for z in index.containing(*MUMBAI)] == ["zone-2"]

    def test_far_point_has_no_zone(self):
        assert ZoneIndex().containing(0.0, 0.0) == []

    def test_candidates_superset_of_containing(self):
        index = ZoneIndex()
        for lat in range(8, 31):
            for lng in range(68, 91):
                inside = {z.id for z in index.containing(lat, lng)}
                candidates = {z.id for z in index.candidates(lat, lng)}
                assert inside <= candidates

    def test_duplicate_zone_id_rejected(self):
        zone = DEFAULT_ZONES[0]
        with pytest.raises(ValueError):
            ZoneIndex([zone, zone])

    def test_overlapping_zones(self):
        a = RestrictedZone("a", "A", (10.0, 10.0), 100000, ZoneType.AIRPORT)
        b = RestrictedZone("b", "B", (10.0, 10.5), 100000, ZoneType.MILITARY)
        index = ZoneIndex([a, b])
        assert {z.id for z in index.containing(10.0, 10.25)} == {"a", "b"}

    @pytest.mark.parametrize("zone_type,severity", [
        (ZoneType.MILITARY, Severity.HIGH),
        (ZoneType.RESTRICTED, Severity.MEDIUM),
        (ZoneType.AIRPORT, Severity.LOW),
    ])
    def test_severity_mapping(self, zone_type, severity):
        assert severity_for(zone_type) is severity


class TestZoneAlerts:
    def test_entering_zone_raises_one_alert(self, make_flight):
        monitor = AlertMonitor()
        flight = make_flight("f1", *MUMBAI, flight_number="AI101")

        created = monitor.evaluate([flight])
        assert len(created) == 1
        alert = created[0]
        assert alert.type is AlertType.RESTRICTED_ZONE
        assert alert.severity is Severity.LOW
        assert alert.zone_id == "zone-2"
        assert alert.zone_name == "Mumbai Airport Zone"
        assert alert.message == "Flight AI101 has entered Mumbai Airport Zone"

    def test_staying_inside_does_not_duplicate(self, make_flight):
        monitor = AlertMonitor()
        flight = make_flight("f1", *MUMBAI)
        monitor.evaluate([flight])
        for _ in range(5):
            assert monitor.evaluate([flight]) == []
        assert len(monitor.alerts()) == 1

    def test_leaving_zone_clears_alert(self, make_flight):
        monitor = AlertMonitor()
        flight = make_flight("f1", *MUMBAI)
        monitor.evaluate([flight])

        flight.lat, flight.lng = 0.0, 0.0
        assert monitor.evaluate([flight]) == []
        assert monitor.alerts() == []

    def test_reentry_creates_new_alert(self, make_flight):
        monitor = AlertMonitor()
        flight = make_flight("f1", *MUMBAI)
        first = monitor.evaluate([flight])[0]

        flight.lat, flight.lng = 0.0, 0.0
        monitor.evaluate([flight])
        flight.lat, flight.lng = MUMBAI
        second = monitor.evaluate([flight])[0]
        assert second.id != first.id

    def test_military_zone_is_high_severity(self, make_flight):
        alert = AlertMonitor().evaluate([make_flight("f1", *DELHI)])[0]
        assert alert.severity is Severity.HIGH

    def test_flights_are_keyed_independently(self, make_flight):
        monitor = AlertMonitor()
        created = monitor.evaluate([make_flight("f1", *MUMBAI), make_flight("f2", *MUMBAI)])
        assert {a.flight_id for a in created} == {"f1", "f2"}


class TestLostCommAlerts:
    def test_lost_comm_raises_one_high_alert(self, make_flight):
        monitor = AlertMonitor()
        flight = make_flight("f1", status=FlightStatus.LOST_COMM, flight_number="6E202")

        created = monitor.evaluate([flight])
        assert len(created) == 1
        assert created[0].type is AlertType.LOST_COMM
        assert created[0].severity is Severity.HIGH
        assert created[0].message == "Flight 6E202 has lost communication"

        assert monitor.evaluate([flight]) == []
        assert len(monitor.alerts()) == 1

    def test_recovering_comm_clears_alert(self, make_flight):
        monitor = AlertMonitor()
        flight = make_flight("f1", status=FlightStatus.LOST_COMM)
        monitor.evaluate([flight])

        flight.status = FlightStatus.ON_TIME
        monitor.evaluate([flight])
        assert monitor.alerts() == []

    def test_lost_comm_inside_zone_gives_two_alerts(self, make_flight):
        monitor = AlertMonitor()
        created = monitor.evaluate([make_flight("f1", *MUMBAI, status=FlightStatus.LOST_COMM)])
        assert {a.type for a in created} == {AlertType.LOST_COMM, AlertType.RESTRICTED_ZONE}


class TestDismiss:
    def test_dismiss_removes_alert(self, make_flight):
        monitor = AlertMonitor()
        alert = monitor.evaluate([make_flight("f1", *MUMBAI)])[0]
        assert monitor.dismiss(alert.id)
        assert monitor.get(alert.id) is None
        assert not monitor.dismiss(alert.id)

    def test_dismissed_alert_reappears_while_condition_holds(self, make_flight):
        monitor = AlertMonitor()
        flight = make_flight("f1", *MUMBAI)
        alert = monitor.evaluate([flight])[0]
        monitor.dismiss(alert.id)

        again = monitor.evaluate([flight])
        assert len(again) == 1
        assert again[0].id != alert.id

    def test_unknown_alert(self):
        assert not AlertMonitor().dismiss("missing")

    def test_flight_alerts_filter(self, make_flight):
        monitor = AlertMonitor()
        monitor.evaluate([make_flight("f1", *MUMBAI), make_flight("f2", *DELHI)])
        assert [a.flight_id for a in monitor.flight_alerts("f2")] == ["f2"]
        assert monitor.flight_alerts("nope") == []


def test_bad_flight_does_not_stop_evaluation(make_flight):
    monitor = AlertMonitor()
    containing = monitor.index.containing

    def flaky(lat, lng):
        if lat == 1.0:
            raise RuntimeError("index failure")
        return containing(lat, lng)

    monitor.index.containing = flaky
    created = monitor.evaluate([make_flight("bad", 1.0, 1.0), make_flight("ok", *MUMBAI)])
    assert [a.flight_id for a in created] == ["ok"]
