"""
Restricted zone geofencing.

A shapely STRtree over each zone's bounding box narrows the candidate
zones for a point; membership itself is the exact great-circle check.
"""

import logging
from typing import Dict, Iterable, List, Optional

from shapely.geometry import Point, box
from shapely.strtree import STRtree

from simulation import geo
from simulation.models import RestrictedZone, Severity, ZoneType

logger = logging.getLogger(__name__)


DEFAULT_ZONES: tuple[RestrictedZone, ...] = (
    RestrictedZone(
        id="zone-1",
        name="Delhi Military Zone",
        center=(28.6139, 77.2090),
        radius=50000,
        type=ZoneType.MILITARY,
    ),
    RestrictedZone(
        id="zone-2",
        name="Mumbai Airport Zone",
        center=(19.0896, 72.8656),
        radius=30000,
        type=ZoneType.AIRPORT,
    ),
    RestrictedZone(
        id="zone-3",
        name="Bangalore Restricted Zone",
        center=(12.9716, 77.5946),
        radius=40000,
        type=ZoneType.RESTRICTED,
    ),
    RestrictedZone(
        id="zone-4",
        name="Chennai Airport Zone",
        center=(13.0827, 80.2707),
        radius=25000,
        type=ZoneType.AIRPORT,
    ),
)

# Destinations for seeded flights: (code, city, lat, lng)
DEFAULT_AIRPORTS: tuple[tuple[str, str, float, float], ...] = (
    ("DEL", "New Delhi", 28.5562, 77.1000),
    ("BOM", "Mumbai", 19.0896, 72.8656),
    ("BLR", "Bangalore", 12.9716, 77.5946),
    ("MAA", "Chennai", 13.0827, 80.2707),
    ("HYD", "Hyderabad", 17.2403, 78.4294),
    ("CCU", "Kolkata", 22.6547, 88.4467),
    ("AMD", "Ahmedabad", 23.0772, 72.6347),
    ("PNQ", "Pune", 18.5821, 73.9197),
    ("COK", "Kochi", 10.1520, 76.4019),
    ("GOI", "Goa", 15.3808, 73.8314),
    ("JAI", "Jaipur", 26.8242, 75.8011),
    ("LKO", "Lucknow", 26.7606, 80.8893),
)

_SEVERITY_BY_ZONE_TYPE: Dict[ZoneType, Severity] = {
    ZoneType.MILITARY: Severity.HIGH,
    ZoneType.RESTRICTED: Severity.MEDIUM,
    ZoneType.AIRPORT: Severity.LOW,
}


def severity_for(zone_type: ZoneType) -> Severity:
    return _SEVERITY_BY_ZONE_TYPE[zone_type]


class ZoneIndex:
    """Fast zone membership lookup using a spatial index."""

    def __init__(self, zones: Iterable[RestrictedZone] = DEFAULT_ZONES):
        self.zones: List[RestrictedZone] = list(zones)
        self._by_id: Dict[str, RestrictedZone] = {}

        for zone in self.zones:
            if zone.id in self._by_id:
                raise ValueError(f"Duplicate zone id: {zone.id}")
            if zone.radius <= 0:
                raise ValueError(f"Zone {zone.id} radius must be positive")
            self._by_id[zone.id] = zone

        boxes = [box(*geo.cap_bounding_box(z.center, z.radius)) for z in self.zones]
        self._tree = STRtree(boxes) if boxes else None
        logger.debug(f"Zone index built with {len(self.zones)} zones")

    def get(self, zone_id: str) -> Optional[RestrictedZone]:
        return self._by_id.get(zone_id)

    def candidates(self, lat: float, lng: float) -> List[RestrictedZone]:
        """Zones whose bounding box holds the point; a superset of containing zones."""
        if self._tree is None:
            return []
        point = Point(lng, lat)
        return [self.zones[i] for i in sorted(self._tree.query(point))]

    @staticmethod
    def contains(zone: RestrictedZone, lat: float, lng: float) -> bool:
        return geo.point_in_circle((lat, lng), zone.center, zone.radius)

    def containing(self, lat: float, lng: float) -> List[RestrictedZone]:
        return [z for z in self.candidates(lat, lng) if self.contains(z, lat, lng)]

    def __iter__(self):
        return iter(self.zones)

    def __len__(self) -> int:
        return len(self.zones)
