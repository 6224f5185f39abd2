"""
Geographic helpers.

Points are (lat, lng) tuples in degrees; distances are meters on a
spherical Earth.
"""

import math
import random
from typing import Optional, Tuple

from simulation.config import GeoBounds

EARTH_RADIUS_M = 6371000.0

LatLng = Tuple[float, float]

# Absorbs rounding so points exactly on a cap edge stay inside its box
_BOX_PAD_DEG = 1e-9


def distance(a: LatLng, b: LatLng) -> float:
    """Great-circle (haversine) distance in meters."""
    lat1, lng1 = a
    lat2, lng2 = b

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def bearing(origin: LatLng, target: LatLng) -> float:
    """Initial bearing from origin to target, degrees in [0, 360)."""
    lat1, lng1 = origin
    lat2, lng2 = target

    dlambda = math.radians(lng2 - lng1)
    phi1, phi2 = math.radians(lat1), math.radians(lat2)

    y = math.sin(dlambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlambda)
    return wrap_heading(math.degrees(math.atan2(y, x)))


def point_in_circle(point: LatLng, center: LatLng, radius_m: float) -> bool:
    return distance(point, center) <= radius_m


def random_point_in_bounds(bounds: GeoBounds, rng: Optional[random.Random] = None) -> LatLng:
    rng = rng or random
    return (
        rng.uniform(bounds.lat_min, bounds.lat_max),
        rng.uniform(bounds.lng_min, bounds.lng_max),
    )


def interpolate_point(a: LatLng, b: LatLng, factor: float) -> LatLng:
    """Linear interpolation in degree space; factor 0 gives a, 1 gives b."""
    return (
        a[0] + (b[0] - a[0]) * factor,
        a[1] + (b[1] - a[1]) * factor,
    )


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def wrap_heading(degrees: float) -> float:
    """Wrap to [0, 360)."""
    wrapped = degrees % 360.0
    # -1e-17 % 360.0 rounds to 360.0
    if wrapped >= 360.0:
        wrapped = 0.0
    return wrapped


def wrap_longitude(degrees: float) -> float:
    """Wrap to [-180, 180)."""
    wrapped = (degrees + 180.0) % 360.0 - 180.0
    if wrapped >= 180.0:
        wrapped = -180.0
    return wrapped


def cap_bounding_box(center: LatLng, radius_m: float) -> Tuple[float, float, float, float]:
    """
    Conservative (lng_min, lat_min, lng_max, lat_max) box around a spherical cap.

    Every point within radius_m of center lies inside the box. Caps that
    reach a pole or straddle the antimeridian get the full longitude range.
    """
    lat, lng = center
    angular = radius_m / EARTH_RADIUS_M
    dlat = math.degrees(angular) + _BOX_PAD_DEG

    lat_min = lat - dlat
    lat_max = lat + dlat
    if lat_min <= -90.0 or lat_max >= 90.0:
        return (-180.0, max(lat_min, -90.0), 180.0, min(lat_max, 90.0))

    ratio = math.sin(angular) / math.cos(math.radians(lat))
    if ratio >= 1.0:
        return (-180.0, lat_min, 180.0, lat_max)

    dlng = math.degrees(math.asin(ratio)) + _BOX_PAD_DEG
    lng_min = lng - dlng
    lng_max = lng + dlng
    if lng_min < -180.0 or lng_max > 180.0:
        return (-180.0, lat_min, 180.0, lat_max)

    return (lng_min, lat_min, lng_max, lat_max)
