"""
Unit tests for geographic helpers.
"""

import math
import random

import pytest

from simulation import geo
from simulation.config import GeoBounds


class TestDistance:
    def test_one_degree_of_longitude_at_equator(self):
        d = geo.distance((0.0, 0.0), (0.0, 1.0))
        assert d == pytest.approx(111195, rel=0.01)

    def test_same_point_is_zero(self):
        assert geo.distance((19.0896, 72.8656), (19.0896, 72.8656)) == 0.0

    def test_symmetric(self):
        a, b = (28.6139, 77.2090), (13.0827, 80.2707)
        assert geo.distance(a, b) == pytest.approx(geo.distance(b, a))

    def test_antipodes_are_half_circumference(self):
        d = geo.distance((0.0, 0.0), (0.0, 180.0))
        assert d == pytest.approx(math.pi * geo.EARTH_RADIUS_M)


class TestBearing:
    @pytest.mark.parametrize("target,expected", [
        ((1.0, 0.0), 0.0),
        ((0.0, 1.0), 90.0),
        ((-1.0, 0.0), 180.0),
        ((0.0, -1.0), 270.0),
    ])
    def test_cardinal_directions(self, target, expected):
        assert geo.bearing((0.0, 0.0), target) == pytest.approx(expected)

    def test_result_in_range(self):
        rng = random.Random(7)
        for _ in range(200):
            a = (rng.uniform(-80, 80), rng.uniform(-180, 180))
            b = (rng.uniform(-80, 80), rng.uniform(-180, 180))
            assert 0.0 <= geo.bearing(a, b) < 360.0


class TestWrapping:
    @pytest.mark.parametrize("value,expected", [
        (0.0, 0.0),
        (359.5, 359.5),
        (360.0, 0.0),
        (365.0, 5.0),
        (-5.0, 355.0),
        (-1e-17, 0.0),
    ])
    def test_wrap_heading(self, value, expected):
        assert geo.wrap_heading(value) == pytest.approx(expected)
        assert 0.0 <= geo.wrap_heading(value) < 360.0

    @pytest.mark.parametrize("value,expected", [
        (0.0, 0.0),
        (179.9, 179.9),
        (180.0, -180.0),
        (181.0, -179.0),
        (-181.0, 179.0),
    ])
    def test_wrap_longitude(self, value, expected):
        assert geo.wrap_longitude(value) == pytest.approx(expected)

    def test_clamp(self):
        assert geo.clamp(5, 0, 10) == 5
        assert geo.clamp(-1, 0, 10) == 0
        assert geo.clamp(11, 0, 10) == 10


def test_point_in_circle_boundary():
    center = (0.0, 0.0)
    d = geo.distance(center, (0.0, 0.5))
    assert geo.point_in_circle((0.0, 0.5), center, d)
    assert not geo.point_in_circle((0.0, 0.5), center, d - 1.0)


def test_random_point_in_bounds():
    bounds = GeoBounds()
    rng = random.Random(3)
    for _ in range(100):
        lat, lng = geo.random_point_in_bounds(bounds, rng)
        assert bounds.lat_min <= lat <= bounds.lat_max
        assert bounds.lng_min <= lng <= bounds.lng_max


def test_interpolate_point():
    assert geo.interpolate_point((0.0, 0.0), (10.0, 20.0), 0.5) == (5.0, 10.0)


class TestCapBoundingBox:
    def test_box_contains_every_point_of_the_cap(self):
        rng = random.Random(11)
        center, radius = (28.6139, 77.2090), 50000.0
        lng_min, lat_min, lng_max, lat_max = geo.cap_bounding_box(center, radius)
        for _ in range(500):
            lat = rng.uniform(center[0] - 1, center[0] + 1)
            lng = rng.uniform(center[1] - 1, center[1] + 1)
            if geo.point_in_circle((lat, lng), center, radius):
                assert lat_min <= lat <= lat_max
                assert lng_min <= lng <= lng_max

    def test_polar_cap_spans_all_longitudes(self):
        lng_min, _, lng_max, lat_max = geo.cap_bounding_box((89.9, 0.0), 50000.0)
        assert (lng_min, lng_max) == (-180.0, 180.0)
        assert lat_max == 90.0

    def test_antimeridian_cap_spans_all_longitudes(self):
        lng_min, _, lng_max, _ = geo.cap_bounding_box((0.0, 179.9), 50000.0)
        assert (lng_min, lng_max) == (-180.0, 180.0)
