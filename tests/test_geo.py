"""Tests for Haversine distance, bearings and bounding boxes."""
import math

import pytest

from geonear.data.geo import (
    EARTH_RADIUS,
    BoundingBox,
    Units,
    bearing_between,
    bounding_box,
    haversine_distance,
    haversine_distance_km,
    latitude_degree_distance,
    longitude_degree_distance,
)

NEW_YORK = (40.7128, -74.0060)
LOS_ANGELES = (34.05, -118.24)


def test_same_point_zero_distance():
    assert haversine_distance_km(40.0, -88.0, 40.0, -88.0) == 0.0


def test_antipodal_roughly_half_circumference():
    d = haversine_distance_km(0.0, 0.0, 0.0, 180.0)
    expected = math.pi * EARTH_RADIUS[Units.KM]
    assert abs(d - expected) < 1.0


def test_new_york_to_los_angeles():
    d = haversine_distance_km(*NEW_YORK, *LOS_ANGELES)
    assert 3900 < d < 3980


def test_miles_scale_with_earth_radius():
    km = haversine_distance(*NEW_YORK, *LOS_ANGELES, units=Units.KM)
    mi = haversine_distance(*NEW_YORK, *LOS_ANGELES, units=Units.MI)
    assert mi == pytest.approx(km * 3956.0 / 6371.0, rel=1e-9)


def test_symmetry():
    d1 = haversine_distance_km(40.1, -88.2, 40.2, -88.1)
    d2 = haversine_distance_km(40.2, -88.1, 40.1, -88.2)
    assert d1 == d2


def test_degree_distances():
    assert latitude_degree_distance(Units.KM) == pytest.approx(111.195, abs=0.001)
    assert longitude_degree_distance(60.0, Units.KM) == pytest.approx(111.195 / 2, abs=0.001)
    # Clamped near the poles
    assert longitude_degree_distance(90.0, Units.KM) == pytest.approx(1.11195, abs=0.0001)


@pytest.mark.parametrize(
    "target,expected",
    [
        ((1.0, 0.0), 0.0),
        ((0.0, 1.0), 90.0),
        ((-1.0, 0.0), 180.0),
        ((0.0, -1.0), 270.0),
        ((1.0, 1.0), 45.0),
    ],
)
def test_linear_bearing_compass_points(target, expected):
    assert bearing_between(0.0, 0.0, *target) == pytest.approx(expected)


def test_linear_bearing_across_antimeridian():
    assert bearing_between(0.0, 179.9, 0.0, -179.9) == pytest.approx(90.0)
    assert bearing_between(0.0, -179.9, 0.0, 179.9) == pytest.approx(270.0)


def test_spherical_bearing_new_york_to_los_angeles():
    b = bearing_between(*NEW_YORK, *LOS_ANGELES, method="spherical")
    assert 260 < b < 280


def test_bounding_box_new_york_50km():
    box = bounding_box(NEW_YORK, 50, Units.KM)
    assert box.sw_lat == pytest.approx(40.26, abs=0.01)
    assert box.sw_lng == pytest.approx(-74.60, abs=0.01)
    assert box.ne_lat == pytest.approx(41.16, abs=0.01)
    assert box.ne_lng == pytest.approx(-73.41, abs=0.01)


def test_bounding_box_contains_and_centers_on_center():
    for center in [NEW_YORK, LOS_ANGELES, (-33.87, 151.21), (0.0, 0.0)]:
        box = bounding_box(center, 25, Units.MI)
        assert box.contains(*center)
        mid_lat, mid_lng = box.center
        assert mid_lat == pytest.approx(center[0], abs=1e-9)
        assert mid_lng == pytest.approx(center[1], abs=1e-9)


def test_bounding_box_miles_larger_than_km():
    km_box = bounding_box(NEW_YORK, 10, Units.KM)
    mi_box = bounding_box(NEW_YORK, 10, Units.MI)
    assert mi_box.ne_lat - mi_box.sw_lat > km_box.ne_lat - km_box.sw_lat


def test_bounding_box_over_pole_covers_all_longitudes():
    box = bounding_box((89.9, 0.0), 50, Units.KM)
    assert box.ne_lat == 90.0
    assert (box.sw_lng, box.ne_lng) == (-180.0, 180.0)
    # Across the pole: 22 km away on the opposite meridian
    assert haversine_distance_km(89.9, 0.0, 89.9, 180.0) < 50
    assert box.contains(89.9, 180.0)
    south = bounding_box((-89.8, 30.0), 40, Units.KM)
    assert south.sw_lat == -90.0
    assert (south.sw_lng, south.ne_lng) == (-180.0, 180.0)


def test_bounding_box_near_pole_not_reaching_it_is_clamped():
    box = bounding_box((89.0, 0.0), 50, Units.KM)
    assert box.ne_lat < 90.0
    assert -180.0 < box.sw_lng < 0.0 < box.ne_lng < 180.0


def test_bounding_box_across_antimeridian():
    box = bounding_box((0.0, 179.9), 50, Units.KM)
    assert box.spans_antimeridian
    assert box.ne_lng == pytest.approx(-179.65, abs=0.01)
    assert box.contains(0.0, -179.8)
    assert box.contains(0.0, 179.95)
    assert not box.contains(0.0, 0.0)
    assert box.center[1] == pytest.approx(179.9, abs=1e-9)


def test_bounding_box_wider_than_globe_covers_all_longitudes():
    box = bounding_box((0.0, 10.0), 30000, Units.KM)
    assert (box.sw_lng, box.ne_lng) == (-180.0, 180.0)
    assert box.sw_lat == -90.0 and box.ne_lat == 90.0


def test_bounding_box_contains_edges():
    box = BoundingBox(10.0, 20.0, 11.0, 21.0)
    assert box.contains(10.0, 20.0)
    assert box.contains(11.0, 21.0)
    assert not box.contains(11.01, 20.5)
