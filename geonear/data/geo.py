"""
Spherical-Earth helpers: Haversine distance, bearings and bounding boxes.
"""
import math
from enum import Enum
from typing import NamedTuple


class Units(str, Enum):
    KM = "km"
    MI = "mi"


# Mean Earth radius per unit (spherical approximation)
EARTH_RADIUS = {Units.KM: 6371.0, Units.MI: 3956.0}

# cos(lat) floor so longitude spans stay finite near the poles
MIN_COS_LATITUDE = 0.01


class BoundingBox(NamedTuple):
    sw_lat: float
    sw_lng: float
    ne_lat: float
    ne_lng: float

    @property
    def spans_antimeridian(self) -> bool:
        return self.sw_lng > self.ne_lng

    @property
    def center(self) -> tuple[float, float]:
        lat = (self.sw_lat + self.ne_lat) / 2.0
        if not self.spans_antimeridian:
            return lat, (self.sw_lng + self.ne_lng) / 2.0
        lng = (self.sw_lng + self.ne_lng + 360.0) / 2.0
        return lat, lng - 360.0 if lng > 180.0 else lng

    def contains(self, lat: float, lng: float) -> bool:
        if not (self.sw_lat <= lat <= self.ne_lat):
            return False
        if self.spans_antimeridian:
            return lng >= self.sw_lng or lng <= self.ne_lng
        return self.sw_lng <= lng <= self.ne_lng


def earth_radius(units: Units = Units.KM) -> float:
    return EARTH_RADIUS[Units(units)]


def latitude_degree_distance(units: Units = Units.KM, radius: float | None = None) -> float:
    """Distance covered by one degree of latitude."""
    r = earth_radius(units) if radius is None else radius
    return 2 * math.pi * r / 360.0


def longitude_degree_distance(lat: float, units: Units = Units.KM, radius: float | None = None) -> float:
    """Distance covered by one degree of longitude at the given latitude."""
    return latitude_degree_distance(units, radius) * max(MIN_COS_LATITUDE, math.cos(math.radians(lat)))


def haversine_distance(
    lat1: float,
    lng1: float,
    lat2: float,
    lng2: float,
    units: Units = Units.KM,
    radius: float | None = None,
) -> float:
    """
    Return great-circle distance between two points in the given units.
    Arguments in degrees.
    """
    r = earth_radius(units) if radius is None else radius
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return r * c


def haversine_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Return great-circle distance in kilometers. Arguments in degrees."""
    return haversine_distance(lat1, lng1, lat2, lng2, Units.KM)


def bearing_between(lat1: float, lng1: float, lat2: float, lng2: float, method: str = "linear") -> float:
    """
    Compass bearing in degrees [0, 360) from point 1 to point 2.
    "linear" treats lat/lng as a flat grid; "spherical" is the initial great-circle bearing.
    """
    if method == "spherical":
        dlng = math.radians(lng2 - lng1)
        lat1_rad = math.radians(lat1)
        lat2_rad = math.radians(lat2)
        y = math.sin(dlng) * math.cos(lat2_rad)
        x = math.cos(lat1_rad) * math.sin(lat2_rad) - math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(dlng)
    else:
        # Longitude difference wrapped into [-180, 180]
        y = math.radians(_wrap_longitude(lng2 - lng1))
        x = math.radians(lat2 - lat1)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def _wrap_longitude(lng: float) -> float:
    return (lng + 180.0) % 360.0 - 180.0 if not -180.0 <= lng <= 180.0 else lng


def bounding_box(
    center: tuple[float, float],
    radius: float,
    units: Units = Units.KM,
    earth_radius_value: float | None = None,
) -> BoundingBox:
    """
    Approximate rectangle around center for the circle of the given radius.
    1 deg lat ~ 111 km; 1 deg lng ~ 111 * cos(lat) km, measured at the center latitude.
    A circle that reaches a pole covers every longitude.
    """
    lat, lng = center
    dlat = radius / latitude_degree_distance(units, earth_radius_value)
    dlng = radius / longitude_degree_distance(lat, units, earth_radius_value)
    sw_lat = max(-90.0, lat - dlat)
    ne_lat = min(90.0, lat + dlat)
    if dlng >= 180.0 or lat + dlat >= 90.0 or lat - dlat <= -90.0:
        return BoundingBox(sw_lat, -180.0, ne_lat, 180.0)
    return BoundingBox(sw_lat, _wrap_longitude(lng - dlng), ne_lat, _wrap_longitude(lng + dlng))
