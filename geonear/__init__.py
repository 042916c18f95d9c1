"""Proximity query compiler: distance, bearing and bounding-box SQL for lat/lng columns."""
from geonear.data.coordinates import Coordinate, coordinates_present, extract_coordinates
from geonear.data.geo import BoundingBox, Units, bounding_box
from geonear.errors import ConfigurationError
from geonear.query.compiler import CompiledQuery, GeoTable, ProximityQueryCompiler
from geonear.query.fragments import SqlFragment
from geonear.query.options import BackendProfile, BearingMode, QueryOptions
from geonear.query.profile import detect_backend_profile

__all__ = [
    "BackendProfile",
    "BearingMode",
    "BoundingBox",
    "CompiledQuery",
    "ConfigurationError",
    "Coordinate",
    "GeoTable",
    "ProximityQueryCompiler",
    "QueryOptions",
    "SqlFragment",
    "Units",
    "bounding_box",
    "coordinates_present",
    "detect_backend_profile",
    "extract_coordinates",
]
