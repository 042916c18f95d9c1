"""
Normalize a location reference into a (lat, lng) pair.
"""
import logging
import math
import re
from collections.abc import Sequence
from numbers import Real
from typing import Any, NamedTuple, Protocol

from geonear.errors import ConfigurationError

logger = logging.getLogger(__name__)

# "40.7128,-74.0060" or "40.7128, -74.0060"
COORDINATES_PATTERN = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*$")


class Coordinate(NamedTuple):
    lat: float
    lng: float


class Lookup(Protocol):
    """Geocoding collaborator. Returns None when nothing usable was found."""

    def search(self, query: str) -> Any | None: ...


def coordinates_present(lat: Any, lng: Any) -> bool:
    """True when both values are real numbers and neither is NaN."""
    for v in (lat, lng):
        if v is None or isinstance(v, bool) or not isinstance(v, Real):
            return False
        if math.isnan(v):
            return False
    return True


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigurationError("location", f"coordinate must be a number (got {value!r})")
    if isinstance(value, Real):
        return None if math.isnan(value) else float(value)
    if isinstance(value, str):
        try:
            f = float(value)
        except ValueError:
            raise ConfigurationError("location", f"coordinate must be a number (got {value!r})") from None
        return None if math.isnan(f) else f
    raise ConfigurationError("location", f"coordinate must be a number (got {type(value).__name__})")


def _coordinate(lat: Any, lng: Any) -> Coordinate | None:
    lat_f, lng_f = _as_float(lat), _as_float(lng)
    if lat_f is None or lng_f is None:
        return None
    if not -90.0 <= lat_f <= 90.0:
        raise ConfigurationError("location", f"latitude must be between -90 and 90 (got {lat_f})")
    if not -180.0 <= lng_f <= 180.0:
        raise ConfigurationError("location", f"longitude must be between -180 and 180 (got {lng_f})")
    return Coordinate(lat_f, lng_f)


def _from_lookup(query: str, lookup: Lookup | None) -> Coordinate | None:
    if lookup is None:
        logger.info("telemetry extract_coordinates lookup=none query=%s", query[:50])
        return None
    result = lookup.search(query)
    if result is None:
        return None
    return _coordinate(getattr(result, "lat", None), getattr(result, "lng", None))


def extract_coordinates(location: Any, lookup: Lookup | None = None) -> Coordinate | None:
    """
    Return the Coordinate for a location, or None when it cannot be determined.

    location may be a Coordinate, a (lat, lng) pair, a "lat,lng" string, an object
    with lat/lng attributes, or any other string to be geocoded by lookup (one call).
    Partial coordinates count as no location. Values that are present but not
    numeric raise ConfigurationError.
    """
    if location is None:
        return None
    if isinstance(location, str):
        query = location.strip()
        if not query:
            return None
        m = COORDINATES_PATTERN.match(query)
        if m:
            return _coordinate(m.group(1), m.group(2))
        return _from_lookup(query, lookup)
    if isinstance(location, Sequence):
        if len(location) != 2:
            return None
        return _coordinate(location[0], location[1])
    if hasattr(location, "lat") and hasattr(location, "lng"):
        return _coordinate(location.lat, location.lng)
    return None
