"""
SQL fragment builders for distance, bearing and bounding-box filters.

Two implementations share one interface:

- TrigonometricBuilder: Haversine distance and true bearings; needs SIN, COS, ASIN,
  ATAN2, SQRT, POWER, RADIANS, DEGREES and FLOOR in the database.
- ApproximateBuilder: planar estimates using only ABS, CASE and arithmetic, for
  engines without math functions (stock SQLite). Its distance is an estimate; it
  exists so queries always expose a distance column, not for exact filtering.

All values are bound as qmark ("?") parameters. Column names come from a validated
GeoTable and are the only text spliced into the SQL.
"""
import math
import re
from abc import ABC, abstractmethod
from typing import Any, NamedTuple

from geonear.data.geo import MIN_COS_LATITUDE, BoundingBox
from geonear.query.options import BackendProfile, BearingMode

# alpha * max + beta * min approximates sqrt(x^2 + y^2) within ~4%
NORM_ALPHA = 0.960433870103
NORM_BETA = 0.397824734759
# atan(t) ~ t * (45 + 15.642 * (1 - t)) degrees for 0 <= t <= 1
ATAN_QUADRATIC_DEG = 15.642


class SqlFragment(NamedTuple):
    sql: str
    params: tuple[Any, ...] = ()

    def __str__(self) -> str:
        return self.sql


_SLOT = re.compile(r"\{(\w+)\}")


def value(v: Any) -> SqlFragment:
    return SqlFragment("?", (v,))


def raw(sql: str) -> SqlFragment:
    return SqlFragment(sql)


def compose(template: str, **parts: SqlFragment) -> SqlFragment:
    """Substitute {name} slots with fragments, collecting params in textual order."""
    params: list[Any] = []
    for name in _SLOT.findall(template):
        params.extend(parts[name].params)
    sql = _SLOT.sub(lambda m: parts[m.group(1)].sql, template)
    return SqlFragment(sql, tuple(params))


def join(fragments: list[SqlFragment], sep: str) -> SqlFragment:
    return SqlFragment(
        sep.join(f.sql for f in fragments),
        tuple(p for f in fragments for p in f.params),
    )


FALSE_CONDITION = raw("1 = 0")


class SqlFragmentBuilder(ABC):
    profile: BackendProfile

    @abstractmethod
    def distance(self, center: tuple[float, float], lat_col: str, lng_col: str, earth_radius: float) -> SqlFragment:
        """Distance from center to each row, in the units of earth_radius."""

    @abstractmethod
    def bearing(self, center: tuple[float, float], lat_col: str, lng_col: str, method: BearingMode) -> SqlFragment:
        """Initial compass bearing in degrees [0, 360) from center to each row."""

    @staticmethod
    def _delta_lng(lng: float, lng_col: str) -> SqlFragment:
        # Signed longitude difference wrapped into [-180, 180]
        d = compose("({lng_col} - {lng})", lng_col=raw(lng_col), lng=value(lng))
        return compose("(CASE WHEN {d} > 180 THEN {d} - 360 WHEN {d} < -180 THEN {d} + 360 ELSE {d} END)", d=d)

    def within_bounding_box(self, box: BoundingBox, lat_col: str, lng_col: str) -> SqlFragment:
        lat, lng = raw(lat_col), raw(lng_col)
        if box.spans_antimeridian:
            template = "({lat} >= {sw_lat} AND {lat} <= {ne_lat} AND ({lng} >= {sw_lng} OR {lng} <= {ne_lng}))"
        else:
            template = "({lat} >= {sw_lat} AND {lat} <= {ne_lat} AND {lng} >= {sw_lng} AND {lng} <= {ne_lng})"
        return compose(
            template,
            lat=lat,
            lng=lng,
            sw_lat=value(box.sw_lat),
            ne_lat=value(box.ne_lat),
            sw_lng=value(box.sw_lng),
            ne_lng=value(box.ne_lng),
        )

    def geocoded(self, lat_col: str, lng_col: str) -> SqlFragment:
        return raw(f"({lat_col} IS NOT NULL AND {lng_col} IS NOT NULL)")

    def not_geocoded(self, lat_col: str, lng_col: str) -> SqlFragment:
        return raw(f"({lat_col} IS NULL OR {lng_col} IS NULL)")


class TrigonometricBuilder(SqlFragmentBuilder):
    profile = BackendProfile.TRIGONOMETRIC

    def distance(self, center, lat_col, lng_col, earth_radius):
        lat, lng = center
        return compose(
            "{r} * 2 * ASIN(SQRT("
            "POWER(SIN((RADIANS({lat}) - RADIANS({lat_col})) / 2), 2) + "
            "COS(RADIANS({lat})) * COS(RADIANS({lat_col})) * "
            "POWER(SIN((RADIANS({lng}) - RADIANS({lng_col})) / 2), 2)"
            "))",
            r=value(earth_radius),
            lat=value(lat),
            lng=value(lng),
            lat_col=raw(lat_col),
            lng_col=raw(lng_col),
        )

    def bearing(self, center, lat_col, lng_col, method):
        lat, lng = center
        parts = dict(lat=value(lat), lng=value(lng), lat_col=raw(lat_col), lng_col=raw(lng_col))
        if method is BearingMode.SPHERICAL:
            angle = compose(
                "DEGREES(ATAN2("
                "SIN(RADIANS({lng_col} - {lng})) * COS(RADIANS({lat_col})), "
                "COS(RADIANS({lat})) * SIN(RADIANS({lat_col})) - "
                "SIN(RADIANS({lat})) * COS(RADIANS({lat_col})) * COS(RADIANS({lng_col} - {lng}))"
                ")) + 360",
                **parts,
            )
        else:
            angle = compose(
                "DEGREES(ATAN2(RADIANS({dlng}), RADIANS({lat_col} - {lat}))) + 360",
                dlng=self._delta_lng(lng, lng_col),
                lat_col=raw(lat_col),
                lat=value(lat),
            )
        return compose("({x}) - 360 * FLOOR(({x}) / 360)", x=angle)


class ApproximateBuilder(SqlFragmentBuilder):
    """
    Planar estimates. Degree offsets are scaled to distance with factors computed
    here from the center latitude, so the database only needs ABS and CASE.
    """

    profile = BackendProfile.APPROXIMATE

    @staticmethod
    def _cos(lat: float) -> float:
        return max(MIN_COS_LATITUDE, math.cos(math.radians(lat)))

    def distance(self, center, lat_col, lng_col, earth_radius):
        lat, lng = center
        per_degree = 2 * math.pi * earth_radius / 360.0
        dy = compose("ABS({lat_col} - {lat}) * {k}", lat_col=raw(lat_col), lat=value(lat), k=value(per_degree))
        dx = compose(
            "ABS({d}) * {k}",
            d=self._delta_lng(lng, lng_col),
            k=value(per_degree * self._cos(lat)),
        )
        return compose(
            f"(CASE WHEN {{dy}} >= {{dx}} THEN {NORM_ALPHA} * {{dy}} + {NORM_BETA} * {{dx}} "
            f"ELSE {NORM_ALPHA} * {{dx}} + {NORM_BETA} * {{dy}} END)",
            dy=dy,
            dx=dx,
        )

    def bearing(self, center, lat_col, lng_col, method):
        # Linear and spherical are the same planar estimate here
        lat, lng = center
        n = compose("({lat_col} - {lat})", lat_col=raw(lat_col), lat=value(lat))
        e = compose("({d} * {k})", d=self._delta_lng(lng, lng_col), k=value(self._cos(lat)))
        p = compose("ABS({n})", n=n)
        q = compose("ABS({e})", e=e)
        base = compose(
            "(CASE WHEN {p} = 0 AND {q} = 0 THEN 0 "
            f"WHEN {{q}} <= {{p}} THEN ({{q}} / {{p}}) * (45 + {ATAN_QUADRATIC_DEG} * (1 - {{q}} / {{p}})) "
            f"ELSE 90 - ({{p}} / {{q}}) * (45 + {ATAN_QUADRATIC_DEG} * (1 - {{p}} / {{q}})) END)",
            p=p,
            q=q,
        )
        offset = compose(
            "(CASE WHEN {n} >= 0 AND {e} >= 0 THEN 0 WHEN {n} < 0 THEN 180 ELSE 360 END)",
            n=n,
            e=e,
        )
        sign = compose(
            "(CASE WHEN ({n} >= 0 AND {e} >= 0) OR ({n} < 0 AND {e} < 0) THEN 1 ELSE -1 END)",
            n=n,
            e=e,
        )
        return compose("({offset} + {sign} * {base})", offset=offset, sign=sign, base=base)


def builder_for(profile: BackendProfile) -> SqlFragmentBuilder:
    if profile is BackendProfile.TRIGONOMETRIC:
        return TrigonometricBuilder()
    return ApproximateBuilder()

