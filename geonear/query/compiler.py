"""
Proximity query compiler: turns a location, radius and caller options into the
parts of a parameterized SELECT (select list, filter, order, limit, offset).

Pure and stateless per call; the backend profile is fixed when the compiler is
built for a connection.
"""
import logging
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, NamedTuple

from geonear.data.coordinates import Coordinate, Lookup, extract_coordinates
from geonear.data.geo import BoundingBox, Units, bounding_box
from geonear.errors import ConfigurationError
from geonear.query.fragments import (
    FALSE_CONDITION,
    SqlFragment,
    SqlFragmentBuilder,
    builder_for,
    compose,
    join,
    raw,
    value,
)
from geonear.query.options import ALL_COLUMNS, GEO_ONLY, BackendProfile, BearingMode, QueryOptions
from geonear.query.profile import detect_backend_profile, resolve_profile
from geonear.settings import Settings, get_settings

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
ORDER_ITEM_PATTERN = re.compile(
    r"^([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)?)(?:\s+(ASC|DESC))?$",
    re.IGNORECASE,
)
DISTANCE = "distance"
BEARING = "bearing"


@dataclass(frozen=True)
class GeoTable:
    """A table with coordinate columns. Only these identifiers reach the SQL."""

    name: str
    columns: frozenset[str] = field(default_factory=frozenset)
    latitude: str = "lat"
    longitude: str = "lng"
    primary_key: str = "id"
    units: Units | None = None

    def __post_init__(self) -> None:
        cols = frozenset(self.columns) | {self.latitude, self.longitude, self.primary_key}
        for ident in (self.name, *cols):
            if not isinstance(ident, str) or not IDENTIFIER_PATTERN.match(ident):
                raise ConfigurationError("table", f"invalid identifier {ident!r}")
        object.__setattr__(self, "columns", cols)

    def column(self, name: str, key: str = "select") -> str:
        """Qualified column name, or ConfigurationError if not in the allow-list."""
        table, _, col = name.strip().rpartition(".")
        if table and table != self.name:
            raise ConfigurationError(key, f"unknown table {table!r}")
        if col not in self.columns:
            raise ConfigurationError(key, f"unknown column {col!r}")
        return f"{self.name}.{col}"

    @property
    def lat_col(self) -> str:
        return f"{self.name}.{self.latitude}"

    @property
    def lng_col(self) -> str:
        return f"{self.name}.{self.longitude}"


class CompiledQuery(NamedTuple):
    table: str
    select: SqlFragment
    where: SqlFragment
    order: str | None = None
    limit: int | None = None
    offset: int | None = None

    @property
    def params(self) -> tuple[Any, ...]:
        """Bound parameters in statement order: select list, then filter."""
        return self.select.params + self.where.params


def _validate_radius(radius: Any) -> float:
    if isinstance(radius, bool) or not isinstance(radius, Real):
        raise ConfigurationError("radius", f"must be a number (got {radius!r})")
    radius = float(radius)
    if math.isnan(radius) or math.isinf(radius) or radius <= 0:
        raise ConfigurationError("radius", f"must be a positive number (got {radius})")
    return radius


def _parse_bounds(bounds: Any) -> BoundingBox | None:
    """BoundingBox, [[sw_lat, sw_lng], [ne_lat, ne_lng]] or four numbers."""
    if bounds is None:
        return None
    if isinstance(bounds, BoundingBox):
        flat = list(bounds)
    elif isinstance(bounds, Sequence) and not isinstance(bounds, str):
        flat = []
        for item in bounds:
            if isinstance(item, Sequence) and not isinstance(item, str):
                flat.extend(item)
            else:
                flat.append(item)
    else:
        raise ConfigurationError("bounds", f"expected a box (got {type(bounds).__name__})")
    if len(flat) != 4:
        raise ConfigurationError("bounds", f"expected 4 coordinates (got {len(flat)})")
    for v in flat:
        if isinstance(v, bool) or not isinstance(v, Real) or math.isnan(v):
            raise ConfigurationError("bounds", f"coordinates must be numbers (got {v!r})")
    box = BoundingBox(*(float(v) for v in flat))
    if box.sw_lat > box.ne_lat:
        raise ConfigurationError("bounds", "south-west latitude is north of north-east latitude")
    if not (-90.0 <= box.sw_lat <= 90.0 and -90.0 <= box.ne_lat <= 90.0):
        raise ConfigurationError("bounds", "latitudes must be between -90 and 90")
    if not (-180.0 <= box.sw_lng <= 180.0 and -180.0 <= box.ne_lng <= 180.0):
        raise ConfigurationError("bounds", "longitudes must be between -180 and 180")
    return box


class ProximityQueryCompiler:
    """
    Compiles "near", "within box" and "nearbys" queries for one GeoTable.

    The fragment builder is chosen from the backend profile: trigonometric
    backends filter on the exact distance, approximate ones on a bounding box
    around the center (a square, so some rows beyond the radius are returned).
    """

    def __init__(
        self,
        table: GeoTable,
        profile: BackendProfile = BackendProfile.TRIGONOMETRIC,
        settings: Settings | None = None,
    ) -> None:
        self.table = table
        self.settings = settings or get_settings()
        self.builder: SqlFragmentBuilder = builder_for(BackendProfile(profile))

    @classmethod
    def for_connection(
        cls,
        connection: Any,
        table: GeoTable,
        settings: Settings | None = None,
    ) -> "ProximityQueryCompiler":
        settings = settings or get_settings()
        profile = resolve_profile(detect_backend_profile(connection), settings.backend_profile)
        return cls(table, profile, settings)

    @property
    def profile(self) -> BackendProfile:
        return self.builder.profile

    # ── Option resolution ─────────────────────────────────────

    def _units(self, opts: QueryOptions) -> Units:
        return opts.units or self.table.units or self.settings.units

    def _bearing(self, opts: QueryOptions) -> BearingMode:
        return opts.bearing.resolve(self.settings.bearing)

    def _excluded_id(self, exclude: Any) -> Any:
        if exclude is None:
            return None
        pk = self.table.primary_key
        if isinstance(exclude, Mapping):
            for key in (pk, "id"):
                if exclude.get(key) is not None:
                    return exclude[key]
        elif isinstance(exclude, (str, int)) and not isinstance(exclude, bool):
            return exclude
        else:
            for attr in (pk, "id"):
                if getattr(exclude, attr, None) is not None:
                    return getattr(exclude, attr)
        raise ConfigurationError("exclude", f"no {pk!r} to exclude")

    def _columns(self, select: Any) -> list[str]:
        if select == ALL_COLUMNS:
            return [f"{self.table.name}.*"]
        if select == GEO_ONLY:
            return []
        return [self.table.column(c, "select") for c in select]

    def _order(self, order: tuple[str, ...] | None, default: str | None, computed: set[str]) -> str | None:
        if order is None:
            return default
        items = []
        for item in order:
            m = ORDER_ITEM_PATTERN.match(item.strip())
            if not m:
                raise ConfigurationError("order", f"cannot order by {item!r}")
            name, direction = m.group(1), m.group(2)
            if name.lower() in (DISTANCE, BEARING):
                if name.lower() not in computed:
                    raise ConfigurationError("order", f"{name!r} is not computed by this query")
                col = name.lower()
            else:
                col = self.table.column(name, "order")
            items.append(f"{col} {direction.upper()}" if direction else col)
        return ", ".join(items)

    # ── Fragments ─────────────────────────────────────────────

    def _select(self, columns: list[str], distance: SqlFragment | None, bearing: SqlFragment | None) -> SqlFragment:
        parts = [raw(c) for c in columns]
        if distance is not None:
            parts.append(compose("{d} AS distance", d=distance))
        if bearing is not None:
            parts.append(compose("{b} AS bearing", b=bearing))
        return join(parts, ", ")

    def _with_exclusion(self, where: SqlFragment, excluded: Any) -> SqlFragment:
        if excluded is None:
            return where
        return compose(
            "{where} AND {pk} != {id}",
            where=where,
            pk=raw(f"{self.table.name}.{self.table.primary_key}"),
            id=value(excluded),
        )

    def _empty(self, opts: QueryOptions, columns: list[str], bearing: BearingMode, order: str | None) -> CompiledQuery:
        # Same columns as a populated query so ORDER BY distance still works
        select = self._select(
            columns,
            raw("NULL"),
            raw("NULL") if bearing is not BearingMode.OFF else None,
        )
        return CompiledQuery(self.table.name, select, FALSE_CONDITION, order, opts.limit, opts.offset)

    # ── Public API ────────────────────────────────────────────

    def distance_expression(
        self,
        location: Any,
        options: QueryOptions | Mapping[str, Any] | None = None,
        *,
        lookup: Lookup | None = None,
    ) -> SqlFragment | None:
        """Distance SQL from location to each row, or None when location is unknown."""
        opts = QueryOptions.parse(options)
        center = extract_coordinates(location, lookup)
        if center is None:
            return None
        units = self._units(opts)
        return self.builder.distance(center, self.table.lat_col, self.table.lng_col, self.settings.earth_radius(units))

    def compile_near(
        self,
        location: Any,
        radius: Any = None,
        options: QueryOptions | Mapping[str, Any] | None = None,
        *,
        lookup: Lookup | None = None,
    ) -> CompiledQuery:
        """
        Rows within radius of location, ordered by distance unless options say otherwise.
        An unknown location compiles to a query matching no rows.
        """
        opts = QueryOptions.parse(options)
        radius = _validate_radius(self.settings.default_radius if radius is None else radius)
        units = self._units(opts)
        bearing_mode = self._bearing(opts)
        excluded = self._excluded_id(opts.exclude)
        columns = self._columns(opts.select)
        computed = {DISTANCE} if bearing_mode is BearingMode.OFF else {DISTANCE, BEARING}
        order = self._order(opts.order, DISTANCE, computed)

        center = extract_coordinates(location, lookup)
        if center is None:
            logger.info("telemetry compile_near empty_location=true table=%s", self.table.name)
            return self._empty(opts, columns, bearing_mode, order)

        return self._compile_near(center, radius, units, bearing_mode, excluded, columns, order, opts)

    def _compile_near(
        self,
        center: Coordinate,
        radius: float,
        units: Units,
        bearing_mode: BearingMode,
        excluded: Any,
        columns: list[str],
        order: str | None,
        opts: QueryOptions,
    ) -> CompiledQuery:
        lat_col, lng_col = self.table.lat_col, self.table.lng_col
        earth_radius = self.settings.earth_radius(units)
        distance = self.builder.distance(center, lat_col, lng_col, earth_radius)
        bearing = None
        if bearing_mode is not BearingMode.OFF:
            bearing = self.builder.bearing(center, lat_col, lng_col, bearing_mode)

        if self.profile is BackendProfile.APPROXIMATE:
            box = bounding_box(center, radius, units, earth_radius)
            where = self.builder.within_bounding_box(box, lat_col, lng_col)
        else:
            where = compose("{d} <= {r}", d=distance, r=value(radius))
        where = self._with_exclusion(where, excluded)

        logger.debug(
            "telemetry compile_near profile=%s units=%s bearing=%s",
            self.profile.value,
            units.value,
            bearing_mode.value,
        )
        return CompiledQuery(
            self.table.name,
            self._select(columns, distance, bearing),
            where,
            order,
            opts.limit,
            opts.offset,
        )

    def compile_nearbys(
        self,
        record: Any,
        radius: Any = None,
        options: QueryOptions | Mapping[str, Any] | None = None,
    ) -> CompiledQuery:
        """Rows near an existing record, excluding the record itself."""
        opts = QueryOptions.parse(options).model_copy(update={"exclude": record})
        if isinstance(record, Mapping):
            location = (record.get(self.table.latitude), record.get(self.table.longitude))
        else:
            location = (getattr(record, self.table.latitude, None), getattr(record, self.table.longitude, None))
        return self.compile_near(location, radius, opts)

    def compile_within_box(
        self,
        bounds: Any,
        options: QueryOptions | Mapping[str, Any] | None = None,
    ) -> CompiledQuery:
        """Rows inside a south-west / north-east box. No distance column is computed."""
        opts = QueryOptions.parse(options)
        box = _parse_bounds(bounds)
        excluded = self._excluded_id(opts.exclude)
        # No computed columns here, so geo_only still selects the row
        columns = self._columns(opts.select) or [f"{self.table.name}.*"]
        if box is None:
            # Placeholder columns so callers can still order by distance or bearing
            order = self._order(opts.order, None, {DISTANCE, BEARING})
            select = self._select(columns, raw("NULL"), raw("NULL"))
            return CompiledQuery(self.table.name, select, FALSE_CONDITION, order, opts.limit, opts.offset)
        order = self._order(opts.order, None, set())
        where = self.builder.within_bounding_box(box, self.table.lat_col, self.table.lng_col)
        return CompiledQuery(
            self.table.name,
            self._select(columns, None, None),
            self._with_exclusion(where, excluded),
            order,
            opts.limit,
            opts.offset,
        )

    def geocoded_condition(self) -> SqlFragment:
        return self.builder.geocoded(self.table.lat_col, self.table.lng_col)

    def not_geocoded_condition(self) -> SqlFragment:
        return self.builder.not_geocoded(self.table.lat_col, self.table.lng_col)
