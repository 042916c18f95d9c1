"""
Places repository: SQLite-backed store that runs compiled proximity queries.
"""
import logging
import sqlite3
from pathlib import Path
from typing import Any, NamedTuple

from geonear.data.coordinates import Lookup
from geonear.data.sqlite_math import register_math_functions
from geonear.query.compiler import CompiledQuery, GeoTable, ProximityQueryCompiler
from geonear.settings import Settings, get_settings

logger = logging.getLogger(__name__)

PLACES_TABLE = GeoTable(name="places", columns=frozenset({"id", "name", "lat", "lng"}))


class PlaceRecord(NamedTuple):
    id: int
    name: str
    lat: float | None
    lng: float | None
    distance: float | None = None
    bearing: float | None = None


def init_db(db_path: str | Path) -> None:
    """Create places table and index if they do not exist."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS places (
                id INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                lat REAL,
                lng REAL
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_places_lat_lng ON places(lat, lng)")
        conn.commit()


def render_statement(query: CompiledQuery) -> tuple[str, tuple[Any, ...]]:
    """SQLite SELECT for a compiled query (SQLite needs LIMIT -1 to allow a bare OFFSET)."""
    sql = f"SELECT {query.select.sql} FROM {query.table} WHERE {query.where.sql}"
    params = list(query.params)
    if query.order:
        sql += f" ORDER BY {query.order}"
    if query.limit is not None or query.offset is not None:
        sql += " LIMIT ?"
        params.append(query.limit if query.limit is not None else -1)
        if query.offset is not None:
            sql += " OFFSET ?"
            params.append(query.offset)
    return sql, tuple(params)


def _record(row: sqlite3.Row) -> PlaceRecord:
    keys = row.keys()
    return PlaceRecord(
        id=row["id"],
        name=row["name"],
        lat=row["lat"],
        lng=row["lng"],
        distance=row["distance"] if "distance" in keys else None,
        bearing=row["bearing"] if "bearing" in keys else None,
    )


class PlacesRepo:
    """
    Opens one connection per call; the backend profile is detected once here,
    on the setup connection, and reused for every query.
    """

    def __init__(self, db_path: str | Path, settings: Settings | None = None) -> None:
        self.db_path = Path(db_path)
        self.settings = settings or get_settings()
        init_db(self.db_path)
        with self._connect() as conn:
            self.compiler = ProximityQueryCompiler.for_connection(conn, PLACES_TABLE, self.settings)
        logger.info(
            "telemetry places_repo db=%s profile=%s",
            self.db_path.name,
            self.compiler.profile.value,
        )

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        if self.settings.sqlite_math_functions:
            register_math_functions(conn)
        return conn

    def _fetch(self, query: CompiledQuery) -> list[PlaceRecord]:
        sql, params = render_statement(query)
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_record(r) for r in rows]

    def add_place(self, name: str, lat: float | None, lng: float | None, place_id: int | None = None) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT OR REPLACE INTO places (id, name, lat, lng) VALUES (?, ?, ?, ?)",
                (place_id, name, lat, lng),
            )
            conn.commit()
            return cur.lastrowid

    def get_place(self, place_id: int) -> PlaceRecord | None:
        with self._connect() as conn:
            r = conn.execute("SELECT id, name, lat, lng FROM places WHERE id = ?", (place_id,)).fetchone()
        return _record(r) if r is not None else None

    def search_nearby(
        self,
        location: Any,
        radius: float | None = None,
        options: dict[str, Any] | None = None,
        lookup: Lookup | None = None,
    ) -> list[PlaceRecord]:
        """Places within radius of location, nearest first unless options set an order."""
        return self._fetch(self.compiler.compile_near(location, radius, options, lookup=lookup))

    def search_within(self, bounds: Any, options: dict[str, Any] | None = None) -> list[PlaceRecord]:
        return self._fetch(self.compiler.compile_within_box(bounds, options))

    def nearbys(self, place_id: int, radius: float | None = None, options: dict[str, Any] | None = None) -> list[PlaceRecord] | None:
        """Places near an existing place, excluding it. None if the place does not exist."""
        place = self.get_place(place_id)
        if place is None:
            return None
        return self._fetch(self.compiler.compile_nearbys(place, radius, options))

    def count_geocoded(self) -> tuple[int, int]:
        """(geocoded, not geocoded) place counts."""
        with self._connect() as conn:
            geocoded = conn.execute(
                f"SELECT COUNT(*) FROM places WHERE {self.compiler.geocoded_condition().sql}"
            ).fetchone()[0]
            missing = conn.execute(
                f"SELECT COUNT(*) FROM places WHERE {self.compiler.not_geocoded_condition().sql}"
            ).fetchone()[0]
        return geocoded, missing
