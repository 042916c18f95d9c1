"""Pytest configuration and fixtures."""
import sqlite3
import sys
from pathlib import Path

import pytest

# Ensure project root is on path (main.py is not part of the installed package)
root = Path(__file__).resolve().parent.parent
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from geonear.data.sqlite_math import register_math_functions  # noqa: E402
from geonear.query.compiler import GeoTable  # noqa: E402
from geonear.settings import Settings  # noqa: E402


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def table():
    return GeoTable(name="places", columns=frozenset({"id", "name", "lat", "lng"}))


@pytest.fixture
def math_db():
    """In-memory SQLite with the trigonometric functions registered."""
    conn = sqlite3.connect(":memory:")
    register_math_functions(conn)
    yield conn
    conn.close()


@pytest.fixture
def plain_db():
    conn = sqlite3.connect(":memory:")
    yield conn
    conn.close()


def _make_places(conn, rows):
    conn.execute("CREATE TABLE places (id INTEGER PRIMARY KEY, name TEXT, lat REAL, lng REAL)")
    conn.executemany("INSERT INTO places (id, name, lat, lng) VALUES (?, ?, ?, ?)", rows)
    conn.commit()


@pytest.fixture
def make_places():
    """Create and fill a places table on a connection."""
    return _make_places
