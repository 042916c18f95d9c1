"""
Python math functions for SQLite, so trigonometric SQL runs on builds without them.
"""
import math
import sqlite3
from typing import Callable


def _nullsafe(fn: Callable[..., float]) -> Callable[..., float | None]:
    def wrapper(*args):
        if any(a is None for a in args):
            return None
        return fn(*args)

    return wrapper


def _clamp_unit(x: float) -> float:
    return max(-1.0, min(1.0, x))


MATH_FUNCTIONS: dict[str, tuple[int, Callable[..., float]]] = {
    "SIN": (1, math.sin),
    "COS": (1, math.cos),
    "ASIN": (1, lambda x: math.asin(_clamp_unit(x))),
    "ACOS": (1, lambda x: math.acos(_clamp_unit(x))),
    "ATAN2": (2, math.atan2),
    "SQRT": (1, lambda x: math.sqrt(max(0.0, x))),
    "POWER": (2, math.pow),
    "RADIANS": (1, math.radians),
    "DEGREES": (1, math.degrees),
    "FLOOR": (1, math.floor),
}


def register_math_functions(conn: sqlite3.Connection) -> sqlite3.Connection:
    for name, (n_args, fn) in MATH_FUNCTIONS.items():
        conn.create_function(name, n_args, _nullsafe(fn), deterministic=True)
    return conn
