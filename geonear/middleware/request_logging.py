"""
Request logging middleware. One telemetry line per request; proximity routes under
/places also carry the query kind and the backend profile that served them.
"""
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from geonear.monitoring.metrics import record_query, record_request

logger = logging.getLogger(__name__)

PLACES_PREFIX = "/places/"


def query_kind(path: str) -> str | None:
    """near / within / nearbys for the proximity routes, None for anything else."""
    if not path.startswith(PLACES_PREFIX):
        return None
    tail = path[len(PLACES_PREFIX):]
    if tail == "nearby":
        return "near"
    if tail == "within":
        return "within"
    if tail.endswith("/nearbys"):
        return "nearbys"
    return None


def _profile(request: Request) -> str:
    repo = getattr(request.app.state, "repo", None)
    compiler = getattr(repo, "compiler", None)
    return compiler.profile.value if compiler is not None else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log method, path, status and duration; query strings are left out (they carry
    locations). Successful proximity queries are counted per kind and profile.
    """

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        record_request(response.status_code)
        kind = query_kind(request.url.path)
        if kind is None:
            logger.info(
                "telemetry request method=%s path=%s status=%s duration_ms=%.1f",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
            )
            return response
        profile = _profile(request)
        if response.status_code < 400:
            record_query(kind, profile)
        logger.info(
            "telemetry request method=%s path=%s status=%s duration_ms=%.1f query=%s profile=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            kind,
            profile,
        )
        return response
